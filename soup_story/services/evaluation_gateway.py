"""
Evaluation Gateway - 把玩家的回答送去推理服務判斷

本身不做任何 NLP，只負責：
1. 組裝請求（題目、湯底、已確認想法、目前完成度）
2. 把回應收斂成 yes / no / not_sure，並把 completion 限制在 [0, 1]
3. 傳輸錯誤交給 GeminiService 轉成錯誤分類

語音路徑含上傳，逾時比文字路徑長。
"""

import logging
from typing import Optional

from google.genai import types

from soup_story.config import get_settings
from soup_story.models.evaluation import Classification, Evaluation, ModelVerdict, TurnEvaluation
from soup_story.models.puzzle import Puzzle
from soup_story.models.session import StorySession
from soup_story.services.gemini_service import GeminiService
from soup_story.services.story_prompts import (
    EVALUATE_TEMPLATE,
    build_prompt,
    build_system_instruction,
    build_turn_prompt,
)
from soup_story.utils import short_id

logger = logging.getLogger(__name__)

DEFAULT_AUDIO_MIME = "audio/mp4"  # .m4a


class EvaluationGateway:
    def __init__(self, gemini: GeminiService, settings=None):
        self.gemini = gemini
        self.settings = settings or get_settings()

    async def evaluate(
        self,
        puzzle_id: str,
        puzzle_prompt: str,
        answer_key: str,
        user_answer: str,
        language: str = "en",
    ) -> Evaluation:
        """單次文字評估，不涉及 session"""
        prompt = build_prompt(
            EVALUATE_TEMPLATE,
            language,
            puzzle_prompt=puzzle_prompt,
            answer_key=answer_key,
            user_answer=user_answer,
        )
        verdict = await self.gemini.generate_json(
            prompt,
            ModelVerdict,
            timeout=self.settings.evaluation_timeout_seconds,
            system_instruction=build_system_instruction(language),
        )
        evaluation = Evaluation(
            classification=Classification.normalize(verdict.result),
            explanation=verdict.explanation,
        )
        logger.info(f"[Evaluate] puzzle={puzzle_id} -> {evaluation.classification.value}")
        return evaluation

    async def transcribe_and_evaluate(
        self,
        session: StorySession,
        puzzle: Puzzle,
        audio_bytes: bytes,
        language: str,
        mime_type: Optional[str] = None,
    ) -> TurnEvaluation:
        """語音路徑：轉寫 + 評估 + 回報完成度"""
        prompt = self._turn_prompt(session, puzzle, language)
        contents = [
            types.Part.from_bytes(data=audio_bytes, mime_type=mime_type or DEFAULT_AUDIO_MIME),
            prompt,
        ]
        verdict = await self.gemini.generate_json(
            contents,
            ModelVerdict,
            timeout=self.settings.transcribe_timeout_seconds,
            model=self.settings.gemini_audio_model_name,
            system_instruction=build_system_instruction(language),
        )
        result = self._to_turn(verdict)
        logger.info(
            f"[Transcribe] session={short_id(session.session_id)} bytes={len(audio_bytes)} "
            f"-> {result.evaluation.classification.value}, completion={result.completion:.2f}"
        )
        return result

    async def evaluate_turn(
        self,
        session: StorySession,
        puzzle: Puzzle,
        text: str,
        language: str,
    ) -> TurnEvaluation:
        """文字路徑：與語音路徑相同的判斷，只是不用轉寫"""
        prompt = self._turn_prompt(session, puzzle, language, text=text)
        verdict = await self.gemini.generate_json(
            prompt,
            ModelVerdict,
            timeout=self.settings.evaluation_timeout_seconds,
            system_instruction=build_system_instruction(language),
        )
        result = self._to_turn(verdict, transcription=text)
        logger.info(
            f"[Evaluate] session={short_id(session.session_id)} "
            f"-> {result.evaluation.classification.value}, completion={result.completion:.2f}"
        )
        return result

    @staticmethod
    def _turn_prompt(session: StorySession, puzzle: Puzzle, language: str, text: Optional[str] = None) -> str:
        return build_turn_prompt(
            language,
            puzzle_prompt=puzzle.content,
            answer_key=puzzle.full_answer,
            parts=puzzle.parts,
            confirmed=session.confirmed_ideas,
            completion=session.completion,
            text=text,
        )

    @staticmethod
    def _to_turn(verdict: ModelVerdict, transcription: Optional[str] = None) -> TurnEvaluation:
        if transcription is None:
            transcription = (verdict.transcription or "").strip() or None
        return TurnEvaluation(
            evaluation=Evaluation(
                classification=Classification.normalize(verdict.result),
                explanation=verdict.explanation,
            ),
            completion=verdict.completion,
            transcription=transcription,
        )
