"""
Session Orchestrator - 一局海龜湯從開始到結束的協調者

流程（每個請求各自獨立）：
1. start_session：取題 → 產生開場 → 建立 session
2. submit_answer：鎖住 session → 評估 → 答對就產生故事片段 → 一次寫入
3. get_final_story：完成後回傳組好的故事

身分與語言一律由呼叫端以 RequestContext 明確帶入。
任何外部呼叫失敗都發生在寫入之前，session 不會被改到一半。
"""

import logging
from typing import Optional

from soup_story.config import get_settings
from soup_story.errors import Conflict, Forbidden, InvalidState, NotFound
from soup_story.messages import evaluation_label
from soup_story.models.evaluation import Classification, Evaluation, TurnResult
from soup_story.models.identity import RequestContext
from soup_story.models.session import StorySession, StoryTurn
from soup_story.utils import short_id

logger = logging.getLogger(__name__)


class SessionOrchestrator:
    def __init__(self, puzzle_repository, session_store, evaluation_gateway, story_accumulator, settings=None):
        self.puzzles = puzzle_repository
        self.store = session_store
        self.evaluator = evaluation_gateway
        self.story = story_accumulator
        self.settings = settings or get_settings()

    # === Session 生命週期 ===

    async def start_session(
        self,
        ctx: RequestContext,
        puzzle_id: str,
        claimed_user_id: Optional[str] = None,
    ) -> StorySession:
        # userId 只來自驗證過的 token；body 裡的值只能與它相同
        if claimed_user_id and claimed_user_id != ctx.user.id:
            logger.warning(f"[Session] userId in body does not match token user {ctx.user.id[:8]}...")
            raise Forbidden("userId does not match the signed-in user")

        puzzle = self.puzzles.get_by_id(puzzle_id).localized(ctx.language)

        if self.settings.enforce_single_active_session:
            existing = self.store.find_active(ctx.user.id, puzzle_id)
            if existing:
                raise Conflict(
                    "An active session already exists for this puzzle",
                    storySessionId=existing.session_id,
                )

        opening = await self.story.opening(puzzle, ctx.language)
        session = self.store.create(puzzle_id, ctx.user.id, opening, ctx.language)
        logger.info(f"[Session] started {short_id(session.session_id)} puzzle={puzzle_id} user={ctx.user.id[:8]}...")
        return session

    async def submit_answer(
        self,
        ctx: RequestContext,
        session_id: str,
        audio: Optional[bytes] = None,
        text: Optional[str] = None,
        mime_type: Optional[str] = None,
        nonce: Optional[str] = None,
    ) -> TurnResult:
        if (audio is None) == (text is None):
            raise ValueError("Provide exactly one of audio or text")

        async with self.store.lock(session_id):
            session = self._load_owned(ctx, session_id)

            if nonce and nonce in session.applied_nonces:
                logger.info(f"[Session] {short_id(session_id)} replaying nonce {nonce[:8]}")
                return TurnResult(**session.applied_nonces[nonce], replayed=True)

            self._require_active(session)
            # 一局遊戲固定用開局時的語言：題目、提示詞與標籤一致
            language = session.language
            puzzle = self.puzzles.get_by_id(session.puzzle_id).localized(language)

            if audio is not None:
                source = "voice"
                turn_eval = await self.evaluator.transcribe_and_evaluate(
                    session, puzzle, audio, language, mime_type
                )
            else:
                source = "text"
                turn_eval = await self.evaluator.evaluate_turn(session, puzzle, text, language)

            classification = turn_eval.evaluation.classification
            answer = turn_eval.transcription or text or ""

            story_chunk = None
            if classification == Classification.YES:
                story_chunk = await self.story.continue_story(session, answer, puzzle.content)

            payload = {
                "evaluation": classification.value,
                "explanation": turn_eval.evaluation.explanation,
                "transcription": turn_eval.transcription,
                "story_chunk": story_chunk,
                "label": evaluation_label(classification.value, language),
            }
            turn = StoryTurn(
                answer=answer,
                source=source,
                classification=classification.value,
                explanation=turn_eval.evaluation.explanation,
                reported_completion=turn_eval.completion,
                nonce=nonce,
            )
            saved = self.store.record_turn(
                session_id,
                turn,
                story_chunk=story_chunk,
                result=payload if nonce else None,
            )

        return TurnResult(**payload, completion=saved.completion, state=saved.state.value)

    async def evaluate_text(
        self,
        ctx: RequestContext,
        puzzle_id: str,
        user_answer: str,
        puzzle_prompt: Optional[str] = None,
        answer_key: Optional[str] = None,
        session_id: Optional[str] = None,
    ) -> Evaluation:
        """單次評估；題庫有的題目一律以伺服器端的湯面 / 湯底為準"""
        try:
            puzzle = self.puzzles.get_by_id(puzzle_id).localized(ctx.language)
            puzzle_prompt, answer_key = puzzle.content, puzzle.full_answer
        except NotFound:
            if session_id or not (puzzle_prompt and answer_key):
                raise
            logger.info(f"[Evaluate] puzzle {puzzle_id} not in catalogue, using client-supplied text")

        if not session_id:
            return await self.evaluator.evaluate(puzzle_id, puzzle_prompt, answer_key, user_answer, ctx.language)

        async with self.store.lock(session_id):
            session = self._load_owned(ctx, session_id)
            self._require_active(session)
            if session.puzzle_id != puzzle_id:
                raise InvalidState("puzzleId does not match the session", storySessionId=session_id)

            evaluation = await self.evaluator.evaluate(
                puzzle_id, puzzle_prompt, answer_key, user_answer, ctx.language
            )
            if evaluation.classification == Classification.YES:
                self.store.confirm_idea(session_id, user_answer)
        return evaluation

    async def append_story(
        self,
        ctx: RequestContext,
        session_id: str,
        user_correct_idea: str,
        puzzle_summary: Optional[str] = None,
        puzzle_id: Optional[str] = None,
    ) -> str:
        async with self.store.lock(session_id):
            session = self._load_owned(ctx, session_id)
            if puzzle_id and puzzle_id != session.puzzle_id:
                raise InvalidState("puzzleId does not match the session", storySessionId=session_id)
            if not puzzle_summary:
                puzzle_summary = self.puzzles.get_by_id(session.puzzle_id).localized(session.language).content
            return await self.story.append_on_correct(session_id, user_correct_idea, puzzle_summary)

    async def get_final_story(self, ctx: RequestContext, session_id: str) -> str:
        self._load_owned(ctx, session_id)
        return self.story.finalize(session_id)

    async def get_session(self, ctx: RequestContext, session_id: str) -> StorySession:
        return self._load_owned(ctx, session_id)

    async def abandon_session(self, ctx: RequestContext, session_id: str) -> StorySession:
        async with self.store.lock(session_id):
            self._load_owned(ctx, session_id)
            return self.store.mark_failed(session_id)

    # === 輔助方法 ===

    def _load_owned(self, ctx: RequestContext, session_id: str) -> StorySession:
        session = self.store.get(session_id)
        if session.user_id != ctx.user.id:
            logger.warning(f"[Session] {short_id(session_id)} accessed by another user")
            raise Forbidden("Session belongs to another user", storySessionId=session_id)
        return session

    @staticmethod
    def _require_active(session: StorySession) -> None:
        if not session.is_active():
            raise InvalidState(
                f"Session is {session.state.value}",
                state=session.state.value,
                storySessionId=session.session_id,
            )
