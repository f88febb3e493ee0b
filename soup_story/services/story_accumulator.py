"""
Story Accumulator - 玩家每答對一個想法，故事就往下寫一段

- opening / continue_story 只呼叫推理服務，不動 session
- append_on_correct 產生片段後寫入 Session Store
- finalize 回傳已存的 final_story（重複呼叫結果一致）
"""

import logging

from soup_story.config import get_settings
from soup_story.errors import InvalidState
from soup_story.models.puzzle import Puzzle
from soup_story.models.session import StorySession
from soup_story.services.gemini_service import GeminiService
from soup_story.services.story_prompts import (
    CONTINUE_TEMPLATE,
    OPENING_TEMPLATE,
    build_prompt,
    build_system_instruction,
)
from soup_story.utils import compose_story, short_id

logger = logging.getLogger(__name__)


class StoryAccumulator:
    def __init__(self, gemini: GeminiService, session_store, settings=None):
        self.gemini = gemini
        self.session_store = session_store
        self.settings = settings or get_settings()

    async def opening(self, puzzle: Puzzle, language: str) -> str:
        prompt = build_prompt(OPENING_TEMPLATE, language, puzzle_prompt=puzzle.content)
        text = await self.gemini.generate_text(
            prompt,
            timeout=self.settings.evaluation_timeout_seconds,
            system_instruction=build_system_instruction(language),
        )
        logger.info(f"[Story] opening for {puzzle.id}: {len(text)} chars")
        return text

    async def continue_story(
        self,
        session: StorySession,
        user_correct_idea: str,
        puzzle_summary: str,
    ) -> str:
        prompt = build_prompt(
            CONTINUE_TEMPLATE,
            session.language,
            puzzle_summary=puzzle_summary,
            story_so_far=compose_story(session.opening_text, session.story_log) or "-",
            idea=user_correct_idea,
        )
        chunk = await self.gemini.generate_text(
            prompt,
            timeout=self.settings.evaluation_timeout_seconds,
            system_instruction=build_system_instruction(session.language),
        )
        logger.info(f"[Story] session={short_id(session.session_id)} new chunk: {len(chunk)} chars")
        return chunk

    async def append_on_correct(self, session_id: str, user_correct_idea: str, puzzle_summary: str) -> str:
        """只在 session 有尚未寫成故事的已確認想法時才會成功"""
        session = self.session_store.get(session_id)
        if not session.is_active():
            raise InvalidState(f"Session is {session.state.value}", state=session.state.value)
        if session.pending_narrations() <= 0:
            raise InvalidState("No confirmed idea is waiting for a story chunk", storySessionId=session_id)

        chunk = await self.continue_story(session, user_correct_idea, puzzle_summary)
        self.session_store.append_story_chunk(session_id, chunk)
        return chunk

    def finalize(self, session_id: str) -> str:
        return self.session_store.get_final_story(session_id)
