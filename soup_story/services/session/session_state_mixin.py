"""
Shared story-session state transitions for both in-memory and MongoDB stores.

This keeps the state machine logic in one place while letting each store
implement its own persistence (in-memory dict vs MongoDB).
"""

from __future__ import annotations

import asyncio
import logging
import weakref
from typing import Any, Dict, Optional

from soup_story.errors import InvalidState
from soup_story.models.session import SessionState, StorySession, StoryTurn
from soup_story.models.evaluation import Classification
from soup_story.utils import clamp_completion, short_id

logger = logging.getLogger(__name__)


class SessionLockRegistry:
    """One asyncio.Lock per session id; unused locks are dropped automatically."""

    def __init__(self):
        self._locks: "weakref.WeakValueDictionary[str, asyncio.Lock]" = weakref.WeakValueDictionary()

    def get(self, session_id: str) -> asyncio.Lock:
        lock = self._locks.get(session_id)
        if lock is None:
            lock = asyncio.Lock()
            self._locks[session_id] = lock
        return lock


class StoryStateMixin:
    """
    Mixin that assumes the concrete class provides:
    - get(session_id) -> StorySession (raises NotFound)
    - _save(session: StorySession) -> StorySession
    - _locks: SessionLockRegistry
    """

    def lock(self, session_id: str) -> asyncio.Lock:
        """Writer lock for one session; hold it across read-evaluate-write."""
        return self._locks.get(session_id)

    def _require_active(self, session_id: str) -> StorySession:
        session = self.get(session_id)
        if session.state != SessionState.ACTIVE:
            raise InvalidState(
                f"Session is {session.state.value}",
                state=session.state.value,
                storySessionId=session_id,
            )
        return session

    # === State transitions ===

    def append_story_chunk(self, session_id: str, chunk: str) -> StorySession:
        session = self._require_active(session_id)
        if session.pending_narrations() <= 0:
            raise InvalidState("No confirmed idea is waiting for a story chunk", storySessionId=session_id)

        session.story_log.append(chunk)
        return self._save(session)

    def confirm_idea(self, session_id: str, idea: str) -> StorySession:
        session = self._require_active(session_id)
        session.confirmed_ideas.append(idea)
        return self._save(session)

    def update_completion(self, session_id: str, completion: float) -> StorySession:
        session = self._require_active(session_id)
        self._raise_completion(session, completion)
        return self._save(session)

    def record_turn(
        self,
        session_id: str,
        turn: StoryTurn,
        story_chunk: Optional[str] = None,
        result: Optional[Dict[str, Any]] = None,
    ) -> StorySession:
        """Apply one evaluated answer in a single write."""
        session = self._require_active(session_id)

        session.turns.append(turn)
        if turn.classification == Classification.YES.value:
            session.confirmed_ideas.append(turn.answer)
            if story_chunk:
                session.story_log.append(story_chunk)

        self._raise_completion(session, turn.reported_completion)

        if turn.nonce and result is not None:
            session.applied_nonces[turn.nonce] = dict(result, completion=session.completion, state=session.state.value)

        return self._save(session)

    def mark_failed(self, session_id: str) -> StorySession:
        session = self._require_active(session_id)
        session.state = SessionState.FAILED
        logger.info(f"[Session] {short_id(session_id)} marked FAILED")
        return self._save(session)

    def get_final_story(self, session_id: str) -> str:
        session = self.get(session_id)
        if session.state != SessionState.COMPLETED:
            raise InvalidState(
                "Final story is only available once the puzzle is solved",
                state=session.state.value,
                storySessionId=session_id,
            )
        return session.final_story

    # === Helpers ===

    @staticmethod
    def _raise_completion(session: StorySession, completion: float) -> None:
        """completion only moves up; 1.0 completes the session exactly once"""
        value = clamp_completion(completion)
        if value > session.completion:
            session.completion = value
        if session.completion >= 1.0 and session.state == SessionState.ACTIVE:
            session.completion = 1.0
            session.state = SessionState.COMPLETED
            if session.final_story is None:
                session.final_story = session.compose_final_story()
            logger.info(
                f"[Session] {short_id(session.session_id)} COMPLETED "
                f"({len(session.story_log)} chunks)"
            )
