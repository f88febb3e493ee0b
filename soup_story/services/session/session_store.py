"""
Story Session 儲存（記憶體版本）

職責：
1. Session CRUD
2. 狀態機管理（見 StoryStateMixin）
3. 單一 session 的寫入序列化

注意：只適用單一 process，多副本部署請設定 MONGODB_URI
"""

from typing import Dict, List, Optional

from soup_story.errors import Conflict, NotFound
from soup_story.models.session import SessionState, StorySession
from soup_story.utils import short_id
from .session_state_mixin import SessionLockRegistry, StoryStateMixin
import logging

logger = logging.getLogger(__name__)


class StorySessionStore(StoryStateMixin):
    """Session 儲存（記憶體版本）"""

    def __init__(self, enforce_single_active: bool = True):
        self._sessions: Dict[str, StorySession] = {}
        self._locks = SessionLockRegistry()
        self.enforce_single_active = enforce_single_active

    def create(
        self,
        puzzle_id: str,
        user_id: str,
        opening_text: str,
        language: str = "en",
    ) -> StorySession:
        """建立新 session"""
        if self.enforce_single_active:
            existing = self.find_active(user_id, puzzle_id)
            if existing:
                raise Conflict(
                    "An active session already exists for this puzzle",
                    storySessionId=existing.session_id,
                )

        session = StorySession(
            puzzle_id=puzzle_id,
            user_id=user_id,
            opening_text=opening_text,
            language=language,
        )
        self._sessions[session.session_id] = session.model_copy(deep=True)
        logger.info(f"Created session: {short_id(session.session_id)} (puzzle={puzzle_id}, language={language})")
        return session

    def get(self, session_id: str) -> StorySession:
        """取得 session（回傳副本，修改後需經過 _save）"""
        session = self._sessions.get(session_id)
        if session is None:
            logger.warning(f"Session not found: {short_id(session_id)}")
            raise NotFound("Session not found", storySessionId=session_id)
        return session.model_copy(deep=True)

    def find_active(self, user_id: str, puzzle_id: str) -> Optional[StorySession]:
        for session in self._sessions.values():
            if (
                session.user_id == user_id
                and session.puzzle_id == puzzle_id
                and session.state == SessionState.ACTIVE
            ):
                return session.model_copy(deep=True)
        return None

    def _save(self, session: StorySession) -> StorySession:
        stored = self._sessions.get(session.session_id)
        if stored is None:
            raise NotFound("Session not found", storySessionId=session.session_id)
        if stored.version != session.version:
            raise Conflict("Session was modified concurrently", storySessionId=session.session_id)

        session.version += 1
        session.update_timestamp()
        self._sessions[session.session_id] = session.model_copy(deep=True)
        logger.info(
            f"Updated session: {short_id(session.session_id)}, state={session.state.value}, "
            f"completion={session.completion:.2f}, chunks={len(session.story_log)}"
        )
        return session

    # === 輔助方法 ===

    def get_all_sessions(self) -> List[StorySession]:
        """取得所有 sessions（測試用）"""
        return [s.model_copy(deep=True) for s in self._sessions.values()]
