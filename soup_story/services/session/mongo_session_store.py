"""
MongoDB Story Session 儲存

職責：
1. 在 MongoDB 中進行 Session CRUD
2. 狀態機管理（見 StoryStateMixin）
3. 以 version 欄位做樂觀鎖，跨 process 也不會互相覆蓋
"""

from typing import Any, Dict, Optional

from pydantic import ValidationError
from pymongo.errors import DuplicateKeyError

from soup_story.errors import Conflict, NotFound, ParseError
from soup_story.models.session import SessionState, StorySession
from soup_story.services.mongo_client import get_mongo_db, mongo_errors
from soup_story.utils import short_id
from .session_state_mixin import SessionLockRegistry, StoryStateMixin
import logging

logger = logging.getLogger(__name__)

ACTIVE_PAIR_INDEX = "one_active_session_per_user_puzzle"


class MongoStorySessionStore(StoryStateMixin):
    """MongoDB Session 儲存"""

    def __init__(self, enforce_single_active: bool = True):
        self.db = get_mongo_db()
        self.sessions_collection = self.db["story_sessions"]
        self._locks = SessionLockRegistry()
        self.enforce_single_active = enforce_single_active

        if enforce_single_active:
            try:
                self.sessions_collection.create_index(
                    [("user_id", 1), ("puzzle_id", 1)],
                    name=ACTIVE_PAIR_INDEX,
                    unique=True,
                    partialFilterExpression={"state": SessionState.ACTIVE.value},
                )
            except Exception as e:
                logger.warning(f"Index creation for active sessions: {e}")

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

        with mongo_errors("create session"):
            try:
                self.sessions_collection.insert_one(self._session_to_doc(session))
            except DuplicateKeyError:
                # 同時有另一個請求搶先建立
                existing = self.find_active(user_id, puzzle_id)
                raise Conflict(
                    "An active session already exists for this puzzle",
                    storySessionId=existing.session_id if existing else None,
                )

        logger.info(
            f"Created session in MongoDB: {short_id(session.session_id)} "
            f"(puzzle={puzzle_id}, language={language})"
        )
        return session

    def get(self, session_id: str) -> StorySession:
        """取得 session"""
        with mongo_errors("get session"):
            doc = self.sessions_collection.find_one({"session_id": session_id})

        if doc is None:
            logger.warning(f"Session not found in MongoDB: {short_id(session_id)}")
            raise NotFound("Session not found", storySessionId=session_id)

        return self._doc_to_session(doc)

    def find_active(self, user_id: str, puzzle_id: str) -> Optional[StorySession]:
        with mongo_errors("find active session"):
            doc = self.sessions_collection.find_one({
                "user_id": user_id,
                "puzzle_id": puzzle_id,
                "state": SessionState.ACTIVE.value,
            })
        return self._doc_to_session(doc) if doc else None

    def _save(self, session: StorySession) -> StorySession:
        expected_version = session.version
        session.version = expected_version + 1
        session.update_timestamp()

        with mongo_errors("update session"):
            result = self.sessions_collection.update_one(
                {"session_id": session.session_id, "version": expected_version},
                {"$set": self._session_to_doc(session)},
            )

        if result.matched_count == 0:
            session.version = expected_version
            logger.warning(f"Version conflict for session: {short_id(session.session_id)}")
            raise Conflict("Session was modified concurrently", storySessionId=session.session_id)

        logger.info(
            f"Updated session in MongoDB: {short_id(session.session_id)}, "
            f"state={session.state.value}, completion={session.completion:.2f}, "
            f"chunks={len(session.story_log)}"
        )
        return session

    # === 輔助方法 ===

    @staticmethod
    def _session_to_doc(session: StorySession) -> Dict[str, Any]:
        doc = session.model_dump(mode="json")
        doc["created_at"] = session.created_at
        doc["updated_at"] = session.updated_at
        return doc

    @staticmethod
    def _doc_to_session(doc: Dict[str, Any]) -> StorySession:
        cleaned = dict(doc)
        cleaned.pop("_id", None)
        try:
            return StorySession(**cleaned)
        except ValidationError as e:
            logger.error(f"Malformed session document {cleaned.get('session_id')}: {e}")
            raise ParseError(f"Malformed session {cleaned.get('session_id')}") from e
