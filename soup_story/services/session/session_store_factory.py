"""
Session Store 工廠

有 MONGODB_URI 就嘗試用 MongoDB，連不到就自動切回記憶體版本。
使用 lazy singleton，避免重複建立實例。
"""

import logging

from soup_story.config import get_settings

logger = logging.getLogger(__name__)

_session_store = None


def get_session_store():
    global _session_store
    if _session_store is not None:
        return _session_store

    settings = get_settings()
    enforce = settings.enforce_single_active_session

    if settings.mongodb_uri:
        try:
            from .mongo_session_store import MongoStorySessionStore
            _session_store = MongoStorySessionStore(enforce_single_active=enforce)
            logger.info("Using MongoDB StorySessionStore")
            return _session_store
        except Exception as e:
            logger.warning(f"MongoDB StorySessionStore failed, falling back to in-memory: {e}")

    from .session_store import StorySessionStore
    _session_store = StorySessionStore(enforce_single_active=enforce)
    logger.info("Using in-memory StorySessionStore")
    return _session_store


def reset_session_store() -> None:
    """清除 singleton（測試用）"""
    global _session_store
    _session_store = None
