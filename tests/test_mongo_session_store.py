"""
MongoDB StorySessionStore 單元測試

測試項目：
1. 建立時的唯一性檢查與 DuplicateKeyError 轉換
2. 取得 / 找不到
3. 以 version 做樂觀鎖的更新
4. pymongo 例外轉成服務錯誤
"""

import unittest
from datetime import datetime
from unittest.mock import MagicMock, patch

from pymongo.errors import AutoReconnect, DuplicateKeyError, OperationFailure

from soup_story.errors import Conflict, InvalidState, NetworkError, NotFound, ParseError, UpstreamError
from soup_story.models.session import SessionState, StoryTurn


def _doc(**overrides):
    doc = {
        "_id": "mongo-object-id",
        "session_id": "sess-123",
        "puzzle_id": "silent_concert",
        "user_id": "user-1",
        "language": "en",
        "state": "ACTIVE",
        "completion": 0.25,
        "turns": [],
        "opening_text": "The hall was full.",
        "confirmed_ideas": ["the pianist is deaf"],
        "story_log": [],
        "final_story": None,
        "applied_nonces": {},
        "version": 3,
        "created_at": datetime(2024, 5, 1, 12, 0, 0),
        "updated_at": datetime(2024, 5, 1, 12, 5, 0),
    }
    doc.update(overrides)
    return doc


class TestMongoStorySessionStore(unittest.TestCase):
    """MongoDB StorySessionStore 測試"""

    @patch("soup_story.services.session.mongo_session_store.get_mongo_db")
    def setUp(self, mock_get_db):
        self.mock_db = MagicMock()
        mock_get_db.return_value = self.mock_db

        self.mock_sessions = MagicMock()
        self.mock_db.__getitem__.return_value = self.mock_sessions

        from soup_story.services.session.mongo_session_store import MongoStorySessionStore
        self.store = MongoStorySessionStore()

    def test_partial_unique_index_created(self):
        """只對 ACTIVE 的 (user_id, puzzle_id) 建唯一索引"""
        kwargs = self.mock_sessions.create_index.call_args.kwargs
        self.assertTrue(kwargs["unique"])
        self.assertEqual(kwargs["partialFilterExpression"], {"state": "ACTIVE"})

    def test_create_session(self):
        self.mock_sessions.find_one.return_value = None

        session = self.store.create("silent_concert", "user-1", "Opening", language="zh")

        self.assertEqual(session.state, SessionState.ACTIVE)
        self.assertEqual(session.language, "zh")
        self.mock_sessions.insert_one.assert_called_once()
        inserted = self.mock_sessions.insert_one.call_args[0][0]
        self.assertEqual(inserted["session_id"], session.session_id)
        self.assertEqual(inserted["state"], "ACTIVE")
        self.assertIsInstance(inserted["created_at"], datetime)

    def test_create_conflict_when_active_exists(self):
        self.mock_sessions.find_one.return_value = _doc()

        with self.assertRaises(Conflict) as ctx:
            self.store.create("silent_concert", "user-1", "Opening")

        self.assertEqual(ctx.exception.details["storySessionId"], "sess-123")
        self.mock_sessions.insert_one.assert_not_called()

    def test_create_race_maps_duplicate_key(self):
        """find_active 沒找到，但 insert 撞到唯一索引"""
        self.mock_sessions.find_one.side_effect = [None, _doc()]
        self.mock_sessions.insert_one.side_effect = DuplicateKeyError("dup")

        with self.assertRaises(Conflict) as ctx:
            self.store.create("silent_concert", "user-1", "Opening")
        self.assertEqual(ctx.exception.details["storySessionId"], "sess-123")

    def test_get_session(self):
        self.mock_sessions.find_one.return_value = _doc()

        session = self.store.get("sess-123")

        self.assertEqual(session.session_id, "sess-123")
        self.assertEqual(session.completion, 0.25)
        self.assertEqual(session.version, 3)
        self.mock_sessions.find_one.assert_called_once_with({"session_id": "sess-123"})

    def test_get_session_not_found(self):
        self.mock_sessions.find_one.return_value = None
        with self.assertRaises(NotFound):
            self.store.get("missing")

    def test_malformed_document_is_parse_error(self):
        """壞掉的 session 文件是儲存端問題，不是請求錯誤"""
        self.mock_sessions.find_one.return_value = {"session_id": "sess-123", "state": "BROKEN"}

        with self.assertRaises(ParseError) as ctx:
            self.store.get("sess-123")

        self.assertEqual(ctx.exception.status_code, 502)
        self.assertNotIsInstance(ctx.exception, ValueError)

    def test_record_turn_uses_version_filter(self):
        self.mock_sessions.find_one.return_value = _doc()
        self.mock_sessions.update_one.return_value = MagicMock(matched_count=1)

        turn = StoryTurn(answer="he cannot hear", classification="yes", reported_completion=0.5)
        session = self.store.record_turn("sess-123", turn, story_chunk="He never heard a note.")

        self.assertEqual(session.version, 4)
        self.assertEqual(session.completion, 0.5)
        query, update = self.mock_sessions.update_one.call_args[0]
        self.assertEqual(query, {"session_id": "sess-123", "version": 3})
        self.assertEqual(update["$set"]["story_log"], ["He never heard a note."])
        self.assertEqual(update["$set"]["version"], 4)

    def test_version_conflict(self):
        self.mock_sessions.find_one.return_value = _doc()
        self.mock_sessions.update_one.return_value = MagicMock(matched_count=0)

        with self.assertRaises(Conflict):
            self.store.confirm_idea("sess-123", "another idea")

    def test_completed_session_rejects_turns(self):
        self.mock_sessions.find_one.return_value = _doc(state="COMPLETED", completion=1.0)

        with self.assertRaises(InvalidState):
            self.store.record_turn("sess-123", StoryTurn(classification="no"))
        self.mock_sessions.update_one.assert_not_called()

    def test_network_error_mapping(self):
        self.mock_sessions.find_one.side_effect = AutoReconnect("connection reset")
        with self.assertRaises(NetworkError):
            self.store.get("sess-123")

    def test_upstream_error_mapping(self):
        self.mock_sessions.find_one.side_effect = OperationFailure("bad query")
        with self.assertRaises(UpstreamError):
            self.store.get("sess-123")


if __name__ == "__main__":
    unittest.main()
