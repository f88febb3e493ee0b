"""
工廠函數測試：MongoDB 不可用時自動切回記憶體 / 內建題庫
"""

import os
import unittest
from unittest.mock import patch

from soup_story.config import get_settings, reset_settings
from soup_story.services.puzzles.puzzle_repository import CachedPuzzleRepository, PuzzleRepository
from soup_story.services.puzzles.puzzle_repository_factory import get_puzzle_repository, reset_puzzle_repository
from soup_story.services.session.session_store import StorySessionStore
from soup_story.services.session.session_store_factory import get_session_store, reset_session_store


class TestFactories(unittest.TestCase):

    def setUp(self):
        reset_settings()
        reset_session_store()
        reset_puzzle_repository()

    def tearDown(self):
        reset_settings()
        reset_session_store()
        reset_puzzle_repository()

    @patch.dict(os.environ, {"MONGODB_URI": "", "ENFORCE_SINGLE_ACTIVE_SESSION": "false"})
    def test_in_memory_without_mongo(self):
        store = get_session_store()
        self.assertIsInstance(store, StorySessionStore)
        self.assertFalse(store.enforce_single_active)
        self.assertIs(store, get_session_store())

    @patch.dict(os.environ, {"MONGODB_URI": "mongodb://unreachable:27017"})
    @patch("soup_story.services.session.mongo_session_store.get_mongo_db", side_effect=ConnectionError("down"))
    def test_session_store_falls_back(self, _):
        self.assertIsInstance(get_session_store(), StorySessionStore)

    @patch.dict(os.environ, {"MONGODB_URI": "mongodb://unreachable:27017", "PUZZLE_CACHE_TTL_SECONDS": "12"})
    @patch("soup_story.services.puzzles.puzzle_repository.get_mongo_db", side_effect=ConnectionError("down"))
    def test_puzzle_repository_falls_back(self, _):
        repo = get_puzzle_repository()
        self.assertIsInstance(repo, CachedPuzzleRepository)
        self.assertIsInstance(repo.backend, PuzzleRepository)
        self.assertEqual(repo.ttl_seconds, 12)

    @patch.dict(os.environ, {"EVALUATION_TIMEOUT_SECONDS": "7.5", "CORS_ALLOW_ORIGINS": "https://a.example, https://b.example"})
    def test_settings_from_env(self):
        settings = get_settings()
        self.assertEqual(settings.evaluation_timeout_seconds, 7.5)
        self.assertEqual(settings.cors_allow_origins, ["https://a.example", "https://b.example"])


if __name__ == "__main__":
    unittest.main()
