"""
MongoDB 連接管理

職責：
1. 管理 MongoDB 連接
2. 初始化集合和索引
3. 把 pymongo 例外轉成服務錯誤分類
"""

import logging
from contextlib import contextmanager
from typing import Optional
from pymongo import MongoClient
from pymongo.errors import AutoReconnect, ConnectionFailure, PyMongoError, ServerSelectionTimeoutError

from soup_story.config import get_settings
from soup_story.errors import NetworkError, UpstreamError

logger = logging.getLogger(__name__)


class MongoDBClient:
    """MongoDB 客戶端單例"""

    _instance: Optional["MongoDBClient"] = None
    _client: Optional[MongoClient] = None

    def __new__(cls):
        if cls._instance is None:
            cls._instance = super(MongoDBClient, cls).__new__(cls)
        return cls._instance

    def __init__(self):
        """初始化 MongoDB 連接"""
        if self._client is not None:
            return

        settings = get_settings()
        self.uri = settings.mongodb_uri or "mongodb://localhost:27017/soup_story"
        self.db_name = settings.mongodb_db_name
        self.connect()

    def connect(self) -> None:
        """連接到 MongoDB"""
        try:
            self._client = MongoClient(self.uri, serverSelectionTimeoutMS=5000)
            # 測試連接
            self._client.admin.command("ping")
            logger.info("Successfully connected to MongoDB")
            self._initialize_collections()
        except (ConnectionFailure, ServerSelectionTimeoutError) as e:
            logger.error(f"Failed to connect to MongoDB: {e}")
            raise

    def _initialize_collections(self) -> None:
        """初始化集合和索引"""
        db = self.get_db()

        # ===== story_sessions 集合 =====
        if "story_sessions" not in db.list_collection_names():
            db.create_collection("story_sessions")
            logger.info("Created 'story_sessions' collection")

        sessions = db["story_sessions"]

        try:
            sessions.create_index("session_id", unique=True)
            sessions.create_index([("user_id", 1), ("puzzle_id", 1), ("state", 1)])
            sessions.create_index([("created_at", -1)])
            logger.info("Created indexes for 'story_sessions' collection")
        except Exception as e:
            logger.warning(f"Index creation for 'story_sessions': {e}")

        # ===== puzzles 集合 =====
        try:
            db["puzzles"].create_index("id", unique=True)
        except Exception as e:
            logger.warning(f"Index creation for 'puzzles': {e}")

    def get_client(self) -> MongoClient:
        """取得 MongoDB 客戶端"""
        if self._client is None:
            self.connect()
        return self._client

    def get_db(self):
        """取得資料庫實例"""
        return self.get_client()[self.db_name]

    def close(self) -> None:
        """關閉連接"""
        if self._client:
            self._client.close()
            self._client = None
            logger.info("MongoDB connection closed")


# 全域客戶端實例
_mongo_client: Optional[MongoDBClient] = None


def get_mongo_client() -> MongoDBClient:
    """取得 MongoDB 客戶端單例"""
    global _mongo_client
    if _mongo_client is None:
        _mongo_client = MongoDBClient()
    return _mongo_client


def get_mongo_db():
    """便利函數：取得資料庫實例"""
    return get_mongo_client().get_db()


def close_mongo_client() -> None:
    """關閉連線（只在曾經建立過時）"""
    global _mongo_client
    if _mongo_client is not None:
        _mongo_client.close()
        _mongo_client = None


@contextmanager
def mongo_errors(action: str):
    """把 pymongo 例外轉成 NetworkError / UpstreamError"""
    try:
        yield
    except AutoReconnect as e:
        logger.error(f"MongoDB unreachable during {action}: {e}")
        raise NetworkError(f"Storage unreachable during {action}") from e
    except PyMongoError as e:
        logger.error(f"MongoDB error during {action}: {e}")
        raise UpstreamError(f"Storage error during {action}") from e
