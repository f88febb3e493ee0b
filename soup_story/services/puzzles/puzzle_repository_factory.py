"""
題庫工廠

有 MONGODB_URI 就讀 MongoDB puzzles 集合，否則讀內建 JSON 題庫。
兩者外面都包 TTL 快取。
"""

import logging

from soup_story.config import get_settings
from .puzzle_repository import CachedPuzzleRepository, MongoPuzzleRepository, PuzzleRepository

logger = logging.getLogger(__name__)

_puzzle_repository = None


def get_puzzle_repository():
    global _puzzle_repository
    if _puzzle_repository is not None:
        return _puzzle_repository

    settings = get_settings()
    backend = None

    if settings.mongodb_uri:
        try:
            backend = MongoPuzzleRepository()
            logger.info("Using MongoDB PuzzleRepository")
        except Exception as e:
            logger.warning(f"MongoDB PuzzleRepository failed, falling back to bundled puzzles: {e}")

    if backend is None:
        backend = PuzzleRepository(settings.puzzle_data_path)
        logger.info("Using bundled PuzzleRepository")

    _puzzle_repository = CachedPuzzleRepository(backend, ttl_seconds=settings.puzzle_cache_ttl_seconds)
    return _puzzle_repository


def reset_puzzle_repository() -> None:
    """清除 singleton（測試用）"""
    global _puzzle_repository
    _puzzle_repository = None
