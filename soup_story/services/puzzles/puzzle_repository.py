"""
題庫存取（唯讀）

- PuzzleRepository：讀取內建 JSON 題庫
- MongoPuzzleRepository：讀取 MongoDB puzzles 集合
- CachedPuzzleRepository：在任一來源外包一層 TTL 快取
"""

import json
import logging
import time
from pathlib import Path
from typing import Callable, Dict, List, Optional, Tuple

from pydantic import ValidationError

from soup_story.errors import NotFound, ParseError
from soup_story.models.puzzle import Puzzle
from soup_story.services.mongo_client import get_mongo_db, mongo_errors

logger = logging.getLogger(__name__)

DEFAULT_DATA_PATH = Path(__file__).resolve().parents[2] / "data" / "puzzles.json"


class PuzzleRepository:
    """內建 JSON 題庫"""

    def __init__(self, data_path: Optional[str] = None):
        self.data_path = Path(data_path) if data_path else DEFAULT_DATA_PATH
        self._puzzles: Dict[str, Puzzle] = {}
        self._load()

    def _load(self) -> None:
        with open(self.data_path, "r", encoding="utf-8") as f:
            raw = json.load(f)
        try:
            puzzles = [Puzzle(**item) for item in raw]
        except ValidationError as e:
            raise ParseError(f"Invalid puzzle data in {self.data_path}") from e
        self._puzzles = {p.id: p for p in puzzles}
        logger.info(f"Loaded {len(self._puzzles)} puzzles from {self.data_path.name}")

    def get_by_id(self, puzzle_id: str) -> Puzzle:
        puzzle = self._puzzles.get(puzzle_id)
        if puzzle is None:
            raise NotFound(f"Puzzle {puzzle_id} not found", puzzleId=puzzle_id)
        return puzzle

    def list_all(self) -> List[Puzzle]:
        return list(self._puzzles.values())


class MongoPuzzleRepository:
    """MongoDB 題庫"""

    def __init__(self):
        self.db = get_mongo_db()
        self.puzzles_collection = self.db["puzzles"]

    def get_by_id(self, puzzle_id: str) -> Puzzle:
        with mongo_errors("get puzzle"):
            doc = self.puzzles_collection.find_one({"id": puzzle_id})
        if doc is None:
            logger.warning(f"Puzzle not found in MongoDB: {puzzle_id}")
            raise NotFound(f"Puzzle {puzzle_id} not found", puzzleId=puzzle_id)
        return self._doc_to_puzzle(doc)

    def list_all(self) -> List[Puzzle]:
        with mongo_errors("list puzzles"):
            docs = list(self.puzzles_collection.find({}).sort("id", 1))
        return [self._doc_to_puzzle(doc) for doc in docs]

    @staticmethod
    def _doc_to_puzzle(doc: Dict) -> Puzzle:
        cleaned = dict(doc)
        cleaned.pop("_id", None)
        try:
            return Puzzle(**cleaned)
        except ValidationError as e:
            logger.error(f"Malformed puzzle document {cleaned.get('id')}: {e}")
            raise ParseError(f"Malformed puzzle {cleaned.get('id')}") from e


class CachedPuzzleRepository:
    """TTL 快取；題目很少變動，但不會無限期提供舊內容"""

    def __init__(self, backend, ttl_seconds: float = 300.0, clock: Callable[[], float] = time.monotonic):
        self.backend = backend
        self.ttl_seconds = ttl_seconds
        self._clock = clock
        self._by_id: Dict[str, Tuple[float, Puzzle]] = {}
        self._all: Optional[Tuple[float, List[Puzzle]]] = None

    def get_by_id(self, puzzle_id: str) -> Puzzle:
        now = self._clock()
        cached = self._by_id.get(puzzle_id)
        if cached and cached[0] > now:
            return cached[1]

        puzzle = self.backend.get_by_id(puzzle_id)
        self._by_id[puzzle_id] = (now + self.ttl_seconds, puzzle)
        return puzzle

    def list_all(self) -> List[Puzzle]:
        now = self._clock()
        if self._all and self._all[0] > now:
            return list(self._all[1])

        puzzles = self.backend.list_all()
        self._all = (now + self.ttl_seconds, puzzles)
        for p in puzzles:
            self._by_id[p.id] = (now + self.ttl_seconds, p)
        return list(puzzles)

    def invalidate(self, puzzle_id: Optional[str] = None) -> None:
        if puzzle_id is None:
            self._by_id.clear()
        else:
            self._by_id.pop(puzzle_id, None)
        self._all = None
        logger.info(f"Puzzle cache invalidated ({puzzle_id or 'all'})")
