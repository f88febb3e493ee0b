"""
題庫 API（公開，不需登入）

回應不含湯底與子線索。
"""

from typing import Optional

from fastapi import APIRouter, Depends, Header, Query

from soup_story.messages import resolve_language
from soup_story.services.puzzles.puzzle_repository_factory import get_puzzle_repository

router = APIRouter(prefix="/puzzles", tags=["Puzzles"])


def _language(language: Optional[str], accept_language: Optional[str]) -> str:
    return resolve_language(language or accept_language)


@router.get("")
def list_puzzles(
    language: Optional[str] = Query(default=None),
    accept_language: Optional[str] = Header(default=None),
    repo=Depends(get_puzzle_repository),
):
    lang = _language(language, accept_language)
    return [p.public_view(lang) for p in repo.list_all()]


@router.get("/{puzzle_id}")
def get_puzzle(
    puzzle_id: str,
    language: Optional[str] = Query(default=None),
    accept_language: Optional[str] = Header(default=None),
    repo=Depends(get_puzzle_repository),
):
    return repo.get_by_id(puzzle_id).public_view(_language(language, accept_language))
