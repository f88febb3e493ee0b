"""
Story Session API

- POST /story/start：開新的一局，回傳開場
- POST /story/append：舊版兩段式流程（先 /chat/evaluate 再 append）
- POST /story/final：解完後取得完整故事
- GET /story/{id}：進度快照
- POST /story/abandon：放棄這局
"""

import logging
from typing import Optional

from fastapi import APIRouter, Depends
from pydantic import BaseModel, ConfigDict, Field

from soup_story import deps
from soup_story.auth import request_context
from soup_story.models.identity import RequestContext
from soup_story.services.orchestrator import SessionOrchestrator

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/story", tags=["Story"])


# === Request Models ===

class StartStoryRequest(BaseModel):
    """建立 session 請求；userId 只用來和 token 比對"""
    puzzle_id: str = Field(..., alias="puzzleId", min_length=1)
    user_id: Optional[str] = Field(None, alias="userId")

    model_config = ConfigDict(populate_by_name=True)


class SessionRequest(BaseModel):
    story_session_id: str = Field(..., alias="storySessionId", min_length=1)

    model_config = ConfigDict(populate_by_name=True)


class AppendStoryRequest(SessionRequest):
    puzzle_id: Optional[str] = Field(None, alias="puzzleId")
    user_correct_idea: str = Field(..., alias="userCorrectIdea", min_length=1)
    puzzle_summary: Optional[str] = Field(None, alias="puzzleSummary")


# === Endpoints ===

@router.post("/start")
async def start_story(
    req: StartStoryRequest,
    ctx: RequestContext = Depends(request_context),
    orchestrator: SessionOrchestrator = Depends(deps.get_orchestrator),
):
    session = await orchestrator.start_session(ctx, req.puzzle_id, claimed_user_id=req.user_id)
    return {"storySessionId": session.session_id, "openingText": session.opening_text}


@router.post("/append")
async def append_story(
    req: AppendStoryRequest,
    ctx: RequestContext = Depends(request_context),
    orchestrator: SessionOrchestrator = Depends(deps.get_orchestrator),
):
    chunk = await orchestrator.append_story(
        ctx,
        req.story_session_id,
        req.user_correct_idea,
        puzzle_summary=req.puzzle_summary,
        puzzle_id=req.puzzle_id,
    )
    return {"storyChunk": chunk}


@router.post("/final")
async def final_story(
    req: SessionRequest,
    ctx: RequestContext = Depends(request_context),
    orchestrator: SessionOrchestrator = Depends(deps.get_orchestrator),
):
    return {"finalStory": await orchestrator.get_final_story(ctx, req.story_session_id)}


@router.post("/abandon")
async def abandon_story(
    req: SessionRequest,
    ctx: RequestContext = Depends(request_context),
    orchestrator: SessionOrchestrator = Depends(deps.get_orchestrator),
):
    session = await orchestrator.abandon_session(ctx, req.story_session_id)
    return {"storySessionId": session.session_id, "state": session.state.value}


@router.get("/{session_id}")
async def get_story(
    session_id: str,
    ctx: RequestContext = Depends(request_context),
    orchestrator: SessionOrchestrator = Depends(deps.get_orchestrator),
):
    session = await orchestrator.get_session(ctx, session_id)
    return session.progress()
