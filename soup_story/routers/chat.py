"""
作答 API

- POST /chat/transcribe?sessionId=...：上傳語音（multipart audioFile）
- POST /chat/answer：文字作答，流程與語音相同
- POST /chat/evaluate：單次評估（不一定綁 session）

兩個作答端點都接受 Idempotency-Key header，重送時回傳第一次的結果。
作答一律以開局時的 session 語言評估；請求裡的 language 只影響單次評估。
"""

import logging
from typing import Literal, Optional

from fastapi import APIRouter, Depends, File, Form, Header, Query, UploadFile
from pydantic import BaseModel, ConfigDict, Field

from soup_story import deps
from soup_story.auth import require_user
from soup_story.config import get_settings
from soup_story.errors import InvalidInput, PayloadTooLarge
from soup_story.models.identity import RequestContext, UserIdentity
from soup_story.services.orchestrator import SessionOrchestrator
from soup_story.utils import short_id

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/chat", tags=["Chat"])


# === Request Models ===

class AnswerRequest(BaseModel):
    """文字作答請求"""
    story_session_id: str = Field(..., alias="storySessionId", min_length=1)
    text: str = Field(..., min_length=1, description="玩家的回答")
    language: Optional[Literal["en", "zh"]] = None

    model_config = ConfigDict(populate_by_name=True)


class EvaluateRequest(BaseModel):
    """單次評估請求；題庫內的題目會忽略 puzzlePrompt / answerKey"""
    puzzle_id: str = Field(..., alias="puzzleId", min_length=1)
    user_answer: str = Field(..., alias="userAnswer", min_length=1)
    puzzle_prompt: Optional[str] = Field(None, alias="puzzlePrompt")
    answer_key: Optional[str] = Field(None, alias="answerKey")
    story_session_id: Optional[str] = Field(None, alias="storySessionId")
    language: Optional[Literal["en", "zh"]] = None

    model_config = ConfigDict(populate_by_name=True)


# === Endpoints ===

@router.post("/transcribe")
async def transcribe(
    session_id: str = Query(..., alias="sessionId", min_length=1),
    audio_file: UploadFile = File(..., alias="audioFile"),
    language: Optional[str] = Form(default=None),
    idempotency_key: Optional[str] = Header(default=None),
    user: UserIdentity = Depends(require_user),
    orchestrator: SessionOrchestrator = Depends(deps.get_orchestrator),
):
    max_bytes = get_settings().max_audio_bytes
    audio = await audio_file.read(max_bytes + 1)
    if not audio:
        raise InvalidInput("audioFile is empty", fields=["audioFile"])
    if len(audio) > max_bytes:
        raise PayloadTooLarge(f"audioFile exceeds {max_bytes} bytes", max_bytes=max_bytes)

    logger.info(f"[Chat] voice answer session={short_id(session_id)} bytes={len(audio)}")
    ctx = RequestContext.for_user(user, language)
    result = await orchestrator.submit_answer(
        ctx,
        session_id,
        audio=audio,
        mime_type=audio_file.content_type,
        nonce=idempotency_key,
    )
    return result.to_response()


@router.post("/answer")
async def answer(
    req: AnswerRequest,
    idempotency_key: Optional[str] = Header(default=None),
    user: UserIdentity = Depends(require_user),
    orchestrator: SessionOrchestrator = Depends(deps.get_orchestrator),
):
    ctx = RequestContext.for_user(user, req.language)
    result = await orchestrator.submit_answer(
        ctx,
        req.story_session_id,
        text=req.text,
        nonce=idempotency_key,
    )
    return result.to_response()


@router.post("/evaluate")
async def evaluate(
    req: EvaluateRequest,
    user: UserIdentity = Depends(require_user),
    orchestrator: SessionOrchestrator = Depends(deps.get_orchestrator),
):
    ctx = RequestContext.for_user(user, req.language)
    evaluation = await orchestrator.evaluate_text(
        ctx,
        req.puzzle_id,
        req.user_answer,
        puzzle_prompt=req.puzzle_prompt,
        answer_key=req.answer_key,
        session_id=req.story_session_id,
    )
    return {"result": evaluation.classification.value, "explanation": evaluation.explanation}
