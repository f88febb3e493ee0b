"""
使用者資訊 API
"""

import logging
from typing import Literal

from fastapi import APIRouter, Depends, Request
from pydantic import BaseModel

from soup_story import deps
from soup_story.auth import require_user
from soup_story.models.identity import UserIdentity
from soup_story.services.identity_verifier import IdentityVerifier

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/me", tags=["Identity"])


class UpdateLanguageRequest(BaseModel):
    language: Literal["en", "zh"]


@router.get("")
async def get_me(user: UserIdentity = Depends(require_user)):
    """目前登入的使用者"""
    return user.model_dump()


@router.put("/language")
async def update_language(
    req: UpdateLanguageRequest,
    request: Request,
    verifier: IdentityVerifier = Depends(deps.get_identity_verifier),
):
    """更新使用者偏好語言（寫回 Supabase user_metadata）"""
    user = await verifier.update_language(request.headers.get("authorization"), req.language)
    request.state.user = user
    request.state.language = user.language
    return user.model_dump()
