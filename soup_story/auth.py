"""
API 認證模組

每個需要登入的請求：
1. 從 Authorization: Bearer <token> 取出 token
2. 交給 IdentityVerifier 向 Supabase 驗證
3. 驗證結果放進 request.state，供 exception handler 決定錯誤語言

失敗一律在碰到 session 之前就回 401。
"""

from fastapi import Depends, Request

from soup_story import deps
from soup_story.models.identity import RequestContext, UserIdentity
from soup_story.services.identity_verifier import IdentityVerifier


async def require_user(
    request: Request,
    verifier: IdentityVerifier = Depends(deps.get_identity_verifier),
) -> UserIdentity:
    """驗證 Bearer token，回傳使用者"""
    user = await verifier.verify(request.headers.get("authorization"))
    request.state.user = user
    request.state.language = user.language
    return user


def request_context(user: UserIdentity = Depends(require_user)) -> RequestContext:
    """組出 RequestContext；語言預設為使用者在 Supabase 的設定"""
    return RequestContext.for_user(user)
