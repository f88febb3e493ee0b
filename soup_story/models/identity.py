from typing import Literal, Optional

from pydantic import BaseModel

from soup_story.messages import resolve_language

Language = Literal["en", "zh"]


class UserIdentity(BaseModel):
    """由身分提供者解析出的使用者"""
    id: str
    email: Optional[str] = None
    language: Language = "en"


class RequestContext(BaseModel):
    """每個請求明確帶入 orchestrator 的身分與語言"""
    user: UserIdentity
    language: Language = "en"

    @classmethod
    def for_user(cls, user: UserIdentity, language: Optional[str] = None) -> "RequestContext":
        return cls(user=user, language=resolve_language(language, fallback=user.language))
