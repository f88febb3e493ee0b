"""
Identity Verifier - 透過 Supabase Auth 驗證 Bearer token

- verify(credential)：GET /auth/v1/user，解析成 UserIdentity
- update_language(credential, language)：PUT /auth/v1/user 更新 user_metadata.language

requests 是同步的，丟到 executor 執行，避免卡住 event loop。
"""

import asyncio
import functools
import logging
from typing import Any, Dict, Optional

import requests

from soup_story.errors import (
    ConfigurationError,
    NetworkError,
    ParseError,
    Unauthorized,
    UpstreamError,
)
from soup_story.messages import SUPPORTED_LANGUAGES, resolve_language
from soup_story.models.identity import UserIdentity

logger = logging.getLogger(__name__)

BEARER_PREFIX = "Bearer "


def parse_bearer(authorization: Optional[str]) -> str:
    """從 Authorization header 取出 token；缺漏或格式錯誤都回 Unauthorized"""
    if not authorization or not authorization.startswith(BEARER_PREFIX):
        raise Unauthorized("Missing or invalid Authorization header")

    token = authorization[len(BEARER_PREFIX):].strip()
    if not token:
        raise Unauthorized("Missing token")
    return token


class IdentityVerifier:
    """Supabase Auth REST 封裝"""

    def __init__(
        self,
        base_url: Optional[str],
        anon_key: Optional[str],
        timeout: float = 10.0,
        http: Optional[requests.Session] = None,
    ):
        self.base_url = base_url.rstrip("/") if base_url else None
        self.anon_key = anon_key
        self.timeout = timeout
        self.http = http or requests.Session()

    async def verify(self, authorization: Optional[str]) -> UserIdentity:
        token = parse_bearer(authorization)
        data = await self._run(self._request, "GET", token)
        identity = self._to_identity(data)
        logger.info(f"[Auth] verified user {identity.id[:8]}...")
        return identity

    async def update_language(self, authorization: Optional[str], language: str) -> UserIdentity:
        if language not in SUPPORTED_LANGUAGES:
            raise ValueError(f"Unsupported language: {language}")
        token = parse_bearer(authorization)
        data = await self._run(self._request, "PUT", token, {"data": {"language": language}})
        identity = self._to_identity(data)
        logger.info(f"[Auth] user {identity.id[:8]}... language -> {language}")
        return identity

    @staticmethod
    async def _run(func, *args):
        loop = asyncio.get_running_loop()
        return await loop.run_in_executor(None, functools.partial(func, *args))

    def _request(self, method: str, token: str, body: Optional[Dict[str, Any]] = None) -> Dict[str, Any]:
        if not self.base_url or not self.anon_key:
            raise ConfigurationError("SUPABASE_URL / SUPABASE_ANON_KEY not configured")

        try:
            resp = self.http.request(
                method,
                f"{self.base_url}/auth/v1/user",
                headers={"apikey": self.anon_key, "Authorization": f"Bearer {token}"},
                json=body,
                timeout=self.timeout,
            )
        except requests.Timeout as e:
            logger.warning(f"[Auth] identity provider timed out: {e}")
            raise NetworkError("Identity provider timed out") from e
        except requests.ConnectionError as e:
            logger.warning(f"[Auth] identity provider unreachable: {e}")
            raise NetworkError("Identity provider unreachable") from e

        if resp.status_code in (400, 401, 403, 404):
            logger.warning(f"[Auth] identity provider rejected token ({resp.status_code})")
            raise Unauthorized("Invalid or expired token")
        if resp.status_code >= 400:
            logger.error(f"[Auth] identity provider error {resp.status_code}: {resp.text[:200]}")
            raise UpstreamError("Identity provider error", upstream_status=resp.status_code)

        try:
            data = resp.json()
        except ValueError as e:
            raise ParseError("Invalid JSON from identity provider", upstream_status=resp.status_code) from e

        if not isinstance(data, dict) or not data.get("id"):
            raise Unauthorized("Invalid or expired token")
        return data

    @staticmethod
    def _to_identity(data: Dict[str, Any]) -> UserIdentity:
        metadata = data.get("user_metadata") or {}
        return UserIdentity(
            id=data["id"],
            email=data.get("email"),
            language=resolve_language(metadata.get("language")),
        )
