"""
Gemini API 整合服務（使用新版 google-genai SDK）

職責：
1. 建立共用 Client
2. 以逾時保護呼叫 generate_content（文字 / JSON）
3. 把 SDK 與傳輸層錯誤轉成 NetworkError / UpstreamError / ParseError
"""

import asyncio
import functools
import logging
import time
from typing import Any, Optional, Type, TypeVar

import httpx
import google.genai as genai
from google.genai import errors as genai_errors
from google.genai import types
from pydantic import BaseModel, ValidationError

from soup_story.config import get_settings
from soup_story.errors import ConfigurationError, NetworkError, ParseError, UpstreamError
from soup_story.utils import strip_code_fence

logger = logging.getLogger(__name__)

T = TypeVar("T", bound=BaseModel)


class GeminiService:
    """Gemini 服務封裝"""

    def __init__(self, api_key: Optional[str] = None, model_name: Optional[str] = None, client: Any = None):
        settings = get_settings()
        self.model_name = model_name or settings.gemini_model_name

        if client is not None:
            self.client = client
            return

        api_key = api_key or settings.gemini_api_key
        if not api_key:
            logger.warning("GEMINI_API_KEY not found in environment")
        # 新版 SDK 使用 Client
        self.client = genai.Client(api_key=api_key) if api_key else None

    async def generate_text(
        self,
        contents: Any,
        timeout: float,
        model: Optional[str] = None,
        system_instruction: Optional[str] = None,
        json_mode: bool = False,
    ) -> str:
        if not self.client:
            raise ConfigurationError("Gemini client not initialized")

        config = types.GenerateContentConfig(
            system_instruction=system_instruction,
            response_mime_type="application/json" if json_mode else None,
            thinking_config=types.ThinkingConfig(thinking_budget=0),
            http_options=types.HttpOptions(timeout=int(timeout * 1000)),
        )
        call = functools.partial(
            self.client.models.generate_content,
            model=model or self.model_name,
            contents=contents,
            config=config,
        )

        loop = asyncio.get_running_loop()
        t0 = time.time()
        try:
            response = await asyncio.wait_for(loop.run_in_executor(None, call), timeout=timeout)
        except asyncio.TimeoutError as e:
            logger.warning(f"[Gemini] timed out after {timeout:.0f}s")
            raise NetworkError("Reasoning service timed out") from e
        except httpx.TransportError as e:
            logger.warning(f"[Gemini] transport error: {e}")
            raise NetworkError("Reasoning service unreachable") from e
        except genai_errors.APIError as e:
            logger.error(f"[Gemini] API error {e.code}: {e.message}")
            raise UpstreamError(f"Reasoning service error: {e.status or e.code}", upstream_status=e.code) from e

        logger.info(f"[計時] Gemini {model or self.model_name}: {(time.time() - t0) * 1000:.0f}ms")

        text = response.text.strip() if response.text else ""
        if not text:
            raise ParseError("Empty response from reasoning service")
        return text

    async def generate_json(
        self,
        contents: Any,
        schema: Type[T],
        timeout: float,
        model: Optional[str] = None,
        system_instruction: Optional[str] = None,
    ) -> T:
        text = await self.generate_text(
            contents,
            timeout=timeout,
            model=model,
            system_instruction=system_instruction,
            json_mode=True,
        )
        try:
            return schema.model_validate_json(strip_code_fence(text))
        except ValidationError as e:
            logger.error(f"[Gemini] malformed JSON: {text[:200]}")
            raise ParseError("Malformed response from reasoning service") from e


_gemini_service: Optional[GeminiService] = None


def get_gemini_service() -> GeminiService:
    global _gemini_service
    if _gemini_service is None:
        _gemini_service = GeminiService()
    return _gemini_service
