"""
海龜湯語音故事 FastAPI 後端
"""

import logging
from datetime import datetime

# 設定 uvicorn 日誌格式（加上時間戳，保留顏色，狀態碼上色）
import uvicorn.logging

# ANSI 顏色碼
GREEN = "\033[32m"
YELLOW = "\033[33m"
RED = "\033[31m"
RESET = "\033[0m"


class TimestampFormatter(uvicorn.logging.ColourizedFormatter):
    """在 uvicorn 原有的彩色格式前加上時間戳，並對狀態碼上色。"""

    def formatMessage(self, record):
        timestamp = datetime.now().strftime("%Y-%m-%d %H:%M:%S")
        msg = super().formatMessage(record)

        for code in (" 200", " 201"):
            msg = msg.replace(code, f" {GREEN}{code.strip()}{RESET}")
        for code in (" 400", " 401", " 403", " 404", " 409", " 413", " 500", " 502", " 503"):
            msg = msg.replace(code, f" {RED}{code.strip()}{RESET}")
        msg = msg.replace(" 422", f" {YELLOW}422{RESET}")

        return f"[{timestamp}] {msg}"


# 覆蓋 uvicorn 的 logger 格式
for logger_name in ("uvicorn", "uvicorn.access", "uvicorn.error"):
    uvicorn_logger = logging.getLogger(logger_name)
    for handler in uvicorn_logger.handlers:
        handler.setFormatter(TimestampFormatter("%(levelprefix)s %(message)s"))

# 應用程式自己的 logger（soup_story.*）沿用同樣的時間戳格式
logging.basicConfig(
    level=logging.INFO,
    format="[%(asctime)s] %(levelname)s %(name)s: %(message)s",
    datefmt="%Y-%m-%d %H:%M:%S",
)

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from google.genai.errors import APIError
from pydantic import ValidationError

from soup_story import deps
from soup_story.config import get_settings
from soup_story.errors import StoryServiceError
from soup_story.messages import error_message, resolve_language
from soup_story.routers import chat, me, puzzles, story
from soup_story.services.mongo_client import close_mongo_client

logger = logging.getLogger(__name__)

app = FastAPI(title="Soup Story API")


def _request_language(request: Request) -> str:
    """已驗證使用者的語言優先，其次才是 Accept-Language"""
    language = getattr(request.state, "language", None)
    if language:
        return language
    return resolve_language(request.headers.get("accept-language"))


def _error_response(request: Request, status_code: int, code: str, retryable: bool = False, **extra) -> JSONResponse:
    return JSONResponse(
        status_code=status_code,
        content={
            "error": error_message(code, _request_language(request)),
            "code": code,
            "retryable": retryable,
            **extra,
        },
    )


@app.exception_handler(StoryServiceError)
async def story_error_handler(request: Request, exc: StoryServiceError):
    """服務錯誤轉成在地化的短訊息；細節只進 log"""
    log = logger.warning if exc.status_code < 500 else logger.error
    log(f"[{exc.code}] {request.method} {request.url.path}: {exc.message}")
    return _error_response(request, exc.status_code, exc.code, exc.retryable, **exc.details)


@app.exception_handler(RequestValidationError)
async def validation_error_handler(request: Request, exc: RequestValidationError):
    logger.warning(f"[VALIDATION] {request.method} {request.url.path}: {exc.errors()}")
    fields = [".".join(str(p) for p in err.get("loc", ())) for err in exc.errors()]
    return _error_response(request, 422, "VALIDATION", fields=fields)


@app.exception_handler(ValueError)
async def value_error_handler(request: Request, exc: ValueError):
    if isinstance(exc, ValidationError):
        # 內部 model 驗證失敗：資料來源壞了
        logger.error(f"[PARSE] {request.method} {request.url.path}: {exc}")
        return _error_response(request, 502, "PARSE")
    logger.warning(f"[VALIDATION] {request.method} {request.url.path}: {exc}")
    return _error_response(request, 400, "VALIDATION")


@app.exception_handler(APIError)
async def gemini_api_error_handler(request: Request, exc: APIError):
    """漏網的 Google GenAI 錯誤（正常情況已在 GeminiService 轉換）"""
    logger.error(f"[Gemini API Error] {exc}")
    if exc.code == 429:
        return _error_response(request, 503, "NETWORK", retryable=True, upstream_status=429)
    return _error_response(request, 502, "UPSTREAM", upstream_status=exc.code)


settings = get_settings()
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_allow_origins,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.on_event("startup")
def startup():
    """應用程式啟動時初始化各服務。"""
    deps.init_services()


@app.on_event("shutdown")
def shutdown():
    close_mongo_client()


@app.get("/health")
def health():
    return {"status": "ok"}


app.include_router(me.router)
app.include_router(puzzles.router)
app.include_router(story.router)
app.include_router(chat.router)
