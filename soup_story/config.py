"""
服務設定

從環境變數（以及 .env）讀取，集中成單一 Settings 物件。
各模組透過 get_settings() 取得，不直接讀 os.environ。
"""

import os
from typing import List, Optional

from dotenv import load_dotenv
from pydantic import BaseModel, Field

load_dotenv()


def _env_float(name: str, default: float) -> float:
    raw = os.getenv(name)
    if raw is None or raw.strip() == "":
        return default
    return float(raw)


def _env_int(name: str, default: int) -> int:
    raw = os.getenv(name)
    if raw is None or raw.strip() == "":
        return default
    return int(raw)


def _env_bool(name: str, default: bool) -> bool:
    raw = os.getenv(name)
    if raw is None or raw.strip() == "":
        return default
    return raw.strip().lower() in ("1", "true", "yes", "on")


class Settings(BaseModel):
    """執行期設定"""

    # Gemini（推理服務）
    gemini_api_key: Optional[str] = None
    gemini_model_name: str = "gemini-2.5-flash"
    gemini_audio_model_name: str = "gemini-2.5-flash"

    # Supabase（身分提供者）
    supabase_url: Optional[str] = None
    supabase_anon_key: Optional[str] = None

    # 逾時（秒）
    identity_timeout_seconds: float = Field(default=10.0, gt=0)
    evaluation_timeout_seconds: float = Field(default=30.0, gt=0)
    transcribe_timeout_seconds: float = Field(default=60.0, gt=0)

    # MongoDB（未設定則使用記憶體 / 內建題庫）
    mongodb_uri: Optional[str] = None
    mongodb_db_name: str = "soup_story"

    # 題庫
    puzzle_cache_ttl_seconds: float = Field(default=300.0, ge=0)
    puzzle_data_path: Optional[str] = None

    # Session 規則
    enforce_single_active_session: bool = True
    max_audio_bytes: int = Field(default=10 * 1024 * 1024, gt=0)

    cors_allow_origins: List[str] = Field(default_factory=lambda: ["*"])

    @classmethod
    def from_env(cls) -> "Settings":
        origins = os.getenv("CORS_ALLOW_ORIGINS", "*")
        return cls(
            gemini_api_key=os.getenv("GEMINI_API_KEY"),
            gemini_model_name=os.getenv("GEMINI_MODEL_NAME", "gemini-2.5-flash"),
            gemini_audio_model_name=os.getenv(
                "GEMINI_AUDIO_MODEL_NAME", os.getenv("GEMINI_MODEL_NAME", "gemini-2.5-flash")
            ),
            supabase_url=os.getenv("SUPABASE_URL"),
            supabase_anon_key=os.getenv("SUPABASE_ANON_KEY"),
            identity_timeout_seconds=_env_float("IDENTITY_TIMEOUT_SECONDS", 10.0),
            evaluation_timeout_seconds=_env_float("EVALUATION_TIMEOUT_SECONDS", 30.0),
            transcribe_timeout_seconds=_env_float("TRANSCRIBE_TIMEOUT_SECONDS", 60.0),
            mongodb_uri=os.getenv("MONGODB_URI") or None,
            mongodb_db_name=os.getenv("MONGODB_DB_NAME", "soup_story"),
            puzzle_cache_ttl_seconds=_env_float("PUZZLE_CACHE_TTL_SECONDS", 300.0),
            puzzle_data_path=os.getenv("PUZZLE_DATA_PATH") or None,
            enforce_single_active_session=_env_bool("ENFORCE_SINGLE_ACTIVE_SESSION", True),
            max_audio_bytes=_env_int("MAX_AUDIO_BYTES", 10 * 1024 * 1024),
            cors_allow_origins=[o.strip() for o in origins.split(",") if o.strip()],
        )


_settings: Optional[Settings] = None


def get_settings() -> Settings:
    """取得設定（lazy singleton）"""
    global _settings
    if _settings is None:
        _settings = Settings.from_env()
    return _settings


def reset_settings() -> None:
    """清除快取的設定（測試用）"""
    global _settings
    _settings = None
