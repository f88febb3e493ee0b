"""
共用工具函數
"""

import math
import re
from typing import Optional


def clamp_completion(value: Optional[float]) -> float:
    """把上游回報的完成度限制在 [0, 1]；NaN / None 視為 0"""
    if value is None:
        return 0.0
    value = float(value)
    if math.isnan(value):
        return 0.0
    return min(max(value, 0.0), 1.0)


def short_id(session_id: Optional[str]) -> str:
    """log 用的縮短 id"""
    if not session_id:
        return "-"
    return f"{session_id[:8]}..."


_CODE_FENCE = re.compile(r"^```(?:json)?\s*|\s*```$", re.IGNORECASE)


def strip_code_fence(text: str) -> str:
    """模型偶爾會把 JSON 包在 ``` 區塊裡"""
    return _CODE_FENCE.sub("", text.strip()).strip()


def compose_story(opening_text: str, chunks: list) -> str:
    """開場 + 依序的故事片段，以空行串接"""
    parts = [p.strip() for p in [opening_text, *chunks] if p and p.strip()]
    return "\n\n".join(parts)
