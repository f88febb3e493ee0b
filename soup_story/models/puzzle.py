"""
Puzzle 模型

欄位沿用資料庫的 snake_case；translations 存各語言的覆寫文字。
"""

from typing import Any, Dict, List, Optional

from pydantic import BaseModel, Field


class PuzzleText(BaseModel):
    """單一語言的覆寫欄位"""
    title: Optional[str] = None
    content: Optional[str] = None
    hint: Optional[str] = None
    full_answer: Optional[str] = None
    parts: Optional[List[str]] = None


class Puzzle(BaseModel):
    id: str
    title: str
    content: str  # 湯面：玩家先看到的題目
    hint: str = ""
    full_answer: str  # 湯底：完整故事
    parts: List[str] = Field(default_factory=list)  # 計算部分完成度用的子線索
    translations: Dict[str, PuzzleText] = Field(default_factory=dict)

    def localized(self, language: Optional[str]) -> "Puzzle":
        """套用語言覆寫後的副本；沒有該語言就回傳原題"""
        override = self.translations.get(language or "")
        if override is None:
            return self
        patch = override.model_dump(exclude_none=True)
        return self.model_copy(update=patch)

    def public_view(self, language: Optional[str] = None) -> Dict[str, Any]:
        """對外公開的欄位，不含湯底與子線索"""
        p = self.localized(language)
        return {
            "id": p.id,
            "title": p.title,
            "content": p.content,
            "hint": p.hint,
            "parts": len(p.parts),
        }
