"""
評估結果（暫時值，不單獨存檔）
"""

from enum import Enum
from typing import Any, Dict, Optional

from pydantic import BaseModel, field_validator

from soup_story.utils import clamp_completion

_YES = {"yes", "y", "true", "correct", "是", "对", "對", "正确", "正確"}
_NO = {"no", "n", "false", "incorrect", "wrong", "否", "不是", "不对", "不對", "错", "錯"}


class Classification(str, Enum):
    YES = "yes"
    NO = "no"
    NOT_SURE = "not_sure"

    @classmethod
    def normalize(cls, raw: Any) -> "Classification":
        """把上游標籤收斂成封閉分類；無法辨識一律視為 not_sure"""
        if isinstance(raw, cls):
            return raw
        if raw is None:
            return cls.NOT_SURE
        text = str(raw).strip().lower().replace("-", "_").replace(" ", "_").strip(".!。！")
        if text in _YES:
            return cls.YES
        if text in _NO:
            return cls.NO
        return cls.NOT_SURE


class Evaluation(BaseModel):
    classification: Classification
    explanation: str = ""


class TurnEvaluation(BaseModel):
    """作答路徑（語音 / 文字）的評估結果"""
    evaluation: Evaluation
    completion: float = 0.0
    transcription: Optional[str] = None

    @field_validator("completion", mode="before")
    @classmethod
    def _clamp(cls, value):
        return clamp_completion(value)


class TurnResult(BaseModel):
    """submit_answer 回給呼叫端的結果"""
    evaluation: Classification
    explanation: str = ""
    completion: float
    transcription: Optional[str] = None
    story_chunk: Optional[str] = None
    state: str
    label: str = ""
    replayed: bool = False

    def to_response(self) -> Dict[str, Any]:
        data: Dict[str, Any] = {
            "evaluation": self.evaluation.value,
            "completion": self.completion,
            "state": self.state,
            "label": self.label,
        }
        if self.transcription is not None:
            data["transcription"] = self.transcription
        if self.story_chunk:
            data["storyChunk"] = self.story_chunk
        if self.replayed:
            data["replayed"] = True
        return data


class ModelVerdict(BaseModel):
    """Gemini 回傳的 JSON 結構"""
    result: str = "not_sure"
    explanation: str = ""
    completion: Optional[float] = None
    transcription: Optional[str] = None
