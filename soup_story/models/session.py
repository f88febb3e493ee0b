"""
Story Session 模型定義

Session 是流程狀態機：completion 只會往上走，story_log 只會追加，
COMPLETED / FAILED 之後不再變動。
"""

from enum import Enum
from typing import Any, Dict, List, Optional
from pydantic import BaseModel, Field
from datetime import datetime
import uuid

from soup_story.utils import compose_story


class SessionState(str, Enum):
    """Session 狀態定義"""
    ACTIVE = "ACTIVE"        # 解謎中
    COMPLETED = "COMPLETED"  # 完成度達 1.0，final_story 已產生
    FAILED = "FAILED"        # 使用者放棄


class StoryTurn(BaseModel):
    """一次作答的紀錄"""
    turn_id: str = Field(default_factory=lambda: uuid.uuid4().hex)
    answer: str = ""
    source: str = "voice"  # voice / text
    classification: str
    explanation: str = ""
    reported_completion: float = 0.0
    nonce: Optional[str] = None
    created_at: datetime = Field(default_factory=datetime.now)


class StorySession(BaseModel):
    """Session 資料結構"""
    session_id: str = Field(default_factory=lambda: str(uuid.uuid4()))
    puzzle_id: str
    user_id: str
    language: str = "en"
    state: SessionState = SessionState.ACTIVE

    # 進度
    completion: float = 0.0
    turns: List[StoryTurn] = Field(default_factory=list)

    # 故事
    opening_text: str = ""
    confirmed_ideas: List[str] = Field(default_factory=list)  # 評估為 yes 的想法
    story_log: List[str] = Field(default_factory=list)
    final_story: Optional[str] = None

    # 重送保護：nonce -> 當次回應
    applied_nonces: Dict[str, Dict[str, Any]] = Field(default_factory=dict)

    # 樂觀鎖版本
    version: int = 0

    created_at: datetime = Field(default_factory=datetime.now)
    updated_at: datetime = Field(default_factory=datetime.now)

    def update_timestamp(self):
        """更新時間戳記"""
        self.updated_at = datetime.now()

    def is_active(self) -> bool:
        return self.state == SessionState.ACTIVE

    def pending_narrations(self) -> int:
        """已確認但還沒寫成故事的想法數"""
        return len(self.confirmed_ideas) - len(self.story_log)

    def compose_final_story(self) -> str:
        return compose_story(self.opening_text, self.story_log)

    def progress(self) -> Dict[str, Any]:
        """給前端的進度快照（不含 nonce 與內部欄位）"""
        return {
            "storySessionId": self.session_id,
            "puzzleId": self.puzzle_id,
            "state": self.state.value,
            "completion": self.completion,
            "openingText": self.opening_text,
            "storyChunks": list(self.story_log),
            "finalStory": self.final_story,
            "turns": len(self.turns),
        }

    def model_dump(self, **kwargs):
        """序列化（處理 datetime）"""
        data = super().model_dump(**kwargs)
        data['created_at'] = self.created_at.isoformat()
        data['updated_at'] = self.updated_at.isoformat()
        return data
