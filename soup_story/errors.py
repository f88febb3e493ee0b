"""
服務錯誤分類

每個錯誤都帶 HTTP 狀態碼與穩定的 code，main.py 的 exception handler
會把它們轉成在地化的 JSON 回應。
"""

from typing import Any, Dict, Optional


class StoryServiceError(Exception):
    """所有服務錯誤的基底類別"""

    status_code: int = 500
    code: str = "UNKNOWN"
    retryable: bool = False

    def __init__(self, message: str = "", **details: Any):
        super().__init__(message or self.code)
        self.message = message or self.code
        self.details: Dict[str, Any] = {k: v for k, v in details.items() if v is not None}

    def to_dict(self) -> Dict[str, Any]:
        return {
            "code": self.code,
            "message": self.message,
            "retryable": self.retryable,
            **self.details,
        }


class Unauthorized(StoryServiceError):
    """憑證缺失、格式錯誤或被身分提供者拒絕"""

    status_code = 401
    code = "UNAUTHORIZED"


class Forbidden(StoryServiceError):
    """已驗證，但操作的是別人的資源"""

    status_code = 403
    code = "FORBIDDEN"


class InvalidInput(StoryServiceError):
    """請求內容不合法（例如空的音檔）"""

    status_code = 400
    code = "VALIDATION"


class PayloadTooLarge(StoryServiceError):
    status_code = 413
    code = "PAYLOAD_TOO_LARGE"


class NotFound(StoryServiceError):
    status_code = 404
    code = "NOT_FOUND"


class InvalidState(StoryServiceError):
    """Session 狀態不允許這個操作（例如對已完成的 session 作答）"""

    status_code = 409
    code = "INVALID_STATE"


class Conflict(StoryServiceError):
    """同一使用者同一題已有進行中的 session，或並行寫入衝突"""

    status_code = 409
    code = "CONFLICT"


class NetworkError(StoryServiceError):
    """上游逾時或連線失敗，可重試，且不會改動 session"""

    status_code = 503
    code = "NETWORK"
    retryable = True


class UpstreamError(StoryServiceError):
    """上游回傳錯誤狀態碼"""

    status_code = 502
    code = "UPSTREAM"

    def __init__(self, message: str = "", upstream_status: Optional[int] = None, **details: Any):
        super().__init__(message, upstream_status=upstream_status, **details)
        self.upstream_status = upstream_status


class ParseError(UpstreamError):
    """上游回應內容無法解析，處理方式與 UpstreamError 相同"""

    code = "PARSE"


class ConfigurationError(StoryServiceError):
    """必要設定缺失（例如未設定 SUPABASE_URL）"""

    status_code = 500
    code = "CONFIG"
