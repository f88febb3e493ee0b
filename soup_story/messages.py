"""
使用者可見的在地化字串（en / zh）

錯誤一律轉成短狀態字串；評估結果只輸出封閉分類對應的標籤，
不把上游原文直接丟給前端。
"""

from typing import Optional

SUPPORTED_LANGUAGES = ("en", "zh")
DEFAULT_LANGUAGE = "en"

ERROR_MESSAGES = {
    "UNAUTHORIZED": {
        "en": "Please sign in again.",
        "zh": "请重新登录。",
    },
    "FORBIDDEN": {
        "en": "You don't have access to this game.",
        "zh": "你无权访问这局游戏。",
    },
    "NOT_FOUND": {
        "en": "We couldn't find that puzzle or game.",
        "zh": "找不到这个谜题或游戏。",
    },
    "INVALID_STATE": {
        "en": "This game can't do that right now.",
        "zh": "当前游戏状态不允许该操作。",
    },
    "CONFLICT": {
        "en": "You already have a game in progress for this puzzle.",
        "zh": "这个谜题已有进行中的游戏。",
    },
    "NETWORK": {
        "en": "Network problem, please try again.",
        "zh": "网络异常，请重试。",
    },
    "UPSTREAM": {
        "en": "Error evaluating answer.",
        "zh": "评估错误",
    },
    "PARSE": {
        "en": "Error evaluating answer.",
        "zh": "评估错误",
    },
    "CONFIG": {
        "en": "The service is not configured correctly.",
        "zh": "服务配置有误。",
    },
    "VALIDATION": {
        "en": "Invalid request.",
        "zh": "请求无效。",
    },
    "PAYLOAD_TOO_LARGE": {
        "en": "The recording is too long.",
        "zh": "录音太长了。",
    },
    "UNKNOWN": {
        "en": "Something went wrong.",
        "zh": "出错了。",
    },
}

EVALUATION_LABELS = {
    "en": {
        "yes": "Evaluation: YES",
        "no": "Evaluation: NO",
        "not_sure": "Evaluation: NOT SURE",
    },
    "zh": {
        "yes": "评估结果：是",
        "no": "评估结果：否",
        "not_sure": "评估结果：不确定",
    },
}


def resolve_language(value: Optional[str], fallback: str = DEFAULT_LANGUAGE) -> str:
    """把 'zh-TW'、'zh_CN'、'en-US' 之類的值收斂成 en / zh"""
    if not value:
        return fallback
    primary = value.split(",")[0].strip().lower().replace("_", "-")
    if primary.startswith("zh"):
        return "zh"
    if primary.startswith("en"):
        return "en"
    return fallback


def error_message(code: str, language: Optional[str]) -> str:
    lang = resolve_language(language)
    table = ERROR_MESSAGES.get(code, ERROR_MESSAGES["UNKNOWN"])
    return table[lang]


def evaluation_label(classification: str, language: Optional[str]) -> str:
    lang = resolve_language(language)
    return EVALUATION_LABELS[lang].get(classification, EVALUATION_LABELS[lang]["not_sure"])
