"""
Story Prompts - 推理服務用的提示詞模板

每個模板都有 en / zh 兩個版本，format 時帶入題目、湯底與目前進度。
評估類的模板要求模型只輸出 JSON。
"""

from typing import Dict, List

LANGUAGE_RULE = {
    "en": "Reply in English.",
    "zh": "请使用简体中文回复。",
}

# ===== 主持人設定 =====
HOST_PERSONA = {
    "en": """You are the host of a lateral-thinking puzzle game ("turtle soup").
The player sees only the puzzle surface. You know the full hidden story.
Be fair: judge only against the hidden story, never invent new facts.""",
    "zh": """你是海龟汤推理游戏的主持人。
玩家只能看到汤面，你知道完整的汤底。
请公平判断：只依据汤底回答，不要编造新的事实。""",
}

# ===== 單次評估（/chat/evaluate） =====
EVALUATE_TEMPLATE = {
    "en": """Puzzle: {puzzle_prompt}
Hidden story: {answer_key}

Player says: "{user_answer}"

Decide whether the player's statement or question is consistent with the hidden story.
- "yes": it matches the hidden story
- "no": it contradicts the hidden story
- "not_sure": irrelevant, ambiguous, or cannot be judged

Return JSON only: {{"result": "yes" | "no" | "not_sure", "explanation": "<one short sentence>"}}""",
    "zh": """汤面：{puzzle_prompt}
汤底：{answer_key}

玩家说："{user_answer}"

判断玩家的陈述或提问是否符合汤底。
- "yes"：符合汤底
- "no"：与汤底矛盾
- "not_sure"：无关、含糊或无法判断

只输出 JSON：{{"result": "yes" | "no" | "not_sure", "explanation": "<一句简短说明>"}}""",
}

# ===== 作答回合（語音 / 文字） =====
TURN_TEMPLATE = {
    "en": """Puzzle: {puzzle_prompt}
Hidden story: {answer_key}
Key points of the hidden story:
{parts}
Ideas the player has already confirmed:
{confirmed}
Current completion: {completion:.2f}

{input_instruction}

Then judge the player's new idea:
- "result": "yes" if it matches the hidden story, "no" if it contradicts it, "not_sure" otherwise
- "completion": fraction (0.0 - 1.0) of the key points covered by ALL confirmed ideas plus this one
- "explanation": one short sentence

Return JSON only: {{"transcription": "<text>", "result": "...", "completion": <number>, "explanation": "..."}}""",
    "zh": """汤面：{puzzle_prompt}
汤底：{answer_key}
汤底关键点：
{parts}
玩家已确认的想法：
{confirmed}
当前完成度：{completion:.2f}

{input_instruction}

然后判断玩家的新想法：
- "result"：符合汤底为 "yes"，矛盾为 "no"，其余为 "not_sure"
- "completion"：所有已确认想法加上这一条，覆盖了多少比例的关键点（0.0 - 1.0）
- "explanation"：一句简短说明

只输出 JSON：{{"transcription": "<文字>", "result": "...", "completion": <数字>, "explanation": "..."}}""",
}

AUDIO_INSTRUCTION = {
    "en": "The attached audio is the player speaking. First transcribe it exactly.",
    "zh": "附上的音频是玩家的发言，请先逐字转写。",
}

TEXT_INSTRUCTION = {
    "en": 'The player typed: "{text}". Use it as the transcription.',
    "zh": '玩家输入："{text}"，直接作为转写内容。',
}

# ===== 故事 =====
OPENING_TEMPLATE = {
    "en": """Write the opening of a short mystery story (2-3 sentences) based on this puzzle:
{puzzle_prompt}
Set the scene and the mood. Do NOT reveal anything from the hidden story.
Return plain text only.""",
    "zh": """根据下面的汤面，写一段悬疑故事的开场（2-3 句）：
{puzzle_prompt}
交代场景和氛围，不要透露任何汤底内容。
只输出纯文字。""",
}

CONTINUE_TEMPLATE = {
    "en": """Puzzle summary: {puzzle_summary}
Story so far:
{story_so_far}

The player just uncovered this truth: "{idea}"

Continue the story with 1-3 sentences that reveal ONLY this new truth.
Keep the same voice. Return plain text only.""",
    "zh": """谜题概要：{puzzle_summary}
目前的故事：
{story_so_far}

玩家刚刚揭开了这个真相："{idea}"

用 1-3 句话接续故事，只揭示这一条新真相，保持原本的叙事口吻。
只输出纯文字。""",
}


def _bullets(items: List[str], empty: str = "-") -> str:
    return "\n".join(f"- {item}" for item in items) if items else empty


def build_system_instruction(language: str) -> str:
    lang = language if language in HOST_PERSONA else "en"
    return f"{HOST_PERSONA[lang]}\n{LANGUAGE_RULE[lang]}"


def build_turn_prompt(
    language: str,
    puzzle_prompt: str,
    answer_key: str,
    parts: List[str],
    confirmed: List[str],
    completion: float,
    text: str = None,
) -> str:
    lang = language if language in TURN_TEMPLATE else "en"
    if text is None:
        input_instruction = AUDIO_INSTRUCTION[lang]
    else:
        input_instruction = TEXT_INSTRUCTION[lang].format(text=text)
    return TURN_TEMPLATE[lang].format(
        puzzle_prompt=puzzle_prompt,
        answer_key=answer_key,
        parts=_bullets(parts),
        confirmed=_bullets(confirmed),
        completion=completion,
        input_instruction=input_instruction,
    )


def build_prompt(templates: Dict[str, str], language: str, **fields) -> str:
    lang = language if language in templates else "en"
    return templates[lang].format(**fields)
