"""
Finding Parser：把 AI reviewer 的自由文本输出解码为 `ReviewFinding` 列表。

这是对非确定性文本生成器的信任边界：
- 模型可能把 JSON 包在 ```json 代码块里、裸 ``` 代码块里，或者夹在说明文字中
- 解析失败时返回空列表（宁可“没有发现”，也不要让整次 review 崩掉）

提取规则（依次尝试，先命中先用）：
1) ```json 代码块：从代码块起点之后的第一个 '[' 到全文最后一个 ']'
2) 任意 ``` 代码块：同上
3) 全文第一个 '[' 到最后一个 ']'

注意：最后一个 ']' 取的是全文范围，代码块之后如果还有带方括号的说明文字，
会被一起截进来并导致解码失败（返回空列表）。
"""

from __future__ import annotations

import json
import logging
import re

from pydantic import ValidationError

from pr_reviewer.review.models import ReviewFinding

logger = logging.getLogger(__name__)

_JSON_FENCE = re.compile(r"```json", re.IGNORECASE)


def extract_json(text: str) -> str | None:
    """提取候选 JSON 数组片段；找不到返回 None。"""
    json_fence = _JSON_FENCE.search(text)
    if json_fence is not None:
        span = _bracket_span(text=text, start=json_fence.start())
        if span is not None:
            return span

    bare_fence = text.find("```")
    if bare_fence >= 0:
        span = _bracket_span(text=text, start=bare_fence)
        if span is not None:
            return span

    return _bracket_span(text=text, start=0)


def _bracket_span(text: str, start: int) -> str | None:
    open_idx = text.find("[", start)
    if open_idx < 0:
        return None
    close_idx = text.rfind("]")
    if close_idx <= open_idx:
        return None
    return text[open_idx : close_idx + 1]


def parse_findings(response: str | None) -> list[ReviewFinding]:
    """
    解析模型输出，永不抛错。

    - 空输出 / 找不到数组 / JSON 非法 / 不是数组 / 任一条目不符合 schema -> []
    """
    if not response or not response.strip():
        return []

    candidate = extract_json(response)
    if candidate is None:
        logger.warning("No JSON array found in reviewer response")
        return []

    try:
        parsed = json.loads(candidate)
    except (ValueError, RecursionError) as exc:
        # JSONDecodeError 是 ValueError 的子类；超深嵌套 / 超长整数字面量也落在这里
        logger.error(f"Invalid JSON from reviewer: {type(exc).__name__}: {exc}")
        logger.debug(f"Raw reviewer response: {response}")
        return []

    if not isinstance(parsed, list):
        logger.error(f"Reviewer JSON is not an array: {type(parsed).__name__}")
        return []

    try:
        return [ReviewFinding.model_validate(item) for item in parsed]
    except ValidationError as exc:
        logger.error(f"Reviewer findings do not match schema: {exc}")
        logger.debug(f"Extracted JSON: {candidate}")
        return []
