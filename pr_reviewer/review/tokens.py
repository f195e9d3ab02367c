"""
Token 估算。

说明：
- 用 tiktoken 的 cl100k_base（BPE）编码计数，只用于批次大小控制
- 与具体模型的计费 tokenizer 可能相差几个百分点，这是可接受的，不是 bug
"""

from __future__ import annotations

from functools import lru_cache

import tiktoken

ENCODING_NAME = "cl100k_base"


@lru_cache(maxsize=1)
def _encoding() -> tiktoken.Encoding:
    return tiktoken.get_encoding(ENCODING_NAME)


def count_tokens(text: str | None) -> int:
    """空字符串 / None 返回 0，不加载编码表。"""
    if not text:
        return 0
    return len(_encoding().encode(text, disallowed_special=()))
