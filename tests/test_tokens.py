from __future__ import annotations

from pr_reviewer.review.tokens import count_tokens


def test_count_tokens_empty_and_none_are_zero() -> None:
    assert count_tokens("") == 0
    assert count_tokens(None) == 0


def test_count_tokens_counts_bpe_tokens() -> None:
    text = "def add(a: int, b: int) -> int:\n    return a + b\n"
    tokens = count_tokens(text)
    assert 0 < tokens < len(text)


def test_count_tokens_grows_with_text() -> None:
    assert count_tokens("hello world " * 50) > count_tokens("hello world")


def test_count_tokens_ignores_special_token_text() -> None:
    assert count_tokens("<|endoftext|>") > 0
