"""
批次级 Review：一个批次 -> 一次 LLM 调用 -> findings。

注意：
- 每次调用都带超时；超时抛 `ReviewTimeoutError`（不会静默丢弃批次）
- LLM 调用本身的异常原样上抛，由 orchestrator 决定整次运行失败
- 模型输出格式不对不算失败：parser 兜底为空列表
"""

from __future__ import annotations

import logging
from collections.abc import Sequence
from typing import Protocol

import anyio

from pr_reviewer.errors import ReviewTimeoutError
from pr_reviewer.llm.client import ChatMessage
from pr_reviewer.review.finding_parser import parse_findings
from pr_reviewer.review.guidelines import GuidelineProvider
from pr_reviewer.review.models import ReviewBatch
from pr_reviewer.review.models import ReviewFinding
from pr_reviewer.review.prompt import build_review_messages

logger = logging.getLogger(__name__)


class ReviewModelClient(Protocol):
    """AI reviewer 接口（默认实现：`ChatReviewClient`）。"""

    async def complete_text(self, messages: Sequence[ChatMessage]) -> str: ...


async def review_batch(
    llm_client: ReviewModelClient,
    guideline_provider: GuidelineProvider,
    batch: ReviewBatch,
    timeout_seconds: float,
    extend_review: bool = False,
) -> list[ReviewFinding]:
    guidelines = guideline_provider.get_guidelines(batch.tech_stack)
    strategy = guideline_provider.get_strategy(extend_review)
    messages = build_review_messages(batch=batch, guidelines=guidelines, strategy=strategy)

    response = ""
    # 只有本批次自己的 deadline 才算超时；下游抛出的 TimeoutError 原样上抛
    with anyio.move_on_after(timeout_seconds) as scope:
        response = await llm_client.complete_text(messages=messages)
    if scope.cancelled_caught:
        raise ReviewTimeoutError(batch.batch_number, f"timed out after {timeout_seconds}s")

    logger.debug(f"Batch {batch.batch_number} response length: {len(response)}")
    return parse_findings(response)
