"""
AI reviewer 连接器（OpenAI-compatible chat completions，流式）。

一次 review = 一次流式请求：逐块累积 assistant 文本，流结束即得到完整回复。
- 不重试（`max_retries=0`）：批次失败由 orchestrator 统一处理
- 不设超时：由调用方（reviewer）用 `anyio.fail_after` 控制
- 空回复不是错误：返回空字符串，由 finding parser 兜底为“没有发现”
"""

from __future__ import annotations

import logging
from collections.abc import Sequence

import httpx
from openai import AsyncOpenAI, OpenAIError
from pydantic import BaseModel

logger = logging.getLogger(__name__)


class ChatMessage(BaseModel):
    role: str
    content: str


def _with_v1_suffix(base_url: str) -> str:
    trimmed = base_url.rstrip("/")
    return trimmed if trimmed.endswith("/v1") else f"{trimmed}/v1"


class ChatReviewClient:
    """`ReviewModelClient` 的默认实现。"""

    def __init__(self, api_key: str, base_url: str, http_client: httpx.AsyncClient, model: str) -> None:
        """
        - base_url: 网关地址，可带或不带 /v1
        - http_client: 与 Azure DevOps client 共用的连接池
        """
        self._model = model
        self._client = AsyncOpenAI(
            api_key=api_key,
            base_url=_with_v1_suffix(base_url),
            http_client=http_client,
            max_retries=0,
        )

    @property
    def model(self) -> str:
        return self._model

    async def complete_text(self, messages: Sequence[ChatMessage]) -> str:
        logger.debug(f"Review request: model={self._model}, {sum(len(m.content) for m in messages)} prompt chars")
        parts: list[str] = []
        finish_reason: str | None = None
        try:
            stream = await self._client.chat.completions.create(
                model=self._model,
                messages=[m.model_dump() for m in messages],
                stream=True,
            )
            try:
                async for chunk in stream:
                    if not chunk.choices:
                        continue
                    choice = chunk.choices[0]
                    if choice.delta.content:
                        parts.append(choice.delta.content)
                    if choice.finish_reason:
                        finish_reason = choice.finish_reason
            finally:
                await stream.close()
        except OpenAIError as exc:
            logger.error(f"Review model API error: {exc}")
            raise
        except httpx.HTTPError as exc:
            logger.error(f"Review model HTTP error: {exc}")
            raise

        text = "".join(parts)
        if finish_reason == "length":
            logger.warning(f"Review response was truncated at {len(text)} chars (finish_reason=length)")
        if not text:
            logger.warning("Review model returned an empty response")
        return text
