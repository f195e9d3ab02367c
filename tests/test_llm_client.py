from __future__ import annotations

import json

import httpx
import pytest
from openai import OpenAIError

from pr_reviewer.dev import mock_openai_server
from pr_reviewer.llm.client import ChatMessage
from pr_reviewer.llm.client import ChatReviewClient
from pr_reviewer.review.finding_parser import parse_findings


def _messages(prompt: str) -> list[ChatMessage]:
    return [ChatMessage(role="system", content="You are a reviewer."), ChatMessage(role="user", content=prompt)]


@pytest.mark.anyio
async def test_complete_text_joins_streamed_chunks() -> None:
    prompt = "## Files to Review\n\n### File: /src/a.py\n\n### File: /web/b.ts\n"
    async with httpx.AsyncClient(transport=httpx.ASGITransport(app=mock_openai_server.app)) as http_client:
        client = ChatReviewClient(api_key="k", base_url="http://llm.test", http_client=http_client, model="m")
        text = await client.complete_text(_messages(prompt))

    assert text == mock_openai_server.mock_review_text(_messages(prompt))
    assert len(text) > mock_openai_server.STREAM_CHUNK_CHARS
    assert [f.file_path for f in parse_findings(text)] == ["/src/a.py", "/web/b.ts"]


@pytest.mark.anyio
async def test_complete_text_posts_to_v1_with_stream_flag() -> None:
    seen: list[dict[str, object]] = []

    def handler(request: httpx.Request) -> httpx.Response:
        assert request.url.path == "/v1/chat/completions"
        seen.append(json.loads(request.content))
        chunk = {
            "id": "x",
            "object": "chat.completion.chunk",
            "created": 0,
            "model": "m",
            "choices": [{"index": 0, "delta": {"content": "[]"}, "finish_reason": "stop"}],
        }
        body = f"data: {json.dumps(chunk)}\n\ndata: [DONE]\n\n"
        return httpx.Response(200, text=body, headers={"content-type": "text/event-stream"})

    async with httpx.AsyncClient(transport=httpx.MockTransport(handler)) as http_client:
        client = ChatReviewClient(api_key="k", base_url="http://llm.test/v1/", http_client=http_client, model="m")
        assert await client.complete_text(_messages("hi")) == "[]"

    assert seen[0]["stream"] is True
    assert seen[0]["model"] == "m"
    assert [m["role"] for m in seen[0]["messages"]] == ["system", "user"]


@pytest.mark.anyio
async def test_complete_text_raises_on_gateway_error() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(502, json={"error": {"message": "bad gateway"}})

    async with httpx.AsyncClient(transport=httpx.MockTransport(handler)) as http_client:
        client = ChatReviewClient(api_key="k", base_url="http://llm.test", http_client=http_client, model="m")
        with pytest.raises(OpenAIError):
            await client.complete_text(_messages("hi"))


def test_mock_review_text_without_files_is_empty_array() -> None:
    assert mock_openai_server.mock_review_text(_messages("nothing to review")) == "[]"
