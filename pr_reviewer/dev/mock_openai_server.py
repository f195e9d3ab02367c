"""
本地 Mock AI reviewer（OpenAI-compatible `/v1/chat/completions`）。

对 prompt 里每个 `### File: <path>` 返回一条 Minor 发现，包在 ```json 代码块里；
没有文件时返回 `[]`。支持 `stream=true`（SSE，按固定长度切块）和普通 JSON 响应。

启动：
  python -m pr_reviewer.dev.mock_openai_server
然后：
  LLM_BASE_URL=http://127.0.0.1:9001 LLM_API_KEY=dummy pr-reviewer ...
"""

from __future__ import annotations

import json
import time
from collections.abc import Iterator

import uvicorn
from fastapi import FastAPI
from fastapi.responses import StreamingResponse
from pydantic import BaseModel, Field

from pr_reviewer.llm.client import ChatMessage

FILE_HEADER_PREFIX = "### File: "
STREAM_CHUNK_CHARS = 48


class ChatCompletionRequest(BaseModel):
    model: str
    messages: list[ChatMessage] = Field(default_factory=list)
    stream: bool = False


def reviewed_paths(prompt: str) -> list[str]:
    return [
        line.removeprefix(FILE_HEADER_PREFIX).strip()
        for line in prompt.splitlines()
        if line.startswith(FILE_HEADER_PREFIX) and line.removeprefix(FILE_HEADER_PREFIX).strip()
    ]


def mock_review_text(messages: list[ChatMessage]) -> str:
    prompt = "\n".join(m.content for m in messages if m.role == "user")
    paths = reviewed_paths(prompt)
    if not paths:
        return "[]"
    findings = [
        {
            "filePath": path,
            "lineNumber": 1,
            "severity": "Minor",
            "description": "[MOCK] Consider adding tests for the changed logic.",
        }
        for path in paths
    ]
    return "Review complete.\n\n```json\n" + json.dumps(findings, indent=2) + "\n```\n"


def _sse_chunks(model: str, text: str) -> Iterator[str]:
    created = int(time.time())

    def event(delta: dict[str, str], finish_reason: str | None) -> str:
        payload = {
            "id": "chatcmpl-mock",
            "object": "chat.completion.chunk",
            "created": created,
            "model": model,
            "choices": [{"index": 0, "delta": delta, "finish_reason": finish_reason}],
        }
        return f"data: {json.dumps(payload)}\n\n"

    yield event({"role": "assistant", "content": ""}, None)
    for start in range(0, len(text), STREAM_CHUNK_CHARS):
        yield event({"content": text[start : start + STREAM_CHUNK_CHARS]}, None)
    yield event({}, "stop")
    yield "data: [DONE]\n\n"


app = FastAPI(title="Mock AI reviewer", version="0.1.0")


@app.post("/v1/chat/completions", response_model=None)
async def chat_completions(req: ChatCompletionRequest) -> dict[str, object] | StreamingResponse:
    text = mock_review_text(req.messages)
    if req.stream:
        return StreamingResponse(_sse_chunks(req.model, text), media_type="text/event-stream")
    return {
        "id": "chatcmpl-mock",
        "object": "chat.completion",
        "created": int(time.time()),
        "model": req.model,
        "choices": [{"index": 0, "finish_reason": "stop", "message": {"role": "assistant", "content": text}}],
    }


def main() -> None:
    uvicorn.run(app, host="127.0.0.1", port=9001)


if __name__ == "__main__":
    main()
