"""
Review prompt 组装（非 AI，确定性）。

一个批次 = 一次请求：strategy（按 review 模式）+ guideline（可选）+ 每个文件的全文/diff + 输出格式要求。
diff-only 模式下批次里没有全文，只输出 Diff 段。
"""

from __future__ import annotations

from pr_reviewer.llm.client import ChatMessage
from pr_reviewer.review.models import ReviewBatch

OUTPUT_FORMAT = """## Output Format

Respond with a JSON array of findings. Each finding must have:
- `filePath`: the file path
- `lineNumber`: the line number (use 1 if unknown)
- `severity`: one of "Critical", "Major", "Minor"
- `description`: concise description of the issue
- `suggestion`: optional code-only suggestion to fix the issue, respecting the original indentation

```json
[
  {
    "filePath": "/src/Example.cs",
    "lineNumber": 42,
    "severity": "Major",
    "description": "Description of the issue",
    "suggestion": "Suggested fix"
  }
]
```

Only report actual issues found in the code changes. Focus on the diff (changed lines).
If there are no issues, return an empty JSON array: `[]`
"""


def _system_prompt() -> str:
    return "You are an expert code reviewer. Review the following code changes and report issues."


def build_review_prompt(batch: ReviewBatch, guidelines: str | None, strategy: str | None = None) -> str:
    parts: list[str] = []

    if strategy:
        parts.append("## Review Strategy")
        parts.append(strategy)
        parts.append("")

    if guidelines:
        parts.append("## Review Guidelines")
        parts.append(guidelines)
        parts.append("")

    parts.append("## Files to Review")
    parts.append("")
    for path, file in batch.files.items():
        parts.append(f"### File: {path}")
        parts.append("")
        if file.content:
            parts.extend(["#### Full Content:", "```", file.content, "```", ""])
        if file.diff:
            parts.extend(["#### Diff:", "```diff", file.diff, "```", ""])

    parts.append(OUTPUT_FORMAT)
    return "\n".join(parts)


def build_review_messages(
    batch: ReviewBatch, guidelines: str | None, strategy: str | None = None
) -> list[ChatMessage]:
    prompt = build_review_prompt(batch=batch, guidelines=guidelines, strategy=strategy)
    return [
        ChatMessage(role="system", content=_system_prompt()),
        ChatMessage(role="user", content=prompt),
    ]
