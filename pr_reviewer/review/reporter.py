from __future__ import annotations

"""
Reporter（汇总输出）。

注意：
- 这里是**确定性输出**（不依赖 LLM），返回字符串，由 CLI 决定打印到哪里
"""

from pr_reviewer.review.models import ReviewSummary
from pr_reviewer.review.models import Severity

MAX_TOP_FINDINGS = 10
MAX_DESCRIPTION_CHARS = 80

_SEVERITY_MARKERS: dict[Severity, str] = {
    Severity.CRITICAL: "🔴",
    Severity.MAJOR: "🟠",
    Severity.MINOR: "🟡",
}


def _truncate(text: str, max_chars: int) -> str:
    if len(text) <= max_chars:
        return text
    return text[: max_chars - 3] + "..."


def render_summary(summary: ReviewSummary) -> str:
    """
    将一次运行的汇总渲染为控制台文本：
    - 基本统计（文件数/批次数/发现数/是否发布评论/耗时）
    - 按严重级别的计数
    - 前 N 条 Critical/Major 发现
    """
    lines: list[str] = ["", "═" * 60, "  Review Summary", "═" * 60, ""]

    posted = "Yes" if summary.comments_posted else "No"
    if summary.comments_failed:
        posted = f"{posted} ({summary.comments_failed} failed)"
    rows = [
        ("PR URL", summary.pr_url),
        ("Title", summary.pr_title),
        ("Total Files", str(summary.total_files)),
        ("Reviewed Files", str(summary.reviewed_files)),
        ("Excluded Files", str(summary.excluded_files)),
        ("Batches", str(summary.total_batches)),
        ("Total Findings", str(len(summary.findings))),
        ("Comments Posted", posted),
        ("Duration", f"{summary.duration_seconds:.1f}s"),
    ]
    width = max(len(key) for key, _ in rows) + 2
    lines.extend(f"  {key.ljust(width)} {value}" for key, value in rows)
    lines.append("")

    if not summary.findings:
        lines.extend(["  ✅ No issues found!", ""])
        return "\n".join(lines)

    lines.append("  Severity Breakdown:")
    for severity in Severity:
        count = sum(1 for f in summary.findings if f.severity is severity)
        if count:
            lines.append(f"    {_SEVERITY_MARKERS[severity]} {(severity.value + ':').ljust(9)} {count}")
    lines.append("")

    top = [f for f in summary.findings if f.severity in (Severity.CRITICAL, Severity.MAJOR)][:MAX_TOP_FINDINGS]
    if top:
        lines.append("  Top Critical/Major Findings:")
        for f in top:
            desc = _truncate(f.description, MAX_DESCRIPTION_CHARS)
            lines.append(
                f"    {_SEVERITY_MARKERS[f.severity]} [{f.severity.value}] {f.file_path}:{f.line_number} - {desc}"
            )
        lines.append("")

    return "\n".join(lines)
