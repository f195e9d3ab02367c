"""
本地生成 unified diff。

Azure DevOps 的 diffs/commits 接口只返回变更清单，不返回 patch，
所以拿到新旧 blob 内容后在本地用 difflib 生成，同时统计增删行数。
"""

from __future__ import annotations

import difflib
from typing import NamedTuple


class UnifiedDiff(NamedTuple):
    patch: str
    lines_added: int
    lines_deleted: int


def generate_unified_diff(file_path: str, old_text: str, new_text: str) -> UnifiedDiff:
    path = file_path.lstrip("/")
    diff_lines = list(
        difflib.unified_diff(
            old_text.splitlines(),
            new_text.splitlines(),
            fromfile=f"a/{path}",
            tofile=f"b/{path}",
            lineterm="",
        )
    )
    added = 0
    deleted = 0
    for line in diff_lines[2:]:
        if line.startswith("+"):
            added += 1
        elif line.startswith("-"):
            deleted += 1

    patch = "\n".join(diff_lines) + "\n" if diff_lines else ""
    return UnifiedDiff(patch=patch, lines_added=added, lines_deleted=deleted)
