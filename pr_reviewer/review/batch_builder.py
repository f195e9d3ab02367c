"""
Batch Builder（非 AI，确定性贪心装箱）。

流程：
1) 分类 + 排除：未知扩展名或命中排除规则的文件进入 excluded
2) 按技术栈分组（保持技术栈首次出现的顺序，决定批次编号顺序）
3) 组内按 (new_content 长度 + diff 长度) 升序排序：小文件先填满批次
4) 贪心累加：加入当前文件会超出预算且当前批次非空时，先关闭当前批次；
   文件本身总会被加入（单个超大文件独占一个批次，不会被丢弃）
5) 每个技术栈结束时 flush 未关闭的批次

预算 = max_tokens_per_batch - overhead_tokens（overhead 预留给 prompt 模板和 guideline）。
预算 <= 0 不是错误：每个文件各自成为一个批次。

`include_content=False`（diff-only review）时批次只带 diff：全文不进入批次，也不计入 token。
排序仍按全文 + diff 长度。
"""

from __future__ import annotations

import logging
from collections.abc import Callable, Sequence

from pr_reviewer.review.classifier import classify_file
from pr_reviewer.review.classifier import should_exclude
from pr_reviewer.review.models import BatchFile
from pr_reviewer.review.models import BatchResult
from pr_reviewer.review.models import FileChange
from pr_reviewer.review.models import ReviewBatch
from pr_reviewer.review.models import TechStack
from pr_reviewer.review.tokens import count_tokens

logger = logging.getLogger(__name__)

TokenCounter = Callable[[str], int]


def create_batches(
    file_changes: Sequence[FileChange],
    max_tokens_per_batch: int,
    overhead_tokens: int,
    token_counter: TokenCounter = count_tokens,
    include_content: bool = True,
) -> BatchResult:
    available_tokens = max_tokens_per_batch - overhead_tokens
    if available_tokens <= 0:
        logger.warning(
            f"Token budget is non-positive ({max_tokens_per_batch} - {overhead_tokens}); "
            "every file will be reviewed in its own batch"
        )

    excluded: list[str] = []
    # dict 保持插入顺序 = 技术栈首次出现顺序
    by_stack: dict[TechStack, list[FileChange]] = {}
    for change in file_changes:
        stack = classify_file(change.path)
        if stack is None or should_exclude(change.path):
            excluded.append(change.path)
            continue
        by_stack.setdefault(stack, []).append(change)

    batches: list[ReviewBatch] = []
    for stack, files in by_stack.items():
        ordered = sorted(files, key=_size_hint)
        batches.extend(
            _pack_stack(
                stack=stack,
                files=ordered,
                available_tokens=available_tokens,
                first_batch_number=len(batches) + 1,
                token_counter=token_counter,
                include_content=include_content,
            )
        )

    return BatchResult(batches=batches, excluded_files=excluded)


def _size_hint(change: FileChange) -> int:
    """排序用的廉价体积估计（字符数），不做 tokenize。"""
    return len(change.new_content or "") + len(change.diff)


def _pack_stack(
    stack: TechStack,
    files: Sequence[FileChange],
    available_tokens: int,
    first_batch_number: int,
    token_counter: TokenCounter,
    include_content: bool,
) -> list[ReviewBatch]:
    batches: list[ReviewBatch] = []
    current: dict[str, BatchFile] = {}
    current_tokens = 0

    def flush() -> None:
        nonlocal current, current_tokens
        batches.append(
            ReviewBatch(
                batch_number=first_batch_number + len(batches),
                tech_stack=stack,
                total_tokens=current_tokens,
                files=current,
            )
        )
        current = {}
        current_tokens = 0

    for change in files:
        content = (change.new_content or "") if include_content else ""
        file_tokens = token_counter(content) + token_counter(change.diff)

        if current_tokens + file_tokens > available_tokens and current:
            flush()

        current[change.path] = BatchFile(content=content, diff=change.diff)
        current_tokens += file_tokens

    if current:
        flush()
    return batches
