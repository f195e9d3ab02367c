"""
Review Orchestrator（核心流程编排）。

流程由工程代码控制，LLM 只负责对每个批次给出结构化发现：
Fetching -> Batching -> Reviewing（受控并发）-> Posting（可选）-> Done / Failed

失败策略：
- 任一批次 review 失败（超时/LLM 错误）：取消其余批次，整次运行失败，不发任何评论
- 单条评论发布失败：记录 warning，继续发布其余评论
"""

from __future__ import annotations

import logging
import time
from collections.abc import Awaitable, Callable, Sequence
from dataclasses import dataclass

import anyio

from pr_reviewer.azure_devops.client import AzureDevOpsClient
from pr_reviewer.azure_devops.client import parse_pr_url
from pr_reviewer.azure_devops.schemas import PrCommentOptions
from pr_reviewer.azure_devops.schemas import PrInfo
from pr_reviewer.config import LLMConfig
from pr_reviewer.config import ReviewConfig
from pr_reviewer.errors import BatchReviewError
from pr_reviewer.errors import PrReviewerError
from pr_reviewer.errors import first_leaf_exception
from pr_reviewer.review.batch_builder import TokenCounter
from pr_reviewer.review.batch_builder import create_batches
from pr_reviewer.review.guidelines import GuidelineProvider
from pr_reviewer.review.models import ReviewBatch
from pr_reviewer.review.models import ReviewFinding
from pr_reviewer.review.models import ReviewSummary
from pr_reviewer.review.reviewer import ReviewModelClient
from pr_reviewer.review.reviewer import review_batch
from pr_reviewer.review.tokens import count_tokens

logger = logging.getLogger(__name__)

BatchReviewFn = Callable[[ReviewBatch], Awaitable[list[ReviewFinding]]]


@dataclass(frozen=True)
class ReviewOrchestrator:
    """Orchestrator 运行时依赖集合（全部显式注入）。"""

    ado_client: AzureDevOpsClient
    llm_client: ReviewModelClient
    guideline_provider: GuidelineProvider
    llm_settings: LLMConfig
    review_settings: ReviewConfig
    token_counter: TokenCounter = count_tokens


def build_review_orchestrator(
    ado_client: AzureDevOpsClient,
    llm_client: ReviewModelClient,
    llm_settings: LLMConfig,
    review_settings: ReviewConfig,
) -> ReviewOrchestrator:
    return ReviewOrchestrator(
        ado_client=ado_client,
        llm_client=llm_client,
        guideline_provider=GuidelineProvider(guidelines_path=review_settings.guidelines_path),
        llm_settings=llm_settings,
        review_settings=review_settings,
    )


async def run_review(orchestrator: ReviewOrchestrator, pr_url: str) -> ReviewSummary:
    """跑一次完整 review 并返回汇总；任何未处理的失败直接上抛。"""
    started = time.monotonic()
    ado_client = orchestrator.ado_client
    llm_settings = orchestrator.llm_settings

    # 1) Fetching
    pr_info = parse_pr_url(pr_url)
    logger.info(
        f"Reviewing PR #{pr_info.pull_request_id} in "
        f"{pr_info.organization}/{pr_info.project}/{pr_info.repository}"
    )
    pr = await ado_client.get_pr_details(pr_info)
    source = pr.source_ref_name.removeprefix("refs/heads/")
    target = pr.target_ref_name.removeprefix("refs/heads/")
    logger.info(f"PR: {pr.title} ({source} -> {target})")
    file_changes = await ado_client.fetch_pr_changes(pr_info, pr)
    logger.info(f"Fetched {len(file_changes)} file changes")

    # 2) Batching：批次在并发开始前完全确定
    extend_review = orchestrator.review_settings.extend_review
    batch_result = create_batches(
        file_changes,
        max_tokens_per_batch=llm_settings.max_tokens_per_batch,
        overhead_tokens=llm_settings.overhead_tokens,
        token_counter=orchestrator.token_counter,
        include_content=extend_review,
    )
    review_mode = "full code" if extend_review else "diff-only"
    logger.info(
        f"Created {len(batch_result.batches)} batches, excluded {len(batch_result.excluded_files)} files "
        f"(review mode: {review_mode})"
    )

    # 3) Reviewing
    async def review_one(batch: ReviewBatch) -> list[ReviewFinding]:
        return await review_batch(
            llm_client=orchestrator.llm_client,
            guideline_provider=orchestrator.guideline_provider,
            batch=batch,
            timeout_seconds=llm_settings.timeout_seconds,
            extend_review=extend_review,
        )

    findings = await review_batches(
        batches=batch_result.batches,
        review_one=review_one,
        max_parallel=llm_settings.max_parallel_batches,
    )

    # 4) Posting（可选）
    posted = 0
    failed = 0
    if orchestrator.review_settings.post_comments and findings:
        logger.info(f"Posting {len(findings)} comments to PR...")
        posted, failed = await post_findings(ado_client=ado_client, pr_info=pr_info, findings=findings)

    return ReviewSummary(
        pr_url=pr_url,
        pr_title=pr.title or "Untitled",
        total_files=len(file_changes),
        reviewed_files=sum(b.file_count for b in batch_result.batches),
        excluded_files=len(batch_result.excluded_files),
        total_batches=len(batch_result.batches),
        findings=findings,
        comments_posted=posted > 0,
        comments_failed=failed,
        duration_seconds=time.monotonic() - started,
    )


async def review_batches(
    batches: Sequence[ReviewBatch],
    review_one: BatchReviewFn,
    max_parallel: int,
) -> list[ReviewFinding]:
    """
    并发 review 所有批次，最多 `max_parallel` 个同时在途。

    - 准入：`CapacityLimiter` 以 async with 进出，任何退出路径都会释放名额
    - 每个任务只写自己批次下标对应的结果槽，最终按批次顺序拼接
    - 任一批次失败：task group 取消其余批次，异常上抛
    """
    if max_parallel < 1:
        raise ValueError("max_parallel must be >= 1")

    limiter = anyio.CapacityLimiter(max_parallel)
    results: list[list[ReviewFinding]] = [[] for _ in batches]

    async def run_one(index: int, batch: ReviewBatch) -> None:
        async with limiter:
            logger.info(
                f"Reviewing batch {batch.batch_number} ({batch.tech_stack.value}, "
                f"{batch.file_count} files, ~{batch.total_tokens} tokens)"
            )
            try:
                findings = await review_one(batch)
            except PrReviewerError:
                raise
            except Exception as exc:
                raise BatchReviewError(batch.batch_number, str(exc)) from exc
            logger.info(f"Batch {batch.batch_number} completed: {len(findings)} findings")
        results[index] = findings

    try:
        async with anyio.create_task_group() as tg:
            for index, batch in enumerate(batches):
                tg.start_soon(run_one, index, batch)
    except BaseExceptionGroup as group:
        error = first_leaf_exception(group)
        logger.error(f"Review aborted: {error}")
        raise error

    return [finding for batch_findings in results for finding in batch_findings]


def build_comment_text(finding: ReviewFinding) -> str:
    if finding.suggestion:
        return f"{finding.description}\n\n```suggestion\n{finding.suggestion}\n```"
    return finding.description


async def post_findings(
    ado_client: AzureDevOpsClient,
    pr_info: PrInfo,
    findings: Sequence[ReviewFinding],
) -> tuple[int, int]:
    """逐条发布评论，返回 (成功数, 失败数)。单条失败不影响后续。"""
    posted = 0
    failed = 0
    for finding in findings:
        options = PrCommentOptions(
            comment_text=build_comment_text(finding),
            file_path=finding.file_path,
            line_number=max(finding.line_number, 1),
            severity=finding.severity.value,
        )
        try:
            await ado_client.post_pr_comment(pr_info, options)
        except Exception as exc:
            failed += 1
            logger.warning(f"Failed to post comment for {finding.file_path}:{finding.line_number}: {exc}")
            continue
        posted += 1
    return posted, failed
