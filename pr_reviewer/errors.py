"""
项目内的错误类型。

约定：
- 分类/排除不是错误，只是路由决策
- Finding 解析失败在 parser 内部兜底为空列表，不会出现在这里
- 其余失败都抛出以下类型，由 CLI 统一报告并返回非 0 退出码
"""

from __future__ import annotations


class PrReviewerError(RuntimeError):
    """所有项目内错误的基类。"""


class InvalidPrUrlError(PrReviewerError, ValueError):
    """PR URL 不是可识别的 Azure DevOps 格式。"""


class AzureDevOpsApiError(PrReviewerError):
    """Azure DevOps REST API 返回 >= 400。"""

    def __init__(self, status_code: int, message: str) -> None:
        super().__init__(f"Azure DevOps API error {status_code}: {message}")
        self.status_code = status_code


class PullRequestNotFoundError(AzureDevOpsApiError):
    pass


class PullRequestNotActiveError(PrReviewerError):
    pass


class MergeConflictError(PrReviewerError):
    pass


class NoChangedFilesError(PrReviewerError):
    pass


class BatchReviewError(PrReviewerError):
    """单个批次的 review 失败（会中止整次运行）。"""

    def __init__(self, batch_number: int, message: str) -> None:
        super().__init__(f"Batch {batch_number} review failed: {message}")
        self.batch_number = batch_number


class ReviewTimeoutError(BatchReviewError):
    pass


def first_leaf_exception(group: BaseExceptionGroup) -> BaseException:
    """task group 抛出的异常组 -> 第一个叶子异常（用于向上报告真实错误）。"""
    first = group.exceptions[0]
    if isinstance(first, BaseExceptionGroup):
        return first_leaf_exception(first)
    return first
