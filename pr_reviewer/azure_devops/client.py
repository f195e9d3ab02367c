"""
Azure DevOps API 客户端（外部系统连接器）。

约定：
- 这里只做“HTTP 调用 + 错误处理 + schema 校验”，不做 review 决策。
- 发生错误时**直接抛错**，不要吞异常（便于定位与告警）。
- 不做重试。
"""

from __future__ import annotations

import base64
import logging
import re
from urllib.parse import quote

import anyio
import httpx

from pr_reviewer.azure_devops.diff import generate_unified_diff
from pr_reviewer.azure_devops.schemas import CommitDiffs
from pr_reviewer.azure_devops.schemas import FilePosition
from pr_reviewer.azure_devops.schemas import GitChange
from pr_reviewer.azure_devops.schemas import PrComment
from pr_reviewer.azure_devops.schemas import PrCommentOptions
from pr_reviewer.azure_devops.schemas import PrInfo
from pr_reviewer.azure_devops.schemas import PrThread
from pr_reviewer.azure_devops.schemas import PullRequest
from pr_reviewer.azure_devops.schemas import ThreadContext
from pr_reviewer.errors import AzureDevOpsApiError
from pr_reviewer.errors import InvalidPrUrlError
from pr_reviewer.errors import MergeConflictError
from pr_reviewer.errors import NoChangedFilesError
from pr_reviewer.errors import PullRequestNotActiveError
from pr_reviewer.errors import PullRequestNotFoundError
from pr_reviewer.errors import first_leaf_exception
from pr_reviewer.review.models import FileChange

logger = logging.getLogger(__name__)

API_VERSION = "7.1"
SUPPORTED_CHANGE_TYPES = ("add", "edit", "delete", "rename")

_PR_URL_PATTERNS = (
    re.compile(r"https://dev\.azure\.com/(.+?)/(.+?)/_git/(.+?)/pullrequest/(\d+)", re.IGNORECASE),
    re.compile(r"https://(.+?)\.visualstudio\.com/(.+?)/_git/(.+?)/pullrequest/(\d+)", re.IGNORECASE),
)


def parse_pr_url(pr_url: str) -> PrInfo:
    """
    解析 PR URL，支持两种格式：
    - https://dev.azure.com/{org}/{project}/_git/{repo}/pullrequest/{id}
    - https://{org}.visualstudio.com/{project}/_git/{repo}/pullrequest/{id}
    """
    for pattern in _PR_URL_PATTERNS:
        match = pattern.match(pr_url.strip())
        if match:
            return PrInfo(
                organization=match.group(1),
                project=match.group(2),
                repository=match.group(3),
                pull_request_id=int(match.group(4)),
            )
    raise InvalidPrUrlError(f"Invalid Azure DevOps PR URL format: {pr_url}")


def _branch_name(ref_name: str) -> str:
    return ref_name.removeprefix("refs/heads/")


def _normalize_change_type(change_type: str) -> str:
    # rename 常与 edit 组合出现，例如 "edit, rename"
    lowered = [part.strip() for part in change_type.lower().split(",")]
    for kind in ("rename", "delete", "add", "edit"):
        if kind in lowered:
            return kind
    return lowered[0]


def _is_supported_change(change: GitChange) -> bool:
    return (
        _normalize_change_type(change.change_type) in SUPPORTED_CHANGE_TYPES
        and change.item.git_object_type.lower() == "blob"
        and bool(change.item.path)
        and bool(change.item.url)
    )


def format_comment_with_severity(comment_text: str, severity: str | None) -> str:
    """加严重级别前缀；文本已带 `**[` 前缀时不重复添加。"""
    if not severity:
        return comment_text
    if comment_text.lstrip().startswith("**["):
        return comment_text
    return f"**[{severity}]**\n\n{comment_text}"


class AzureDevOpsClient:
    """最小 Azure DevOps Git API client（PR 详情 / 变更文件 / 行内评论）。"""

    def __init__(self, base_url: str, pat: str, http_client: httpx.AsyncClient) -> None:
        """
        - base_url: 例如 https://dev.azure.com（不包含末尾 /）
        - pat: Personal Access Token（Code Read & Write）
        - http_client: 复用的 httpx.AsyncClient
        """
        self._base_url = base_url.rstrip("/")
        self._pat = pat
        self._http_client = http_client

    def _headers(self, accept: str = "application/json") -> dict[str, str]:
        """PAT 走 Basic 认证，用户名留空。"""
        encoded = base64.b64encode(f":{self._pat}".encode("utf-8")).decode("ascii")
        return {"Authorization": f"Basic {encoded}", "Accept": accept}

    def _api_base(self, pr_info: PrInfo) -> str:
        return (
            f"{self._base_url}/{quote(pr_info.organization)}/{quote(pr_info.project)}"
            f"/_apis/git/repositories/{quote(pr_info.repository)}"
        )

    @staticmethod
    def _raise_for_status(response: httpx.Response) -> None:
        if response.status_code == 404:
            raise PullRequestNotFoundError(response.status_code, response.text)
        if response.status_code >= 400:
            raise AzureDevOpsApiError(response.status_code, response.text)

    async def get_pr_details(self, pr_info: PrInfo) -> PullRequest:
        """
        获取 PR 详情，并做前置检查：
        - 必须是 active
        - 合并检查必须 succeeded（有冲突的 PR 不 review）
        """
        url = f"{self._api_base(pr_info)}/pullRequests/{pr_info.pull_request_id}"
        response = await self._http_client.get(url, headers=self._headers(), params={"api-version": API_VERSION})
        self._raise_for_status(response)
        pr = PullRequest.model_validate(response.json())

        if pr.status.lower() != "active":
            raise PullRequestNotActiveError(f"The PR is not active (status: {pr.status}).")
        if pr.merge_status.lower() != "succeeded":
            raise MergeConflictError(f"The PR has merge conflicts (merge status: {pr.merge_status}).")
        return pr

    async def fetch_pr_changes(self, pr_info: PrInfo, pr: PullRequest) -> list[FileChange]:
        """
        拉取 PR 的变更文件：diffs/commits 拿清单，再并发拉新旧 blob，本地生成 diff。

        返回顺序与 diffs/commits 清单一致。
        """
        api_base = self._api_base(pr_info)
        params = {
            "baseVersion": _branch_name(pr.target_ref_name),
            "targetVersion": _branch_name(pr.source_ref_name),
            "$top": "2000",
            "api-version": API_VERSION,
        }
        response = await self._http_client.get(f"{api_base}/diffs/commits", headers=self._headers(), params=params)
        self._raise_for_status(response)
        diffs = CommitDiffs.model_validate(response.json())

        if not diffs.changes:
            raise NoChangedFilesError("No changed files found in this PR.")

        supported = [c for c in diffs.changes if _is_supported_change(c)]
        if not supported:
            raise NoChangedFilesError("No supported code file found in this PR.")

        results: list[FileChange | None] = [None] * len(supported)

        async def fetch_one(index: int, change: GitChange) -> None:
            results[index] = await self._get_file_change(change=change, api_base=api_base)

        try:
            async with anyio.create_task_group() as tg:
                for index, change in enumerate(supported):
                    tg.start_soon(fetch_one, index, change)
        except BaseExceptionGroup as group:
            raise first_leaf_exception(group) from None

        return [r for r in results if r is not None]

    async def _get_file_change(self, change: GitChange, api_base: str) -> FileChange:
        item = change.item
        source_content = None
        new_content = None
        if item.original_object_id:
            source_content = await self._get_blob_content(f"{api_base}/blobs/{item.original_object_id}")
        if item.object_id:
            new_content = await self._get_blob_content(f"{api_base}/blobs/{item.object_id}")

        diff = generate_unified_diff(item.path, source_content or "", new_content or "")
        return FileChange(
            path=item.path,
            source_content=source_content,
            new_content=new_content,
            diff=diff.patch,
            change_type=_normalize_change_type(change.change_type),
            lines_added=diff.lines_added,
            lines_deleted=diff.lines_deleted,
        )

    async def _get_blob_content(self, url: str) -> str | None:
        """blob 不存在（404）返回 None；其他错误照常抛出。"""
        response = await self._http_client.get(
            url,
            headers=self._headers(accept="text/plain"),
            params={"api-version": API_VERSION, "$format": "text"},
        )
        if response.status_code == 404:
            logger.warning(f"Blob not found: {url}")
            return None
        self._raise_for_status(response)
        return response.text

    async def post_pr_comment(self, pr_info: PrInfo, options: PrCommentOptions) -> None:
        """在 PR 上对指定文件的指定行创建一条评论 thread（右侧 = 新版本文件）。"""
        url = f"{self._api_base(pr_info)}/pullRequests/{pr_info.pull_request_id}/threads"
        thread = PrThread(
            comments=[PrComment(content=format_comment_with_severity(options.comment_text, options.severity))],
            thread_context=ThreadContext(
                file_path=options.file_path,
                right_file_start=FilePosition(line=options.line_number, offset=1),
                right_file_end=FilePosition(line=options.line_number, offset=999),
            ),
        )
        response = await self._http_client.post(
            url,
            headers=self._headers(),
            params={"api-version": API_VERSION},
            json=thread.model_dump(by_alias=True),
        )
        self._raise_for_status(response)
