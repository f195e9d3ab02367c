"""
Azure DevOps Git REST API schemas（Pydantic）。

说明：
- 字段只覆盖当前流程需要的子集（PR 详情 / diffs/commits / threads）
- API 返回 camelCase，这里用 alias 对齐，内部统一 snake_case
"""

from __future__ import annotations

from pydantic import BaseModel, ConfigDict, Field


class _AdoModel(BaseModel):
    model_config = ConfigDict(populate_by_name=True)


class PrInfo(BaseModel):
    """从 PR URL 解析出的定位信息。"""

    organization: str
    project: str
    repository: str
    pull_request_id: int


class IdentityRef(_AdoModel):
    display_name: str | None = Field(default=None, alias="displayName")
    unique_name: str | None = Field(default=None, alias="uniqueName")


class PullRequest(_AdoModel):
    pull_request_id: int = Field(alias="pullRequestId")
    title: str | None = None
    description: str | None = None
    status: str
    merge_status: str = Field(default="notSet", alias="mergeStatus")
    source_ref_name: str = Field(alias="sourceRefName")
    target_ref_name: str = Field(alias="targetRefName")
    created_by: IdentityRef | None = Field(default=None, alias="createdBy")


class GitItem(_AdoModel):
    object_id: str | None = Field(default=None, alias="objectId")
    original_object_id: str | None = Field(default=None, alias="originalObjectId")
    git_object_type: str = Field(default="", alias="gitObjectType")
    commit_id: str | None = Field(default=None, alias="commitId")
    path: str = ""
    is_folder: bool = Field(default=False, alias="isFolder")
    url: str = ""


class GitChange(_AdoModel):
    item: GitItem
    change_type: str = Field(alias="changeType")


class CommitDiffs(_AdoModel):
    changes: list[GitChange] = Field(default_factory=list)


class FilePosition(BaseModel):
    line: int
    offset: int


class ThreadContext(_AdoModel):
    file_path: str = Field(alias="filePath")
    right_file_start: FilePosition = Field(alias="rightFileStart")
    right_file_end: FilePosition = Field(alias="rightFileEnd")


class PrComment(_AdoModel):
    content: str
    comment_type: int = Field(default=1, alias="commentType")


class PrThread(_AdoModel):
    comments: list[PrComment]
    status: int = 1
    thread_context: ThreadContext = Field(alias="threadContext")


class PrCommentOptions(BaseModel):
    comment_text: str
    file_path: str
    line_number: int
    severity: str | None = None
