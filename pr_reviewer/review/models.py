"""
Review 领域模型（Pydantic）。

用途：
- 明确各阶段输入/输出的数据结构（变更文件 -> 批次 -> 发现 -> 汇总）
- 作为 LLM JSON 输出的 schema 校验（ReviewFinding）
"""

from __future__ import annotations

from enum import Enum
from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator


class TechStack(str, Enum):
    """文件所属技术栈（决定 guideline，也保证一个批次内容同质）。"""

    DOTNET = "Dotnet"
    FRONTEND = "Frontend"
    PYTHON = "Python"
    CONFIG = "Config"


class Severity(str, Enum):
    CRITICAL = "Critical"
    MAJOR = "Major"
    MINOR = "Minor"


# 模型有时会按另一套等级输出（High/Medium/Low），这里统一折叠到三档
_SEVERITY_ALIASES: dict[str, Severity] = {
    "critical": Severity.CRITICAL,
    "major": Severity.MAJOR,
    "high": Severity.MAJOR,
    "minor": Severity.MINOR,
    "medium": Severity.MINOR,
    "low": Severity.MINOR,
}


class FileChange(BaseModel):
    """单个文件的变更（从 Azure DevOps diffs/blobs 归一化而来），创建后只读。"""

    model_config = ConfigDict(frozen=True)

    path: str
    source_content: str | None = None
    new_content: str | None = None
    diff: str = ""
    change_type: Literal["add", "edit", "delete", "rename"]
    lines_added: int = 0
    lines_deleted: int = 0


class BatchFile(BaseModel):
    model_config = ConfigDict(frozen=True)

    content: str
    diff: str


class ReviewBatch(BaseModel):
    """
    一次发给 AI reviewer 的文件批次。

    - batch_number：全局从 1 开始连续递增
    - tech_stack：批次内所有文件同一个技术栈
    - files：path -> BatchFile，保持加入顺序
    """

    model_config = ConfigDict(frozen=True)

    batch_number: int = Field(ge=1)
    tech_stack: TechStack
    total_tokens: int = Field(ge=0)
    files: dict[str, BatchFile]

    @property
    def file_count(self) -> int:
        return len(self.files)


class BatchResult(BaseModel):
    """Batch Builder 的输出：批次列表 + 被排除的文件路径（两者不相交）。"""

    batches: list[ReviewBatch] = Field(default_factory=list)
    excluded_files: list[str] = Field(default_factory=list)


class ReviewFinding(BaseModel):
    """
    reviewer 输出的单条问题。

    只由 finding_parser 从模型输出解码得到：
    - 字段名大小写不敏感（filePath / FilePath / file_path 都可以）
    - lineNumber 缺失、为 null 或 <= 0 时归一为 1
    """

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    file_path: str = Field(alias="filePath")
    line_number: int = Field(default=1, alias="lineNumber")
    severity: Severity
    description: str
    suggestion: str | None = None

    @model_validator(mode="before")
    @classmethod
    def _match_keys_case_insensitively(cls, data: Any) -> Any:
        if not isinstance(data, dict):
            return data
        canonical = {
            "filepath": "filePath",
            "linenumber": "lineNumber",
            "severity": "severity",
            "description": "description",
            "suggestion": "suggestion",
        }
        normalized: dict[str, Any] = {}
        for key, value in data.items():
            if not isinstance(key, str):
                continue
            target = canonical.get(key.replace("_", "").lower())
            if target is not None and target not in normalized:
                normalized[target] = value
        return normalized

    @field_validator("line_number", mode="before")
    @classmethod
    def _default_line_number(cls, value: Any) -> Any:
        if value is None:
            return 1
        return value

    @field_validator("line_number", mode="after")
    @classmethod
    def _clamp_line_number(cls, value: int) -> int:
        return value if value > 0 else 1

    @field_validator("severity", mode="before")
    @classmethod
    def _normalize_severity(cls, value: Any) -> Any:
        if isinstance(value, str):
            alias = _SEVERITY_ALIASES.get(value.strip().lower())
            if alias is not None:
                return alias
        return value


class ReviewSummary(BaseModel):
    """一次 review 运行的汇总（运行结束时一次性构造）。"""

    pr_url: str
    pr_title: str
    total_files: int
    reviewed_files: int
    excluded_files: int
    total_batches: int
    findings: list[ReviewFinding] = Field(default_factory=list)
    comments_posted: bool
    comments_failed: int = 0
    duration_seconds: float
