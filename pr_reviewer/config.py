"""
应用配置加载。

设计目标：
- **严格**：缺少必要配置就直接报错（避免“看起来跑了其实没配置好”）
- **类型安全**：使用 Pydantic 校验 URL/数值范围等，减少运行时踩坑
- **可测试**：核心加载函数接收 `environ` / settings 文件内容 / CLI 覆盖项的显式输入

优先级（低 -> 高）：默认值 < appsettings.json < 环境变量 < CLI 参数
"""

from __future__ import annotations

import json
import os
from collections.abc import Mapping
from typing import Any

from pydantic import BaseModel, Field, HttpUrl, ValidationError

DEFAULT_SETTINGS_FILE = "appsettings.json"


class AzureDevOpsConfig(BaseModel):
    base_url: HttpUrl = Field(default="https://dev.azure.com", validate_default=True)
    pat: str = Field(min_length=1)


class LLMConfig(BaseModel):
    """AI reviewer（OpenAI-compatible）及批次/并发参数。"""

    base_url: HttpUrl
    api_key: str = Field(min_length=1)
    model: str = "gpt-5-mini"
    max_tokens_per_batch: int = 90_000
    overhead_tokens: int = Field(default=20_000, ge=0)
    max_parallel_batches: int = Field(default=4, ge=1)
    timeout_seconds: float = Field(default=300.0, gt=0)


class ReviewConfig(BaseModel):
    guidelines_path: str | None = None
    post_comments: bool = True
    # False = diff-only review；True = 全文 + diff（extend review）
    extend_review: bool = False


class AppConfig(BaseModel):
    azure_devops: AzureDevOpsConfig
    llm: LLMConfig
    review: ReviewConfig = Field(default_factory=ReviewConfig)


# appsettings.json 的 section / key 与内部字段的对应关系
_FILE_SECTIONS: dict[str, tuple[str, dict[str, str]]] = {
    "AzureDevOps": ("azure_devops", {"BaseUrl": "base_url", "Pat": "pat"}),
    "Llm": (
        "llm",
        {
            "BaseUrl": "base_url",
            "ApiKey": "api_key",
            "Model": "model",
            "MaxTokensPerBatch": "max_tokens_per_batch",
            "OverheadTokens": "overhead_tokens",
            "MaxParallelBatches": "max_parallel_batches",
            "TimeoutSeconds": "timeout_seconds",
        },
    ),
    "Review": (
        "review",
        {"GuidelinesPath": "guidelines_path", "PostComments": "post_comments", "ExtendReview": "extend_review"},
    ),
}

_ENV_KEYS: dict[str, tuple[str, str]] = {
    "AZURE_DEVOPS_BASE_URL": ("azure_devops", "base_url"),
    "AZURE_DEVOPS_PAT": ("azure_devops", "pat"),
    "LLM_BASE_URL": ("llm", "base_url"),
    "LLM_API_KEY": ("llm", "api_key"),
    "LLM_MODEL": ("llm", "model"),
    "PR_REVIEWER_MAX_PARALLEL_BATCHES": ("llm", "max_parallel_batches"),
    "PR_REVIEWER_TIMEOUT_SECONDS": ("llm", "timeout_seconds"),
    "PR_REVIEWER_GUIDELINES_PATH": ("review", "guidelines_path"),
    "PR_REVIEWER_EXTEND_REVIEW": ("review", "extend_review"),
}

_REQUIRED: tuple[tuple[str, str, str], ...] = (
    ("azure_devops", "pat", "AZURE_DEVOPS_PAT"),
    ("llm", "base_url", "LLM_BASE_URL"),
    ("llm", "api_key", "LLM_API_KEY"),
)


def load_settings_file(path: str) -> dict[str, Any]:
    """读取 appsettings.json；文件不存在返回空 dict，内容非法直接抛错。"""
    if not os.path.exists(path):
        return {}
    with open(path, encoding="utf-8") as f:
        data = json.load(f)
    if not isinstance(data, dict):
        raise ValueError(f"Settings file must contain a JSON object: {path}")
    return data


def load_config(
    environ: Mapping[str, str],
    file_settings: Mapping[str, Any] | None = None,
    overrides: Mapping[str, Mapping[str, Any]] | None = None,
) -> AppConfig:
    """
    合并各来源并校验配置。

    - **输入**：`environ`（例如 `os.environ`）、settings 文件内容、CLI 覆盖项
      （形如 `{"llm": {"model": "..."}}`，值为 None 的项忽略）
    - **输出**：`AppConfig`
    - **失败**：缺失必要项或校验失败抛 `ValueError`
    """
    merged: dict[str, dict[str, Any]] = {"azure_devops": {}, "llm": {}, "review": {}}

    for section_name, (target, keys) in _FILE_SECTIONS.items():
        section = (file_settings or {}).get(section_name) or {}
        for key, value in section.items():
            field = keys.get(key)
            if field is not None:
                merged[target][field] = value

    for env_key, (target, field) in _ENV_KEYS.items():
        value = environ.get(env_key)
        if value:
            merged[target][field] = value

    for target, values in (overrides or {}).items():
        for field, value in values.items():
            if value is not None:
                merged[target][field] = value

    missing = [env_key for target, field, env_key in _REQUIRED if not merged[target].get(field)]
    if missing:
        raise ValueError(f"Missing required settings: {', '.join(missing)}")

    # 交给 Pydantic 做类型校验（例如 URL 合法性、并发数 >= 1）
    try:
        return AppConfig.model_validate(merged)
    except ValidationError as exc:
        raise ValueError(f"Invalid settings: {exc}") from exc
