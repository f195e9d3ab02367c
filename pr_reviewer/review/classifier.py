"""
文件分类与排除（非 AI）。

这是一个非常“工程”的步骤：不需要 LLM，且必须确定性。
- `classify_file`：按扩展名（大小写不敏感）映射到技术栈，未知扩展名返回 None
- `should_exclude`：锁文件 / 生成文件 / 压缩文件直接跳过，不送审
"""

from __future__ import annotations

import os
from collections.abc import Mapping
from types import MappingProxyType

from pr_reviewer.review.models import TechStack

EXTENSION_MAP: Mapping[str, TechStack] = MappingProxyType(
    {
        # .NET
        ".cs": TechStack.DOTNET,
        ".csproj": TechStack.DOTNET,
        ".sln": TechStack.DOTNET,
        ".slnx": TechStack.DOTNET,
        ".props": TechStack.DOTNET,
        ".razor": TechStack.DOTNET,
        ".cshtml": TechStack.DOTNET,
        # Frontend
        ".js": TechStack.FRONTEND,
        ".jsx": TechStack.FRONTEND,
        ".ts": TechStack.FRONTEND,
        ".tsx": TechStack.FRONTEND,
        ".html": TechStack.FRONTEND,
        ".htm": TechStack.FRONTEND,
        ".css": TechStack.FRONTEND,
        ".scss": TechStack.FRONTEND,
        ".sass": TechStack.FRONTEND,
        ".less": TechStack.FRONTEND,
        ".vue": TechStack.FRONTEND,
        ".svelte": TechStack.FRONTEND,
        # Python
        ".py": TechStack.PYTHON,
        ".pyi": TechStack.PYTHON,
        ".pyx": TechStack.PYTHON,
        ".pxd": TechStack.PYTHON,
        # Config
        ".json": TechStack.CONFIG,
        ".yaml": TechStack.CONFIG,
        ".yml": TechStack.CONFIG,
        ".http": TechStack.CONFIG,
        ".rest": TechStack.CONFIG,
    }
)

EXACT_NAME_EXCLUSIONS: frozenset[str] = frozenset(
    {
        "package-lock.json",
        "yarn.lock",
        "pnpm-lock.yaml",
        "pipfile.lock",
        "poetry.lock",
        "packages.lock.json",
    }
)

SUFFIX_EXCLUSIONS: tuple[str, ...] = (
    ".min.js",
    ".min.css",
    ".d.ts",
    ".g.cs",
    ".designer.cs",
    ".generated.cs",
)


def classify_file(path: str) -> TechStack | None:
    """通过扩展名推断技术栈；无法识别返回 None（调用方当作排除处理）。"""
    ext = os.path.splitext(path)[1].lower()
    return EXTENSION_MAP.get(ext)


def should_exclude(path: str) -> bool:
    """
    是否跳过该文件。两条规则任一命中即排除：
    - 文件名（不含目录）精确匹配锁文件名
    - 整个路径以生成/压缩文件后缀结尾
    """
    lowered = path.lower()
    file_name = lowered.replace("\\", "/").rsplit("/", 1)[-1]
    if file_name in EXACT_NAME_EXCLUSIONS:
        return True
    return lowered.endswith(SUFFIX_EXCLUSIONS)
