"""
Guideline / review strategy 加载。

查找顺序：外部目录（`guidelines_path/<file>`）-> 内置资源 -> 无。
- guideline 按技术栈：`<stack>-guidelines.md`；Config 技术栈没有，prompt 里直接省略该段
- strategy 按 review 模式：diff-only 用 `pr-review-strategy.md`，
  full code（extend review）用 `extended-pr-review-strategy.md`
"""

from __future__ import annotations

import logging
from pathlib import Path

from pr_reviewer.review.models import TechStack

logger = logging.getLogger(__name__)

RESOURCES_DIR = Path(__file__).resolve().parent.parent / "resources"

GUIDELINE_FILE_NAMES: dict[TechStack, str] = {
    TechStack.DOTNET: "dotnet-guidelines.md",
    TechStack.FRONTEND: "frontend-guidelines.md",
    TechStack.PYTHON: "python-guidelines.md",
}

DIFF_ONLY_STRATEGY_FILE = "pr-review-strategy.md"
EXTENDED_STRATEGY_FILE = "extended-pr-review-strategy.md"


class GuidelineProvider:
    """按技术栈返回 guideline、按 review 模式返回 strategy；结果按文件名缓存。"""

    def __init__(self, guidelines_path: str | None = None, resources_dir: Path = RESOURCES_DIR) -> None:
        self._guidelines_path = Path(guidelines_path) if guidelines_path else None
        self._resources_dir = resources_dir
        self._cache: dict[str, str | None] = {}

    def get_guidelines(self, tech_stack: TechStack) -> str | None:
        file_name = GUIDELINE_FILE_NAMES.get(tech_stack)
        if file_name is None:
            return None
        content = self._lookup(file_name)
        if content is None:
            logger.warning(f"No guidelines found for {tech_stack.value}")
        return content

    def get_strategy(self, extend_review: bool) -> str | None:
        file_name = EXTENDED_STRATEGY_FILE if extend_review else DIFF_ONLY_STRATEGY_FILE
        content = self._lookup(file_name)
        if content is None:
            logger.warning(f"No review strategy found: {file_name}")
        return content

    def _lookup(self, file_name: str) -> str | None:
        if file_name in self._cache:
            return self._cache[file_name]
        content = self._load(file_name)
        self._cache[file_name] = content
        return content

    def _load(self, file_name: str) -> str | None:
        if self._guidelines_path is not None:
            external = self._guidelines_path / file_name
            if external.is_file():
                logger.info(f"Using external {file_name}: {external}")
                return external.read_text(encoding="utf-8")

        embedded = self._resources_dir / file_name
        if embedded.is_file():
            return embedded.read_text(encoding="utf-8")
        return None
