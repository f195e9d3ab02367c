"""
命令行入口：`pr-reviewer <pr-url>`。

这里做三件事：
- 解析参数并加载配置（appsettings.json < 环境变量 < CLI 参数）
- 组装外部依赖（HTTP Client / Azure DevOps client / LLM client）
- 跑一次 review，打印汇总

退出码：0 成功；1 任意失败；130 Ctrl+C
"""

from __future__ import annotations

import argparse
import logging
import os
import sys

import anyio
import httpx

from pr_reviewer.azure_devops.client import AzureDevOpsClient
from pr_reviewer.config import DEFAULT_SETTINGS_FILE
from pr_reviewer.config import AppConfig
from pr_reviewer.config import load_config
from pr_reviewer.config import load_settings_file
from pr_reviewer.llm.client import ChatReviewClient
from pr_reviewer.review.models import ReviewSummary
from pr_reviewer.review.orchestrator import build_review_orchestrator
from pr_reviewer.review.orchestrator import run_review
from pr_reviewer.review.reporter import render_summary

logger = logging.getLogger(__name__)


def build_arg_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="pr-reviewer",
        description="AI-powered pull request reviewer for Azure DevOps.",
    )
    parser.add_argument("pr_url", help="Azure DevOps pull request URL.")
    parser.add_argument("--pat", help="Azure DevOps personal access token (or AZURE_DEVOPS_PAT).")
    parser.add_argument("--model", help="AI model to use for review.")
    parser.add_argument("--guidelines-path", help="Directory with external *-guidelines.md and review strategy files.")
    parser.add_argument("--max-parallel", type=int, help="Maximum number of batches reviewed in parallel.")
    parser.add_argument("--timeout", type=float, help="Timeout in seconds for each batch review.")
    parser.add_argument(
        "--no-comments",
        dest="post_comments",
        action="store_false",
        default=None,
        help="Do not post comments to the PR (dry run).",
    )
    parser.add_argument(
        "--extend-review",
        action="store_true",
        default=None,
        help="Review full file content in addition to diffs (default: diff-only).",
    )
    parser.add_argument(
        "--settings",
        default=DEFAULT_SETTINGS_FILE,
        help=f"Path to a JSON settings file (default: ./{DEFAULT_SETTINGS_FILE}, optional).",
    )
    parser.add_argument(
        "-v",
        "--verbose",
        action="count",
        default=1,
        help="Enable debug output.",
    )
    parser.add_argument("-q", "--quiet", dest="verbose", action="store_const", const=0, help="Only log warnings.")
    return parser


def configure_logging(verbosity: int) -> None:
    """
    verbosity == 0 -> WARNING
    verbosity == 1 -> INFO
    verbosity >= 2 -> DEBUG
    """
    if verbosity <= 0:
        level = logging.WARNING
    elif verbosity == 1:
        level = logging.INFO
    else:
        level = logging.DEBUG

    logging.basicConfig(level=level, format="%(asctime)s %(levelname)s %(name)s: %(message)s")
    # httpx 每个请求都会打 INFO，默认压掉
    logging.getLogger("httpx").setLevel(max(level, logging.WARNING))


def build_config(args: argparse.Namespace) -> AppConfig:
    overrides = {
        "azure_devops": {"pat": args.pat},
        "llm": {
            "model": args.model,
            "max_parallel_batches": args.max_parallel,
            "timeout_seconds": args.timeout,
        },
        "review": {
            "guidelines_path": args.guidelines_path,
            "post_comments": args.post_comments,
            "extend_review": args.extend_review,
        },
    }
    return load_config(
        environ=os.environ,
        file_settings=load_settings_file(args.settings),
        overrides=overrides,
    )


async def run(config: AppConfig, pr_url: str) -> ReviewSummary:
    async with httpx.AsyncClient(timeout=httpx.Timeout(60.0)) as http_client:
        ado_client = AzureDevOpsClient(
            base_url=str(config.azure_devops.base_url),
            pat=config.azure_devops.pat,
            http_client=http_client,
        )
        llm_client = ChatReviewClient(
            api_key=config.llm.api_key,
            base_url=str(config.llm.base_url),
            http_client=http_client,
            model=config.llm.model,
        )
        orchestrator = build_review_orchestrator(
            ado_client=ado_client,
            llm_client=llm_client,
            llm_settings=config.llm,
            review_settings=config.review,
        )
        return await run_review(orchestrator, pr_url)


def main(argv: list[str] | None = None) -> int:
    parser = build_arg_parser()
    args = parser.parse_args(argv)
    configure_logging(verbosity=args.verbose)

    try:
        config = build_config(args)
        summary = anyio.run(run, config, args.pr_url)
    except KeyboardInterrupt:
        return 130
    except Exception as exc:
        logger.error(f"Review failed: {exc}")
        logger.debug("Traceback:", exc_info=True)
        return 1

    print(render_summary(summary))
    return 0


if __name__ == "__main__":
    sys.exit(main())
