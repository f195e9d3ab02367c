from __future__ import annotations

import base64
import json

import httpx
import pytest

from pr_reviewer.azure_devops.client import AzureDevOpsClient
from pr_reviewer.azure_devops.client import format_comment_with_severity
from pr_reviewer.azure_devops.client import parse_pr_url
from pr_reviewer.azure_devops.schemas import PrCommentOptions
from pr_reviewer.azure_devops.schemas import PrInfo
from pr_reviewer.dev import mock_azure_devops_server
from pr_reviewer.errors import AzureDevOpsApiError
from pr_reviewer.errors import InvalidPrUrlError
from pr_reviewer.errors import MergeConflictError
from pr_reviewer.errors import NoChangedFilesError
from pr_reviewer.errors import PullRequestNotActiveError
from pr_reviewer.errors import PullRequestNotFoundError

PR_INFO = PrInfo(organization="org", project="proj", repository="repo", pull_request_id=1)


def test_parse_pr_url_dev_azure_format() -> None:
    info = parse_pr_url("https://dev.azure.com/contoso/Shop/_git/shop-api/pullrequest/1234")
    assert info == PrInfo(organization="contoso", project="Shop", repository="shop-api", pull_request_id=1234)


def test_parse_pr_url_visualstudio_format() -> None:
    info = parse_pr_url("https://contoso.visualstudio.com/Shop/_git/shop-web/pullrequest/77")
    assert (info.organization, info.project, info.repository, info.pull_request_id) == (
        "contoso",
        "Shop",
        "shop-web",
        77,
    )


@pytest.mark.parametrize(
    "url",
    [
        "https://github.com/org/repo/pull/1",
        "https://dev.azure.com/org/proj/_git/repo/pullrequest/abc",
        "not a url",
        "",
    ],
)
def test_parse_pr_url_rejects_other_urls(url: str) -> None:
    with pytest.raises(InvalidPrUrlError):
        parse_pr_url(url)


def test_format_comment_with_severity() -> None:
    assert format_comment_with_severity("Null check missing", "Major") == "**[Major]**\n\nNull check missing"
    assert format_comment_with_severity("**[Minor]**\n\nalready tagged", "Major") == "**[Minor]**\n\nalready tagged"
    assert format_comment_with_severity("plain", None) == "plain"


def _pr_payload(status: str = "active", merge_status: str = "succeeded") -> dict[str, object]:
    return {
        "pullRequestId": 1,
        "title": "Add checkout",
        "status": status,
        "mergeStatus": merge_status,
        "sourceRefName": "refs/heads/feature/checkout",
        "targetRefName": "refs/heads/main",
    }


def _client(handler) -> AzureDevOpsClient:
    http_client = httpx.AsyncClient(transport=httpx.MockTransport(handler))
    return AzureDevOpsClient(base_url="https://ado.test/", pat="secret", http_client=http_client)


@pytest.mark.anyio
async def test_get_pr_details_sends_basic_auth_and_api_version() -> None:
    seen: list[httpx.Request] = []

    def handler(request: httpx.Request) -> httpx.Response:
        seen.append(request)
        return httpx.Response(200, json=_pr_payload())

    pr = await _client(handler).get_pr_details(PR_INFO)

    assert pr.title == "Add checkout"
    request = seen[0]
    assert request.url.path == "/org/proj/_apis/git/repositories/repo/pullRequests/1"
    assert request.url.params["api-version"] == "7.1"
    expected = base64.b64encode(b":secret").decode("ascii")
    assert request.headers["Authorization"] == f"Basic {expected}"


@pytest.mark.anyio
async def test_get_pr_details_rejects_inactive_pr() -> None:
    client = _client(lambda request: httpx.Response(200, json=_pr_payload(status="completed")))
    with pytest.raises(PullRequestNotActiveError):
        await client.get_pr_details(PR_INFO)


@pytest.mark.anyio
async def test_get_pr_details_rejects_merge_conflicts() -> None:
    client = _client(lambda request: httpx.Response(200, json=_pr_payload(merge_status="conflicts")))
    with pytest.raises(MergeConflictError):
        await client.get_pr_details(PR_INFO)


@pytest.mark.anyio
async def test_get_pr_details_not_found() -> None:
    client = _client(lambda request: httpx.Response(404, text="TF401180: pull request not found"))
    with pytest.raises(PullRequestNotFoundError) as exc_info:
        await client.get_pr_details(PR_INFO)
    assert exc_info.value.status_code == 404


@pytest.mark.anyio
async def test_get_pr_details_api_error() -> None:
    client = _client(lambda request: httpx.Response(401, text="unauthorized"))
    with pytest.raises(AzureDevOpsApiError) as exc_info:
        await client.get_pr_details(PR_INFO)
    assert exc_info.value.status_code == 401
    assert not isinstance(exc_info.value, PullRequestNotFoundError)


@pytest.mark.anyio
async def test_fetch_pr_changes_without_changes() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        if request.url.path.endswith("/diffs/commits"):
            return httpx.Response(200, json={"changes": []})
        return httpx.Response(200, json=_pr_payload())

    client = _client(handler)
    pr = await client.get_pr_details(PR_INFO)
    with pytest.raises(NoChangedFilesError):
        await client.fetch_pr_changes(PR_INFO, pr)


@pytest.mark.anyio
async def test_fetch_pr_changes_against_mock_server() -> None:
    http_client = httpx.AsyncClient(transport=httpx.ASGITransport(app=mock_azure_devops_server.app))
    async with http_client:
        client = AzureDevOpsClient(base_url="http://ado.test", pat="pat", http_client=http_client)
        pr = await client.get_pr_details(PR_INFO)
        changes = await client.fetch_pr_changes(PR_INFO, pr)

    assert [c.path for c in changes] == ["/src/service.py", "/web/app.ts", "/web/package-lock.json"]

    service = changes[0]
    assert service.change_type == "edit"
    assert service.source_content is not None
    assert "except:" in (service.new_content or "")
    assert service.diff.startswith("--- a/src/service.py\n+++ b/src/service.py\n")
    assert service.lines_added == 4
    assert service.lines_deleted == 1

    app = changes[1]
    assert app.change_type == "add"
    assert app.source_content is None
    assert app.lines_added == 2
    assert app.lines_deleted == 0


@pytest.mark.anyio
async def test_fetch_pr_changes_sends_branch_versions() -> None:
    seen: list[httpx.Request] = []

    def handler(request: httpx.Request) -> httpx.Response:
        seen.append(request)
        if request.url.path.endswith("/diffs/commits"):
            return httpx.Response(
                200,
                json={
                    "changes": [
                        {
                            "item": {"gitObjectType": "blob", "path": "/a.py", "url": "u", "objectId": "n1"},
                            "changeType": "edit, rename",
                        }
                    ]
                },
            )
        if "/blobs/" in request.url.path:
            return httpx.Response(404)
        return httpx.Response(200, json=_pr_payload())

    client = _client(handler)
    pr = await client.get_pr_details(PR_INFO)
    changes = await client.fetch_pr_changes(PR_INFO, pr)

    diffs_request = next(r for r in seen if r.url.path.endswith("/diffs/commits"))
    assert diffs_request.url.params["baseVersion"] == "main"
    assert diffs_request.url.params["targetVersion"] == "feature/checkout"
    # blob 404 不算失败，按空内容处理
    assert changes[0].change_type == "rename"
    assert changes[0].new_content is None
    assert changes[0].diff == ""


@pytest.mark.anyio
async def test_post_pr_comment_builds_thread_payload() -> None:
    bodies: list[dict[str, object]] = []

    def handler(request: httpx.Request) -> httpx.Response:
        bodies.append(json.loads(request.content))
        assert request.method == "POST"
        assert request.url.path.endswith("/pullRequests/1/threads")
        return httpx.Response(200, json={"id": 1})

    await _client(handler).post_pr_comment(
        PR_INFO,
        PrCommentOptions(comment_text="Possible null dereference", file_path="/src/a.cs", line_number=42, severity="Critical"),
    )

    assert bodies == [
        {
            "comments": [{"content": "**[Critical]**\n\nPossible null dereference", "commentType": 1}],
            "status": 1,
            "threadContext": {
                "filePath": "/src/a.cs",
                "rightFileStart": {"line": 42, "offset": 1},
                "rightFileEnd": {"line": 42, "offset": 999},
            },
        }
    ]


@pytest.mark.anyio
async def test_post_pr_comment_raises_on_error() -> None:
    client = _client(lambda request: httpx.Response(500, text="boom"))
    with pytest.raises(AzureDevOpsApiError):
        await client.post_pr_comment(
            PR_INFO, PrCommentOptions(comment_text="x", file_path="/a.py", line_number=1)
        )


@pytest.mark.anyio
async def test_fetch_pr_changes_reports_blob_failure_directly() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        if request.url.path.endswith("/diffs/commits"):
            change = {"item": {"gitObjectType": "blob", "path": "/a.py", "url": "u", "objectId": "n1"}, "changeType": "edit"}
            return httpx.Response(200, json={"changes": [change]})
        if "/blobs/" in request.url.path:
            return httpx.Response(500, text="blob store down")
        return httpx.Response(200, json=_pr_payload())

    client = _client(handler)
    pr = await client.get_pr_details(PR_INFO)
    with pytest.raises(AzureDevOpsApiError) as exc_info:
        await client.fetch_pr_changes(PR_INFO, pr)
    assert exc_info.value.status_code == 500
    assert "blob store down" in str(exc_info.value)
