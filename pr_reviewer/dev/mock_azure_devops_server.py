"""
本地 Mock Azure DevOps API server（只覆盖 review 流程用到的接口）。

用途：
- 在没有真实 Azure DevOps 的情况下，本地跑通：
  PR 详情 -> diffs/commits -> blobs -> 发布评论 thread

启动：
  python -m pr_reviewer.dev.mock_azure_devops_server
然后：
  AZURE_DEVOPS_BASE_URL=http://127.0.0.1:9002 pr-reviewer \
    https://dev.azure.com/org/proj/_git/repo/pullrequest/1
（URL 只用于解析 org/project/repo/id，请求发往 AZURE_DEVOPS_BASE_URL）
"""

from __future__ import annotations

import time

import uvicorn
from fastapi import FastAPI
from fastapi import HTTPException
from fastapi.responses import PlainTextResponse

_BLOBS: dict[str, str] = {
    "old-service": "class Service:\n    def run(self):\n        return 1\n",
    "new-service": "class Service:\n    def run(self):\n        try:\n            return 1\n        except:\n            pass\n",
    "new-app": "const token = getToken();\nconsole.log(token);\n",
    "new-lock": '{"lockfileVersion": 3}\n',
}


def _default_pull_request(pull_request_id: int) -> dict[str, object]:
    return {
        "pullRequestId": pull_request_id,
        "title": "Mock pull request",
        "status": "active",
        "mergeStatus": "succeeded",
        "sourceRefName": "refs/heads/feature/mock",
        "targetRefName": "refs/heads/main",
        "createdBy": {"displayName": "Mock User", "uniqueName": "mock@example.com"},
    }


def _default_diffs_response() -> dict[str, object]:
    def change(path: str, change_type: str, object_id: str | None, original_object_id: str | None) -> dict[str, object]:
        item: dict[str, object] = {
            "gitObjectType": "blob",
            "commitId": "1111111111111111111111111111111111111111",
            "path": path,
            "url": f"https://mock/items{path}",
        }
        if object_id is not None:
            item["objectId"] = object_id
        if original_object_id is not None:
            item["originalObjectId"] = original_object_id
        return {"item": item, "changeType": change_type}

    return {
        "changes": [
            change("/src/service.py", "edit", "new-service", "old-service"),
            change("/web/app.ts", "add", "new-app", None),
            change("/web/package-lock.json", "add", "new-lock", None),
            {"item": {"gitObjectType": "tree", "path": "/src", "isFolder": True, "url": "https://mock/items/src"},
             "changeType": "edit"},
        ]
    }


app = FastAPI(title="Mock Azure DevOps API", version="0.1.0")

_threads: list[dict[str, object]] = []

_REPO = "/{organization}/{project}/_apis/git/repositories/{repository}"


@app.get(_REPO + "/pullRequests/{pull_request_id}")
async def get_pull_request(organization: str, project: str, repository: str, pull_request_id: int) -> dict[str, object]:
    _ = (organization, project, repository)
    return _default_pull_request(pull_request_id)


@app.get(_REPO + "/diffs/commits")
async def get_commit_diffs(organization: str, project: str, repository: str) -> dict[str, object]:
    _ = (organization, project, repository)
    return _default_diffs_response()


@app.get(_REPO + "/blobs/{object_id}", response_class=PlainTextResponse)
async def get_blob(organization: str, project: str, repository: str, object_id: str) -> str:
    _ = (organization, project, repository)
    if object_id not in _BLOBS:
        raise HTTPException(status_code=404, detail="Blob not found")
    return _BLOBS[object_id]


@app.post(_REPO + "/pullRequests/{pull_request_id}/threads")
async def create_thread(
    organization: str,
    project: str,
    repository: str,
    pull_request_id: int,
    thread: dict[str, object],
) -> dict[str, object]:
    _ = (organization, project, repository)
    thread_id = len(_threads) + 1
    stored = {"id": thread_id, "pullRequestId": pull_request_id, "createdAt": int(time.time()), **thread}
    _threads.append(stored)
    return stored


@app.get("/__debug__/threads")
async def debug_threads() -> dict[str, object]:
    return {"count": len(_threads), "threads": _threads}


def main() -> None:
    uvicorn.run(app, host="127.0.0.1", port=9002)


if __name__ == "__main__":
    main()
