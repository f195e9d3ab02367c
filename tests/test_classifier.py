from __future__ import annotations

import pytest

from pr_reviewer.review.classifier import classify_file
from pr_reviewer.review.classifier import should_exclude
from pr_reviewer.review.models import TechStack


@pytest.mark.parametrize(
    ("path", "expected"),
    [
        ("src/Orders/OrderService.cs", TechStack.DOTNET),
        ("src/App/App.csproj", TechStack.DOTNET),
        ("Views/Home/Index.cshtml", TechStack.DOTNET),
        ("web/src/App.tsx", TechStack.FRONTEND),
        ("web/styles/site.SCSS", TechStack.FRONTEND),
        ("web/components/Card.vue", TechStack.FRONTEND),
        ("tools/build.py", TechStack.PYTHON),
        ("stubs/api.pyi", TechStack.PYTHON),
        ("appsettings.json", TechStack.CONFIG),
        ("deploy/values.YML", TechStack.CONFIG),
        ("requests/orders.http", TechStack.CONFIG),
    ],
)
def test_classify_file_by_extension(path: str, expected: TechStack) -> None:
    assert classify_file(path) is expected


@pytest.mark.parametrize("path", ["README.md", "Makefile", "docs/notes.txt", ".gitignore", "lib/native.so"])
def test_classify_file_unknown_extension_is_none(path: str) -> None:
    assert classify_file(path) is None


@pytest.mark.parametrize(
    "path",
    [
        "package-lock.json",
        "web/yarn.lock",
        "web/PNPM-LOCK.YAML",
        "api/Pipfile.lock",
        "poetry.lock",
        "src/App/packages.lock.json",
        "wwwroot/js/site.min.js",
        "wwwroot/css/site.MIN.css",
        "types/index.d.ts",
        "obj/Generated.g.cs",
        "Forms/MainForm.Designer.cs",
        "Clients/ApiClient.generated.cs",
    ],
)
def test_should_exclude_lock_and_generated_files(path: str) -> None:
    assert should_exclude(path) is True


@pytest.mark.parametrize(
    "path",
    ["src/app.ts", "package.json", "src/lockfile.py", "docs/yarn.lock.md", "src/package-lock.json.cs"],
)
def test_should_exclude_keeps_regular_files(path: str) -> None:
    assert should_exclude(path) is False


def test_excluded_file_can_still_be_classified() -> None:
    # 排除在分类之后应用：分类成功不代表会被送审
    assert classify_file("package-lock.json") is TechStack.CONFIG
    assert should_exclude("package-lock.json") is True
