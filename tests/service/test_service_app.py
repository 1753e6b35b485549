"""Tests for the FastAPI service mode."""

from __future__ import annotations

from pathlib import Path
from typing import List

import pytest

try:
    from fastapi.testclient import TestClient
except ModuleNotFoundError:  # pragma: no cover - optional dependency
    pytest.skip("fastapi not installed", allow_module_level=True)

from mddoctest.config import DoctestConfig
from mddoctest.models import ExecutionResult, Snippet, Status
from mddoctest.parsing import SnippetParseError
from mddoctest.service import create_app

from tests._fixtures.doc_builder import DocBuilder


class _StubRunner:
    def __init__(self, config: DoctestConfig) -> None:
        self.config = config
        self.paths: List[Path] = []
        self.errors: List[SnippetParseError] = [SnippetParseError("broken.md", 2)]

    def run(self, paths: List[Path]) -> List[ExecutionResult]:
        self.paths = list(paths)
        snippet = Snippet(source_path="guide.md", start_line=4, code="x;\n", complete=True)
        return [
            ExecutionResult(status=Status.PASS, snippet=snippet),
            ExecutionResult(status=Status.SKIP, snippet=snippet),
            ExecutionResult(
                status=Status.FAIL,
                snippet=snippet,
                diagnostic="Error: boom\n    at <eval> (<input>:1)",
                line=1,
            ),
        ]


@pytest.fixture
def runners() -> List[_StubRunner]:
    return []


@pytest.fixture
def client(runners: List[_StubRunner]) -> TestClient:
    def factory(config: DoctestConfig) -> _StubRunner:
        runner = _StubRunner(config)
        runners.append(runner)
        return runner

    return TestClient(create_app(factory))  # type: ignore[arg-type]


def test_health_endpoint(client: TestClient) -> None:
    response = client.get("/health")

    assert response.status_code == 200
    assert response.json() == {"status": "ok"}


def test_run_endpoint_reports_counts_and_failures(
    client: TestClient, runners: List[_StubRunner], doc_builder: DocBuilder
) -> None:
    doc_builder.write({"guide.md": "```js\nx;\n```\n"})

    response = client.post(
        "/run",
        json={
            "paths": [str(doc_builder.path())],
            "config_path": str(doc_builder.path()),
            "transpile": False,
        },
    )

    assert response.status_code == 200
    payload = response.json()
    assert payload["passed"] == 1
    assert payload["skipped"] == 1
    assert payload["failed"] == 1
    assert payload["success"] is False
    assert payload["failures"] == [{"location": "guide.md:5", "diagnostic": "Error: boom"}]
    assert payload["errors"] == ["broken.md:2: code fence opened here is never closed"]

    runner = runners[0]
    assert runner.config.transpile.enabled is False
    assert [path.name for path in runner.paths] == ["guide.md"]


def test_run_endpoint_maps_missing_paths_to_404(client: TestClient, tmp_path: Path) -> None:
    response = client.post(
        "/run",
        json={"paths": [str(tmp_path / "missing.md")], "config_path": str(tmp_path)},
    )

    assert response.status_code == 404


def test_run_endpoint_maps_config_errors_to_400(client: TestClient, doc_builder: DocBuilder) -> None:
    doc_builder.write({".mddoctest.yml": "- not a mapping\n"})

    response = client.post(
        "/run",
        json={"paths": [str(doc_builder.path())], "config_path": str(doc_builder.path())},
    )

    assert response.status_code == 400
    assert "mapping" in response.json()["detail"]
