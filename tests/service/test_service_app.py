"""Tests for the FastAPI service mode."""

from __future__ import annotations

from pathlib import Path

from fastapi.testclient import TestClient

from ontogen.models import (
    AnnotationSummary,
    BuildReport,
    BuildResult,
    LayerStatus,
    OntologyMetadata,
)
from ontogen.service import create_app


class _StubPipeline:
    def __init__(self) -> None:
        self.calls: list[tuple[str, str]] = []
        self.metadata: OntologyMetadata | None = None

    def build(self, path: str) -> BuildReport:
        self.calls.append(("build", path))
        self._check(path)
        return BuildReport(
            results=[
                BuildResult(layer="structure", file_count=3, duration=5),
                BuildResult(layer="semantics", file_count=2, warnings=["Failed to analyse a.ts: x"]),
            ],
            output_files=[str(Path(path) / "ONTOLOGY-STRUCTURE.md")],
            total_duration=12,
            annotation_summary=AnnotationSummary(total=1, by_tag={"TODO": 1}),
        )

    def refresh(self, path: str) -> BuildReport:
        self.calls.append(("refresh", path))
        return BuildReport(
            results=[BuildResult(layer="structure", success=False, error="RuntimeError: boom")]
        )

    def status(self, path: str) -> OntologyMetadata | None:
        self.calls.append(("status", path))
        self._check(path)
        return self.metadata

    @staticmethod
    def _check(path: str) -> None:
        if path == "/missing":
            raise NotADirectoryError(f"Project path is not a directory: {path}")


def _client(stub: _StubPipeline) -> TestClient:
    return TestClient(create_app(pipeline_factory=lambda: stub))


def test_health_endpoint() -> None:
    response = _client(_StubPipeline()).get("/health")

    assert response.status_code == 200
    assert response.json() == {"status": "ok"}


def test_build_endpoint_returns_layer_results() -> None:
    stub = _StubPipeline()

    response = _client(stub).post("/build", json={"path": "/work/shop"})

    assert response.status_code == 200
    body = response.json()
    assert body["status"] == "ok"
    assert [result["layer"] for result in body["results"]] == ["structure", "semantics"]
    assert body["results"][1]["warnings"] == ["Failed to analyse a.ts: x"]
    assert body["output_files"] == [str(Path("/work/shop") / "ONTOLOGY-STRUCTURE.md")]
    assert body["annotation_summary"]["byTag"] == {"TODO": 1}
    assert body["domain_context"] is None
    assert stub.calls == [("build", "/work/shop")]


def test_refresh_endpoint_reports_partial_failure() -> None:
    response = _client(_StubPipeline()).post("/refresh", json={"path": "/work/shop"})

    assert response.status_code == 200
    body = response.json()
    assert body["status"] == "partial"
    assert body["results"][0]["error"] == "RuntimeError: boom"


def test_status_endpoint_missing_and_present() -> None:
    stub = _StubPipeline()
    client = _client(stub)

    assert client.post("/status", json={"path": "/work/shop"}).json() == {
        "status": "missing",
        "metadata": None,
    }

    stub.metadata = OntologyMetadata(
        project_name="shop",
        generated_at="2026-01-01T00:00:00Z",
        tool_version="1.0.0",
        layer_status={"structure": LayerStatus(enabled=True, file_count=3)},
    )
    body = client.post("/status", json={"path": "/work/shop"}).json()

    assert body["status"] == "ok"
    assert body["metadata"]["projectName"] == "shop"
    assert body["metadata"]["layerStatus"]["structure"]["fileCount"] == 3


def test_missing_directory_maps_to_404() -> None:
    response = _client(_StubPipeline()).post("/build", json={"path": "/missing"})

    assert response.status_code == 404
    assert "not a directory" in response.json()["detail"]


def test_request_requires_path() -> None:
    response = _client(_StubPipeline()).post("/build", json={})

    assert response.status_code == 422
