"""FastAPI application entrypoint for ontogen service mode."""

from __future__ import annotations

import asyncio
from typing import Any, Callable, Dict, List, Optional

import uvicorn
from fastapi import Depends, FastAPI
from fastapi.responses import JSONResponse
from pydantic import BaseModel

from .. import __version__
from ..models import BuildReport, to_dict
from ..pipeline import OntologyPipeline


class ProjectRequest(BaseModel):
    path: str


class LayerResultModel(BaseModel):
    layer: str
    success: bool
    duration: int
    file_count: int
    warnings: List[str] = []
    error: Optional[str] = None


class BuildResponse(BaseModel):
    status: str
    results: List[LayerResultModel]
    output_files: List[str]
    total_duration: int
    annotation_summary: Optional[Dict[str, Any]] = None
    domain_context: Optional[Dict[str, Any]] = None


class StatusResponse(BaseModel):
    status: str
    metadata: Optional[Dict[str, Any]] = None


class HealthResponse(BaseModel):
    status: str


def _default_pipeline() -> OntologyPipeline:
    return OntologyPipeline()


def _build_response(report: BuildReport) -> BuildResponse:
    failed = any(not result.success for result in report.results)
    return BuildResponse(
        status="partial" if failed else "ok",
        results=[
            LayerResultModel(
                layer=result.layer,
                success=result.success,
                duration=result.duration,
                file_count=result.file_count,
                warnings=list(result.warnings),
                error=result.error,
            )
            for result in report.results
        ],
        output_files=list(report.output_files),
        total_duration=report.total_duration,
        annotation_summary=to_dict(report.annotation_summary),
        domain_context=to_dict(report.domain_context),
    )


def create_app(
    pipeline_factory: Callable[[], OntologyPipeline] = _default_pipeline,
) -> FastAPI:
    """Create the FastAPI application exposing the ontology pipeline."""

    app = FastAPI(title="Ontogen Service", version=__version__)

    async def get_pipeline() -> OntologyPipeline:
        return pipeline_factory()

    async def _run(func: Callable[[], Any]) -> Any:
        loop = asyncio.get_running_loop()
        return await loop.run_in_executor(None, func)

    @app.get("/health", response_model=HealthResponse)
    async def health() -> HealthResponse:
        return HealthResponse(status="ok")

    @app.post("/build", response_model=BuildResponse)
    async def build_ontology(
        payload: ProjectRequest,
        pipeline: OntologyPipeline = Depends(get_pipeline),
    ) -> BuildResponse:
        report = await _run(lambda: pipeline.build(payload.path))
        return _build_response(report)

    @app.post("/refresh", response_model=BuildResponse)
    async def refresh_ontology(
        payload: ProjectRequest,
        pipeline: OntologyPipeline = Depends(get_pipeline),
    ) -> BuildResponse:
        report = await _run(lambda: pipeline.refresh(payload.path))
        return _build_response(report)

    @app.post("/status", response_model=StatusResponse)
    async def ontology_status(
        payload: ProjectRequest,
        pipeline: OntologyPipeline = Depends(get_pipeline),
    ) -> StatusResponse:
        metadata = await _run(lambda: pipeline.status(payload.path))
        if metadata is None:
            return StatusResponse(status="missing")
        return StatusResponse(status="ok", metadata=to_dict(metadata))

    @app.exception_handler(NotADirectoryError)
    async def not_a_directory_handler(
        _: Any, exc: NotADirectoryError
    ) -> JSONResponse:
        return JSONResponse(status_code=404, content={"detail": str(exc)})

    @app.exception_handler(RuntimeError)
    async def runtime_error_handler(
        _: Any, exc: RuntimeError
    ) -> JSONResponse:  # pragma: no cover - simple mapping
        return JSONResponse(status_code=400, content={"detail": str(exc)})

    return app


def run_service(
    host: str = "0.0.0.0", port: int = 8000
) -> None:  # pragma: no cover - integration path
    app = create_app()
    uvicorn.run(app, host=host, port=port)
