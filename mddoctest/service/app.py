"""FastAPI application entrypoint for mddoctest service mode."""

from __future__ import annotations

import asyncio
from pathlib import Path
from typing import Any, Callable, List, Optional

try:  # pragma: no cover - optional dependency
    from fastapi import FastAPI
    from fastapi.responses import JSONResponse
    from pydantic import BaseModel

    _FASTAPI_AVAILABLE = True
except ModuleNotFoundError:  # pragma: no cover - service mode optional
    FastAPI = None  # type: ignore[assignment]
    JSONResponse = None  # type: ignore[assignment]
    BaseModel = object  # type: ignore[assignment]

    _FASTAPI_AVAILABLE = False

from ..config import ConfigError, DoctestConfig, load_config
from ..logging import get_logger
from ..models import ExecutionResult, Status
from ..reporting import error_location, relevant_stack_details, summarize
from ..runner import DoctestRunner
from ..scanner import DocumentScanner

logger = get_logger("service")


class RunRequest(BaseModel):
    paths: List[str]
    config_path: Optional[str] = None
    transpile: Optional[bool] = None


class FailureReport(BaseModel):
    location: str
    diagnostic: str


class RunResponse(BaseModel):
    passed: int
    failed: int
    skipped: int
    success: bool
    failures: List[FailureReport] = []
    errors: List[str] = []


class HealthResponse(BaseModel):
    status: str


RunnerFactory = Callable[[DoctestConfig], DoctestRunner]


def create_app(runner_factory: RunnerFactory = DoctestRunner) -> FastAPI:
    """Create the FastAPI application exposing doc-test runs."""

    if not _FASTAPI_AVAILABLE:  # pragma: no cover - validated via unit tests
        raise RuntimeError(
            "FastAPI is required for service mode. Install it with `pip install fastapi uvicorn`."
        )

    app = FastAPI(title="mddoctest Service", version="1.0.0")

    @app.get("/health", response_model=HealthResponse)
    async def health() -> HealthResponse:
        return HealthResponse(status="ok")

    @app.post("/run", response_model=RunResponse)
    async def run_documents(payload: RunRequest) -> RunResponse:
        def _run() -> RunResponse:
            config_path = Path(payload.config_path) if payload.config_path else Path.cwd()
            config = load_config(config_path)
            if payload.transpile is not None:
                config.transpile.enabled = payload.transpile
            documents = DocumentScanner(config.include, config.exclude).collect(payload.paths)
            runner = runner_factory(config)
            results = runner.run(documents)
            return _build_response(results, [str(error) for error in runner.errors])

        loop = asyncio.get_running_loop()
        return await loop.run_in_executor(None, _run)

    @app.exception_handler(FileNotFoundError)
    async def file_not_found_handler(_: Any, exc: FileNotFoundError) -> JSONResponse:
        return JSONResponse(status_code=404, content={"detail": str(exc)})

    @app.exception_handler(ConfigError)
    async def config_error_handler(_: Any, exc: ConfigError) -> JSONResponse:
        return JSONResponse(status_code=400, content={"detail": str(exc)})

    @app.exception_handler(RuntimeError)
    async def runtime_error_handler(
        _: Any, exc: RuntimeError
    ) -> JSONResponse:  # pragma: no cover - simple mapping
        logger.error("Run failed: %s", exc)
        return JSONResponse(status_code=500, content={"detail": str(exc)})

    return app


def _build_response(results: List[ExecutionResult], errors: List[str]) -> RunResponse:
    summary = summarize(results)
    failures = [
        FailureReport(
            location=error_location(result),
            diagnostic=relevant_stack_details(result.diagnostic),
        )
        for result in results
        if result.status is Status.FAIL
    ]
    return RunResponse(
        passed=summary.passed,
        failed=summary.failed,
        skipped=summary.skipped,
        success=summary.success and not errors,
        failures=failures,
        errors=errors,
    )


def run_service(
    host: str = "127.0.0.1", port: int = 8000
) -> None:  # pragma: no cover - integration path
    if not _FASTAPI_AVAILABLE:
        raise RuntimeError(
            "FastAPI is required for service mode. Install it with `pip install fastapi uvicorn`."
        )

    try:
        import uvicorn
    except ModuleNotFoundError as exc:  # pragma: no cover - optional dependency
        raise RuntimeError(
            "uvicorn is required to run the service. Install it with `pip install uvicorn`."
        ) from exc

    app = create_app()
    uvicorn.run(app, host=host, port=port)
