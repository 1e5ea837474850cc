"""FastAPI application entrypoint for instructgen service mode."""

from __future__ import annotations

import asyncio
from datetime import datetime
from functools import partial
from typing import Any, Callable, List, Optional, TypeVar

import uvicorn
from fastapi import Depends, FastAPI, Request
from fastapi.responses import JSONResponse
from pydantic import BaseModel

from ..errors import (
    InstructGenError,
    InvalidStateError,
    NotFoundError,
    OperationCancelledError,
    TransientFetchError,
)
from ..logging import get_logger
from ..models import DetectionResult, SetupSummary, TechnologyOutcome
from ..orchestrator import Orchestrator

T = TypeVar("T")

logger = get_logger("service")


class HealthResponse(BaseModel):
    status: str


class TechnologyModel(BaseModel):
    technology: str
    display_name: str
    has_baseline: bool
    has_guideline: bool


class DetectRequest(BaseModel):
    path: str


class DetectedTechnologyModel(BaseModel):
    technology: str
    display_name: str
    confidence: str
    indicators: List[str]
    has_baseline: bool
    has_guideline: bool


class DetectResponse(BaseModel):
    project_path: str
    technologies: List[DetectedTechnologyModel]
    ambiguous: List[str]
    warnings: List[str]
    analyzed_at: datetime


class BaselineResponse(BaseModel):
    technology: str
    filename: str
    content: str
    source_url: str
    retrieved_at: datetime
    sha: Optional[str] = None
    stale: bool = False


class GuidelineModel(BaseModel):
    technology: str
    aspect: Optional[str] = None
    filename: str
    content: str


class GuidelinesResponse(BaseModel):
    technology: str
    guidelines: List[GuidelineModel]
    warnings: List[str]


class MergeRequest(BaseModel):
    technology: str


class MergeResponse(BaseModel):
    technology: str
    status: str
    title: Optional[str] = None
    description: Optional[str] = None
    apply_to: List[str] = []
    source_summary: Optional[str] = None
    content: Optional[str] = None
    stale: bool = False
    warnings: List[str] = []


class SetupRequest(BaseModel):
    path: str
    technologies: Optional[List[str]] = None
    update_existing: Optional[bool] = None
    dry_run: bool = False


class FileResultModel(BaseModel):
    path: str
    technology: Optional[str] = None
    status: str
    backup_path: Optional[str] = None
    bytes_written: int = 0
    message: Optional[str] = None


class SetupResponse(BaseModel):
    project_path: str
    technologies: List[str]
    outcomes: List[MergeResponse]
    files: List[FileResultModel]
    warnings: List[str]
    files_created: int
    files_updated: int
    files_skipped: int
    files_failed: int
    duration_seconds: float


class RefreshResponse(BaseModel):
    technologies: int
    stale: bool
    error: Optional[str] = None
    captured_at: datetime


def create_app(orchestrator: Orchestrator | None = None) -> FastAPI:
    """Create the FastAPI application exposing instructgen operations.

    A single orchestrator is shared by every request so the catalog cache
    survives between calls. One is built from the default configuration
    when none is supplied.
    """

    app = FastAPI(title="InstructGen Service", version="1.0.0")
    if orchestrator is None:
        orchestrator = Orchestrator()
    app.state.orchestrator = orchestrator

    def get_orchestrator(request: Request) -> Orchestrator:
        return request.app.state.orchestrator

    @app.get("/health", response_model=HealthResponse)
    async def health() -> HealthResponse:
        return HealthResponse(status="ok")

    @app.get("/technologies", response_model=List[TechnologyModel])
    async def list_technologies(
        orchestrator: Orchestrator = Depends(get_orchestrator),
    ) -> List[TechnologyModel]:
        technologies = await _run(orchestrator.list_technologies)
        return [
            TechnologyModel(
                technology=info.technology,
                display_name=info.display_name,
                has_baseline=info.has_baseline,
                has_guideline=info.has_guideline,
            )
            for info in technologies
        ]

    @app.post("/detect", response_model=DetectResponse)
    async def detect(
        payload: DetectRequest,
        orchestrator: Orchestrator = Depends(get_orchestrator),
    ) -> DetectResponse:
        result = await _run(partial(orchestrator.detect, payload.path))
        return _detect_response(result)

    @app.get("/baseline/{technology}", response_model=BaselineResponse)
    async def baseline(
        technology: str,
        orchestrator: Orchestrator = Depends(get_orchestrator),
    ) -> BaselineResponse:
        document = await _run(partial(orchestrator.get_baseline, technology))
        return BaselineResponse(
            technology=document.technology,
            filename=document.filename,
            content=document.content,
            source_url=document.source_url,
            retrieved_at=document.retrieved_at,
            sha=document.sha,
            stale=document.stale,
        )

    @app.get("/guidelines/{technology}", response_model=GuidelinesResponse)
    async def guidelines(
        technology: str,
        orchestrator: Orchestrator = Depends(get_orchestrator),
    ) -> GuidelinesResponse:
        warnings: List[str] = []
        found = await _run(partial(orchestrator.get_guidelines, technology, warnings=warnings))
        return GuidelinesResponse(
            technology=technology.lower(),
            guidelines=[
                GuidelineModel(
                    technology=item.technology,
                    aspect=item.aspect,
                    filename=item.filename,
                    content=item.content,
                )
                for item in found
            ],
            warnings=warnings,
        )

    @app.post("/merge", response_model=MergeResponse)
    async def merge(
        payload: MergeRequest,
        orchestrator: Orchestrator = Depends(get_orchestrator),
    ) -> MergeResponse:
        outcome = await _run(partial(orchestrator.build_technology, payload.technology))
        return _merge_response(outcome)

    @app.post("/setup", response_model=SetupResponse)
    async def setup(
        payload: SetupRequest,
        orchestrator: Orchestrator = Depends(get_orchestrator),
    ) -> SetupResponse:
        summary = await _run(
            partial(
                orchestrator.run_setup,
                payload.path,
                technologies=payload.technologies,
                update_existing=payload.update_existing,
                dry_run=payload.dry_run,
            )
        )
        return _setup_response(summary)

    @app.post("/cache/refresh", response_model=RefreshResponse)
    async def refresh_cache(
        orchestrator: Orchestrator = Depends(get_orchestrator),
    ) -> RefreshResponse:
        lookup = await _run(orchestrator.refresh_catalog)
        return RefreshResponse(
            technologies=len(lookup.entries),
            stale=lookup.stale,
            error=lookup.error,
            captured_at=lookup.snapshot.captured_at,
        )

    @app.exception_handler(InstructGenError)
    async def instructgen_error_handler(_: Any, exc: InstructGenError) -> JSONResponse:
        status_code = _status_for(exc)
        if status_code >= 500:
            logger.warning("Request failed: %s", exc)
        return JSONResponse(status_code=status_code, content={"detail": str(exc)})

    return app


def run_service(
    host: str = "127.0.0.1", port: int = 8000, *, orchestrator: Orchestrator | None = None
) -> None:  # pragma: no cover - integration path
    app = create_app(orchestrator)
    uvicorn.run(app, host=host, port=port)


async def _run(func: Callable[[], T]) -> T:
    loop = asyncio.get_running_loop()
    return await loop.run_in_executor(None, func)


def _status_for(exc: InstructGenError) -> int:
    if isinstance(exc, NotFoundError):
        return 404
    if isinstance(exc, InvalidStateError):
        return 409
    if isinstance(exc, TransientFetchError):
        return 503
    if isinstance(exc, OperationCancelledError):
        return 499
    return 400


def _detect_response(result: DetectionResult) -> DetectResponse:
    return DetectResponse(
        project_path=result.project_path,
        technologies=[
            DetectedTechnologyModel(
                technology=item.technology,
                display_name=item.display_name,
                confidence=item.confidence.value,
                indicators=list(item.indicators),
                has_baseline=item.has_baseline,
                has_guideline=item.has_guideline,
            )
            for item in result.technologies
        ],
        ambiguous=list(result.ambiguous),
        warnings=list(result.warnings),
        analyzed_at=result.analyzed_at,
    )


def _merge_response(outcome: TechnologyOutcome) -> MergeResponse:
    document = outcome.document
    if document is None:
        return MergeResponse(
            technology=outcome.technology,
            status=outcome.status,
            warnings=list(outcome.warnings),
        )
    return MergeResponse(
        technology=outcome.technology,
        status=outcome.status,
        title=document.title,
        description=document.description,
        apply_to=list(document.apply_to),
        source_summary=document.source_summary,
        content=document.to_markdown(),
        stale=outcome.stale,
        warnings=list(outcome.warnings),
    )


def _setup_response(summary: SetupSummary) -> SetupResponse:
    return SetupResponse(
        project_path=summary.project_path,
        technologies=list(summary.technologies),
        outcomes=[_merge_response(outcome) for outcome in summary.outcomes],
        files=[
            FileResultModel(
                path=result.path,
                technology=result.technology,
                status=result.status.value,
                backup_path=result.backup_path,
                bytes_written=result.bytes_written,
                message=result.message,
            )
            for result in summary.file_results
        ],
        warnings=list(summary.warnings),
        files_created=summary.files_created,
        files_updated=summary.files_updated,
        files_skipped=summary.files_skipped,
        files_failed=summary.files_failed,
        duration_seconds=summary.duration_seconds,
    )


__all__ = ["create_app", "run_service"]
