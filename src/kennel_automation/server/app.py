"""FastAPI app factory.

Endpoints are thin wrappers over the automation engine.
Run with ``uvicorn --factory kennel_automation.server:create_app``.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

from fastapi import FastAPI, HTTPException, Query, Request, Response
from fastapi.middleware.cors import CORSMiddleware

from kennel_automation import __version__
from kennel_automation.engine.errors import WorkflowLoadError
from kennel_automation.engine.workflow.automation import (
    MAX_RECENT_RUNS,
    AutomationEngine,
    build_engine,
)
from kennel_automation.engine.workflow.definitions import TriggerType
from kennel_automation.engine.workflow.enrollments import Enrollment
from kennel_automation.engine.workflow.events import TriggerEvent, WorkflowContext
from kennel_automation.engine.workflow.validator import validate_workflow
from kennel_automation.server.config import ServerSettings
from kennel_automation.server.models import ApiValidationReport, ApiWorkflow, EventRequest

logger = logging.getLogger(__name__)


def _engine(request: Request) -> AutomationEngine:
    engine = getattr(request.app.state, "engine", None)
    if not isinstance(engine, AutomationEngine):
        raise HTTPException(status_code=500, detail="Automation engine not configured")
    return engine


def _load_error(e: WorkflowLoadError) -> HTTPException:
    logger.error("Workflow load failed", extra={"error": str(e)})
    return HTTPException(status_code=502, detail=f"Workflow definitions unavailable: {e}")


def create_app(
    settings: ServerSettings | None = None, engine: AutomationEngine | None = None
) -> FastAPI:
    settings = settings or ServerSettings()
    engine = engine or build_engine(settings)

    @asynccontextmanager
    async def lifespan(_app: FastAPI) -> AsyncIterator[None]:
        if not settings.scheduler_enabled:
            yield
            return
        stop = asyncio.Event()
        task = asyncio.create_task(
            engine.scheduler.run_forever(settings.resume_poll_seconds, stop),
            name="resume-scheduler",
        )
        try:
            yield
        finally:
            stop.set()
            await task

    app = FastAPI(
        title="Kennel Automation",
        version=__version__,
        description="REST API over the workflow automation engine.",
        openapi_url="/api/openapi.json",
        docs_url="/api/docs",
        redoc_url="/api/redoc",
        lifespan=lifespan,
    )

    app.state.settings = settings
    app.state.engine = engine

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.parsed_cors_origins(),
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    @app.get("/api/health")
    def health() -> dict[str, object]:
        return {
            "status": "ok",
            "version": __version__,
            "scheduler": settings.scheduler_enabled,
        }

    @app.get("/api/workflows", response_model=list[ApiWorkflow])
    async def list_workflows(request: Request) -> list[ApiWorkflow]:
        automation = _engine(request)
        try:
            workflows = await automation.workflows.list_workflows()
        except WorkflowLoadError as e:
            raise _load_error(e) from e
        stats = automation.run_stats()
        return [ApiWorkflow.from_definition(w, stats.get(w.id)) for w in workflows]

    @app.get("/api/workflows/{workflow_id}/validation", response_model=ApiValidationReport)
    async def validate(workflow_id: str, request: Request) -> ApiValidationReport:
        try:
            workflow = await _engine(request).workflows.get_workflow(workflow_id)
        except WorkflowLoadError as e:
            raise _load_error(e) from e
        if workflow is None:
            raise HTTPException(status_code=404, detail="Workflow not found")
        return ApiValidationReport.from_report(validate_workflow(workflow))

    @app.post("/api/events/{event_type}", response_model=list[Enrollment])
    async def trigger_event(
        event_type: TriggerType, req: EventRequest, request: Request
    ) -> list[Enrollment]:
        context = WorkflowContext(
            subject_id=req.subject_id, pet_id=req.pet_id, order_id=req.order_id, data=req.data
        )
        try:
            return await _engine(request).handle(TriggerEvent(type=event_type, context=context))
        except WorkflowLoadError as e:
            raise _load_error(e) from e

    @app.get("/api/enrollments", response_model=list[Enrollment])
    def list_enrollments(
        request: Request, subject_id: str | None = Query(default=None)
    ) -> list[Enrollment]:
        return _engine(request).get_active_enrollments(subject_id)

    @app.get("/api/runs", response_model=list[Enrollment])
    def list_runs(
        request: Request, limit: int = Query(default=MAX_RECENT_RUNS, ge=1, le=MAX_RECENT_RUNS)
    ) -> list[Enrollment]:
        return _engine(request).recent_runs(limit)

    @app.get("/api/enrollments/{enrollment_id}", response_model=Enrollment)
    def get_enrollment(enrollment_id: str, request: Request) -> Enrollment:
        enrollment = _engine(request).get_enrollment(enrollment_id)
        if enrollment is None:
            raise HTTPException(status_code=404, detail="Enrollment not found")
        return enrollment

    @app.delete("/api/enrollments/{enrollment_id}", status_code=204)
    def stop_enrollment(enrollment_id: str, request: Request) -> Response:
        _engine(request).stop_enrollment(enrollment_id)
        return Response(status_code=204)

    @app.post("/api/scheduler/run-due", response_model=list[Enrollment])
    async def run_due(request: Request) -> list[Enrollment]:
        try:
            return await _engine(request).resume_due()
        except WorkflowLoadError as e:
            raise _load_error(e) from e

    return app
