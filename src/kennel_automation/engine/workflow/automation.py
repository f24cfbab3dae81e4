"""The engine's public surface.

`AutomationEngine` wires the trigger dispatcher, step executor, resume
scheduler and enrollment store together:

    engine = build_engine(EngineSettings())
    await engine.trigger_event(TriggerType.POS_PURCHASE, WorkflowContext(data={"amount": 75}))
    engine.get_active_enrollments()
"""

from __future__ import annotations

import logging
from collections.abc import Callable
from datetime import datetime

from kennel_automation.engine.config import EngineSettings

from .actions import ActionExecutor, logging_action_executor
from .definitions import TriggerType, WorkflowDefinition
from .dispatcher import TriggerDispatcher
from .enrollments import (
    Enrollment,
    EnrollmentRepository,
    JsonEnrollmentStore,
    RunStats,
    summarize_runs,
    utc_now,
)
from .events import TriggerEvent, WorkflowContext
from .executor import StepExecutor
from .repository import JsonWorkflowRepository, WorkflowSource
from .scheduler import ResumeScheduler

logger = logging.getLogger(__name__)

MAX_RECENT_RUNS = 50


class AutomationEngine:
    def __init__(
        self,
        *,
        workflows: WorkflowSource,
        store: EnrollmentRepository,
        actions: ActionExecutor,
        step_delay_seconds: float = 0.0,
        validate_before_enroll: bool = True,
        clock: Callable[[], datetime] = utc_now,
    ) -> None:
        self.workflows = workflows
        self.store = store
        self.executor = StepExecutor(
            actions=actions, store=store, step_delay_seconds=step_delay_seconds, clock=clock
        )
        self.dispatcher = TriggerDispatcher(
            workflows=workflows,
            store=store,
            executor=self.executor,
            validate_before_enroll=validate_before_enroll,
        )
        self.scheduler = ResumeScheduler(
            workflows=workflows, store=store, executor=self.executor, clock=clock
        )

    async def trigger_event(
        self, event_type: TriggerType, context: WorkflowContext
    ) -> list[Enrollment]:
        return await self.dispatcher.trigger_event(event_type, context)

    async def handle(self, event: TriggerEvent) -> list[Enrollment]:
        """Dispatch an already-built event; see `trigger_event`."""

        return await self.trigger_event(event.type, event.context)

    async def enroll(
        self, workflow: WorkflowDefinition, context: WorkflowContext
    ) -> Enrollment | None:
        return await self.dispatcher.enroll(workflow, context)

    async def process_enrollment(
        self, enrollment: Enrollment, workflow: WorkflowDefinition
    ) -> Enrollment:
        return await self.executor.process_enrollment(enrollment, workflow)

    async def resume_due(self, now: datetime | None = None) -> list[Enrollment]:
        return await self.scheduler.run_due(now)

    def get_active_enrollments(self, subject_id: str | None = None) -> list[Enrollment]:
        """All enrollments, or those of one subject. Status is not filtered."""

        if subject_id is not None:
            return self.store.find_by_subject(subject_id)
        return self.store.list()

    def get_enrollment(self, enrollment_id: str) -> Enrollment | None:
        return self.store.find_by_id(enrollment_id)

    def recent_runs(self, limit: int = MAX_RECENT_RUNS) -> list[Enrollment]:
        """Newest enrollments first, never more than `MAX_RECENT_RUNS`."""

        limit = max(0, min(limit, MAX_RECENT_RUNS))
        runs = sorted(self.store.list(), key=lambda e: e.created_at, reverse=True)
        return runs[:limit]

    def run_stats(self) -> dict[str, RunStats]:
        return summarize_runs(self.store.list())

    def stop_enrollment(self, enrollment_id: str) -> None:
        """Remove an enrollment. Unknown ids are ignored."""

        if self.store.delete(enrollment_id):
            logger.info("Enrollment stopped", extra={"enrollment_id": enrollment_id})


def build_engine(
    settings: EngineSettings, *, actions: ActionExecutor | None = None
) -> AutomationEngine:
    """Engine backed by the JSON workflow file and JSON enrollment store."""

    return AutomationEngine(
        workflows=JsonWorkflowRepository(settings.workflows_path),
        store=JsonEnrollmentStore(settings.enrollments_path),
        actions=actions or logging_action_executor(),
        step_delay_seconds=settings.step_delay_seconds,
        validate_before_enroll=settings.validate_before_enroll,
    )
