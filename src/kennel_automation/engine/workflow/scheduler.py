"""Resumption of waiting enrollments.

Delay nodes only record ``next_run_at``. Something outside the step executor
has to notice when that time has passed and continue the run; this module is
that something. It polls the enrollment store, so it works with any store,
including the JSON store that survives restarts.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Callable
from datetime import datetime

from .enrollments import Enrollment, EnrollmentRepository, utc_now
from .executor import StepExecutor
from .repository import WorkflowSource
from .state_machine import EnrollmentStatus

logger = logging.getLogger(__name__)

REASON_WORKFLOW_MISSING = "workflow_missing"


class ResumeScheduler:
    def __init__(
        self,
        *,
        workflows: WorkflowSource,
        store: EnrollmentRepository,
        executor: StepExecutor,
        clock: Callable[[], datetime] = utc_now,
    ) -> None:
        self._workflows = workflows
        self._store = store
        self._executor = executor
        self._clock = clock

    def due(self, now: datetime | None = None) -> list[Enrollment]:
        at = now or self._clock()
        return [
            e
            for e in self._store.list()
            if e.status is EnrollmentStatus.WAITING
            and e.next_run_at is not None
            and e.next_run_at <= at
        ]

    async def run_due(self, now: datetime | None = None) -> list[Enrollment]:
        """Resume every enrollment whose delay has elapsed. Returns them."""

        resumed: list[Enrollment] = []
        for enrollment in self.due(now):
            workflow = await self._workflows.get_workflow(enrollment.workflow_id)
            if workflow is None:
                enrollment.fail(
                    REASON_WORKFLOW_MISSING,
                    f"Workflow {enrollment.workflow_id} no longer exists",
                    now=now or self._clock(),
                )
                self._store.update_if_present(enrollment)
                logger.error(
                    "Waiting enrollment failed: workflow missing",
                    extra={"enrollment_id": enrollment.id, "workflow_id": enrollment.workflow_id},
                )
            else:
                await self._executor.resume(enrollment, workflow)
            resumed.append(enrollment)
        return resumed

    async def run_forever(
        self, interval_seconds: float, stop: asyncio.Event | None = None
    ) -> None:
        stop = stop or asyncio.Event()
        logger.info("Resume scheduler started", extra={"interval_seconds": interval_seconds})
        while not stop.is_set():
            try:
                await self.run_due()
            except Exception:
                # Keep polling; a bad workflow file should not stop the loop.
                logger.exception("Resume pass failed")
            try:
                await asyncio.wait_for(stop.wait(), timeout=interval_seconds)
            except TimeoutError:
                pass
        logger.info("Resume scheduler stopped")
