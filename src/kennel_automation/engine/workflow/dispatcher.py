from __future__ import annotations

import logging

from .definitions import TriggerType, WorkflowDefinition
from .enrollments import Enrollment, EnrollmentRepository
from .events import WorkflowContext
from .executor import StepExecutor
from .gates import DEFAULT_GATES, Gate, check_gates
from .repository import WorkflowSource
from .validator import validate_workflow

logger = logging.getLogger(__name__)


class TriggerDispatcher:
    """Turns business events into enrollments.

    Matching is exact equality on the trigger type; matches are enrolled one
    after the other in the order the workflow source returns them.
    """

    def __init__(
        self,
        *,
        workflows: WorkflowSource,
        store: EnrollmentRepository,
        executor: StepExecutor,
        validate_before_enroll: bool = True,
        gates: tuple[Gate, ...] = DEFAULT_GATES,
    ) -> None:
        self._workflows = workflows
        self._store = store
        self._executor = executor
        self._validate = validate_before_enroll
        self._gates = gates

    async def trigger_event(
        self, event_type: TriggerType, context: WorkflowContext
    ) -> list[Enrollment]:
        logger.info(
            "Event triggered",
            extra={"event_type": event_type.value, "subject_id": context.subject_id},
        )
        # Load failures propagate to the event producer.
        workflows = await self._workflows.list_workflows()
        matching = [w for w in workflows if w.is_active and w.trigger_type is event_type]

        created: list[Enrollment] = []
        for workflow in matching:
            enrollment = await self.enroll(workflow, context)
            if enrollment is not None:
                created.append(enrollment)
        return created

    async def enroll(
        self, workflow: WorkflowDefinition, context: WorkflowContext
    ) -> Enrollment | None:
        trigger = workflow.trigger_node()
        if trigger is None:
            logger.warning(
                "Workflow dropped: no trigger node",
                extra={"workflow_id": workflow.id, "reason": "no_trigger_node"},
            )
            return None

        if self._validate:
            report = validate_workflow(workflow)
            if not report.ok:
                logger.warning(
                    "Workflow dropped: invalid definition",
                    extra={
                        "workflow_id": workflow.id,
                        "reason": "invalid_definition",
                        "issues": [i.message for i in report.errors],
                    },
                )
                return None

        gate = check_gates(trigger.trigger, context.data, self._gates)
        if not gate.passed:
            logger.info(
                "Enrollment skipped by gate",
                extra={
                    "workflow_id": workflow.id,
                    "reason": "gate_rejected",
                    "gate": gate.gate,
                    "detail": gate.reason,
                },
            )
            return None

        enrollment = Enrollment.start(workflow, trigger, context)
        self._store.save(enrollment)
        logger.info(
            "Enrolled",
            extra={
                "enrollment_id": enrollment.id,
                "workflow_id": workflow.id,
                "workflow_name": workflow.name,
                "subject_id": enrollment.subject_id,
            },
        )
        return await self._executor.process_enrollment(enrollment, workflow)
