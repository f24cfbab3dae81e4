"""Advance enrollments through their workflow graph one node at a time.

Per step:
  1. resolve the current node (missing -> failed, reason ``missing_node``)
  2. action nodes run their action; an error fails the enrollment in place
  3. delay nodes park the enrollment as ``waiting`` until ``next_run_at``
  4. otherwise follow the first outgoing edge whose condition holds
  5. no eligible edge -> completed

Waiting enrollments are picked up later by the resume scheduler, which calls
`StepExecutor.resume`.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Callable
from datetime import datetime

from .actions import ActionExecutor
from .definitions import Node, NodeKind, WaitDelayConfig, WorkflowDefinition
from .enrollments import Enrollment, EnrollmentRepository, utc_now
from .state_machine import EnrollmentStatus, IllegalTransitionError

logger = logging.getLogger(__name__)

REASON_MISSING_NODE = "missing_node"
REASON_ACTION_FAILED = "action_failed"
REASON_STEP_LIMIT = "step_limit_exceeded"


class StepExecutor:
    def __init__(
        self,
        *,
        actions: ActionExecutor,
        store: EnrollmentRepository,
        step_delay_seconds: float = 0.0,
        clock: Callable[[], datetime] = utc_now,
    ) -> None:
        self._actions = actions
        self._store = store
        self._step_delay = step_delay_seconds
        self._clock = clock

    async def process_enrollment(
        self, enrollment: Enrollment, workflow: WorkflowDefinition
    ) -> Enrollment:
        """Run steps until the enrollment waits, ends, or is stopped."""

        # An acyclic path visits each node at most once.
        limit = max(len(workflow.nodes), 1)
        steps = 0
        while enrollment.status is EnrollmentStatus.RUNNING:
            if not self._is_enrolled(enrollment):
                logger.info("Enrollment stopped mid-run", extra={"enrollment_id": enrollment.id})
                break
            if steps >= limit:
                enrollment.fail(REASON_STEP_LIMIT, f"Exceeded {limit} steps", now=self._clock())
                self._persist(enrollment)
                logger.error(
                    "Enrollment failed: step limit exceeded",
                    extra={"enrollment_id": enrollment.id, "workflow_id": workflow.id},
                )
                break
            moved = await self.step(enrollment, workflow)
            steps += 1
            if moved and self._step_delay > 0:
                await asyncio.sleep(self._step_delay)
        return enrollment

    async def step(self, enrollment: Enrollment, workflow: WorkflowDefinition) -> bool:
        """Process the current node. Returns True when the enrollment moved on."""

        node = workflow.node(enrollment.current_node_id)
        if node is None:
            enrollment.fail(
                REASON_MISSING_NODE,
                f"Node {enrollment.current_node_id} not in workflow",
                now=self._clock(),
            )
            self._persist(enrollment)
            logger.error(
                "Enrollment failed: node not found",
                extra={"enrollment_id": enrollment.id, "node_id": enrollment.current_node_id},
            )
            return False

        enrollment.visited_node_ids.append(node.id)

        if node.kind is NodeKind.ACTION and not await self._run_action(enrollment, node):
            return False

        if node.is_delay:
            self._park(enrollment, node)
            return False

        return self._advance(enrollment, workflow, node)

    async def resume(self, enrollment: Enrollment, workflow: WorkflowDefinition) -> Enrollment:
        """Continue a waiting enrollment past its delay node."""

        if enrollment.status is not EnrollmentStatus.WAITING:
            raise IllegalTransitionError(
                f"Enrollment {enrollment.id} is {enrollment.status.value}, not waiting"
            )
        enrollment.move_to(EnrollmentStatus.RUNNING, now=self._clock())
        node = workflow.node(enrollment.current_node_id)
        if node is None:
            enrollment.fail(
                REASON_MISSING_NODE,
                f"Node {enrollment.current_node_id} not in workflow",
                now=self._clock(),
            )
            self._persist(enrollment)
            return enrollment

        logger.info(
            "Enrollment resumed",
            extra={"enrollment_id": enrollment.id, "node_id": node.id},
        )
        if self._advance(enrollment, workflow, node):
            await self.process_enrollment(enrollment, workflow)
        return enrollment

    async def _run_action(self, enrollment: Enrollment, node: Node) -> bool:
        try:
            result = await self._actions.execute(node, enrollment.context)
        except Exception as e:
            # Any collaborator error ends the run; side effects already made stay.
            logger.exception(
                "Action failed",
                extra={"enrollment_id": enrollment.id, "node_id": node.id},
            )
            enrollment.fail(
                REASON_ACTION_FAILED, str(e) or type(e).__name__, now=self._clock()
            )
            self._persist(enrollment)
            return False

        if not result.ok:
            logger.error(
                "Action reported failure",
                extra={
                    "enrollment_id": enrollment.id,
                    "node_id": node.id,
                    "reason": result.message,
                },
            )
            enrollment.fail(REASON_ACTION_FAILED, result.message, now=self._clock())
            self._persist(enrollment)
            return False
        return True

    def _park(self, enrollment: Enrollment, node: Node) -> None:
        config = node.config
        assert isinstance(config, WaitDelayConfig)
        now = self._clock()
        enrollment.move_to(EnrollmentStatus.WAITING, now=now)
        enrollment.next_run_at = now + config.as_timedelta()
        self._persist(enrollment)
        logger.info(
            "Enrollment waiting",
            extra={
                "enrollment_id": enrollment.id,
                "node_id": node.id,
                "next_run_at": enrollment.next_run_at.isoformat(),
            },
        )

    def _advance(self, enrollment: Enrollment, workflow: WorkflowDefinition, node: Node) -> bool:
        data = enrollment.context.data
        for edge in workflow.outgoing(node.id):
            if edge.allows(data):
                enrollment.current_node_id = edge.target
                enrollment.move_to(EnrollmentStatus.RUNNING, now=self._clock())
                self._persist(enrollment)
                return True

        enrollment.move_to(EnrollmentStatus.COMPLETED, now=self._clock())
        self._persist(enrollment)
        logger.info(
            "Enrollment completed",
            extra={"enrollment_id": enrollment.id, "workflow_id": workflow.id},
        )
        return False

    def _is_enrolled(self, enrollment: Enrollment) -> bool:
        return self._store.find_by_id(enrollment.id) is not None

    def _persist(self, enrollment: Enrollment) -> None:
        # A stopped enrollment must not reappear in the store.
        self._store.update_if_present(enrollment)
