"""Test configuration and fixtures."""

from __future__ import annotations

from collections.abc import Callable, Iterable
from datetime import UTC, datetime

import pytest

from kennel_automation.engine.errors import ActionError
from kennel_automation.engine.workflow.actions import CollaboratorActionExecutor
from kennel_automation.engine.workflow.automation import AutomationEngine
from kennel_automation.engine.workflow.definitions import (
    ActionType,
    Edge,
    Node,
    TriggerType,
    WorkflowDefinition,
)
from kennel_automation.engine.workflow.enrollments import InMemoryEnrollmentStore
from kennel_automation.engine.workflow.repository import StaticWorkflowSource, WorkflowSource

FIXED_NOW = datetime(2025, 3, 1, 9, 0, tzinfo=UTC)


class RecordingCollaborators:
    """Fake messaging/task/tag services that record calls.

    Services named in `fail_on` ("sms", "email", "task", "tag") raise ActionError.
    """

    def __init__(
        self,
        fail_on: Iterable[str] = (),
        on_call: Callable[[str], None] | None = None,
    ) -> None:
        self.calls: list[tuple[str, dict[str, object]]] = []
        self.fail_on = set(fail_on)
        self.on_call = on_call

    def _record(self, kind: str, **kwargs: object) -> None:
        if self.on_call is not None:
            self.on_call(kind)
        if kind in self.fail_on:
            raise ActionError(f"{kind} service unavailable")
        self.calls.append((kind, kwargs))

    def kinds(self) -> list[str]:
        return [kind for kind, _ in self.calls]

    async def send_sms(self, *, subject_id: str | None, phone: str | None, body: str) -> None:
        self._record("sms", subject_id=subject_id, phone=phone, body=body)

    async def send_email(
        self, *, subject_id: str | None, email: str | None, subject: str, body: str
    ) -> None:
        self._record("email", subject_id=subject_id, email=email, subject=subject, body=body)

    async def create_task(
        self,
        *,
        title: str,
        description: str,
        assignee: str | None,
        subject_id: str | None,
        pet_id: str | None,
    ) -> str | None:
        self._record("task", title=title, assignee=assignee, subject_id=subject_id, pet_id=pet_id)
        return "task-1"

    async def add_tag(self, *, subject_id: str | None, tag: str) -> None:
        self._record("tag", subject_id=subject_id, tag=tag)


@pytest.fixture
def fixed_now() -> datetime:
    return FIXED_NOW


@pytest.fixture
def collaborators() -> RecordingCollaborators:
    return RecordingCollaborators()


@pytest.fixture
def make_collaborators() -> type[RecordingCollaborators]:
    return RecordingCollaborators


@pytest.fixture
def make_engine(
    collaborators: RecordingCollaborators,
) -> Callable[..., AutomationEngine]:
    """Factory for an in-memory engine over the given workflows."""

    def _make(
        *workflows: WorkflowDefinition,
        services: RecordingCollaborators | None = None,
        source: WorkflowSource | None = None,
        validate_before_enroll: bool = True,
        clock: Callable[[], datetime] = lambda: FIXED_NOW,
    ) -> AutomationEngine:
        svc = services or collaborators
        return AutomationEngine(
            workflows=source or StaticWorkflowSource(workflows),
            store=InMemoryEnrollmentStore(),
            actions=CollaboratorActionExecutor(messages=svc, tasks=svc, tags=svc),
            validate_before_enroll=validate_before_enroll,
            clock=clock,
        )

    return _make


@pytest.fixture
def purchase_sms_workflow() -> WorkflowDefinition:
    """Purchase of at least 50 -> thank-you SMS."""

    return WorkflowDefinition(
        id="wf-1",
        name="Big spender thanks",
        trigger_type=TriggerType.POS_PURCHASE,
        nodes=[
            Node.trigger_node("t", TriggerType.POS_PURCHASE, min_amount=50),
            Node.action("sms", ActionType.SEND_SMS, message="Thanks {{FirstName}}!"),
        ],
        edges=[Edge(source="t", target="sms")],
    )


@pytest.fixture
def delayed_task_workflow() -> WorkflowDefinition:
    """Purchase -> wait 2 hours -> create a follow-up task."""

    return WorkflowDefinition(
        id="wf-2",
        name="Follow-up call",
        trigger_type=TriggerType.POS_PURCHASE,
        nodes=[
            Node.trigger_node("t", TriggerType.POS_PURCHASE),
            Node.action("wait", ActionType.WAIT_DELAY, duration=2, unit="hours"),
            Node.action("task", ActionType.CREATE_TASK, title="Call {{FirstName}}"),
        ],
        edges=[Edge(source="t", target="wait"), Edge(source="wait", target="task")],
    )


@pytest.fixture
def email_workflow() -> WorkflowDefinition:
    """Reservation completed -> email."""

    return WorkflowDefinition(
        id="wf-3",
        name="Stay summary",
        trigger_type=TriggerType.RESERVATION_COMPLETED,
        nodes=[
            Node.trigger_node("t", TriggerType.RESERVATION_COMPLETED),
            Node.action("email", ActionType.SEND_EMAIL, subject="Your stay", message="Hi"),
        ],
        edges=[Edge(source="t", target="email")],
    )
