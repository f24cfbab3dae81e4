"""Unit tests for action execution against collaborator services."""

from __future__ import annotations

import asyncio
import logging

import pytest

from kennel_automation.engine.errors import ActionError
from kennel_automation.engine.workflow.actions import (
    CollaboratorActionExecutor,
    logging_action_executor,
)
from kennel_automation.engine.workflow.definitions import ActionType, Node, TriggerType
from kennel_automation.engine.workflow.events import WorkflowContext


@pytest.fixture
def executor(collaborators) -> CollaboratorActionExecutor:
    return CollaboratorActionExecutor(
        messages=collaborators, tasks=collaborators, tags=collaborators
    )


@pytest.fixture
def context() -> WorkflowContext:
    return WorkflowContext(
        subject_id="owner-7",
        pet_id="pet-3",
        data={
            "first_name": "Robin",
            "PetName": "Mochi",
            "phone": " +15550100 ",
            "email": "robin@example.com",
        },
    )


def test_send_sms_renders_message(executor, collaborators, context) -> None:
    node = Node.action(
        "sms", ActionType.SEND_SMS, message="Hi {{FirstName}}, {{PetName}} is ready"
    )

    result = asyncio.run(executor.execute(node, context))

    assert result.ok
    assert collaborators.calls == [
        (
            "sms",
            {
                "subject_id": "owner-7",
                "phone": "+15550100",
                "body": "Hi Robin, Mochi is ready",
            },
        )
    ]


def test_send_email_renders_subject_and_body(executor, collaborators, context) -> None:
    node = Node.action(
        "email", ActionType.SEND_EMAIL, subject="{{PetName}}'s report", message="Dear {{FirstName}}"
    )

    result = asyncio.run(executor.execute(node, context))

    assert result.details == {"subject": "Mochi's report"}
    kind, call = collaborators.calls[0]
    assert kind == "email"
    assert call["email"] == "robin@example.com"
    assert call["body"] == "Dear Robin"


def test_create_task_passes_subject_and_pet(executor, collaborators, context) -> None:
    node = Node.action(
        "task", ActionType.CREATE_TASK, title="Call {{FirstName}}", assignee="front-desk"
    )

    result = asyncio.run(executor.execute(node, context))

    assert result.details == {"task_id": "task-1"}
    assert collaborators.calls == [
        (
            "task",
            {
                "title": "Call Robin",
                "assignee": "front-desk",
                "subject_id": "owner-7",
                "pet_id": "pet-3",
            },
        )
    ]


def test_add_tag(executor, collaborators, context) -> None:
    node = Node.action("tag", ActionType.ADD_TAG, tag="loyal")

    asyncio.run(executor.execute(node, context))

    assert collaborators.calls == [("tag", {"subject_id": "owner-7", "tag": "loyal"})]


def test_wait_delay_has_no_side_effect(executor, collaborators, context) -> None:
    node = Node.action("wait", ActionType.WAIT_DELAY, duration=10, unit="minutes")

    result = asyncio.run(executor.execute(node, context))

    assert result.ok
    assert collaborators.calls == []


def test_non_action_nodes_are_noops(executor, collaborators, context) -> None:
    node = Node.trigger_node("t", TriggerType.POS_PURCHASE)

    assert asyncio.run(executor.execute(node, context)).ok
    assert collaborators.calls == []


def test_collaborator_errors_propagate(make_collaborators, context) -> None:
    services = make_collaborators(fail_on={"tag"})
    executor = CollaboratorActionExecutor(messages=services, tasks=services, tags=services)
    node = Node.action("tag", ActionType.ADD_TAG, tag="loyal")

    with pytest.raises(ActionError, match="tag service unavailable"):
        asyncio.run(executor.execute(node, context))


def test_logging_executor_logs_instead_of_sending(caplog, context) -> None:
    node = Node.action("sms", ActionType.SEND_SMS, message="Hello {{FirstName}}")

    with caplog.at_level(logging.INFO, logger="kennel_automation.engine.workflow.actions"):
        result = asyncio.run(logging_action_executor().execute(node, context))

    assert result.ok
    record = next(r for r in caplog.records if r.getMessage() == "SMS")
    assert record.body == "Hello Robin"
