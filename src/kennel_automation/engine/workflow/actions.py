from __future__ import annotations

import logging
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from typing import Protocol

from .definitions import (
    ActionType,
    AddTagConfig,
    CreateTaskConfig,
    Node,
    SendEmailConfig,
    SendSmsConfig,
)
from .events import WorkflowContext
from .templates import render_template

logger = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class ActionResult:
    ok: bool
    message: str
    details: dict[str, object] | None = None


class ActionExecutor(Protocol):
    """Performs the side effect of an action node.

    Raising, or returning a result with ``ok=False``, fails the enrollment.
    """

    async def execute(self, node: Node, context: WorkflowContext) -> ActionResult: ...


class MessageSender(Protocol):
    async def send_sms(self, *, subject_id: str | None, phone: str | None, body: str) -> None: ...

    async def send_email(
        self, *, subject_id: str | None, email: str | None, subject: str, body: str
    ) -> None: ...


class TaskCreator(Protocol):
    async def create_task(
        self,
        *,
        title: str,
        description: str,
        assignee: str | None,
        subject_id: str | None,
        pet_id: str | None,
    ) -> str | None: ...


class TagWriter(Protocol):
    async def add_tag(self, *, subject_id: str | None, tag: str) -> None: ...


_Handler = Callable[[Node, WorkflowContext], Awaitable[ActionResult]]


class CollaboratorActionExecutor:
    """Dispatches each action type to the collaborator that performs it."""

    def __init__(
        self, *, messages: MessageSender, tasks: TaskCreator, tags: TagWriter
    ) -> None:
        self._messages = messages
        self._tasks = tasks
        self._tags = tags
        self._handlers: dict[ActionType, _Handler] = {
            ActionType.SEND_SMS: self._send_sms,
            ActionType.SEND_EMAIL: self._send_email,
            ActionType.WAIT_DELAY: self._wait,
            ActionType.CREATE_TASK: self._create_task,
            ActionType.ADD_TAG: self._add_tag,
        }

    async def execute(self, node: Node, context: WorkflowContext) -> ActionResult:
        if node.action_type is None:
            return ActionResult(ok=True, message="Not an action")
        logger.debug(
            "Executing action",
            extra={"node_id": node.id, "action_type": node.action_type.value},
        )
        return await self._handlers[node.action_type](node, context)

    async def _send_sms(self, node: Node, context: WorkflowContext) -> ActionResult:
        config = node.config
        assert isinstance(config, SendSmsConfig)
        body = render_template(config.message, context.data)
        phone = _str_or_none(context.data.get("phone"))
        await self._messages.send_sms(subject_id=context.subject_id, phone=phone, body=body)
        return ActionResult(ok=True, message="SMS sent", details={"body": body})

    async def _send_email(self, node: Node, context: WorkflowContext) -> ActionResult:
        config = node.config
        assert isinstance(config, SendEmailConfig)
        subject = render_template(config.subject, context.data)
        body = render_template(config.message, context.data)
        email = _str_or_none(context.data.get("email"))
        await self._messages.send_email(
            subject_id=context.subject_id, email=email, subject=subject, body=body
        )
        return ActionResult(ok=True, message="Email sent", details={"subject": subject})

    async def _wait(self, _node: Node, _context: WorkflowContext) -> ActionResult:
        # The pause itself is handled by the executor.
        return ActionResult(ok=True, message="Delay scheduled")

    async def _create_task(self, node: Node, context: WorkflowContext) -> ActionResult:
        config = node.config
        assert isinstance(config, CreateTaskConfig)
        task_id = await self._tasks.create_task(
            title=render_template(config.title, context.data),
            description=render_template(config.description, context.data),
            assignee=config.assignee,
            subject_id=context.subject_id,
            pet_id=context.pet_id,
        )
        return ActionResult(ok=True, message="Task created", details={"task_id": task_id})

    async def _add_tag(self, node: Node, context: WorkflowContext) -> ActionResult:
        config = node.config
        assert isinstance(config, AddTagConfig)
        await self._tags.add_tag(subject_id=context.subject_id, tag=config.tag)
        return ActionResult(ok=True, message="Tag added", details={"tag": config.tag})


class LoggingCollaborators:
    """Log-only stand-ins for the messaging, task and tag services.

    Used by the CLI and server when no real services are wired in.
    """

    async def send_sms(self, *, subject_id: str | None, phone: str | None, body: str) -> None:
        logger.info("SMS", extra={"subject_id": subject_id, "phone": phone, "body": body})

    async def send_email(
        self, *, subject_id: str | None, email: str | None, subject: str, body: str
    ) -> None:
        logger.info(
            "Email",
            extra={"subject_id": subject_id, "email": email, "email_subject": subject},
        )

    async def create_task(
        self,
        *,
        title: str,
        description: str,
        assignee: str | None,
        subject_id: str | None,
        pet_id: str | None,
    ) -> str | None:
        logger.info(
            "Task",
            extra={
                "title": title,
                "assignee": assignee,
                "subject_id": subject_id,
                "pet_id": pet_id,
            },
        )
        return None

    async def add_tag(self, *, subject_id: str | None, tag: str) -> None:
        logger.info("Tag", extra={"subject_id": subject_id, "tag": tag})


def logging_action_executor() -> CollaboratorActionExecutor:
    collaborators = LoggingCollaborators()
    return CollaboratorActionExecutor(
        messages=collaborators, tasks=collaborators, tags=collaborators
    )


def _str_or_none(value: object) -> str | None:
    if value is None:
        return None
    text = str(value).strip()
    return text or None
