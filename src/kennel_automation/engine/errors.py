"""Exception types raised by the automation engine."""

from __future__ import annotations


class AutomationError(Exception):
    """Base class for engine errors."""


class WorkflowDefinitionError(AutomationError):
    """A workflow record cannot be turned into a definition (bad node, action, unit)."""


class WorkflowLoadError(AutomationError):
    """Workflow definitions could not be fetched or parsed from their source."""


class WorkflowValidationError(AutomationError):
    def __init__(self, workflow_id: str, messages: list[str]) -> None:
        self.workflow_id = workflow_id
        self.messages = messages
        super().__init__(f"Workflow {workflow_id} is invalid: " + "; ".join(messages))


class ActionError(AutomationError):
    """Raised by collaborators when a side effect cannot be performed."""
