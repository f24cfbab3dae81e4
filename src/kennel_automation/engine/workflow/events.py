from __future__ import annotations

from typing import Any

from pydantic import BaseModel, ConfigDict, Field

from .definitions import TriggerType

SYSTEM_SUBJECT = "system"


class WorkflowContext(BaseModel):
    """Payload of the business event that started a run.

    The context is carried unchanged through the whole enrollment; actions may
    read it but never write to it.
    """

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    subject_id: str | None = Field(default=None, alias="ownerId")
    pet_id: str | None = Field(default=None, alias="petId")
    order_id: str | None = Field(default=None, alias="orderId")
    data: dict[str, Any] = Field(default_factory=dict)

    @property
    def subject_or_system(self) -> str:
        return self.subject_id or SYSTEM_SUBJECT


class TriggerEvent(BaseModel):
    """A business event emitted by the surrounding system (a sale, a new tag, ...)."""

    model_config = ConfigDict(frozen=True)

    type: TriggerType
    context: WorkflowContext = Field(default_factory=WorkflowContext)
