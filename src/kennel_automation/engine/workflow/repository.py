"""Read-only access to workflow definitions.

The engine never writes definitions; authoring happens elsewhere. The JSON
repository reads the same record shape the facility API returns from
``GET /api/workflows`` (a list, or ``{"data": [...]}``).
"""

from __future__ import annotations

import json
from collections.abc import Iterable
from pathlib import Path
from typing import Any, Protocol

from kennel_automation.engine.errors import WorkflowDefinitionError, WorkflowLoadError

from .definitions import WorkflowDefinition


class WorkflowSource(Protocol):
    async def list_workflows(self) -> list[WorkflowDefinition]: ...

    async def get_workflow(self, workflow_id: str) -> WorkflowDefinition | None: ...


class StaticWorkflowSource:
    """In-memory workflow list, returned in insertion order."""

    def __init__(self, workflows: Iterable[WorkflowDefinition] = ()) -> None:
        self._workflows = list(workflows)

    async def list_workflows(self) -> list[WorkflowDefinition]:
        return list(self._workflows)

    async def get_workflow(self, workflow_id: str) -> WorkflowDefinition | None:
        for workflow in self._workflows:
            if workflow.id == workflow_id:
                return workflow
        return None


class JsonWorkflowRepository:
    """Workflow records stored in a JSON file.

    A missing file means "no workflows". An unreadable file or a malformed
    record raises WorkflowLoadError; callers are expected to let it propagate.
    """

    def __init__(self, path: Path) -> None:
        self._path = path

    @property
    def path(self) -> Path:
        return self._path

    def _load_records(self) -> list[dict[str, Any]]:
        if not self._path.exists():
            return []
        try:
            raw = json.loads(self._path.read_text(encoding="utf-8"))
        except (OSError, json.JSONDecodeError) as e:
            raise WorkflowLoadError(f"Cannot read workflows from {self._path}: {e}") from e

        if isinstance(raw, dict):
            raw = raw.get("data", [])
        if not isinstance(raw, list) or not all(isinstance(r, dict) for r in raw):
            raise WorkflowLoadError(f"{self._path} must contain a list of workflow records")
        return raw

    async def list_workflows(self) -> list[WorkflowDefinition]:
        records = self._load_records()
        try:
            return [WorkflowDefinition.from_record(r) for r in records]
        except WorkflowDefinitionError as e:
            raise WorkflowLoadError(str(e)) from e

    async def get_workflow(self, workflow_id: str) -> WorkflowDefinition | None:
        for workflow in await self.list_workflows():
            if workflow.id == workflow_id:
                return workflow
        return None
