"""Enrollments and the stores that keep them.

An enrollment is one run of one workflow for one subject. The executor mutates
it in place and saves it after every transition; once it reaches a terminal
status it is never changed again.

Stopping an enrollment removes it from its store. There is no separate
"cancelled" status: a stopped enrollment simply disappears from listings.
"""

from __future__ import annotations

import json
import threading
import uuid
from collections import Counter, defaultdict
from collections.abc import Iterable
from dataclasses import dataclass
from datetime import UTC, datetime
from pathlib import Path
from typing import Protocol

from pydantic import BaseModel, Field, ValidationError

from .definitions import Node, WorkflowDefinition
from .events import WorkflowContext
from .state_machine import EnrollmentStatus, is_terminal, transition


def utc_now() -> datetime:
    return datetime.now(tz=UTC)


class Enrollment(BaseModel):
    id: str
    workflow_id: str
    workflow_name: str
    subject_id: str
    status: EnrollmentStatus = EnrollmentStatus.RUNNING
    current_node_id: str
    next_run_at: datetime | None = None
    context: WorkflowContext = Field(default_factory=WorkflowContext)

    created_at: datetime = Field(default_factory=utc_now)
    updated_at: datetime = Field(default_factory=utc_now)
    visited_node_ids: list[str] = Field(default_factory=list)

    failure_reason: str | None = None
    error: str | None = None

    @staticmethod
    def start(
        workflow: WorkflowDefinition, trigger: Node, context: WorkflowContext
    ) -> Enrollment:
        return Enrollment(
            id=f"enr-{uuid.uuid4().hex}",
            workflow_id=workflow.id,
            workflow_name=workflow.name,
            subject_id=context.subject_or_system,
            status=EnrollmentStatus.RUNNING,
            current_node_id=trigger.id,
            context=context,
        )

    @property
    def is_terminal(self) -> bool:
        return is_terminal(self.status)

    def move_to(self, status: EnrollmentStatus, *, now: datetime | None = None) -> None:
        """Apply a state-machine transition; raises IllegalTransitionError."""

        self.status = transition(current=self.status, to=status)
        if status is not EnrollmentStatus.WAITING:
            self.next_run_at = None
        self.updated_at = now or utc_now()

    def fail(
        self, reason: str, error: str | None = None, *, now: datetime | None = None
    ) -> None:
        self.move_to(EnrollmentStatus.FAILED, now=now)
        self.failure_reason = reason
        self.error = error


@dataclass(frozen=True, slots=True)
class RunStats:
    """Per-workflow enrollment counts. Stopped enrollments are not counted."""

    runs: int = 0
    completed: int = 0
    failed: int = 0


def summarize_runs(enrollments: Iterable[Enrollment]) -> dict[str, RunStats]:
    """Count enrollments by workflow id and outcome."""

    by_workflow: defaultdict[str, Counter[EnrollmentStatus]] = defaultdict(Counter)
    for enrollment in enrollments:
        by_workflow[enrollment.workflow_id][enrollment.status] += 1
    return {
        workflow_id: RunStats(
            runs=sum(counts.values()),
            completed=counts[EnrollmentStatus.COMPLETED],
            failed=counts[EnrollmentStatus.FAILED],
        )
        for workflow_id, counts in by_workflow.items()
    }


class EnrollmentRepository(Protocol):
    """Persistence seam for enrollments."""

    def save(self, enrollment: Enrollment) -> None: ...

    def update_if_present(self, enrollment: Enrollment) -> bool:
        """Overwrite a stored enrollment; returns False if it is no longer stored."""
        ...

    def find_by_id(self, enrollment_id: str) -> Enrollment | None: ...

    def find_by_subject(self, subject_id: str) -> list[Enrollment]: ...

    def list(self) -> list[Enrollment]: ...

    def delete(self, enrollment_id: str) -> bool: ...


class InMemoryEnrollmentStore:
    """Process-local store. Saved objects are kept by reference.

    Not synchronised: it relies on the engine running on a single event loop.
    """

    def __init__(self) -> None:
        self._items: dict[str, Enrollment] = {}

    def save(self, enrollment: Enrollment) -> None:
        self._items[enrollment.id] = enrollment

    def update_if_present(self, enrollment: Enrollment) -> bool:
        if enrollment.id not in self._items:
            return False
        self._items[enrollment.id] = enrollment
        return True

    def find_by_id(self, enrollment_id: str) -> Enrollment | None:
        return self._items.get(enrollment_id)

    def find_by_subject(self, subject_id: str) -> list[Enrollment]:
        return [e for e in self._items.values() if e.subject_id == subject_id]

    def list(self) -> list[Enrollment]:
        return list(self._items.values())

    def delete(self, enrollment_id: str) -> bool:
        return self._items.pop(enrollment_id, None) is not None


@dataclass
class JsonEnrollmentStore:
    """Enrollments persisted to a JSON file so waiting runs survive restarts.

    A missing or unreadable file is treated as an empty store.
    """

    path: Path

    def __post_init__(self) -> None:
        self._lock = threading.Lock()

    def _load_unlocked(self) -> list[Enrollment]:
        if not self.path.exists():
            return []
        try:
            raw = json.loads(self.path.read_text(encoding="utf-8"))
        except json.JSONDecodeError:
            return []
        if not isinstance(raw, list):
            return []
        items: list[Enrollment] = []
        for item in raw:
            try:
                items.append(Enrollment.model_validate(item))
            except ValidationError:
                continue
        return items

    def _save_unlocked(self, items: list[Enrollment]) -> None:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        payload = [e.model_dump(mode="json") for e in items]
        self.path.write_text(
            json.dumps(payload, indent=2, ensure_ascii=False) + "\n", encoding="utf-8"
        )

    def save(self, enrollment: Enrollment) -> None:
        with self._lock:
            items = self._load_unlocked()
            for idx, existing in enumerate(items):
                if existing.id == enrollment.id:
                    items[idx] = enrollment
                    break
            else:
                items.append(enrollment)
            self._save_unlocked(items)

    def update_if_present(self, enrollment: Enrollment) -> bool:
        with self._lock:
            items = self._load_unlocked()
            for idx, existing in enumerate(items):
                if existing.id == enrollment.id:
                    items[idx] = enrollment
                    self._save_unlocked(items)
                    return True
            return False

    def find_by_id(self, enrollment_id: str) -> Enrollment | None:
        with self._lock:
            for item in self._load_unlocked():
                if item.id == enrollment_id:
                    return item
            return None

    def find_by_subject(self, subject_id: str) -> list[Enrollment]:
        with self._lock:
            return [e for e in self._load_unlocked() if e.subject_id == subject_id]

    def list(self) -> list[Enrollment]:
        with self._lock:
            return self._load_unlocked()

    def delete(self, enrollment_id: str) -> bool:
        with self._lock:
            items = self._load_unlocked()
            kept = [e for e in items if e.id != enrollment_id]
            if len(kept) == len(items):
                return False
            self._save_unlocked(kept)
            return True
