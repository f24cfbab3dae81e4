"""Pydantic models for the REST server."""

from __future__ import annotations

from typing import Any

from pydantic import BaseModel, Field

from kennel_automation.engine.workflow.definitions import WorkflowDefinition
from kennel_automation.engine.workflow.enrollments import RunStats
from kennel_automation.engine.workflow.validator import ValidationReport


class EventRequest(BaseModel):
    subject_id: str | None = None
    pet_id: str | None = None
    order_id: str | None = None
    data: dict[str, Any] = Field(default_factory=dict)


class ApiRunStats(BaseModel):
    runs: int = 0
    completed: int = 0
    failed: int = 0


class ApiWorkflow(BaseModel):
    id: str
    name: str
    is_active: bool
    trigger_type: str
    node_count: int
    edge_count: int
    stats: ApiRunStats = Field(default_factory=ApiRunStats)

    @staticmethod
    def from_definition(
        workflow: WorkflowDefinition, stats: RunStats | None = None
    ) -> ApiWorkflow:
        stats = stats or RunStats()
        return ApiWorkflow(
            id=workflow.id,
            name=workflow.name,
            is_active=workflow.is_active,
            trigger_type=workflow.trigger_type.value,
            node_count=len(workflow.nodes),
            edge_count=len(workflow.edges),
            stats=ApiRunStats(runs=stats.runs, completed=stats.completed, failed=stats.failed),
        )


class ApiValidationIssue(BaseModel):
    code: str
    message: str
    node_id: str | None = None
    warning: bool = False


class ApiValidationReport(BaseModel):
    workflow_id: str
    ok: bool
    issues: list[ApiValidationIssue] = Field(default_factory=list)

    @staticmethod
    def from_report(report: ValidationReport) -> ApiValidationReport:
        return ApiValidationReport(
            workflow_id=report.workflow_id,
            ok=report.ok,
            issues=[
                ApiValidationIssue(
                    code=i.code.value, message=i.message, node_id=i.node_id, warning=i.is_warning
                )
                for i in report.issues
            ],
        )
