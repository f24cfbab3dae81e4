"""Structural checks run on a workflow graph before it is allowed to run.

A graph is valid when:
  - it has exactly one trigger node and unique node ids
  - every edge connects two existing nodes
  - every non-trigger node is reachable from the trigger
  - no cycle is reachable from the trigger

Conditional edges leaving non-logic nodes are reported as warnings only.
"""

from __future__ import annotations

from collections import defaultdict
from dataclasses import dataclass, field
from enum import Enum

from kennel_automation.engine.errors import WorkflowValidationError

from .definitions import NodeKind, WorkflowDefinition


class IssueCode(str, Enum):
    NO_TRIGGER = "no_trigger"
    MULTIPLE_TRIGGERS = "multiple_triggers"
    DUPLICATE_NODE = "duplicate_node"
    DANGLING_EDGE = "dangling_edge"
    UNREACHABLE_NODE = "unreachable_node"
    CYCLE = "cycle"
    CONDITION_ON_NON_LOGIC = "condition_on_non_logic"


WARNING_CODES: frozenset[IssueCode] = frozenset({IssueCode.CONDITION_ON_NON_LOGIC})


@dataclass(frozen=True, slots=True)
class ValidationIssue:
    code: IssueCode
    message: str
    node_id: str | None = None

    @property
    def is_warning(self) -> bool:
        return self.code in WARNING_CODES


@dataclass(frozen=True, slots=True)
class ValidationReport:
    workflow_id: str
    issues: list[ValidationIssue] = field(default_factory=list)

    @property
    def errors(self) -> list[ValidationIssue]:
        return [i for i in self.issues if not i.is_warning]

    @property
    def warnings(self) -> list[ValidationIssue]:
        return [i for i in self.issues if i.is_warning]

    @property
    def ok(self) -> bool:
        return not self.errors


def validate_workflow(workflow: WorkflowDefinition) -> ValidationReport:
    issues: list[ValidationIssue] = []

    triggers = [n for n in workflow.nodes if n.kind is NodeKind.TRIGGER]
    if not triggers:
        issues.append(ValidationIssue(IssueCode.NO_TRIGGER, "Workflow has no trigger node"))
    elif len(triggers) > 1:
        ids = ", ".join(n.id for n in triggers)
        issues.append(
            ValidationIssue(IssueCode.MULTIPLE_TRIGGERS, f"Workflow has several triggers: {ids}")
        )

    seen: set[str] = set()
    for node in workflow.nodes:
        if node.id in seen:
            issues.append(
                ValidationIssue(IssueCode.DUPLICATE_NODE, f"Duplicate node id {node.id}", node.id)
            )
        seen.add(node.id)

    kinds = {n.id: n.kind for n in workflow.nodes}
    successors: dict[str, list[str]] = defaultdict(list)
    for edge in workflow.edges:
        missing = [end for end in (edge.source, edge.target) if end not in kinds]
        if missing:
            issues.append(
                ValidationIssue(
                    IssueCode.DANGLING_EDGE,
                    f"Edge {edge.source} -> {edge.target} references unknown node(s): "
                    + ", ".join(missing),
                )
            )
            continue
        if edge.is_conditional and kinds[edge.source] is not NodeKind.LOGIC:
            issues.append(
                ValidationIssue(
                    IssueCode.CONDITION_ON_NON_LOGIC,
                    f"Conditional edge leaves non-logic node {edge.source}",
                    edge.source,
                )
            )
        successors[edge.source].append(edge.target)

    if len(triggers) != 1:
        return ValidationReport(workflow.id, issues)

    root = triggers[0].id
    reachable = _reachable(root, successors)
    for node in workflow.nodes:
        if node.id != root and node.id not in reachable:
            issues.append(
                ValidationIssue(
                    IssueCode.UNREACHABLE_NODE,
                    f"Node {node.id} is not reachable from the trigger",
                    node.id,
                )
            )

    cycle_at = _find_cycle(root, successors)
    if cycle_at is not None:
        issues.append(
            ValidationIssue(IssueCode.CYCLE, f"Cycle through node {cycle_at}", cycle_at)
        )

    return ValidationReport(workflow.id, issues)


def ensure_valid(workflow: WorkflowDefinition) -> ValidationReport:
    report = validate_workflow(workflow)
    if not report.ok:
        raise WorkflowValidationError(workflow.id, [i.message for i in report.errors])
    return report


def _reachable(root: str, successors: dict[str, list[str]]) -> set[str]:
    seen = {root}
    stack = [root]
    while stack:
        for nxt in successors.get(stack.pop(), []):
            if nxt not in seen:
                seen.add(nxt)
                stack.append(nxt)
    return seen


def _find_cycle(root: str, successors: dict[str, list[str]]) -> str | None:
    """Iterative three-colour DFS. Returns a node on a back edge, if any."""

    on_path: set[str] = {root}
    done: set[str] = set()
    stack: list[tuple[str, int]] = [(root, 0)]
    while stack:
        node, idx = stack[-1]
        children = successors.get(node, [])
        if idx >= len(children):
            stack.pop()
            on_path.discard(node)
            done.add(node)
            continue
        stack[-1] = (node, idx + 1)
        child = children[idx]
        if child in on_path:
            return child
        if child not in done:
            on_path.add(child)
            stack.append((child, 0))
    return None
