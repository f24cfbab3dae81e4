"""Workflow definitions: a trigger type plus a directed graph of nodes and edges.

Definitions are owned by the workflow-authoring surface and are read-only to
the engine, so every model here is frozen.

Action types and their configs form a closed set: each `ActionType` maps to
exactly one config model. Records carrying an unknown action type or delay
unit are rejected when parsed instead of silently doing nothing at run time.
"""

from __future__ import annotations

import json
from collections.abc import Mapping
from datetime import timedelta
from enum import Enum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, ValidationError, model_validator

from kennel_automation.engine.errors import WorkflowDefinitionError


class TriggerType(str, Enum):
    CRM_TAG_ADDED = "CRM_TAG_ADDED"
    POS_PURCHASE = "POS_PURCHASE"
    VACCINE_EXPIRING = "VACCINE_EXPIRING"
    RESERVATION_COMPLETED = "RESERVATION_COMPLETED"


class NodeKind(str, Enum):
    TRIGGER = "trigger"
    ACTION = "action"
    LOGIC = "logic"


class ActionType(str, Enum):
    SEND_SMS = "SEND_SMS"
    SEND_EMAIL = "SEND_EMAIL"
    WAIT_DELAY = "WAIT_DELAY"
    CREATE_TASK = "CREATE_TASK"
    ADD_TAG = "ADD_TAG"


class DelayUnit(str, Enum):
    MINUTES = "minutes"
    HOURS = "hours"
    DAYS = "days"


_UNIT_SECONDS: dict[DelayUnit, int] = {
    DelayUnit.MINUTES: 60,
    DelayUnit.HOURS: 3600,
    DelayUnit.DAYS: 86400,
}


class _Frozen(BaseModel):
    model_config = ConfigDict(frozen=True, extra="ignore", populate_by_name=True)


class SendSmsConfig(_Frozen):
    message: str = ""


class SendEmailConfig(_Frozen):
    subject: str = ""
    message: str = ""


class WaitDelayConfig(_Frozen):
    duration: int = Field(default=1, ge=0)
    unit: DelayUnit = DelayUnit.HOURS

    def as_timedelta(self) -> timedelta:
        return timedelta(seconds=self.duration * _UNIT_SECONDS[self.unit])


class CreateTaskConfig(_Frozen):
    title: str = "Follow up"
    description: str = ""
    assignee: str | None = None


class AddTagConfig(_Frozen):
    tag: str = Field(min_length=1)


ActionConfig = SendSmsConfig | SendEmailConfig | WaitDelayConfig | CreateTaskConfig | AddTagConfig

ACTION_CONFIGS: dict[ActionType, type[_Frozen]] = {
    ActionType.SEND_SMS: SendSmsConfig,
    ActionType.SEND_EMAIL: SendEmailConfig,
    ActionType.WAIT_DELAY: WaitDelayConfig,
    ActionType.CREATE_TASK: CreateTaskConfig,
    ActionType.ADD_TAG: AddTagConfig,
}


class TriggerConfig(_Frozen):
    """Gate parameters attached to the trigger node."""

    min_amount: float | None = Field(default=None, alias="minAmount")
    category: str | None = None


class ConditionOperator(str, Enum):
    EQ = "eq"
    NE = "ne"
    GT = "gt"
    GTE = "gte"
    LT = "lt"
    LTE = "lte"
    CONTAINS = "contains"
    EXISTS = "exists"


def resolve_path(data: Mapping[str, Any], path: str) -> tuple[bool, Any]:
    """Look up a dotted path in nested mappings. Returns (found, value)."""

    current: Any = data
    for part in path.split("."):
        if isinstance(current, Mapping) and part in current:
            current = current[part]
        else:
            return False, None
    return True, current


class EdgeCondition(_Frozen):
    """A predicate over `context.data` guarding an edge."""

    path: str = Field(alias="field", min_length=1)
    operator: ConditionOperator = ConditionOperator.EQ
    value: Any = None
    negate: bool = False

    def holds(self, data: Mapping[str, Any]) -> bool:
        found, actual = resolve_path(data, self.path)
        if self.operator is ConditionOperator.EXISTS:
            result = found and actual is not None
        elif not found:
            result = False
        else:
            result = self._compare(actual)
        return result != self.negate

    def _compare(self, actual: Any) -> bool:
        op = self.operator
        expected = self.value
        try:
            if op is ConditionOperator.EQ:
                return bool(actual == expected)
            if op is ConditionOperator.NE:
                return bool(actual != expected)
            if op is ConditionOperator.GT:
                return bool(actual > expected)
            if op is ConditionOperator.GTE:
                return bool(actual >= expected)
            if op is ConditionOperator.LT:
                return bool(actual < expected)
            if op is ConditionOperator.LTE:
                return bool(actual <= expected)
            if op is ConditionOperator.CONTAINS:
                return expected in actual
        except TypeError:
            # Mismatched types (e.g. "12" > 5) never satisfy a condition.
            return False
        return False


class Edge(_Frozen):
    id: str = ""
    source: str
    target: str
    condition: EdgeCondition | None = None

    @property
    def is_conditional(self) -> bool:
        return self.condition is not None

    def allows(self, data: Mapping[str, Any]) -> bool:
        return self.condition is None or self.condition.holds(data)


class Node(_Frozen):
    id: str = Field(min_length=1)
    kind: NodeKind
    label: str = ""

    trigger_type: TriggerType | None = None
    trigger: TriggerConfig = Field(default_factory=TriggerConfig)

    action_type: ActionType | None = None
    config: ActionConfig | None = None

    # Logic nodes only: the predicate their "true"/"false" handles branch on.
    condition: EdgeCondition | None = None

    @model_validator(mode="after")
    def _check_action(self) -> Node:
        if self.kind is NodeKind.ACTION:
            if self.action_type is None:
                raise ValueError(f"Action node {self.id!r} has no action type")
            expected = ACTION_CONFIGS[self.action_type]
            if not isinstance(self.config, expected):
                raise ValueError(
                    f"Action node {self.id!r} ({self.action_type.value}) "
                    f"requires {expected.__name__}"
                )
        return self

    @property
    def is_delay(self) -> bool:
        return self.action_type is ActionType.WAIT_DELAY

    @staticmethod
    def trigger_node(
        node_id: str,
        trigger_type: TriggerType,
        *,
        min_amount: float | None = None,
        category: str | None = None,
        label: str = "",
    ) -> Node:
        return Node(
            id=node_id,
            kind=NodeKind.TRIGGER,
            label=label,
            trigger_type=trigger_type,
            trigger=TriggerConfig(min_amount=min_amount, category=category),
        )

    @staticmethod
    def action(node_id: str, action_type: ActionType, *, label: str = "", **config: Any) -> Node:
        return Node(
            id=node_id,
            kind=NodeKind.ACTION,
            label=label,
            action_type=action_type,
            config=ACTION_CONFIGS[action_type].model_validate(config),
        )

    @staticmethod
    def logic(node_id: str, condition: EdgeCondition | None = None, *, label: str = "") -> Node:
        return Node(id=node_id, kind=NodeKind.LOGIC, label=label, condition=condition)


class WorkflowDefinition(_Frozen):
    id: str
    name: str = ""
    is_active: bool = True
    trigger_type: TriggerType
    nodes: list[Node] = Field(default_factory=list)
    edges: list[Edge] = Field(default_factory=list)

    def trigger_node(self) -> Node | None:
        for node in self.nodes:
            if node.kind is NodeKind.TRIGGER:
                return node
        return None

    def node(self, node_id: str) -> Node | None:
        for node in self.nodes:
            if node.id == node_id:
                return node
        return None

    def outgoing(self, node_id: str) -> list[Edge]:
        """Edges leaving `node_id`, in edge-collection order."""

        return [edge for edge in self.edges if edge.source == node_id]

    @staticmethod
    def from_record(record: Mapping[str, Any]) -> WorkflowDefinition:
        """Build a definition from a workflow record as stored by the facility API.

        Record shape::

            {"id", "name", "isEnabled", "triggerType", "triggerConfig", "steps", "edges"}

        `steps`, `edges` and `triggerConfig` may be JSON text. Node records follow the
        graph editor's shape ``{"id", "type", "data": {"label", "config", "actionType"}}``.
        """

        workflow_id = str(record.get("id") or "")
        if not workflow_id:
            raise WorkflowDefinitionError("Workflow record has no id")

        try:
            trigger_type = TriggerType(record.get("triggerType", record.get("trigger")))
        except ValueError as e:
            raise WorkflowDefinitionError(
                f"Workflow {workflow_id}: unknown trigger type {record.get('triggerType')!r}"
            ) from e

        raw_nodes = _json_field(record.get("steps", record.get("nodes")), workflow_id, "steps")
        raw_edges = _json_field(record.get("edges"), workflow_id, "edges")
        trigger_defaults = _json_field(record.get("triggerConfig"), workflow_id, "triggerConfig")

        if not isinstance(raw_nodes, list) or not isinstance(raw_edges, list):
            raise WorkflowDefinitionError(f"Workflow {workflow_id}: steps and edges must be lists")
        if not isinstance(trigger_defaults, dict):
            trigger_defaults = {}

        try:
            nodes = [_node_from_record(n, trigger_type, trigger_defaults) for n in raw_nodes]
            by_id = {node.id: node for node in nodes}
            edges = [_edge_from_record(e, by_id) for e in raw_edges]
            return WorkflowDefinition(
                id=workflow_id,
                name=str(record.get("name") or ""),
                is_active=bool(record.get("isEnabled", record.get("isActive", False))),
                trigger_type=trigger_type,
                nodes=nodes,
                edges=edges,
            )
        except (ValidationError, ValueError, TypeError) as e:
            raise WorkflowDefinitionError(f"Workflow {workflow_id}: {e}") from e


def _json_field(value: Any, workflow_id: str, name: str) -> Any:
    if value is None:
        return {} if name == "triggerConfig" else []
    if isinstance(value, str):
        if not value.strip():
            return {} if name == "triggerConfig" else []
        try:
            return json.loads(value)
        except json.JSONDecodeError as e:
            raise WorkflowDefinitionError(
                f"Workflow {workflow_id}: {name} is not valid JSON"
            ) from e
    return value


def _node_from_record(
    raw: Any, trigger_type: TriggerType, trigger_defaults: Mapping[str, Any]
) -> Node:
    if not isinstance(raw, Mapping):
        raise ValueError("node records must be objects")
    data = raw.get("data") or {}
    config = data.get("config") or {}
    kind = NodeKind(raw.get("type"))
    node_id = str(raw.get("id") or "")
    label = str(data.get("label") or "")

    if kind is NodeKind.TRIGGER:
        return Node(
            id=node_id,
            kind=kind,
            label=label,
            trigger_type=TriggerType(data.get("triggerType") or trigger_type),
            trigger=TriggerConfig.model_validate({**trigger_defaults, **config}),
        )

    if kind is NodeKind.LOGIC:
        condition = config.get("condition")
        return Node(
            id=node_id,
            kind=kind,
            label=label,
            condition=EdgeCondition.model_validate(condition) if condition else None,
        )

    action_raw = data.get("actionType")
    try:
        action_type = ActionType(action_raw)
    except ValueError:
        raise ValueError(f"node {node_id!r} has unknown action type {action_raw!r}") from None
    return Node(
        id=node_id,
        kind=kind,
        label=label,
        action_type=action_type,
        config=ACTION_CONFIGS[action_type].model_validate(config),
    )


def _edge_from_record(raw: Any, nodes: Mapping[str, Node]) -> Edge:
    if not isinstance(raw, Mapping):
        raise ValueError("edge records must be objects")
    source = str(raw.get("source") or "")
    target = str(raw.get("target") or "")
    data = raw.get("data") or {}

    condition: EdgeCondition | None = None
    if data.get("condition"):
        condition = EdgeCondition.model_validate(data["condition"])
    else:
        handle = raw.get("sourceHandle")
        source_node = nodes.get(source)
        if (
            handle in {"true", "false"}
            and source_node is not None
            and source_node.kind is NodeKind.LOGIC
            and source_node.condition is not None
        ):
            negate = source_node.condition.negate != (handle == "false")
            condition = source_node.condition.model_copy(update={"negate": negate})

    return Edge(
        id=str(raw.get("id") or f"{source}->{target}"),
        source=source,
        target=target,
        condition=condition,
    )
