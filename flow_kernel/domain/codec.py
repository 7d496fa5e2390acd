"""
JSON codec for flow domain types (``flow_kernel.domain.codec``).

Responsibility
--------------
Translates between the JSON-compatible shapes used for storage and
transport (camelCase keys: ``targetStageId``, ``conditionGroups``,
``isDefault``, ``maxIterations`` ...) and the frozen domain types.

Architecture position
---------------------
**Kernel domain layer** -- boundary translation, ZERO I/O.  Models,
services, the YAML loader and the CLI all decode through here; the
engine only ever sees decoded domain types.

Failure modes
-------------
* ``FlowDecodeError`` with the JSON path of the offending node for any
  shape that cannot be represented (unknown operator, empty group,
  non-string status, transitions that are not a list ...).
* Decoding is shape-only.  Graph rules (duplicate statuses, dangling
  targets) are reported by ``flow_engines.validator``.
"""

from __future__ import annotations

from datetime import datetime
from typing import Any, Mapping

from flow_kernel.domain.approval import ActionRecord, ApprovalDecision, ApprovalInstance
from flow_kernel.domain.conditions import (
    EMPTINESS_OPERATORS,
    UNRESOLVED,
    Condition,
    ConditionDetail,
    ConditionEvaluation,
    ConditionGroup,
    ConditionNode,
    LogicalOperator,
    Operator,
)
from flow_kernel.domain.flow import FlowDefinition, Stage, Transition
from flow_kernel.exceptions import FlowDecodeError

_OPERATOR_VALUES = frozenset(op.value for op in Operator)
_LOGICAL_VALUES = frozenset(op.value for op in LogicalOperator)


# =========================================================================
# Conditions
# =========================================================================


def is_group_dict(data: Mapping[str, Any]) -> bool:
    """A node is a group when it carries ``conditions`` or ``children``."""
    return "conditions" in data or "children" in data


def condition_node_from_dict(data: Any, path: str = "condition") -> ConditionNode:
    """Decode a condition leaf or an (arbitrarily nested) group."""
    if not isinstance(data, Mapping):
        raise FlowDecodeError(path, "expected an object")

    if not is_group_dict(data):
        return _condition_from_dict(data, path)

    # Iterative post-order build; nesting depth is unbounded.
    root: list[ConditionNode] = []
    stack: list[_GroupFrame] = [_GroupFrame.open(data, path, root)]

    while stack:
        frame = stack[-1]
        index = len(frame.built)
        if index < len(frame.raw_children):
            child = frame.raw_children[index]
            child_path = f"{frame.path}.conditions[{index}]"
            if not isinstance(child, Mapping):
                raise FlowDecodeError(child_path, "expected an object")
            if is_group_dict(child):
                stack.append(_GroupFrame.open(child, child_path, frame.built))
            else:
                frame.built.append(_condition_from_dict(child, child_path))
            continue
        stack.pop()
        frame.sink.append(_group_from_parts(frame.node, frame.path, frame.built))

    return root[0]


class _GroupFrame:
    """A group whose children are still being decoded."""

    __slots__ = ("node", "path", "raw_children", "built", "sink")

    def __init__(
        self,
        node: Mapping[str, Any],
        path: str,
        raw_children: list[Any],
        sink: list[ConditionNode],
    ) -> None:
        self.node = node
        self.path = path
        self.raw_children = raw_children
        self.built: list[ConditionNode] = []
        self.sink = sink

    @classmethod
    def open(
        cls, node: Mapping[str, Any], path: str, sink: list[ConditionNode]
    ) -> _GroupFrame:
        raw_children = node.get("conditions", node.get("children"))
        if not isinstance(raw_children, list):
            raise FlowDecodeError(path, "group conditions must be a list")
        if not raw_children:
            raise FlowDecodeError(path, "group must contain at least one condition")
        return cls(node, path, raw_children, sink)


def _group_from_parts(
    node: Mapping[str, Any], path: str, children: list[ConditionNode]
) -> ConditionGroup:
    operator = node.get("operator", LogicalOperator.AND.value)
    if not isinstance(operator, str) or operator not in _LOGICAL_VALUES:
        raise FlowDecodeError(path, f"unknown logical operator {operator!r}")
    return ConditionGroup(
        operator=LogicalOperator(operator),
        children=tuple(children),
        id=str(node.get("id") or ""),
    )


def _condition_from_dict(data: Mapping[str, Any], path: str) -> Condition:
    field = data.get("field")
    if not isinstance(field, str) or not field:
        raise FlowDecodeError(path, "condition field must be a non-empty string")
    operator = data.get("operator")
    if not isinstance(operator, str) or operator not in _OPERATOR_VALUES:
        raise FlowDecodeError(path, f"unknown operator {operator!r}")
    op = Operator(operator)
    if op not in EMPTINESS_OPERATORS and "value" not in data:
        raise FlowDecodeError(path, f"operator {op.value} requires a value")
    return Condition(
        field=field,
        operator=op,
        value=data.get("value"),
        id=str(data.get("id") or ""),
    )


def condition_node_to_dict(node: ConditionNode) -> dict[str, Any]:
    root: dict[str, Any] = {}
    pending: list[tuple[ConditionNode, dict[str, Any]]] = [(node, root)]
    while pending:
        current, out = pending.pop()
        out["id"] = current.id
        if isinstance(current, Condition):
            out["field"] = current.field
            out["operator"] = current.operator.value
            out["value"] = current.value
            continue
        out["operator"] = current.operator.value
        out["conditions"] = [{} for _ in current.children]
        pending.extend(zip(current.children, out["conditions"]))
    return root


def detail_to_dict(detail: ConditionDetail) -> dict[str, Any]:
    return {
        "conditionId": detail.condition_id,
        "field": detail.field,
        "operator": detail.operator,
        "actualValue": None if detail.actual_value is UNRESOLVED else detail.actual_value,
        "expectedValue": detail.expected_value,
        "passed": detail.passed,
    }


def evaluation_to_dict(evaluation: ConditionEvaluation) -> dict[str, Any]:
    return {
        "passed": evaluation.passed,
        "details": [detail_to_dict(d) for d in evaluation.details],
    }


# =========================================================================
# Flow definitions
# =========================================================================


def transition_from_dict(data: Any, path: str = "transition") -> Transition:
    if not isinstance(data, Mapping):
        raise FlowDecodeError(path, "expected an object")
    to = data.get("to")
    if not isinstance(to, str) or not to:
        raise FlowDecodeError(path, "transition 'to' must be a non-empty string")
    target = data.get("targetStageId")
    if target is not None and not isinstance(target, str):
        raise FlowDecodeError(path, "targetStageId must be a string")
    raw_groups = data.get("conditionGroups") or []
    if not isinstance(raw_groups, list):
        raise FlowDecodeError(path, "conditionGroups must be a list")
    groups = tuple(
        condition_node_from_dict(group, f"{path}.conditionGroups[{i}]")
        for i, group in enumerate(raw_groups)
    )
    label = data.get("label")
    return Transition(
        to=to,
        target_stage_id=target or None,
        label=str(label) if label is not None else None,
        condition_groups=groups,
        is_default=bool(data.get("isDefault", False)),
    )


def transition_to_dict(transition: Transition) -> dict[str, Any]:
    result: dict[str, Any] = {"to": transition.to}
    if transition.target_stage_id is not None:
        result["targetStageId"] = transition.target_stage_id
    if transition.label is not None:
        result["label"] = transition.label
    if transition.condition_groups:
        result["conditionGroups"] = [
            condition_node_to_dict(g) for g in transition.condition_groups
        ]
    result["isDefault"] = transition.is_default
    return result


def stage_from_dict(data: Any, path: str = "stage") -> Stage:
    if not isinstance(data, Mapping):
        raise FlowDecodeError(path, "expected an object")
    status = data.get("status")
    if not isinstance(status, str) or not status:
        raise FlowDecodeError(path, "stage status must be a non-empty string")
    raw_transitions = data.get("transitions", [])
    if not isinstance(raw_transitions, list):
        raise FlowDecodeError(path, "transitions must be a list")
    max_iterations = data.get("maxIterations")
    if max_iterations is not None and (
        isinstance(max_iterations, bool) or not isinstance(max_iterations, int)
    ):
        raise FlowDecodeError(path, "maxIterations must be an integer")
    notification = data.get("notification")
    events = data.get("events") or []
    if not isinstance(events, list):
        raise FlowDecodeError(path, "events must be a list")
    return Stage(
        id=str(data.get("id") or ""),
        status=status,
        name=str(data.get("name") or ""),
        description=str(data.get("description") or ""),
        actor=str(data.get("actor") or ""),
        actor_user_id=data.get("actorUserId"),
        transitions=tuple(
            transition_from_dict(t, f"{path}.transitions[{i}]")
            for i, t in enumerate(raw_transitions)
        ),
        max_iterations=max_iterations,
        notification=dict(notification) if isinstance(notification, Mapping) else None,
        events=tuple(dict(e) for e in events if isinstance(e, Mapping)),
    )


def stage_to_dict(stage: Stage) -> dict[str, Any]:
    result: dict[str, Any] = {
        "id": stage.id,
        "status": stage.status,
        "name": stage.name,
        "description": stage.description,
        "actor": stage.actor,
    }
    if stage.actor_user_id is not None:
        result["actorUserId"] = stage.actor_user_id
    result["transitions"] = [transition_to_dict(t) for t in stage.transitions]
    if stage.max_iterations is not None:
        result["maxIterations"] = stage.max_iterations
    if stage.notification is not None:
        result["notification"] = dict(stage.notification)
    if stage.events:
        result["events"] = [dict(e) for e in stage.events]
    return result


def flow_definition_from_dict(data: Any, path: str = "definition") -> FlowDefinition:
    """Decode either a bare ``{"stages": [...]}`` body or a full flow record.

    A full flow record nests the graph under ``definition`` (the shape the
    flow tables store), with name/version/description alongside.
    """
    if not isinstance(data, Mapping):
        raise FlowDecodeError(path, "expected an object")
    body = data
    if "stages" not in data and isinstance(data.get("definition"), Mapping):
        body = data["definition"]
    raw_stages = body.get("stages")
    if not isinstance(raw_stages, list):
        raise FlowDecodeError(path, "stages must be a list")
    custom = body.get("customStatuses", data.get("customStatuses")) or []
    if not isinstance(custom, list) or not all(isinstance(s, str) for s in custom):
        raise FlowDecodeError(path, "customStatuses must be a list of strings")
    metadata = data.get("metadata")
    return FlowDefinition(
        stages=tuple(
            stage_from_dict(s, f"{path}.stages[{i}]") for i, s in enumerate(raw_stages)
        ),
        id=str(data.get("id") or ""),
        name=str(data.get("name") or ""),
        description=str(data.get("description") or ""),
        version=str(data.get("version") or "1.0.0"),
        custom_statuses=tuple(custom),
        metadata=dict(metadata) if isinstance(metadata, Mapping) else {},
        active_version_id=data.get("activeVersionId"),
    )


def definition_body_to_dict(definition: FlowDefinition) -> dict[str, Any]:
    """The stage graph alone, as stored in a ``definition`` JSON column."""
    return {
        "stages": [stage_to_dict(s) for s in definition.stages],
        "customStatuses": list(definition.custom_statuses),
    }


def flow_definition_to_dict(definition: FlowDefinition) -> dict[str, Any]:
    result = {
        "id": definition.id,
        "name": definition.name,
        "description": definition.description,
        "version": definition.version,
        "metadata": dict(definition.metadata),
        "activeVersionId": definition.active_version_id,
    }
    result.update(definition_body_to_dict(definition))
    return result


# =========================================================================
# Approvals
# =========================================================================


def _parse_datetime(value: Any) -> datetime | None:
    if value is None or isinstance(value, datetime):
        return value
    return datetime.fromisoformat(str(value))


def action_record_to_dict(record: ActionRecord) -> dict[str, Any]:
    return {
        "fromStageId": record.from_stage_id,
        "toStageId": record.to_stage_id,
        "status": record.status,
        "actorId": record.actor_id,
        "decision": record.decision.value,
        "comment": record.comment,
        "decidedAt": record.decided_at.isoformat() if record.decided_at else None,
    }


def action_record_from_dict(data: Any, path: str = "history") -> ActionRecord:
    if not isinstance(data, Mapping):
        raise FlowDecodeError(path, "expected an object")
    try:
        return ActionRecord(
            from_stage_id=data.get("fromStageId"),
            to_stage_id=data.get("toStageId"),
            status=str(data["status"]),
            actor_id=str(data["actorId"]),
            decision=ApprovalDecision(data["decision"]),
            comment=str(data.get("comment") or ""),
            decided_at=_parse_datetime(data.get("decidedAt")),
        )
    except (KeyError, ValueError) as exc:
        raise FlowDecodeError(path, str(exc)) from exc


def approval_to_dict(approval: ApprovalInstance) -> dict[str, Any]:
    return {
        "id": approval.id,
        "flowId": approval.flow_id,
        "flowVersionId": approval.flow_version_id,
        "title": approval.title,
        "requesterId": approval.requester_id,
        "status": approval.status,
        "currentStageId": approval.current_stage_id,
        "payload": dict(approval.payload),
        "metadata": {
            "iterationCount": approval.iteration_count,
            "previousStageId": approval.previous_stage_id,
            "history": [action_record_to_dict(r) for r in approval.history],
        },
        "submittedAt": approval.submitted_at.isoformat() if approval.submitted_at else None,
        "completedAt": approval.completed_at.isoformat() if approval.completed_at else None,
    }


def approval_from_dict(data: Any, path: str = "approval") -> ApprovalInstance:
    if not isinstance(data, Mapping):
        raise FlowDecodeError(path, "expected an object")
    metadata = data.get("metadata") or {}
    raw_history = metadata.get("history") or []
    if not isinstance(raw_history, list):
        raise FlowDecodeError(path, "metadata.history must be a list")
    try:
        approval_id = str(data["id"])
        flow_id = str(data["flowId"])
        status = str(data["status"])
    except KeyError as exc:
        raise FlowDecodeError(path, f"missing {exc.args[0]}") from exc
    payload = data.get("payload")
    return ApprovalInstance(
        id=approval_id,
        flow_id=flow_id,
        status=status,
        current_stage_id=data.get("currentStageId"),
        flow_version_id=data.get("flowVersionId"),
        title=str(data.get("title") or ""),
        requester_id=data.get("requesterId"),
        payload=dict(payload) if isinstance(payload, Mapping) else {},
        iteration_count=int(metadata.get("iterationCount") or 0),
        previous_stage_id=metadata.get("previousStageId"),
        history=tuple(
            action_record_from_dict(r, f"{path}.metadata.history[{i}]")
            for i, r in enumerate(raw_history)
        ),
        submitted_at=_parse_datetime(data.get("submittedAt")),
        completed_at=_parse_datetime(data.get("completedAt")),
    )
