"""
flow_engines.validator -- Structural validation of flow definitions.

Responsibility:
    Decide whether a flow definition is well-formed enough to drive real
    approvals.  Runs once, when a flow is created or updated.

Architecture position:
    Engines -- pure calculation layer, zero I/O.  Accepts either a decoded
    ``FlowDefinition`` or the raw JSON mapping an author submitted, so
    malformed input is reported instead of failing to decode.

Invariants enforced:
    - At least one stage; every stage has a non-empty id, name and
      description, a recognized status and a transitions list.
    - Stage statuses are unique (they double as stage keys) and stage ids
      are unique.
    - Every transition's ``to`` is the status of some stage in the same
      definition, and a ``targetStageId`` names an existing stage.
      Forward references are fine; stage order does not matter.
    - At most one ``isDefault`` transition per stage.
    - ``maxIterations``, when present, is a positive integer.

Failure modes:
    - Never raises from ``validate_flow_definition`` /
      ``validate_flow_definition_detailed``.
    - ``ensure_valid_flow_definition`` raises ``FlowValidationError``
      carrying every error.

Non-goals:
    - Reachability from the first stage is a warning, not an error.
    - Conditions are decoded for shape but never evaluated.
"""

from __future__ import annotations

from collections import deque
from typing import Any, Mapping

from flow_kernel.domain.codec import condition_node_from_dict, flow_definition_to_dict
from flow_kernel.domain.flow import (
    BUILTIN_STATUSES,
    FlowDefinition,
    FlowValidationResult,
    is_terminal_status,
)
from flow_kernel.domain.versioning import is_semantic_version
from flow_kernel.exceptions import FlowDecodeError, FlowValidationError


def validate_flow_definition(definition: FlowDefinition | Mapping[str, Any] | Any) -> bool:
    """True when the definition has no structural errors."""
    return validate_flow_definition_detailed(definition).is_valid


def ensure_valid_flow_definition(
    definition: FlowDefinition | Mapping[str, Any],
) -> FlowValidationResult:
    """Validate and raise ``FlowValidationError`` on any error.

    Returns:
        The validation result, so callers can surface warnings.
    """
    result = validate_flow_definition_detailed(definition)
    if not result.is_valid:
        flow_id = definition.id if isinstance(definition, FlowDefinition) else None
        if flow_id is None and isinstance(definition, Mapping):
            flow_id = definition.get("id")
        raise FlowValidationError(result.errors, flow_id=flow_id or None)
    return result


def validate_flow_definition_detailed(
    definition: FlowDefinition | Mapping[str, Any] | Any,
) -> FlowValidationResult:
    """Validate a definition and collect every error and warning."""
    result = FlowValidationResult()

    if isinstance(definition, FlowDefinition):
        data: Mapping[str, Any] = flow_definition_to_dict(definition)
    elif isinstance(definition, Mapping):
        data = definition
    else:
        result.add_error("Flow definition must be an object")
        return result

    body = data
    if "stages" not in data and isinstance(data.get("definition"), Mapping):
        body = data["definition"]

    stages = body.get("stages")
    if not isinstance(stages, list) or not stages:
        result.add_error("Flow definition must contain at least one stage")
        return result

    version = data.get("version")
    if version is not None and not is_semantic_version(str(version)):
        result.add_error(f"Version '{version}' is not a major.minor.patch version")

    known_statuses = set(BUILTIN_STATUSES)
    custom = body.get("customStatuses", data.get("customStatuses")) or []
    if isinstance(custom, list) and all(isinstance(s, str) and s for s in custom):
        known_statuses.update(custom)
    else:
        result.add_error("customStatuses must be a list of non-empty strings")

    stage_dicts = [
        (index, stage)
        for index, stage in enumerate(stages)
        if _check_stage(index, stage, known_statuses, result)
    ]

    _check_uniqueness(stage_dicts, result)
    _check_transitions(stage_dicts, result)
    if result.is_valid:
        _check_reachability(stage_dicts, result)

    return result


def _stage_label(index: int, stage: Mapping[str, Any]) -> str:
    stage_id = stage.get("id")
    if isinstance(stage_id, str) and stage_id:
        return f"Stage '{stage_id}'"
    return f"Stage[{index}]"


def _check_stage(
    index: int,
    stage: Any,
    known_statuses: set[str],
    result: FlowValidationResult,
) -> bool:
    """Per-stage field checks.  False when the stage cannot be inspected further."""
    if not isinstance(stage, Mapping):
        result.add_error(f"Stage[{index}] must be an object")
        return False

    label = _stage_label(index, stage)
    for key in ("id", "name", "description"):
        value = stage.get(key)
        if not isinstance(value, str) or not value.strip():
            result.add_error(f"{label} is missing a non-empty {key}")

    status = stage.get("status")
    if not isinstance(status, str) or status not in known_statuses:
        result.add_error(f"{label} has unrecognized status {status!r}")

    max_iterations = stage.get("maxIterations")
    if max_iterations is not None and (
        isinstance(max_iterations, bool)
        or not isinstance(max_iterations, int)
        or max_iterations < 1
    ):
        result.add_error(f"{label} maxIterations must be a positive integer")

    transitions = stage.get("transitions")
    if not isinstance(transitions, list):
        result.add_error(f"{label} transitions must be a list")
        return False

    for position, transition in enumerate(transitions):
        if not isinstance(transition, Mapping):
            result.add_error(f"{label} transition[{position}] must be an object")
        elif not isinstance(transition.get("to"), str) or not transition.get("to"):
            result.add_error(f"{label} transition[{position}] is missing a target status")
    return True


def _check_uniqueness(
    stage_dicts: list[tuple[int, Mapping[str, Any]]],
    result: FlowValidationResult,
) -> None:
    seen_statuses: dict[str, str] = {}
    seen_ids: set[str] = set()
    for index, stage in stage_dicts:
        label = _stage_label(index, stage)
        status = stage.get("status")
        if isinstance(status, str):
            if status in seen_statuses:
                result.add_error(
                    f"{label} duplicates status '{status}' of {seen_statuses[status]}"
                )
            else:
                seen_statuses[status] = label
        stage_id = stage.get("id")
        if isinstance(stage_id, str) and stage_id:
            if stage_id in seen_ids:
                result.add_error(f"Duplicate stage id '{stage_id}'")
            seen_ids.add(stage_id)


def _check_transitions(
    stage_dicts: list[tuple[int, Mapping[str, Any]]],
    result: FlowValidationResult,
) -> None:
    statuses = {s.get("status") for _, s in stage_dicts if isinstance(s.get("status"), str)}
    status_by_id = {
        s["id"]: s.get("status") for _, s in stage_dicts if isinstance(s.get("id"), str)
    }

    for index, stage in stage_dicts:
        label = _stage_label(index, stage)
        defaults = 0
        transitions = [t for t in stage["transitions"] if isinstance(t, Mapping)]

        if not transitions and not is_terminal_status(stage.get("status")):
            result.add_warning(f"{label} is non-terminal but has no transitions")

        for position, transition in enumerate(transitions):
            where = f"{label} transition[{position}]"
            to = transition.get("to")
            if isinstance(to, str) and to and to not in statuses:
                result.add_error(f"{where} targets status '{to}' which no stage carries")

            target = transition.get("targetStageId")
            if target is not None:
                if not isinstance(target, str) or target not in status_by_id:
                    result.add_error(f"{where} targets unknown stage {target!r}")
                elif status_by_id[target] != to:
                    result.add_warning(
                        f"{where} moves to stage '{target}' "
                        f"(status '{status_by_id[target]}') but sets status '{to}'"
                    )

            if transition.get("isDefault"):
                defaults += 1

            groups = transition.get("conditionGroups") or []
            if not isinstance(groups, list):
                result.add_error(f"{where} conditionGroups must be a list")
                continue
            for g, group in enumerate(groups):
                try:
                    condition_node_from_dict(group, f"{where}.conditionGroups[{g}]")
                except FlowDecodeError as exc:
                    result.add_error(str(exc))

        if defaults > 1:
            result.add_error(f"{label} has {defaults} default transitions (at most one)")


def _check_reachability(
    stage_dicts: list[tuple[int, Mapping[str, Any]]],
    result: FlowValidationResult,
) -> None:
    """Warn about stages no path from the first stage reaches."""
    by_id = {s["id"]: s for _, s in stage_dicts}
    id_by_status = {s["status"]: s["id"] for _, s in stage_dicts}
    start = stage_dicts[0][1]["id"]

    reached = {start}
    queue = deque([start])
    while queue:
        stage = by_id[queue.popleft()]
        for transition in stage["transitions"]:
            target = transition.get("targetStageId") or id_by_status.get(transition.get("to"))
            if target is not None and target not in reached:
                reached.add(target)
                queue.append(target)

    for index, stage in stage_dicts:
        if stage["id"] not in reached:
            result.add_warning(f"{_stage_label(index, stage)} is unreachable from the first stage")
