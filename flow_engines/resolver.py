"""
flow_engines.resolver -- Transition resolution for an in-flight approval.

Responsibility:
    Given a definition, the approval's current stage and an optional
    action token, pick the one transition to take and compute the state
    it leads to.  Nothing is mutated; the result is handed to
    ``flow_engines.state_machine.apply_transition``.

Architecture position:
    Engines -- pure calculation layer, zero I/O.  Consults
    ``flow_engines.conditions`` once per candidate transition.

Selection order:
    1. A terminal current status fails with ``AlreadyTerminalError``.
    2. The current stage must exist (``StageNotFoundError``).
    3. A non-empty action names a destination: the first transition, in
       declared order, whose target stage id, target status or label
       equals it.  Conditions are not consulted.
    4. Without an action, the first non-default transition whose
       condition groups all pass wins; then the default transition.
    5. Nothing matched: ``NoEligibleTransitionError``.

Invariants enforced:
    - Deterministic: same inputs, same transition.
    - A stage with ``max_iterations`` can be re-entered at most that many
      times; the next re-entry fails with ``IterationLimitExceededError``.
"""

from __future__ import annotations

from typing import Any, Mapping

from flow_kernel.domain.approval import (
    ApprovalInstance,
    EvaluationContext,
    MatchKind,
    ResolvedTransition,
)
from flow_kernel.domain.conditions import ConditionDetail
from flow_kernel.domain.flow import (
    ApprovalStatus,
    FlowDefinition,
    Stage,
    Transition,
    is_terminal_status,
)
from flow_kernel.exceptions import (
    AlreadyTerminalError,
    IterationLimitExceededError,
    NoEligibleTransitionError,
    StageNotFoundError,
)
from flow_engines.conditions import ContextLike, evaluate_condition_groups
from flow_engines.predicate import as_context


def resolve_transition(
    definition: FlowDefinition,
    current_stage_id: str | None,
    action: str | None,
    context: ContextLike,
    *,
    current_status: str = ApprovalStatus.IN_PROCESS.value,
    stage_entries: Mapping[str, int] | None = None,
    iteration_count: int | None = None,
) -> ResolvedTransition:
    """Pick the transition to take from ``current_stage_id``.

    Args:
        definition: The flow version the approval is bound to.
        current_stage_id: Stage the approval currently occupies.
        action: Destination token (stage id, status or label), or ``None``
            for condition-driven routing.
        context: Evaluation context, or its JSON-shaped dict.
        current_status: The approval's status; terminal values are refused.
        stage_entries: Times each stage has been entered so far.  Without
            it the iteration guard only sees the current stage.
        iteration_count: Prior iteration counter.  Defaults to
            ``workflow.iterationCount`` in the context, else 0.

    Raises:
        AlreadyTerminalError, StageNotFoundError,
        NoEligibleTransitionError, IterationLimitExceededError.
    """
    if is_terminal_status(current_status):
        raise AlreadyTerminalError(None, str(current_status))

    stage = definition.stage_by_id(current_stage_id)
    if stage is None:
        raise StageNotFoundError(current_stage_id, definition.id or None)

    ctx = as_context(context)
    details: tuple[ConditionDetail, ...] = ()
    if action:
        transition = _match_action(stage, action)
        matched_by = MatchKind.ACTION
        if transition is None:
            raise NoEligibleTransitionError(stage.id, action)
    else:
        transition, matched_by, details = _match_conditions(stage, ctx)
        if transition is None:
            raise NoEligibleTransitionError(stage.id, None, details)

    next_status = transition.to
    next_stage = _destination(definition, transition)

    if iteration_count is None:
        iteration_count = _context_iteration_count(ctx)

    entries = dict(stage_entries) if stage_entries is not None else {stage.id: 1}
    revisit = False
    if next_stage is not None:
        prior = entries.get(next_stage.id, 0)
        revisit = prior > 0
        if next_stage.max_iterations is not None and prior > next_stage.max_iterations:
            raise IterationLimitExceededError(next_stage.id, next_stage.max_iterations, prior)

    return ResolvedTransition(
        transition=transition,
        from_stage_id=stage.id,
        next_stage_id=next_stage.id if next_stage is not None else None,
        next_status=next_status,
        iteration_count=iteration_count + 1,
        matched_by=matched_by,
        next_stage_name=next_stage.name if next_stage is not None else None,
        revisit=revisit,
        details=details,
    )


def resolve_for_approval(
    definition: FlowDefinition,
    approval: ApprovalInstance,
    action: str | None,
    context: ContextLike = None,
) -> ResolvedTransition:
    """``resolve_transition`` fed from an approval instance.

    When ``context`` is omitted it is assembled from the approval's
    payload and workflow fields.
    """
    if approval.is_terminal:
        raise AlreadyTerminalError(approval.id, approval.status)
    if context is None:
        context = EvaluationContext.for_approval(approval)
    return resolve_transition(
        definition,
        approval.current_stage_id,
        action,
        context,
        current_status=approval.status,
        stage_entries=approval.stage_entries(),
        iteration_count=approval.iteration_count,
    )


def _match_action(stage: Stage, action: str) -> Transition | None:
    for transition in stage.transitions:
        if action in (transition.target_stage_id, transition.to, transition.label):
            return transition
    return None


def _match_conditions(
    stage: Stage,
    context: EvaluationContext,
) -> tuple[Transition | None, MatchKind, tuple[ConditionDetail, ...]]:
    details: list[ConditionDetail] = []
    for transition in stage.transitions:
        if transition.is_default:
            continue
        evaluation = evaluate_condition_groups(
            transition.condition_groups, context, with_details=True
        )
        details.extend(evaluation.details)
        if evaluation.passed:
            return transition, MatchKind.CONDITIONS, tuple(details)

    return stage.default_transition(), MatchKind.DEFAULT, tuple(details)


def _destination(definition: FlowDefinition, transition: Transition) -> Stage | None:
    """Stage the transition lands on; ``None`` terminates without a stage."""
    if transition.target_stage_id is not None:
        stage = definition.stage_by_id(transition.target_stage_id)
        if stage is None:
            raise StageNotFoundError(transition.target_stage_id, definition.id or None)
        return stage
    if is_terminal_status(transition.to):
        return None
    # status doubles as the stage key
    return definition.stage_by_status(transition.to)


def _context_iteration_count(context: EvaluationContext) -> int:
    workflow: Any = context.workflow or {}
    value = workflow.get("iterationCount") if isinstance(workflow, Mapping) else None
    if isinstance(value, bool) or not isinstance(value, int):
        return 0
    return value
