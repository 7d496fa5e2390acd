"""
flow_engines.conditions -- AND/OR condition tree evaluation.

Responsibility:
    Evaluate a condition node (leaf or arbitrarily nested group) against
    an evaluation context, optionally collecting one diagnostic record per
    leaf.  Also evaluates a transition's list of groups (AND across groups).

Architecture position:
    Engines -- pure calculation layer, zero I/O.

Invariants enforced:
    - Stack safety: traversal is iterative with an explicit frame stack,
      so nesting depth is bounded only by memory.
    - Detail completeness: ``evaluate_with_details`` visits every leaf,
      depth-first and left-to-right, and never short-circuits.
    - ``evaluate`` may short-circuit; its ``passed`` always equals the
      detailed variant's.
"""

from __future__ import annotations

from typing import Any, Mapping, Sequence

from flow_kernel.domain.approval import EvaluationContext
from flow_kernel.domain.conditions import (
    Condition,
    ConditionDetail,
    ConditionEvaluation,
    ConditionGroup,
    ConditionNode,
    LogicalOperator,
)
from flow_engines.predicate import as_context, evaluate_predicate

ContextLike = EvaluationContext | Mapping[str, Any] | None


class _Frame:
    """A group being evaluated: its children cursor and running outcome."""

    __slots__ = ("group", "index", "outcome")

    def __init__(self, group: ConditionGroup):
        self.group = group
        self.index = 0
        # AND starts true and can only fall; OR starts false and can only rise
        self.outcome = group.operator == LogicalOperator.AND

    @property
    def exhausted(self) -> bool:
        return self.index >= len(self.group.children)

    @property
    def settled(self) -> bool:
        if self.group.operator == LogicalOperator.AND:
            return not self.outcome
        return self.outcome

    def record(self, passed: bool) -> None:
        if self.group.operator == LogicalOperator.AND:
            self.outcome = self.outcome and passed
        else:
            self.outcome = self.outcome or passed


def _detail(condition: Condition, passed: bool, actual: Any, expected: Any) -> ConditionDetail:
    return ConditionDetail(
        condition_id=condition.id,
        field=condition.field,
        operator=condition.operator.value,
        actual_value=actual,
        expected_value=expected,
        passed=passed,
    )


def _run(
    node: ConditionNode,
    context: EvaluationContext,
    short_circuit: bool,
    details: list[ConditionDetail] | None,
) -> bool:
    if isinstance(node, Condition):
        result = evaluate_predicate(node, context)
        if details is not None:
            details.append(_detail(node, result.passed, result.actual_value, result.expected_value))
        return result.passed

    stack = [_Frame(node)]
    outcome = False
    while stack:
        frame = stack[-1]
        if frame.exhausted or (short_circuit and frame.settled):
            stack.pop()
            outcome = frame.outcome
            if stack:
                stack[-1].record(outcome)
            continue

        child = frame.group.children[frame.index]
        frame.index += 1
        if isinstance(child, ConditionGroup):
            stack.append(_Frame(child))
            continue

        result = evaluate_predicate(child, context)
        if details is not None:
            details.append(_detail(child, result.passed, result.actual_value, result.expected_value))
        frame.record(result.passed)

    return outcome


def evaluate(node: ConditionNode, context: ContextLike) -> ConditionEvaluation:
    """Evaluate a node; may short-circuit, returns no details."""
    return ConditionEvaluation(passed=_run(node, as_context(context), True, None))


def evaluate_with_details(node: ConditionNode, context: ContextLike) -> ConditionEvaluation:
    """Evaluate a node and report every leaf, without short-circuiting."""
    details: list[ConditionDetail] = []
    passed = _run(node, as_context(context), False, details)
    return ConditionEvaluation(passed=passed, details=tuple(details))


def evaluate_condition_groups(
    groups: Sequence[ConditionNode] | None,
    context: ContextLike,
    with_details: bool = False,
) -> ConditionEvaluation:
    """AND across a transition's groups; an empty list passes.

    With ``with_details`` every group is evaluated and reported even after
    one has failed.
    """
    if not groups:
        return ConditionEvaluation(passed=True)

    ctx = as_context(context)
    if not with_details:
        return ConditionEvaluation(
            passed=all(_run(group, ctx, True, None) for group in groups)
        )

    details: list[ConditionDetail] = []
    passed = True
    for group in groups:
        passed = _run(group, ctx, False, details) and passed
    return ConditionEvaluation(passed=passed, details=tuple(details))
