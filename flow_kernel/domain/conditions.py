"""
Condition domain types (``flow_kernel.domain.conditions``).

Responsibility
--------------
Closed set of tagged variants for transition conditions: a ``Condition``
leaf (field path, operator, comparison value) and a ``ConditionGroup``
combinator (AND/OR over a non-empty tuple of children).  Also defines the
result records produced by the condition engine.

Architecture position
---------------------
**Kernel domain layer** -- pure value objects.  ZERO I/O.

Invariants enforced
-------------------
* Operators are drawn from the fixed ``Operator`` enum.
* A ``ConditionGroup`` always has at least one child.
* Trees are built fresh per decode and never mutated (frozen dataclasses).
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Any, Union


class Operator(str, Enum):
    """Comparison operators for a leaf condition."""

    GT = ">"
    LT = "<"
    GTE = ">="
    LTE = "<="
    EQ = "=="
    NEQ = "!="
    CONTAINS = "CONTAINS"
    NOT_CONTAINS = "NOT_CONTAINS"
    IN = "IN"
    NOT_IN = "NOT_IN"
    STARTS_WITH = "STARTS_WITH"
    ENDS_WITH = "ENDS_WITH"
    IS_EMPTY = "IS_EMPTY"
    IS_NOT_EMPTY = "IS_NOT_EMPTY"


NUMERIC_OPERATORS: frozenset[Operator] = frozenset({
    Operator.GT,
    Operator.LT,
    Operator.GTE,
    Operator.LTE,
})

# Operators that take no comparison value
EMPTINESS_OPERATORS: frozenset[Operator] = frozenset({
    Operator.IS_EMPTY,
    Operator.IS_NOT_EMPTY,
})


class LogicalOperator(str, Enum):
    """Combinators for a condition group."""

    AND = "AND"
    OR = "OR"


class _Unresolved:
    """Marker for a field path that does not resolve in the context."""

    __slots__ = ()

    def __repr__(self) -> str:
        return "UNRESOLVED"

    def __bool__(self) -> bool:
        return False


UNRESOLVED: Any = _Unresolved()


@dataclass(frozen=True)
class Condition:
    """A leaf predicate evaluated against one field of the context.

    ``value`` is ignored for the emptiness operators.
    """

    field: str
    operator: Operator
    value: Any = None
    id: str = ""

    def __post_init__(self) -> None:
        if not self.field:
            raise ValueError("Condition.field must be a non-empty path")
        if not isinstance(self.operator, Operator):
            object.__setattr__(self, "operator", Operator(self.operator))


@dataclass(frozen=True)
class ConditionGroup:
    """AND/OR combinator over an ordered, non-empty tuple of children."""

    operator: LogicalOperator
    children: tuple[ConditionNode, ...]
    id: str = ""

    def __post_init__(self) -> None:
        if not isinstance(self.operator, LogicalOperator):
            object.__setattr__(self, "operator", LogicalOperator(self.operator))
        if not isinstance(self.children, tuple):
            object.__setattr__(self, "children", tuple(self.children))
        if not self.children:
            raise ValueError("ConditionGroup requires at least one child")
        for child in self.children:
            if not isinstance(child, (Condition, ConditionGroup)):
                raise TypeError(
                    f"ConditionGroup child must be Condition or ConditionGroup, "
                    f"got {type(child).__name__}"
                )


ConditionNode = Union[Condition, ConditionGroup]


def iter_leaves(node: ConditionNode) -> list[Condition]:
    """Return every leaf condition in depth-first, left-to-right order."""
    leaves: list[Condition] = []
    stack: list[ConditionNode] = [node]
    while stack:
        current = stack.pop()
        if isinstance(current, Condition):
            leaves.append(current)
        else:
            stack.extend(reversed(current.children))
    return leaves


# =========================================================================
# Evaluation results
# =========================================================================


@dataclass(frozen=True)
class PredicateResult:
    """Outcome of one leaf predicate plus the raw compared values."""

    passed: bool
    actual_value: Any = UNRESOLVED
    expected_value: Any = None


@dataclass(frozen=True)
class ConditionDetail:
    """Diagnostic record for one evaluated leaf condition."""

    condition_id: str
    field: str
    operator: str
    actual_value: Any
    expected_value: Any
    passed: bool


@dataclass(frozen=True)
class ConditionEvaluation:
    """Result of evaluating a condition node or a list of groups."""

    passed: bool
    details: tuple[ConditionDetail, ...] = ()
