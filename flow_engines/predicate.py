"""
flow_engines.predicate -- Leaf condition evaluation.

Responsibility:
    Resolve a dotted field path against an evaluation context and compare
    it with a condition's value using one of the fixed operators.

Architecture position:
    Engines -- pure calculation layer, zero I/O.
    May only import flow_kernel/domain/ types.

Invariants enforced:
    - Totality: ``evaluate_predicate`` never raises.  Unresolved paths,
      type mismatches and unknown operators all yield ``passed=False``
      (``!=`` against an unresolved field is the one operator that passes).
    - Loose equality: ``==``/``!=`` compare normalized string forms so
      stored JSON (``"10"``) and literal values (``10``) compare equal.
    - Numeric operators compare as ``Decimal``; floats never leak into
      the comparison.
"""

from __future__ import annotations

from decimal import Decimal, InvalidOperation
from typing import Any, Callable, Mapping

from flow_kernel.domain.approval import EvaluationContext
from flow_kernel.domain.conditions import (
    EMPTINESS_OPERATORS,
    UNRESOLVED,
    Condition,
    Operator,
    PredicateResult,
)

# Context sections addressable by a path prefix (``requester.department``)
_SECTIONS: dict[str, str] = {
    "resource": "resource",
    "requester": "requester",
    "currentApprover": "current_approver",
    "workflow": "workflow",
    "metadata": "metadata",
}

_NULL_KEY = ("null",)


def as_context(context: EvaluationContext | Mapping[str, Any] | None) -> EvaluationContext:
    """Accept a context object or its JSON-shaped dict."""
    if isinstance(context, EvaluationContext):
        return context
    if isinstance(context, Mapping):
        return EvaluationContext.from_mapping(context)
    return EvaluationContext()


def resolve_field(
    context: EvaluationContext | Mapping[str, Any] | None,
    field: str,
) -> Any:
    """Resolve ``field`` against the context.

    A key present at the top of ``resource`` wins; a known section prefix
    walks that section; anything else walks ``resource`` by dotted path.
    Returns ``UNRESOLVED`` when any segment is missing.
    """
    ctx = as_context(context)
    resource = ctx.resource
    if isinstance(resource, Mapping) and field in resource:
        return resource[field]

    root, _, rest = field.partition(".")
    if rest and root in _SECTIONS:
        section = getattr(ctx, _SECTIONS[root])
        if section is not None:
            return _walk(section, rest)

    return _walk(resource, field)


def _walk(obj: Any, path: str) -> Any:
    current = obj
    for segment in path.split("."):
        if current is None or current is UNRESOLVED or not segment:
            return UNRESOLVED
        if isinstance(current, Mapping):
            if segment not in current:
                return UNRESOLVED
            current = current[segment]
        elif isinstance(current, (list, tuple)):
            if not segment.isdigit() or int(segment) >= len(current):
                return UNRESOLVED
            current = current[int(segment)]
        elif hasattr(current, "__dict__") and segment in vars(current):
            current = vars(current)[segment]
        else:
            return UNRESOLVED
    return current


# ---------------------------------------------------------------------------
# Coercions
# ---------------------------------------------------------------------------


def to_decimal(value: Any) -> Decimal | None:
    """Numeric coercion; ``None`` for anything that is not a finite number."""
    if value is None or value is UNRESOLVED or isinstance(value, bool):
        return None
    if isinstance(value, Decimal):
        number = value
    elif isinstance(value, int):
        number = Decimal(value)
    elif isinstance(value, float):
        number = Decimal(str(value))
    elif isinstance(value, str):
        text = value.strip()
        if not text:
            return None
        try:
            number = Decimal(text)
        except InvalidOperation:
            return None
    else:
        return None
    return number if number.is_finite() else None


def _canonical_number(number: Decimal) -> str:
    if number == 0:
        return "0"
    return format(number.normalize(), "f")


def as_text(value: Any) -> str | None:
    """String form used by substring and prefix/suffix operators."""
    if value is None or value is UNRESOLVED:
        return None
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, (int, float, Decimal)):
        number = to_decimal(value)
        return _canonical_number(number) if number is not None else str(value)
    if isinstance(value, str):
        return value
    return None


def _normalized(value: Any) -> Any:
    if value is None:
        return _NULL_KEY
    if isinstance(value, (list, tuple)):
        return ("seq", tuple(_normalized(item) for item in value))
    if isinstance(value, Mapping):
        return ("map", tuple(sorted((str(k), _normalized(v)) for k, v in value.items())))
    text = as_text(value)
    return text if text is not None else str(value)


def loose_equal(actual: Any, expected: Any) -> bool:
    """``==`` semantics: equal after normalizing both sides to string form."""
    if actual is UNRESOLVED or expected is UNRESOLVED:
        return False
    return _normalized(actual) == _normalized(expected)


def is_empty(value: Any) -> bool:
    if value is UNRESOLVED or value is None:
        return True
    if isinstance(value, str):
        return value == ""
    if isinstance(value, (list, tuple)):
        return len(value) == 0
    return False


# ---------------------------------------------------------------------------
# Comparators
# ---------------------------------------------------------------------------


def _numeric(compare: Callable[[Decimal, Decimal], bool]) -> Callable[[Any, Any], bool]:
    def comparator(actual: Any, expected: Any) -> bool:
        left = to_decimal(actual)
        right = to_decimal(expected)
        if left is None or right is None:
            return False
        return compare(left, right)

    return comparator


def _equals(actual: Any, expected: Any) -> bool:
    return loose_equal(actual, expected)


def _not_equals(actual: Any, expected: Any) -> bool:
    if actual is UNRESOLVED:
        return True
    return not loose_equal(actual, expected)


def _contains(actual: Any, expected: Any) -> bool | None:
    """Membership/substring; ``None`` when the actual type does not apply."""
    if isinstance(actual, str):
        needle = as_text(expected)
        if needle is None:
            return None
        return needle in actual
    if isinstance(actual, (list, tuple)):
        return any(loose_equal(item, expected) for item in actual)
    return None


def _contains_op(actual: Any, expected: Any) -> bool:
    return _contains(actual, expected) is True


def _not_contains_op(actual: Any, expected: Any) -> bool:
    return _contains(actual, expected) is False


def _membership(actual: Any, expected: Any) -> bool | None:
    if actual is UNRESOLVED or not isinstance(expected, (list, tuple)):
        return None
    return any(loose_equal(actual, item) for item in expected)


def _in_op(actual: Any, expected: Any) -> bool:
    return _membership(actual, expected) is True


def _not_in_op(actual: Any, expected: Any) -> bool:
    return _membership(actual, expected) is False


def _affix(check: Callable[[str, str], bool]) -> Callable[[Any, Any], bool]:
    def comparator(actual: Any, expected: Any) -> bool:
        left = as_text(actual)
        right = as_text(expected)
        if left is None or right is None:
            return False
        return check(left, right)

    return comparator


_COMPARATORS: dict[Operator, Callable[[Any, Any], bool]] = {
    Operator.GT: _numeric(lambda a, b: a > b),
    Operator.LT: _numeric(lambda a, b: a < b),
    Operator.GTE: _numeric(lambda a, b: a >= b),
    Operator.LTE: _numeric(lambda a, b: a <= b),
    Operator.EQ: _equals,
    Operator.NEQ: _not_equals,
    Operator.CONTAINS: _contains_op,
    Operator.NOT_CONTAINS: _not_contains_op,
    Operator.IN: _in_op,
    Operator.NOT_IN: _not_in_op,
    Operator.STARTS_WITH: _affix(str.startswith),
    Operator.ENDS_WITH: _affix(str.endswith),
    Operator.IS_EMPTY: lambda actual, _: is_empty(actual),
    Operator.IS_NOT_EMPTY: lambda actual, _: not is_empty(actual),
}


def compare_values(actual: Any, operator: Operator | str, expected: Any) -> bool:
    """Apply ``operator``; unknown operators and mismatched types fail."""
    try:
        comparator = _COMPARATORS.get(Operator(operator))
    except ValueError:
        return False
    if comparator is None:
        return False
    try:
        return bool(comparator(actual, expected))
    except (TypeError, ValueError, ArithmeticError):
        return False


def evaluate_predicate(
    condition: Condition,
    context: EvaluationContext | Mapping[str, Any] | None,
) -> PredicateResult:
    """Evaluate one leaf condition.

    Returns:
        PredicateResult with ``passed`` and the raw actual/expected values
        for diagnostics.  Never raises.
    """
    expected = None if condition.operator in EMPTINESS_OPERATORS else condition.value
    actual = resolve_field(context, condition.field)
    return PredicateResult(
        passed=compare_values(actual, condition.operator, expected),
        actual_value=actual,
        expected_value=expected,
    )
