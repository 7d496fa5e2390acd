"""
Unit tests for flow_engines.predicate.

Field resolution, operator semantics and totality of leaf evaluation.
"""

from decimal import Decimal

import pytest

from flow_engines.predicate import (
    as_text,
    compare_values,
    evaluate_predicate,
    is_empty,
    loose_equal,
    resolve_field,
    to_decimal,
)
from flow_kernel.domain.approval import EvaluationContext
from flow_kernel.domain.conditions import UNRESOLVED, Condition, Operator


def make_context(**resource):
    return {"resource": resource}


# =============================================================================
# Field resolution
# =============================================================================


class TestResolveField:
    def test_top_level_resource_field(self):
        assert resolve_field(make_context(amount=15000), "amount") == 15000

    def test_dotted_path_walks_nested_mappings(self):
        ctx = make_context(vendor={"address": {"country": "DE"}})
        assert resolve_field(ctx, "vendor.address.country") == "DE"

    def test_list_index_segment(self):
        ctx = make_context(items=[{"sku": "A-1"}, {"sku": "B-2"}])
        assert resolve_field(ctx, "items.1.sku") == "B-2"

    def test_list_index_out_of_range_is_unresolved(self):
        ctx = make_context(items=[{"sku": "A-1"}])
        assert resolve_field(ctx, "items.3.sku") is UNRESOLVED

    def test_literal_dotted_key_wins(self):
        ctx = make_context(**{"cost.center": "CC-9", "cost": {"center": "other"}})
        assert resolve_field(ctx, "cost.center") == "CC-9"

    def test_missing_field_is_unresolved(self):
        assert resolve_field(make_context(amount=1), "missing") is UNRESOLVED

    def test_walking_through_scalar_is_unresolved(self):
        assert resolve_field(make_context(amount=1), "amount.value") is UNRESOLVED

    def test_requester_section(self):
        ctx = {"resource": {}, "requester": {"department": "finance"}}
        assert resolve_field(ctx, "requester.department") == "finance"

    def test_current_approver_section(self):
        ctx = {"resource": {}, "currentApprover": {"role": "cfo"}}
        assert resolve_field(ctx, "currentApprover.role") == "cfo"

    def test_workflow_section(self):
        ctx = EvaluationContext(workflow={"iterationCount": 3})
        assert resolve_field(ctx, "workflow.iterationCount") == 3

    def test_absent_section_falls_back_to_resource(self):
        ctx = make_context(metadata={"source": "web"})
        assert resolve_field(ctx, "metadata.source") == "web"

    def test_none_context(self):
        assert resolve_field(None, "amount") is UNRESOLVED

    def test_payload_key_is_accepted_as_resource(self):
        assert resolve_field({"payload": {"amount": 5}}, "amount") == 5

    def test_null_resource_falls_back_to_payload(self):
        context = EvaluationContext.from_mapping({"resource": None, "payload": {"amount": 5}})
        assert context.resource == {"amount": 5}
        assert resolve_field({"resource": None, "payload": {"amount": 5}}, "amount") == 5

    def test_default_resources_are_empty_and_separate(self):
        first, second = EvaluationContext(), EvaluationContext()
        assert first.resource == {}
        assert first.resource is not second.resource


# =============================================================================
# Coercions
# =============================================================================


class TestCoercions:
    @pytest.mark.parametrize("value, expected", [
        (10, Decimal("10")),
        ("10000.50", Decimal("10000.50")),
        (" 42 ", Decimal("42")),
        (0.1, Decimal("0.1")),
        (Decimal("3.5"), Decimal("3.5")),
    ])
    def test_to_decimal_numbers(self, value, expected):
        assert to_decimal(value) == expected

    @pytest.mark.parametrize("value", [
        None, UNRESOLVED, True, False, "", "abc", "NaN", "Infinity", [1], {"a": 1},
    ])
    def test_to_decimal_non_numbers(self, value):
        assert to_decimal(value) is None

    def test_as_text_canonicalizes_numbers(self):
        assert as_text(10.0) == "10"
        assert as_text(Decimal("1.500")) == "1.5"
        assert as_text(0) == "0"

    def test_as_text_booleans(self):
        assert as_text(True) == "true"
        assert as_text(False) == "false"

    def test_as_text_of_unresolved_is_none(self):
        assert as_text(UNRESOLVED) is None
        assert as_text(None) is None

    def test_is_empty(self):
        assert is_empty(UNRESOLVED)
        assert is_empty(None)
        assert is_empty("")
        assert is_empty([])
        assert not is_empty("x")
        assert not is_empty([0])
        assert not is_empty(0)


# =============================================================================
# Operators
# =============================================================================


class TestNumericOperators:
    def test_amount_over_threshold(self):
        condition = Condition("amount", Operator.GT, 10000)
        result = evaluate_predicate(condition, make_context(amount=15000))

        assert result.passed is True
        assert result.actual_value == 15000
        assert result.expected_value == 10000

    @pytest.mark.parametrize("operator, actual, expected, passed", [
        (">", 5, 4, True),
        (">", 4, 4, False),
        (">=", 4, 4, True),
        ("<", "3", 4, True),
        ("<=", 4, "4.0", True),
        (">", "10001", "10000", True),
    ])
    def test_comparisons(self, operator, actual, expected, passed):
        assert compare_values(actual, operator, expected) is passed

    def test_non_numeric_operand_fails(self):
        assert compare_values("abc", ">", 1) is False
        assert compare_values(5, ">", "abc") is False

    def test_unresolved_operand_fails(self):
        assert compare_values(UNRESOLVED, "<", 100) is False

    def test_boolean_is_not_a_number(self):
        assert compare_values(True, ">", 0) is False


class TestEquality:
    def test_loose_equality_across_types(self):
        assert loose_equal("10", 10)
        assert loose_equal(10.0, 10)
        assert loose_equal(True, "true")
        assert loose_equal(None, None)

    def test_string_forms_must_match(self):
        assert not loose_equal("10.0", 10)
        assert not loose_equal("High", "high")

    def test_sequences_and_mappings(self):
        assert loose_equal([1, "2"], ["1", 2])
        assert loose_equal({"a": 1}, {"a": "1"})
        assert not loose_equal([1, 2], [2, 1])

    def test_unresolved_never_equal(self):
        assert not loose_equal(UNRESOLVED, None)
        assert compare_values(UNRESOLVED, "==", None) is False

    def test_not_equal(self):
        assert compare_values("high", "!=", "low") is True
        assert compare_values("high", "!=", "high") is False

    def test_not_equal_on_unresolved_passes(self):
        result = evaluate_predicate(Condition("missing", "!=", "x"), make_context())
        assert result.passed is True
        assert result.actual_value is UNRESOLVED


class TestMembership:
    def test_string_contains(self):
        assert compare_values("net 30 days", "CONTAINS", "30") is True
        assert compare_values("net 30 days", "CONTAINS", "60") is False

    def test_list_contains(self):
        assert compare_values(["it", "ops"], "CONTAINS", "ops") is True
        assert compare_values([1, 2], "CONTAINS", "2") is True

    def test_contains_on_inapplicable_type_fails_both_ways(self):
        assert compare_values(42, "CONTAINS", 4) is False
        assert compare_values(42, "NOT_CONTAINS", 4) is False
        assert compare_values(UNRESOLVED, "NOT_CONTAINS", "x") is False

    def test_not_contains(self):
        assert compare_values(["it"], "NOT_CONTAINS", "ops") is True
        assert compare_values("abc", "NOT_CONTAINS", "b") is False

    def test_in(self):
        assert compare_values("DE", "IN", ["DE", "FR"]) is True
        assert compare_values("US", "IN", ["DE", "FR"]) is False
        assert compare_values("5", "IN", [5, 6]) is True

    def test_in_requires_list_value(self):
        assert compare_values("DE", "IN", "DE") is False
        assert compare_values("DE", "NOT_IN", "DE") is False

    def test_not_in(self):
        assert compare_values("US", "NOT_IN", ["DE", "FR"]) is True
        assert compare_values(UNRESOLVED, "NOT_IN", ["DE"]) is False

    def test_affixes(self):
        assert compare_values("INV-2024-001", "STARTS_WITH", "INV-") is True
        assert compare_values("report.pdf", "ENDS_WITH", ".pdf") is True
        assert compare_values(12345, "STARTS_WITH", 12) is True
        assert compare_values(None, "ENDS_WITH", "x") is False
        assert compare_values(["a"], "STARTS_WITH", "a") is False


class TestEmptiness:
    def test_is_empty_on_missing_field(self):
        result = evaluate_predicate(Condition("attachments", "IS_EMPTY"), make_context())
        assert result.passed is True
        assert result.expected_value is None

    def test_is_empty_ignores_value(self):
        condition = Condition("attachments", Operator.IS_EMPTY, value="ignored")
        result = evaluate_predicate(condition, make_context(attachments=[]))
        assert result.passed is True
        assert result.expected_value is None

    def test_is_not_empty(self):
        condition = Condition("attachments", Operator.IS_NOT_EMPTY)
        assert evaluate_predicate(condition, make_context(attachments=["q.pdf"])).passed
        assert not evaluate_predicate(condition, make_context(attachments="")).passed


class TestTotality:
    def test_unknown_operator_fails_without_raising(self):
        assert compare_values(1, "~=", 1) is False

    def test_unknown_operator_rejected_at_construction(self):
        with pytest.raises(ValueError):
            Condition("amount", "~=", 1)

    def test_empty_field_rejected_at_construction(self):
        with pytest.raises(ValueError):
            Condition("", Operator.EQ, 1)

    def test_unorderable_values_fail(self):
        assert compare_values({"a": 1}, ">", {"b": 2}) is False
