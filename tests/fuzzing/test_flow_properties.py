"""
Property-based tests for the approval flow engine.

Boundaries fuzzed here:
- Predicates: every operator against arbitrary JSON values never raises
- Condition trees: detailed and short-circuit evaluation agree, one
  detail per leaf, AND/OR behave as conjunction/disjunction
- Validator: generated linear flows validate; a duplicated status never does
- State machine: random action sequences never modify a terminal approval
  and never shrink history
"""

from hypothesis import HealthCheck, given, settings
from hypothesis import strategies as st

import pytest

from flow_engines.conditions import evaluate, evaluate_with_details
from flow_engines.predicate import compare_values, evaluate_predicate
from flow_engines.resolver import resolve_for_approval
from flow_engines.state_machine import apply_transition, open_approval
from flow_engines.validator import validate_flow_definition_detailed
from flow_kernel.domain.codec import flow_definition_from_dict
from flow_kernel.domain.conditions import (
    Condition,
    ConditionGroup,
    LogicalOperator,
    Operator,
    iter_leaves,
)
from flow_kernel.exceptions import AlreadyTerminalError, ResolutionError
from tests.conftest import review_flow_dict, stage_dict

# Autouse fixtures only clear LogContext; they hold no per-example state.
settings.register_profile(
    "flow-properties",
    suppress_health_check=[HealthCheck.function_scoped_fixture, HealthCheck.too_slow],
)
settings.load_profile("flow-properties")

# =============================================================================
# Strategies
# =============================================================================

json_scalars = st.one_of(
    st.none(),
    st.booleans(),
    st.integers(min_value=-10**12, max_value=10**12),
    st.floats(allow_nan=True, allow_infinity=True),
    st.text(max_size=12),
)

json_values = st.recursive(
    json_scalars,
    lambda children: st.one_of(
        st.lists(children, max_size=4),
        st.dictionaries(st.text(max_size=6), children, max_size=4),
    ),
    max_leaves=12,
)

FIELDS = ["amount", "riskLevel", "tags", "missing", "requester.level", "workflow.iterationCount"]

CONTEXT = {
    "resource": {"amount": 15000, "riskLevel": "high", "tags": ["it", "urgent"]},
    "requester": {"level": 3},
    "workflow": {"iterationCount": 2},
}

leaves = st.builds(
    Condition,
    field=st.sampled_from(FIELDS),
    operator=st.sampled_from(list(Operator)),
    value=json_scalars,
)

trees = st.recursive(
    leaves,
    lambda children: st.builds(
        ConditionGroup,
        operator=st.sampled_from(list(LogicalOperator)),
        children=st.lists(children, min_size=1, max_size=4).map(tuple),
    ),
    max_leaves=25,
)


# =============================================================================
# Predicates
# =============================================================================


class TestPredicateTotality:
    @given(actual=json_values, operator=st.sampled_from(list(Operator)), expected=json_values)
    @settings(max_examples=300)
    def test_compare_values_never_raises(self, actual, operator, expected):
        assert compare_values(actual, operator, expected) in (True, False)

    @given(resource=st.dictionaries(st.sampled_from(FIELDS), json_values), condition=leaves)
    @settings(max_examples=200)
    def test_evaluate_predicate_never_raises(self, resource, condition):
        result = evaluate_predicate(condition, {"resource": resource})
        assert result.passed in (True, False)

    @given(
        operator=st.sampled_from(list(Operator)),
        field=st.text(alphabet="abcdefghijklmnopqrstuvwxyz_", min_size=1, max_size=20),
    )
    def test_missing_field_only_passes_not_equal_and_emptiness(self, operator, field):
        condition = Condition(field, operator, "x")
        passed = evaluate_predicate(condition, {"resource": {}}).passed
        if operator in (Operator.NEQ, Operator.IS_EMPTY):
            assert passed is True
        else:
            assert passed is False


# =============================================================================
# Condition trees
# =============================================================================


class TestConditionTrees:
    @given(tree=trees)
    @settings(max_examples=200)
    def test_one_detail_per_leaf(self, tree):
        evaluation = evaluate_with_details(tree, CONTEXT)
        leaves_in_order = iter_leaves(tree)

        assert len(evaluation.details) == len(leaves_in_order)
        assert [d.field for d in evaluation.details] == [c.field for c in leaves_in_order]

    @given(tree=trees)
    @settings(max_examples=200)
    def test_short_circuit_agrees_with_details(self, tree):
        assert evaluate(tree, CONTEXT).passed == evaluate_with_details(tree, CONTEXT).passed

    @given(left=trees, right=trees)
    @settings(max_examples=100)
    def test_and_or_laws(self, left, right):
        a = evaluate(left, CONTEXT).passed
        b = evaluate(right, CONTEXT).passed

        both = ConditionGroup(LogicalOperator.AND, (left, right))
        either = ConditionGroup(LogicalOperator.OR, (left, right))
        assert evaluate(both, CONTEXT).passed == (a and b)
        assert evaluate(either, CONTEXT).passed == (a or b)


# =============================================================================
# Validator
# =============================================================================


def linear_flow(length: int) -> dict:
    """A chain of custom-status stages ending in approval."""
    statuses = [f"step_{i}" for i in range(1, length)]
    stages = [stage_dict("s0", "in_process", [{"to": statuses[0] if statuses else "approved"}])]
    for i, status in enumerate(statuses, start=1):
        nxt = statuses[i] if i < len(statuses) else "approved"
        stages.append(stage_dict(f"s{i}", status, [{"to": nxt, "isDefault": True}]))
    stages.append(stage_dict("done", "approved"))
    return {"version": "1.0.0", "customStatuses": statuses, "stages": stages}


class TestValidatorProperties:
    @given(length=st.integers(min_value=1, max_value=12))
    def test_linear_flows_are_valid(self, length):
        result = validate_flow_definition_detailed(linear_flow(length))
        assert result.is_valid, result.errors
        assert result.warnings == []

    @given(length=st.integers(min_value=2, max_value=12), data=st.data())
    def test_duplicated_status_is_an_error(self, length, data):
        flow = linear_flow(length)
        stages = flow["stages"]
        source = data.draw(st.integers(min_value=0, max_value=len(stages) - 1))
        target = data.draw(
            st.integers(min_value=0, max_value=len(stages) - 1).filter(lambda i: i != source)
        )
        stages[target]["status"] = stages[source]["status"]

        assert not validate_flow_definition_detailed(flow).is_valid


# =============================================================================
# State machine
# =============================================================================


ACTIONS = st.sampled_from([None, "approve", "reject", "return", "resubmit", "bogus"])


class TestStateMachineProperties:
    @given(
        actions=st.lists(ACTIONS, max_size=15),
        amount=st.integers(min_value=0, max_value=50000),
        max_iterations=st.one_of(st.none(), st.integers(min_value=1, max_value=3)),
    )
    @settings(max_examples=200)
    def test_terminal_is_final_and_history_grows(self, actions, amount, max_iterations):
        definition = flow_definition_from_dict(review_flow_dict(max_iterations))
        approval = open_approval(definition, approval_id="P-1", payload={"amount": amount})

        for action in actions:
            before = approval
            try:
                resolved = resolve_for_approval(definition, approval, action)
                approval = apply_transition(approval, resolved, "actor")
            except AlreadyTerminalError:
                assert before.is_terminal
                continue
            except ResolutionError:
                assert approval is before
                continue

            assert not before.is_terminal
            assert len(approval.history) == len(before.history) + 1
            assert approval.history[:-1] == before.history
            assert approval.iteration_count == before.iteration_count + 1
            if approval.is_terminal:
                assert approval.current_stage_id is None
            else:
                assert definition.stage_by_id(approval.current_stage_id) is not None

        if approval.is_terminal:
            with pytest.raises(AlreadyTerminalError):
                resolve_for_approval(definition, approval, "approve")
