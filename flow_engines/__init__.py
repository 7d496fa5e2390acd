"""
Module: flow_engines
Responsibility:
    Package entrypoint that re-exports the public surface of the approval
    flow engine.  This is the canonical import surface for host services
    (flow_kernel.services) and the CLI.

Architecture position:
    Engines -- pure calculation layer, zero I/O.
    May only import flow_kernel/domain (and sibling engine modules).
    MUST NOT import flow_kernel.services, flow_kernel.db or flow_config.

Invariants enforced:
    - Purity: engines NEVER call ``datetime.now()``.  Timestamps are
      passed in as explicit parameters by the services.
    - Determinism: identical inputs always produce identical outputs.
    - No module-level mutable state; evaluations can run concurrently.

Failure modes:
    - ``ResolutionError`` subclasses from ``resolve_transition``.
    - ``CommitError`` subclasses from ``apply_transition``.
    - Predicate and condition evaluation never raise.

Usage:
    from flow_engines import resolve_transition, apply_transition
    from flow_engines import validate_flow_definition, evaluate_flow_path
"""

from flow_engines.conditions import (
    evaluate as evaluate_conditions,
    evaluate_condition_groups,
    evaluate_with_details as evaluate_conditions_with_details,
)
from flow_engines.path import evaluate_flow_path, status_graph
from flow_engines.predicate import (
    compare_values,
    evaluate_predicate,
    resolve_field,
)
from flow_engines.resolver import resolve_for_approval, resolve_transition
from flow_engines.state_machine import apply_transition, derive_decision, open_approval
from flow_engines.validator import (
    ensure_valid_flow_definition,
    validate_flow_definition,
    validate_flow_definition_detailed,
)

__all__ = [
    # Predicate
    "evaluate_predicate",
    "resolve_field",
    "compare_values",
    # Conditions
    "evaluate_conditions",
    "evaluate_conditions_with_details",
    "evaluate_condition_groups",
    # Validator
    "validate_flow_definition",
    "validate_flow_definition_detailed",
    "ensure_valid_flow_definition",
    # Resolution and commit
    "resolve_transition",
    "resolve_for_approval",
    "open_approval",
    "apply_transition",
    "derive_decision",
    # Path
    "evaluate_flow_path",
    "status_graph",
]
