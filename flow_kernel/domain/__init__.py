"""
Pure domain layer.

This module contains immutable value objects and boundary codecs with
NO dependencies on:
- ORM (SQLAlchemy)
- Database
- Time/clock (except the injectable Clock interface)
- I/O
"""

from flow_kernel.domain.approval import (
    ActionRecord,
    ApprovalDecision,
    ApprovalInstance,
    EvaluationContext,
    MatchKind,
    ResolvedTransition,
)
from flow_kernel.domain.clock import Clock, DeterministicClock, SystemClock
from flow_kernel.domain.conditions import (
    EMPTINESS_OPERATORS,
    NUMERIC_OPERATORS,
    UNRESOLVED,
    Condition,
    ConditionDetail,
    ConditionEvaluation,
    ConditionGroup,
    ConditionNode,
    LogicalOperator,
    Operator,
    PredicateResult,
    iter_leaves,
)
from flow_kernel.domain.flow import (
    BUILTIN_STATUSES,
    TERMINAL_STATUSES,
    ApprovalStatus,
    FlowDefinition,
    FlowPathEvaluation,
    FlowValidationResult,
    FlowVersion,
    Stage,
    Transition,
    is_terminal_status,
)
from flow_kernel.domain.versioning import (
    is_semantic_version,
    next_patch_version,
    restore_flow_version,
    snapshot_flow,
)

__all__ = [
    # Conditions
    "Operator",
    "LogicalOperator",
    "Condition",
    "ConditionGroup",
    "ConditionNode",
    "ConditionDetail",
    "ConditionEvaluation",
    "PredicateResult",
    "UNRESOLVED",
    "EMPTINESS_OPERATORS",
    "NUMERIC_OPERATORS",
    "iter_leaves",
    # Flow
    "ApprovalStatus",
    "BUILTIN_STATUSES",
    "TERMINAL_STATUSES",
    "is_terminal_status",
    "FlowDefinition",
    "Stage",
    "Transition",
    "FlowVersion",
    "FlowValidationResult",
    "FlowPathEvaluation",
    # Approval
    "ApprovalInstance",
    "ActionRecord",
    "ApprovalDecision",
    "EvaluationContext",
    "MatchKind",
    "ResolvedTransition",
    # Versioning
    "next_patch_version",
    "is_semantic_version",
    "snapshot_flow",
    "restore_flow_version",
    # Clock
    "Clock",
    "SystemClock",
    "DeterministicClock",
]
