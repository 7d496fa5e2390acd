"""
Flow definition domain types (``flow_kernel.domain.flow``).

Responsibility
--------------
Pure value objects for a declarative approval flow: the ``FlowDefinition``
stage graph, its ``Stage`` nodes and ``Transition`` edges, immutable
``FlowVersion`` snapshots, and the result records of structural
validation and path evaluation.

Architecture position
---------------------
**Kernel domain layer** -- pure value objects.  ZERO I/O.  No imports
from ``db/``, ``models/``, ``services/`` or outer layers.

Invariants enforced
-------------------
* Terminal statuses (``approved``, ``reject``, ``end``) are fixed; custom
  statuses declared by a definition are always non-terminal.
* Everything here is frozen; a definition is replaced, never edited.
* Graph well-formedness (unique statuses, no dangling targets, at most
  one default per stage) is checked by ``flow_engines.validator``, not
  at construction, so that malformed input can still be reported on.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from types import MappingProxyType
from typing import Any, Mapping

from flow_kernel.domain.conditions import ConditionNode


class ApprovalStatus(str, Enum):
    """Built-in approval statuses."""

    IN_PROCESS = "in_process"
    APPROVED = "approved"
    REJECT = "reject"
    END = "end"


BUILTIN_STATUSES: frozenset[str] = frozenset(s.value for s in ApprovalStatus)

TERMINAL_STATUSES: frozenset[str] = frozenset({
    ApprovalStatus.APPROVED.value,
    ApprovalStatus.REJECT.value,
    ApprovalStatus.END.value,
})


def is_terminal_status(status: str | None) -> bool:
    """True for ``approved``, ``reject`` and ``end``."""
    if status is None:
        return False
    return str(getattr(status, "value", status)) in TERMINAL_STATUSES


def _empty_mapping() -> Mapping[str, Any]:
    return MappingProxyType({})


@dataclass(frozen=True)
class Transition:
    """A directed edge from its owning stage to a target status/stage.

    ``target_stage_id=None`` means the approval lands on ``to`` without
    naming a stage explicitly.
    """

    to: str
    target_stage_id: str | None = None
    label: str | None = None
    condition_groups: tuple[ConditionNode, ...] = ()
    is_default: bool = False

    @property
    def is_conditioned(self) -> bool:
        return bool(self.condition_groups)


@dataclass(frozen=True)
class Stage:
    """One node of a flow definition.

    ``notification`` and ``events`` are carried as opaque data; the engine
    never interprets them.
    """

    id: str
    status: str
    name: str
    description: str = ""
    actor: str = ""
    actor_user_id: str | None = None
    transitions: tuple[Transition, ...] = ()
    max_iterations: int | None = None
    notification: Mapping[str, Any] | None = None
    events: tuple[Mapping[str, Any], ...] = ()

    @property
    def is_terminal(self) -> bool:
        return is_terminal_status(self.status)

    def default_transition(self) -> Transition | None:
        for transition in self.transitions:
            if transition.is_default:
                return transition
        return None


@dataclass(frozen=True)
class FlowDefinition:
    """A versioned, declarative stage graph.

    Contract: frozen.  ``stages`` is ordered; the first stage is where
    new approvals start.  ``active_version_id`` points at the
    ``FlowVersion`` whose snapshot the definition currently mirrors.
    """

    stages: tuple[Stage, ...]
    id: str = ""
    name: str = ""
    description: str = ""
    version: str = "1.0.0"
    custom_statuses: tuple[str, ...] = ()
    metadata: Mapping[str, Any] = field(default_factory=_empty_mapping)
    active_version_id: str | None = None

    @property
    def first_stage(self) -> Stage | None:
        return self.stages[0] if self.stages else None

    @property
    def known_statuses(self) -> frozenset[str]:
        return BUILTIN_STATUSES | frozenset(self.custom_statuses)

    def stage_by_id(self, stage_id: str | None) -> Stage | None:
        if stage_id is None:
            return None
        for stage in self.stages:
            if stage.id == stage_id:
                return stage
        return None

    def stage_by_status(self, status: str | None) -> Stage | None:
        if status is None:
            return None
        for stage in self.stages:
            if stage.status == status:
                return stage
        return None


@dataclass(frozen=True)
class FlowVersion:
    """Immutable snapshot of a flow definition, taken on every update.

    ``snapshot.active_version_id`` is always ``None``; the pointer lives on
    the live definition.
    """

    id: str
    flow_id: str
    snapshot: FlowDefinition
    is_active: bool = False
    created_by: str | None = None
    created_at: datetime | None = None

    @property
    def version(self) -> str:
        return self.snapshot.version


# =========================================================================
# Structural results
# =========================================================================


@dataclass
class FlowValidationResult:
    """
    Result of structural validation.

    Contract
    --------
    * ``is_valid`` returns ``True`` only when ``errors`` is empty.
    * Warnings (e.g. unreachable stages) never block a definition.
    """

    errors: list[str] = field(default_factory=list)
    warnings: list[str] = field(default_factory=list)

    @property
    def is_valid(self) -> bool:
        return len(self.errors) == 0

    def add_error(self, msg: str) -> None:
        self.errors.append(msg)

    def add_warning(self, msg: str) -> None:
        self.warnings.append(msg)


@dataclass(frozen=True)
class FlowPathEvaluation:
    """Whether a literal status sequence is walkable in a definition."""

    is_valid: bool
    issues: tuple[str, ...] = ()
