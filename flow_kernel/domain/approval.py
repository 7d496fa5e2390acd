"""
Approval domain types (``flow_kernel.domain.approval``).

Responsibility
--------------
Pure value objects for live approvals: the ``ApprovalInstance`` bound to a
flow version, its append-only ``ActionRecord`` history, the
``EvaluationContext`` that conditions read, and the ``ResolvedTransition``
handed from the resolver to the state machine.

Architecture position
---------------------
**Kernel domain layer** -- pure value objects.  ZERO I/O.

Invariants enforced
-------------------
* ``history`` only grows; the state machine returns a new instance with
  one more record and never rewrites earlier ones.
* Once ``status`` is terminal the instance is never replaced again.
"""

from __future__ import annotations

from collections import Counter
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from types import MappingProxyType
from typing import Any, Mapping

from flow_kernel.domain.conditions import ConditionDetail
from flow_kernel.domain.flow import Transition, is_terminal_status


def _empty_mapping() -> Mapping[str, Any]:
    return MappingProxyType({})


class ApprovalDecision(str, Enum):
    """What an action did to the approval, as recorded in history."""

    APPROVE = "approve"
    REJECT = "reject"
    END = "end"
    RETURN = "return"
    ADVANCE = "advance"


class MatchKind(str, Enum):
    """How the resolver picked a transition."""

    ACTION = "action"
    CONDITIONS = "conditions"
    DEFAULT = "default"


@dataclass(frozen=True)
class ActionRecord:
    """One committed action. Immutable."""

    from_stage_id: str | None
    to_stage_id: str | None
    status: str
    actor_id: str
    decision: ApprovalDecision
    comment: str = ""
    decided_at: datetime | None = None


@dataclass(frozen=True)
class ApprovalInstance:
    """Immutable snapshot of an approval request.

    Bound to ``flow_version_id`` at creation; later flow updates do not
    affect it.  ``current_stage_id`` is ``None`` once terminal.
    """

    id: str
    flow_id: str
    status: str
    current_stage_id: str | None
    flow_version_id: str | None = None
    title: str = ""
    requester_id: str | None = None
    payload: Mapping[str, Any] = field(default_factory=_empty_mapping)
    iteration_count: int = 0
    previous_stage_id: str | None = None
    history: tuple[ActionRecord, ...] = ()
    submitted_at: datetime | None = None
    completed_at: datetime | None = None

    @property
    def is_terminal(self) -> bool:
        return is_terminal_status(self.status)

    def stage_entries(self) -> dict[str, int]:
        """How many times each stage has been entered, creation included."""
        entries: Counter[str] = Counter()
        if self.history:
            first = self.history[0].from_stage_id
        else:
            first = self.current_stage_id
        if first is not None:
            entries[first] += 1
        for record in self.history:
            if record.to_stage_id is not None:
                entries[record.to_stage_id] += 1
        return dict(entries)


@dataclass(frozen=True)
class EvaluationContext:
    """Read-only bundle that conditions are evaluated against.

    ``resource`` is the approval payload; the other parts are optional
    records assembled by the host.
    """

    resource: Mapping[str, Any] = field(default_factory=_empty_mapping)
    requester: Mapping[str, Any] | None = None
    current_approver: Mapping[str, Any] | None = None
    workflow: Mapping[str, Any] | None = None
    metadata: Mapping[str, Any] | None = None

    @classmethod
    def from_mapping(cls, data: Mapping[str, Any] | None) -> EvaluationContext:
        """Build from a JSON-shaped dict (camelCase or snake_case keys)."""
        if not data:
            return cls()
        resource = data.get("resource") or data.get("payload")
        return cls(
            resource=resource if isinstance(resource, Mapping) else _empty_mapping(),
            requester=_mapping_or_none(data.get("requester")),
            current_approver=_mapping_or_none(
                data.get("currentApprover", data.get("current_approver"))
            ),
            workflow=_mapping_or_none(data.get("workflow")),
            metadata=_mapping_or_none(data.get("metadata")),
        )

    @classmethod
    def for_approval(
        cls,
        approval: ApprovalInstance,
        requester: Mapping[str, Any] | None = None,
        current_approver: Mapping[str, Any] | None = None,
        metadata: Mapping[str, Any] | None = None,
    ) -> EvaluationContext:
        """Assemble the context for an approval's next action."""
        return cls(
            resource=approval.payload,
            requester=requester,
            current_approver=current_approver,
            workflow={
                "currentStageId": approval.current_stage_id,
                "previousStageId": approval.previous_stage_id,
                "iterationCount": approval.iteration_count,
            },
            metadata=metadata,
        )


def _mapping_or_none(value: Any) -> Mapping[str, Any] | None:
    return value if isinstance(value, Mapping) else None


@dataclass(frozen=True)
class ResolvedTransition:
    """The transition the resolver picked and the state it leads to."""

    transition: Transition
    from_stage_id: str
    next_stage_id: str | None
    next_status: str
    iteration_count: int
    matched_by: MatchKind
    next_stage_name: str | None = None
    revisit: bool = False
    details: tuple[ConditionDetail, ...] = ()
