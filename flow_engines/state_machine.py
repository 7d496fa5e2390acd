"""
flow_engines.state_machine -- Committing a resolved transition.

Responsibility:
    Open new approvals at the first stage of a flow and apply a
    ``ResolvedTransition`` to an approval, producing its next immutable
    snapshot with one more history record.

Architecture position:
    Engines -- pure calculation layer, zero I/O.  Timestamps are passed
    in by the caller; this module never reads a clock.

Invariants enforced:
    - Terminal approvals are never replaced: a second delivery of the
      same action fails with ``AlreadyTerminalError``.
    - A resolution computed against another stage is refused
      (``StaleResolutionError``), so a stale read cannot double-apply.
    - History is append-only.
"""

from __future__ import annotations

from dataclasses import replace
from datetime import datetime
from types import MappingProxyType
from typing import Any, Mapping

from flow_kernel.domain.approval import (
    ActionRecord,
    ApprovalDecision,
    ApprovalInstance,
    ResolvedTransition,
)
from flow_kernel.domain.flow import (
    ApprovalStatus,
    FlowDefinition,
    is_terminal_status,
)
from flow_kernel.exceptions import (
    AlreadyTerminalError,
    StageNotFoundError,
    StaleResolutionError,
)

_TERMINAL_DECISIONS: dict[str, ApprovalDecision] = {
    ApprovalStatus.APPROVED.value: ApprovalDecision.APPROVE,
    ApprovalStatus.REJECT.value: ApprovalDecision.REJECT,
    ApprovalStatus.END.value: ApprovalDecision.END,
}


def open_approval(
    definition: FlowDefinition,
    *,
    approval_id: str,
    flow_version_id: str | None = None,
    title: str = "",
    requester_id: str | None = None,
    payload: Mapping[str, Any] | None = None,
    submitted_at: datetime | None = None,
) -> ApprovalInstance:
    """A new approval in the flow's first stage with status ``in_process``."""
    first = definition.first_stage
    if first is None:
        raise StageNotFoundError(None, definition.id or None)
    return ApprovalInstance(
        id=approval_id,
        flow_id=definition.id,
        status=ApprovalStatus.IN_PROCESS.value,
        current_stage_id=first.id,
        flow_version_id=flow_version_id,
        title=title,
        requester_id=requester_id,
        payload=MappingProxyType(dict(payload or {})),
        submitted_at=submitted_at,
    )


def derive_decision(approval: ApprovalInstance, resolved: ResolvedTransition) -> ApprovalDecision:
    """Classify what the transition does to the approval."""
    decision = _TERMINAL_DECISIONS.get(resolved.next_status)
    if decision is not None:
        return decision
    if resolved.next_stage_id is not None and resolved.next_stage_id in approval.stage_entries():
        return ApprovalDecision.RETURN
    return ApprovalDecision.ADVANCE


def apply_transition(
    approval: ApprovalInstance,
    resolved: ResolvedTransition,
    actor_id: str,
    comment: str | None = None,
    *,
    decided_at: datetime | None = None,
) -> ApprovalInstance:
    """Apply ``resolved`` and return the approval's next snapshot.

    Raises:
        AlreadyTerminalError: The approval is already in a final state.
        StaleResolutionError: ``resolved`` was computed for another stage.
    """
    if approval.is_terminal:
        raise AlreadyTerminalError(approval.id, approval.status)
    if resolved.from_stage_id != approval.current_stage_id:
        raise StaleResolutionError(resolved.from_stage_id, approval.current_stage_id)

    terminal = is_terminal_status(resolved.next_status)
    record = ActionRecord(
        from_stage_id=approval.current_stage_id,
        to_stage_id=resolved.next_stage_id,
        status=resolved.next_status,
        actor_id=actor_id,
        decision=derive_decision(approval, resolved),
        comment=comment or f"Moved to {resolved.next_stage_name or resolved.next_status}",
        decided_at=decided_at,
    )

    return replace(
        approval,
        status=resolved.next_status,
        current_stage_id=None if terminal else resolved.next_stage_id,
        previous_stage_id=approval.current_stage_id,
        iteration_count=resolved.iteration_count,
        history=approval.history + (record,),
        completed_at=decided_at if terminal else approval.completed_at,
    )
