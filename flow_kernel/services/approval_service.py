"""
flow_kernel.services.approval_service -- Approval lifecycle management.

Responsibility:
    Opens approvals against a flow's active version and advances them by
    delegating routing to the pure engine (resolve_for_approval +
    apply_transition), then persists the result.

Architecture position:
    Kernel > Services.  May import from domain/, models/, db/ and
    flow_engines.

Invariants enforced:
    - An approval is bound to the flow version active at creation; later
      flow updates never change how it routes.
    - Commits are serialized per approval: the row is loaded FOR UPDATE and
      written under an optimistic row_version check, so the terminal check
      is made against the state that is actually written.  A lost race
      surfaces as OptimisticLockError, never as a double-applied action.
    - Engine failures are logged (warning) and re-raised unchanged.

Failure modes:
    - ApprovalNotFoundError / FlowNotFoundError on unknown ids.
    - Any ResolutionError or CommitError from the engine.
    - OptimisticLockError on a concurrent commit.
"""

from __future__ import annotations

from typing import Any, Mapping
from uuid import UUID, uuid4

from sqlalchemy import select

from flow_kernel.domain.approval import (
    ApprovalInstance,
    EvaluationContext,
    ResolvedTransition,
)
from flow_kernel.domain.flow import FlowDefinition
from flow_kernel.exceptions import (
    ApprovalNotFoundError,
    FlowKernelError,
    FlowNotFoundError,
    OptimisticLockError,
)
from flow_kernel.logging_config import LogContext, get_logger
from flow_kernel.models.approval import ApprovalModel
from flow_kernel.models.flow import ApprovalFlowModel, FlowVersionModel
from flow_kernel.services.base import BaseService, parse_uuid
from flow_engines.resolver import resolve_for_approval
from flow_engines.state_machine import apply_transition, open_approval

logger = get_logger("services.approval")


class ApprovalService(BaseService):
    """Creates approvals and applies actions to them."""

    def create_approval(
        self,
        flow_id: UUID | str,
        *,
        title: str = "",
        requester_id: str | None = None,
        payload: Mapping[str, Any] | None = None,
    ) -> ApprovalInstance:
        """Open an approval in the first stage of the flow's active version."""
        key = parse_uuid(flow_id)
        flow = self.session.get(ApprovalFlowModel, key) if key is not None else None
        if flow is None:
            raise FlowNotFoundError(str(flow_id))

        approval = open_approval(
            flow.to_dto(),
            approval_id=str(uuid4()),
            flow_version_id=str(flow.active_version_id) if flow.active_version_id else None,
            title=title,
            requester_id=requester_id,
            payload=payload,
            submitted_at=self.clock.now(),
        )

        with LogContext.bind(approval_id=approval.id, flow_id=approval.flow_id):
            model = ApprovalModel.from_dto(approval)
            self.session.add(model)
            self.session.flush()

            logger.info(
                "approval_created",
                extra={
                    "title": title,
                    "requester_id": requester_id,
                    "flow_version_id": approval.flow_version_id,
                    "stage_id": approval.current_stage_id,
                },
            )
            return model.to_dto()

    def preview(
        self,
        approval_id: UUID | str,
        action: str | None = None,
        *,
        requester: Mapping[str, Any] | None = None,
        current_approver: Mapping[str, Any] | None = None,
        metadata: Mapping[str, Any] | None = None,
    ) -> ResolvedTransition:
        """Resolve the next transition without applying it."""
        model = self._load_approval_model(approval_id)
        approval = model.to_dto()
        context = EvaluationContext.for_approval(
            approval, requester, current_approver, metadata,
        )
        return resolve_for_approval(self._definition_for(model), approval, action, context)

    def act(
        self,
        approval_id: UUID | str,
        actor_id: str,
        action: str | None = None,
        comment: str | None = None,
        *,
        requester: Mapping[str, Any] | None = None,
        current_approver: Mapping[str, Any] | None = None,
        metadata: Mapping[str, Any] | None = None,
    ) -> ApprovalInstance:
        """Resolve and apply one action, persisting the new state.

        Args:
            approval_id: Approval to advance.
            actor_id: Who acts; recorded in history, not authorized here.
            action: Destination token, or None for condition-driven routing.
            comment: Free text; defaults to "Moved to <stage>".
            requester / current_approver / metadata: Extra context
                sections conditions may read.
        """
        with LogContext.bind(approval_id=str(approval_id), actor_id=actor_id):
            model = self._load_approval_model(approval_id, for_update=True)
            approval = model.to_dto()
            context = EvaluationContext.for_approval(
                approval, requester, current_approver, metadata,
            )

            try:
                resolved = resolve_for_approval(
                    self._definition_for(model), approval, action, context,
                )
                updated = apply_transition(
                    approval, resolved, actor_id, comment, decided_at=self.clock.now(),
                )
            except FlowKernelError as exc:
                logger.warning(
                    "approval_action_rejected",
                    extra={
                        "error_code": exc.code,
                        "action": action,
                        "status": approval.status,
                        "stage_id": approval.current_stage_id,
                        "reason": str(exc),
                    },
                )
                raise

            model.apply_state(updated)
            try:
                self._flush_versioned("Approval", model.id)
            except OptimisticLockError:
                logger.warning(
                    "approval_action_rejected",
                    extra={"error_code": OptimisticLockError.code, "action": action},
                )
                raise

            logger.info(
                "approval_action_applied",
                extra={
                    "action": action,
                    "matched_by": resolved.matched_by.value,
                    "from_stage_id": resolved.from_stage_id,
                    "to_stage_id": resolved.next_stage_id,
                    "status": updated.status,
                    "decision": updated.history[-1].decision.value,
                    "iteration_count": updated.iteration_count,
                },
            )
            return updated

    def get_approval(self, approval_id: UUID | str) -> ApprovalInstance:
        return self._load_approval_model(approval_id).to_dto()

    def list_approvals(
        self,
        *,
        flow_id: UUID | str | None = None,
        status: str | None = None,
    ) -> list[ApprovalInstance]:
        """Approvals, oldest submission first, optionally filtered."""
        stmt = select(ApprovalModel).order_by(ApprovalModel.submitted_at)
        if flow_id is not None:
            stmt = stmt.where(ApprovalModel.flow_id == parse_uuid(flow_id))
        if status is not None:
            stmt = stmt.where(ApprovalModel.status == status)
        return [row.to_dto() for row in self.session.execute(stmt).scalars().all()]

    # ------------------------------------------------------------------

    def _definition_for(self, model: ApprovalModel) -> FlowDefinition:
        """The definition an approval routes by: its bound version's snapshot."""
        if model.flow_version_id is not None:
            version = self.session.get(FlowVersionModel, model.flow_version_id)
            if version is not None:
                return version.to_dto().snapshot
        flow = self.session.get(ApprovalFlowModel, model.flow_id)
        if flow is None:
            raise FlowNotFoundError(str(model.flow_id))
        return flow.to_dto()

    def _load_approval_model(
        self,
        approval_id: UUID | str,
        for_update: bool = False,
    ) -> ApprovalModel:
        key = parse_uuid(approval_id)
        model = None
        if key is not None:
            stmt = select(ApprovalModel).where(ApprovalModel.id == key)
            if for_update:
                stmt = stmt.with_for_update()
            model = self.session.execute(stmt).scalar_one_or_none()
        if model is None:
            raise ApprovalNotFoundError(str(approval_id))
        return model
