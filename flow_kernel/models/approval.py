"""
Module: flow_kernel.models.approval
Responsibility: ORM persistence for approval instances.

Architecture position: Kernel > Models.  May import from db/base.py and the
    domain codec.

Invariants enforced:
    - Valid status values are not constrained in the database: flows may
      declare custom statuses.  Terminal immutability is enforced by the
      state machine and re-checked by ApprovalService against the row it
      writes.
    - Optimistic locking: row_version is the mapper's version_id_col, so
      an UPDATE that lost a race matches zero rows and SQLAlchemy raises
      StaleDataError (surfaced as OptimisticLockError).
    - history lives in the metadata JSON column and is only ever replaced
      by a longer list.

Failure modes:
    - StaleDataError on flush after a concurrent commit.
    - FlowDecodeError from to_dto() on a corrupted metadata column.
"""

from __future__ import annotations

from datetime import datetime
from typing import Any
from uuid import UUID

from sqlalchemy import JSON, DateTime, ForeignKey, Index, Integer, String
from sqlalchemy.orm import Mapped, mapped_column

from flow_kernel.db.base import TrackedBase, UUIDString
from flow_kernel.domain.approval import ApprovalInstance
from flow_kernel.domain.codec import approval_from_dict, approval_to_dict


class ApprovalModel(TrackedBase):
    """Persistent approval instance bound to one flow version."""

    __tablename__ = "approvals"

    __table_args__ = (
        Index("idx_approval_flow", "flow_id"),
        Index("idx_approval_status", "status"),
    )

    title: Mapped[str] = mapped_column(String(300), default="", nullable=False)
    flow_id: Mapped[UUID] = mapped_column(
        UUIDString(),
        ForeignKey("approval_flows.id", ondelete="RESTRICT"),
        nullable=False,
    )
    flow_version_id: Mapped[UUID | None] = mapped_column(
        UUIDString(),
        ForeignKey("flow_versions.id", ondelete="RESTRICT"),
        nullable=True,
    )
    requester_id: Mapped[str | None] = mapped_column(String(128), nullable=True)
    status: Mapped[str] = mapped_column(String(50), nullable=False)
    current_stage_id: Mapped[str | None] = mapped_column(String(128), nullable=True)
    payload: Mapped[dict[str, Any]] = mapped_column(JSON, nullable=False)
    approval_metadata: Mapped[dict[str, Any] | None] = mapped_column(
        "metadata", JSON, nullable=True,
    )
    submitted_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    completed_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True), nullable=True,
    )
    row_version: Mapped[int] = mapped_column(Integer, nullable=False)

    __mapper_args__ = {"version_id_col": row_version}

    def __repr__(self) -> str:
        return (
            f"<Approval {self.id} flow={self.flow_id} "
            f"stage={self.current_stage_id} status={self.status}>"
        )

    def to_dto(self) -> ApprovalInstance:
        """Convert ORM model to frozen domain instance."""
        return approval_from_dict({
            "id": str(self.id),
            "flowId": str(self.flow_id),
            "flowVersionId": str(self.flow_version_id) if self.flow_version_id else None,
            "title": self.title,
            "requesterId": self.requester_id,
            "status": self.status,
            "currentStageId": self.current_stage_id,
            "payload": self.payload,
            "metadata": self.approval_metadata or {},
            "submittedAt": self.submitted_at,
            "completedAt": self.completed_at,
        })

    @classmethod
    def from_dto(cls, dto: ApprovalInstance) -> ApprovalModel:
        """Create ORM model from a freshly opened approval."""
        model = cls(
            id=UUID(dto.id),
            flow_id=UUID(dto.flow_id),
            flow_version_id=UUID(dto.flow_version_id) if dto.flow_version_id else None,
            title=dto.title,
            requester_id=dto.requester_id,
            created_by=dto.requester_id,
        )
        model.apply_state(dto)
        return model

    def apply_state(self, dto: ApprovalInstance) -> None:
        """Copy the mutable part of an approval snapshot onto the row."""
        data = approval_to_dict(dto)
        self.status = dto.status
        self.current_stage_id = dto.current_stage_id
        self.payload = data["payload"]
        # new dict every time so the JSON column is flagged dirty
        self.approval_metadata = data["metadata"]
        self.submitted_at = dto.submitted_at
        self.completed_at = dto.completed_at
