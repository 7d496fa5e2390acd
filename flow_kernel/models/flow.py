"""
Module: flow_kernel.models.flow
Responsibility: ORM persistence for flow definitions and their version
    snapshots.

Architecture position: Kernel > Models.  May import from db/base.py and the
    domain codec (for to_dto/from_dto conversion).

Invariants enforced:
    - The stage graph is stored as the camelCase JSON body produced by the
      domain codec, so stored flows and flow files share one format.
    - Exactly one FlowVersionModel per flow has is_active=True; the service
      flips flags and repoints active_version_id in a single flush.
    - Version rows are written once and never updated except for is_active.

Failure modes:
    - FlowDecodeError from to_dto() if a stored definition was corrupted
      outside the services.
"""

from __future__ import annotations

from datetime import datetime
from typing import Any
from uuid import UUID

from sqlalchemy import JSON, Boolean, DateTime, ForeignKey, Index, String, Text
from sqlalchemy.orm import Mapped, mapped_column, relationship

from flow_kernel.db.base import Base, TrackedBase, UUIDString
from flow_kernel.domain.codec import definition_body_to_dict, flow_definition_from_dict
from flow_kernel.domain.flow import FlowDefinition, FlowVersion


class ApprovalFlowModel(TrackedBase):
    """The live flow definition.

    Mirrors the snapshot of its active version; ``update`` and ``restore``
    in FlowService keep the two in step.
    """

    __tablename__ = "approval_flows"

    __table_args__ = (
        Index("idx_flow_name", "name"),
    )

    name: Mapped[str] = mapped_column(String(200), nullable=False)
    description: Mapped[str] = mapped_column(Text, default="", nullable=False)
    version: Mapped[str] = mapped_column(String(32), nullable=False)
    definition: Mapped[dict[str, Any]] = mapped_column(JSON, nullable=False)
    # "metadata" is reserved on declarative classes
    flow_metadata: Mapped[dict[str, Any] | None] = mapped_column(
        "metadata", JSON, nullable=True,
    )
    active_version_id: Mapped[UUID | None] = mapped_column(UUIDString(), nullable=True)

    versions: Mapped[list["FlowVersionModel"]] = relationship(
        "FlowVersionModel",
        back_populates="flow",
        order_by="FlowVersionModel.created_at",
        cascade="all, delete-orphan",
        lazy="selectin",
    )

    def __repr__(self) -> str:
        return f"<ApprovalFlow {self.id} {self.name} v{self.version}>"

    def to_dto(self) -> FlowDefinition:
        """Convert ORM model to frozen domain definition."""
        return flow_definition_from_dict({
            "id": str(self.id),
            "name": self.name,
            "description": self.description,
            "version": self.version,
            "definition": self.definition,
            "metadata": self.flow_metadata or {},
            "activeVersionId": str(self.active_version_id) if self.active_version_id else None,
        })

    def apply_definition(self, definition: FlowDefinition) -> None:
        """Copy a definition's fields onto the row (id excluded)."""
        self.name = definition.name
        self.description = definition.description
        self.version = definition.version
        self.definition = definition_body_to_dict(definition)
        self.flow_metadata = dict(definition.metadata)


class FlowVersionModel(Base):
    """Immutable snapshot of a flow, taken on every create/update."""

    __tablename__ = "flow_versions"

    __table_args__ = (
        Index("idx_flow_version_flow", "flow_id"),
        Index("idx_flow_version_active", "flow_id", "is_active"),
    )

    flow_id: Mapped[UUID] = mapped_column(
        UUIDString(),
        ForeignKey("approval_flows.id", ondelete="CASCADE"),
        nullable=False,
    )
    version: Mapped[str] = mapped_column(String(32), nullable=False)
    name: Mapped[str] = mapped_column(String(200), nullable=False)
    description: Mapped[str] = mapped_column(Text, default="", nullable=False)
    definition: Mapped[dict[str, Any]] = mapped_column(JSON, nullable=False)
    flow_metadata: Mapped[dict[str, Any] | None] = mapped_column(
        "metadata", JSON, nullable=True,
    )
    is_active: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    created_by: Mapped[str | None] = mapped_column(String(128), nullable=True)

    flow: Mapped["ApprovalFlowModel"] = relationship(
        "ApprovalFlowModel",
        back_populates="versions",
    )

    def __repr__(self) -> str:
        flag = " active" if self.is_active else ""
        return f"<FlowVersion {self.id} flow={self.flow_id} v{self.version}{flag}>"

    def to_dto(self) -> FlowVersion:
        """Convert ORM model to frozen domain version."""
        snapshot = flow_definition_from_dict({
            "id": str(self.flow_id),
            "name": self.name,
            "description": self.description,
            "version": self.version,
            "definition": self.definition,
            "metadata": self.flow_metadata or {},
        })
        return FlowVersion(
            id=str(self.id),
            flow_id=str(self.flow_id),
            snapshot=snapshot,
            is_active=self.is_active,
            created_by=self.created_by,
            created_at=self.created_at,
        )

    @classmethod
    def from_dto(cls, dto: FlowVersion) -> FlowVersionModel:
        """Create ORM model from domain version."""
        return cls(
            id=UUID(dto.id),
            flow_id=UUID(dto.flow_id),
            version=dto.snapshot.version,
            name=dto.snapshot.name,
            description=dto.snapshot.description,
            definition=definition_body_to_dict(dto.snapshot),
            flow_metadata=dict(dto.snapshot.metadata),
            is_active=dto.is_active,
            created_at=dto.created_at,
            created_by=dto.created_by,
        )
