"""
flow_kernel.services.flow_service -- Flow definition lifecycle.

Responsibility:
    Create, update, version and restore flow definitions.  Every write is
    validated by the engine first and snapshotted as a FlowVersion.

Architecture position:
    Kernel > Services.  May import from domain/, models/, db/ and
    flow_engines.

Invariants enforced:
    - Only structurally valid definitions are persisted.
    - Every create/update writes a new version row; an update bumps the
      patch number of the current version ("1.2.3" -> "1.2.4").
    - Exactly one version per flow is active.  Deactivating the old
      version, activating the new one and repointing active_version_id
      happen in one flush inside the caller's transaction.
    - Restore is an idempotent checkout: the live flow becomes equal to
      the version snapshot and points at it.

Failure modes:
    - FlowValidationError on a malformed definition.
    - FlowDecodeError on input that cannot become domain types.
    - FlowNotFoundError / FlowVersionNotFoundError on unknown ids.
    - FlowInUseError when deleting a flow approvals still reference.
"""

from __future__ import annotations

from dataclasses import replace
from typing import Any, Mapping
from uuid import UUID, uuid4

from sqlalchemy import func, select

from flow_kernel.domain.codec import flow_definition_from_dict
from flow_kernel.domain.flow import FlowDefinition, FlowVersion
from flow_kernel.domain.versioning import (
    next_patch_version,
    restore_flow_version,
    snapshot_flow,
)
from flow_kernel.exceptions import (
    FlowInUseError,
    FlowNotFoundError,
    FlowVersionNotFoundError,
)
from flow_kernel.logging_config import LogContext, get_logger
from flow_kernel.models.approval import ApprovalModel
from flow_kernel.models.flow import ApprovalFlowModel, FlowVersionModel
from flow_kernel.services.base import BaseService, parse_uuid
from flow_engines.validator import ensure_valid_flow_definition

logger = get_logger("services.flow")


class FlowService(BaseService):
    """Manages flow definitions and their version history."""

    def create_flow(
        self,
        definition: FlowDefinition | Mapping[str, Any],
        *,
        created_by: str | None = None,
    ) -> FlowDefinition:
        """Validate and persist a new flow with its first active version."""
        decoded = self._validated(definition)
        flow_id = uuid4()

        with LogContext.bind(flow_id=str(flow_id), actor_id=created_by):
            model = ApprovalFlowModel(id=flow_id, created_by=created_by)
            model.apply_definition(decoded)
            self.session.add(model)
            self.session.flush()

            version = self._add_version(
                model, replace(decoded, id=str(flow_id)), created_by=created_by
            )
            model.active_version_id = UUID(version.id)
            self.session.flush()

            logger.info(
                "flow_created",
                extra={
                    "flow_name": model.name,
                    "version": model.version,
                    "stage_count": len(decoded.stages),
                    "version_id": version.id,
                },
            )
            return model.to_dto()

    def update_flow(
        self,
        flow_id: UUID | str,
        definition: FlowDefinition | Mapping[str, Any],
        *,
        created_by: str | None = None,
    ) -> FlowDefinition:
        """Replace a flow's definition, bumping the patch version.

        The submitted version string is ignored; the new version is always
        the next patch of the stored one.
        """
        model = self._load_flow_model(flow_id)
        decoded = self._validated(definition)

        with LogContext.bind(flow_id=str(model.id), actor_id=created_by):
            previous_version = model.version
            updated = replace(
                decoded,
                id=str(model.id),
                version=next_patch_version(previous_version),
            )

            self._deactivate_versions(model.id)
            version = self._add_version(model, updated, created_by=created_by)
            model.apply_definition(updated)
            model.active_version_id = UUID(version.id)
            self.session.flush()

            logger.info(
                "flow_version_created",
                extra={
                    "flow_name": model.name,
                    "previous_version": previous_version,
                    "new_version": model.version,
                    "version_id": version.id,
                    "updated_by": created_by or "system",
                },
            )
            return model.to_dto()

    def list_versions(self, flow_id: UUID | str) -> list[FlowVersion]:
        """All versions of a flow, newest first."""
        model = self._load_flow_model(flow_id)
        rows = self.session.execute(
            select(FlowVersionModel)
            .where(FlowVersionModel.flow_id == model.id)
            .order_by(FlowVersionModel.created_at.desc())
        ).scalars().all()
        return [row.to_dto() for row in rows]

    def get_version(self, flow_id: UUID | str, version_id: UUID | str) -> FlowVersion:
        return self._load_version_model(flow_id, version_id).to_dto()

    def restore_version(
        self,
        flow_id: UUID | str,
        version_id: UUID | str,
        *,
        restored_by: str | None = None,
    ) -> FlowDefinition:
        """Check out an earlier version onto the live flow and activate it."""
        model = self._load_flow_model(flow_id)
        version_model = self._load_version_model(model.id, version_id)

        with LogContext.bind(flow_id=str(model.id), actor_id=restored_by):
            previous_version = model.version
            self._deactivate_versions(model.id)
            version_model.is_active = True

            restored = restore_flow_version(model.to_dto(), version_model.to_dto())
            model.apply_definition(restored)
            model.active_version_id = version_model.id
            self.session.flush()

            logger.info(
                "flow_version_restored",
                extra={
                    "version_id": str(version_model.id),
                    "previous_version": previous_version,
                    "restored_version": restored.version,
                },
            )
            return model.to_dto()

    def get_flow(self, flow_id: UUID | str) -> FlowDefinition:
        return self._load_flow_model(flow_id).to_dto()

    def list_flows(self) -> list[FlowDefinition]:
        rows = self.session.execute(
            select(ApprovalFlowModel).order_by(ApprovalFlowModel.name)
        ).scalars().all()
        return [row.to_dto() for row in rows]

    def delete_flow(self, flow_id: UUID | str) -> None:
        """Delete a flow and its versions; refused while approvals use it."""
        model = self._load_flow_model(flow_id)
        in_use = self.session.execute(
            select(func.count()).select_from(ApprovalModel).where(
                ApprovalModel.flow_id == model.id
            )
        ).scalar_one()
        if in_use:
            raise FlowInUseError(str(model.id), in_use)

        self.session.delete(model)
        self.session.flush()
        logger.info("flow_deleted", extra={"flow_id": str(model.id)})

    # ------------------------------------------------------------------

    def _validated(self, definition: FlowDefinition | Mapping[str, Any]) -> FlowDefinition:
        result = ensure_valid_flow_definition(definition)
        for warning in result.warnings:
            logger.warning("flow_validation_warning", extra={"warning": warning})
        if isinstance(definition, FlowDefinition):
            return definition
        return flow_definition_from_dict(definition)

    def _add_version(
        self,
        model: ApprovalFlowModel,
        definition: FlowDefinition,
        *,
        created_by: str | None,
    ) -> FlowVersion:
        version = snapshot_flow(
            definition,
            version_id=str(uuid4()),
            created_by=created_by,
            created_at=self.clock.now(),
            is_active=True,
        )
        self.session.add(FlowVersionModel.from_dto(version))
        self.session.flush()
        return version

    def _deactivate_versions(self, flow_id: UUID) -> None:
        active = self.session.execute(
            select(FlowVersionModel).where(
                FlowVersionModel.flow_id == flow_id,
                FlowVersionModel.is_active.is_(True),
            )
        ).scalars().all()
        for row in active:
            row.is_active = False

    def _load_flow_model(self, flow_id: UUID | str) -> ApprovalFlowModel:
        key = parse_uuid(flow_id)
        model = self.session.get(ApprovalFlowModel, key) if key is not None else None
        if model is None:
            raise FlowNotFoundError(str(flow_id))
        return model

    def _load_version_model(
        self,
        flow_id: UUID | str,
        version_id: UUID | str,
    ) -> FlowVersionModel:
        key = parse_uuid(version_id)
        model = self.session.get(FlowVersionModel, key) if key is not None else None
        if model is None or str(model.flow_id) != str(flow_id):
            raise FlowVersionNotFoundError(str(flow_id), str(version_id))
        return model
