"""
Flow versioning helpers (``flow_kernel.domain.versioning``).

Pure functions behind the host's version history: bumping the patch
component on every update, snapshotting a live definition, and checking a
snapshot back out onto the live definition.

Restoring is a checkout, not a merge: every snapshotted field is copied
back verbatim and the active-version pointer moves to the restored
version.  Restoring the same version twice yields the same definition.
"""

from __future__ import annotations

import re
from dataclasses import replace
from datetime import datetime

from flow_kernel.domain.flow import FlowDefinition, FlowVersion

SEMVER_PATTERN = re.compile(r"^(0|[1-9]\d*)\.(0|[1-9]\d*)\.(0|[1-9]\d*)$")


def is_semantic_version(version: str) -> bool:
    return bool(SEMVER_PATTERN.match(version or ""))


def next_patch_version(version: str) -> str:
    """``"1.2.3"`` -> ``"1.2.4"``; a missing or non-numeric patch counts as 0."""
    parts = (version or "").split(".")
    major_minor = ".".join(parts[:2]) if len(parts) >= 2 else f"{parts[0] or '1'}.0"
    try:
        patch = int(parts[2]) if len(parts) > 2 else 0
    except ValueError:
        patch = 0
    return f"{major_minor}.{patch + 1}"


def snapshot_flow(
    flow: FlowDefinition,
    *,
    version_id: str,
    created_by: str | None = None,
    created_at: datetime | None = None,
    is_active: bool = True,
) -> FlowVersion:
    """Freeze the current fields of ``flow`` into a ``FlowVersion``."""
    return FlowVersion(
        id=version_id,
        flow_id=flow.id,
        snapshot=replace(flow, active_version_id=None),
        is_active=is_active,
        created_by=created_by,
        created_at=created_at,
    )


def restore_flow_version(flow: FlowDefinition, version: FlowVersion) -> FlowDefinition:
    """Copy ``version``'s snapshot onto ``flow`` and point it at ``version``.

    Raises:
        ValueError: if the version belongs to a different flow.
    """
    if version.flow_id != flow.id:
        raise ValueError(
            f"Version {version.id} belongs to flow {version.flow_id}, not {flow.id}"
        )
    return replace(version.snapshot, id=flow.id, active_version_id=version.id)
