"""
flow_config -- YAML flow catalog and host settings.

Responsibility:
    Provides ``get_flow_catalog()``, which loads every flow file under a
    sets directory, validates each with the engine's validator, and
    returns a frozen ``FlowCatalog``.  Environment settings live in
    ``flow_config.settings``.

Architecture position:
    Configuration -- sits above ``flow_kernel`` and ``flow_engines``.
    The kernel MUST NEVER import from ``flow_config``.

Invariants enforced:
    - Only structurally valid flows enter a catalog.
    - Flow ids are unique within a catalog.
    - Deterministic: the same files always produce the same checksums.

Failure modes:
    - ``FileNotFoundError`` -- the sets directory does not exist.
    - ``FlowDecodeError`` -- a file's shape cannot be decoded.
    - ``FlowValidationError`` -- a flow fails structural validation.
    - ``ValueError`` -- two files declare the same flow id.

Audit relevance:
    Every successful ``get_flow_catalog()`` call emits a
    ``FLOW_CONFIG_TRACE`` log entry listing each flow's id, version and
    checksum.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path
from types import MappingProxyType
from typing import Iterator, Mapping

from flow_config.loader import compute_checksum, load_flow_file
from flow_kernel.domain.codec import flow_definition_to_dict
from flow_kernel.domain.flow import FlowDefinition
from flow_kernel.logging_config import get_logger
from flow_engines.validator import ensure_valid_flow_definition

_logger = get_logger("config")

# Default flow sets directory
_DEFAULT_CONFIG_DIR = Path(__file__).parent / "sets"


@dataclass(frozen=True)
class FlowCatalog:
    """Validated flows keyed by id, with a checksum per flow."""

    flows: Mapping[str, FlowDefinition] = field(default_factory=lambda: MappingProxyType({}))
    checksums: Mapping[str, str] = field(default_factory=lambda: MappingProxyType({}))
    source_dir: Path | None = None

    def get(self, flow_id: str) -> FlowDefinition:
        """Raises KeyError for an unknown id."""
        return self.flows[flow_id]

    def __contains__(self, flow_id: object) -> bool:
        return flow_id in self.flows

    def __iter__(self) -> Iterator[FlowDefinition]:
        return iter(self.flows.values())

    def __len__(self) -> int:
        return len(self.flows)


def get_flow_catalog(config_dir: Path | None = None) -> FlowCatalog:
    """Load, validate and index every ``*.yaml`` / ``*.yml`` flow file.

    Args:
        config_dir: Override path to the flow sets directory.
            Defaults to flow_config/sets/.

    Raises:
        FileNotFoundError, FlowDecodeError, FlowValidationError, ValueError.
    """
    sets_dir = Path(config_dir) if config_dir is not None else _DEFAULT_CONFIG_DIR
    if not sets_dir.is_dir():
        raise FileNotFoundError(f"Flow sets directory not found: {sets_dir}")

    flows: dict[str, FlowDefinition] = {}
    checksums: dict[str, str] = {}
    sources: dict[str, Path] = {}

    paths = sorted([*sets_dir.glob("*.yaml"), *sets_dir.glob("*.yml")])
    for path in paths:
        flow = load_flow_file(path)
        ensure_valid_flow_definition(flow)
        if flow.id in flows:
            raise ValueError(
                f"Duplicate flow id {flow.id!r} in {path.name} and {sources[flow.id].name}"
            )
        flows[flow.id] = flow
        checksums[flow.id] = compute_checksum(flow_definition_to_dict(flow))
        sources[flow.id] = path

    _logger.info(
        "FLOW_CONFIG_TRACE",
        extra={
            "trace_type": "FLOW_CONFIG_TRACE",
            "config_dir": str(sets_dir),
            "flow_count": len(flows),
            "flows": [
                {"id": fid, "version": flows[fid].version, "checksum": checksums[fid]}
                for fid in flows
            ],
        },
    )

    return FlowCatalog(
        flows=MappingProxyType(flows),
        checksums=MappingProxyType(checksums),
        source_dir=sets_dir,
    )


__all__ = [
    "FlowCatalog",
    "get_flow_catalog",
]
