"""
Flow file loader (``flow_config.loader``).

Responsibility
--------------
Loads YAML flow files and decodes them into ``FlowDefinition`` instances
through the domain codec.  This is catalog/CLI tooling; services receive
definitions from their callers.

Architecture position
---------------------
**Config layer** -- file I/O.  Depends on ``flow_kernel.domain`` for
decoding and on ``flow_engines.validator`` only through the catalog.

Invariants enforced
-------------------
* YAML is read with ``yaml.safe_load``; no arbitrary object construction.
* Flow files use the same camelCase shape the flow tables store.
* ``compute_checksum`` produces a deterministic SHA-256 hash for flow
  identity and change detection.

Failure modes
-------------
* Missing file  -> ``FileNotFoundError`` propagates.
* Malformed YAML  -> ``yaml.YAMLError`` propagates.
* Shape errors  -> ``FlowDecodeError`` with the path of the bad node.
"""

from __future__ import annotations

from pathlib import Path
from typing import Any

import yaml

from flow_kernel.domain.codec import flow_definition_from_dict
from flow_kernel.domain.flow import FlowDefinition
from flow_kernel.exceptions import FlowDecodeError
from flow_kernel.utils.hashing import hash_payload


def load_yaml_file(path: Path) -> dict[str, Any]:
    """
    Load a single YAML file and return its contents as a dict.

    Postconditions:
        - Returns a ``dict`` (empty if the YAML is empty).
    Raises:
        FileNotFoundError: if the file does not exist.
        yaml.YAMLError: if the file contains invalid YAML.
        FlowDecodeError: if the document is not a mapping.
    """
    with open(path) as f:
        data = yaml.safe_load(f) or {}
    if not isinstance(data, dict):
        raise FlowDecodeError(str(path), "top-level YAML document must be a mapping")
    return data


def parse_flow(data: dict[str, Any], source: str = "definition") -> FlowDefinition:
    """Decode a flow document.  An id defaults to nothing; the catalog fills it."""
    return flow_definition_from_dict(data, source)


def load_flow_file(path: Path) -> FlowDefinition:
    """Load and decode one flow file; the file stem is the default id."""
    data = load_yaml_file(path)
    data.setdefault("id", Path(path).stem)
    return parse_flow(data, str(path))


def compute_checksum(data: dict[str, Any]) -> str:
    """
    Compute SHA-256 checksum of canonical JSON serialization.

    Postconditions:
        - Returns a hex-encoded SHA-256 hash string.
        - Identical ``data`` always produces identical checksums.
    """
    return hash_payload(data)
