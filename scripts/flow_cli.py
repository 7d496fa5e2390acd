#!/usr/bin/env python3
"""
Flow authoring CLI: validate flow files, walk status paths, and try
conditions against a context without a database.

Usage:
    python scripts/flow_cli.py validate flow_config/sets/purchase_request.yaml
    python scripts/flow_cli.py path flow.yaml in_process finance_review approved
    python scripts/flow_cli.py evaluate conditions.json context.json
    python scripts/flow_cli.py catalog [--config-dir DIR]

Exit codes:
    0  valid / passed
    1  invalid / failed
    2  the input could not be read or decoded
"""

import argparse
import json
import sys
from pathlib import Path

import yaml

# Add project root to path
ROOT = Path(__file__).resolve().parent.parent
sys.path.insert(0, str(ROOT))

from flow_config import get_flow_catalog
from flow_config.loader import load_flow_file, load_yaml_file
from flow_config.settings import EngineSettings
from flow_engines import (
    evaluate_conditions_with_details,
    evaluate_flow_path,
    validate_flow_definition_detailed,
)
from flow_kernel.domain.codec import condition_node_from_dict, evaluation_to_dict
from flow_kernel.exceptions import FlowDefinitionError
from flow_kernel.logging_config import configure_logging

EXIT_OK = 0
EXIT_FAILED = 1
EXIT_BAD_INPUT = 2


def _read_document(path: Path):
    """JSON or YAML, by extension."""
    if path.suffix.lower() == ".json":
        with open(path) as f:
            return json.load(f)
    return load_yaml_file(path)


def cmd_validate(args) -> int:
    data = load_yaml_file(Path(args.flow))
    result = validate_flow_definition_detailed(data)
    for err in result.errors:
        print(f"  ERROR: {err}")
    for w in result.warnings:
        print(f"  WARNING: {w}")
    if not result.is_valid:
        print(f"INVALID: {args.flow} ({len(result.errors)} errors)")
        return EXIT_FAILED
    print(f"VALID: {args.flow}")
    return EXIT_OK


def cmd_path(args) -> int:
    flow = load_flow_file(Path(args.flow))
    evaluation = evaluate_flow_path(flow, args.statuses)
    for issue in evaluation.issues:
        print(f"  ISSUE: {issue}")
    print("VALID PATH" if evaluation.is_valid else "INVALID PATH")
    return EXIT_OK if evaluation.is_valid else EXIT_FAILED


def cmd_evaluate(args) -> int:
    node = condition_node_from_dict(_read_document(Path(args.conditions)), "conditions")
    context = _read_document(Path(args.context))
    evaluation = evaluate_conditions_with_details(node, context)
    print(json.dumps(evaluation_to_dict(evaluation), indent=2, default=str))
    return EXIT_OK if evaluation.passed else EXIT_FAILED


def cmd_catalog(args) -> int:
    config_dir = Path(args.config_dir) if args.config_dir else EngineSettings.from_env().config_dir
    catalog = get_flow_catalog(config_dir)
    for flow in catalog:
        print(f"{flow.id:<24} v{flow.version:<10} {len(flow.stages):>3} stages  "
              f"{catalog.checksums[flow.id][:16]}")
    return EXIT_OK


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="flow_cli",
        description="Validate and exercise approval flow definitions.",
    )
    sub = parser.add_subparsers(dest="command", required=True)

    p = sub.add_parser("validate", help="Structurally validate a YAML flow file")
    p.add_argument("flow", help="Path to a flow YAML file")
    p.set_defaults(func=cmd_validate)

    p = sub.add_parser("path", help="Check a status sequence against a flow")
    p.add_argument("flow", help="Path to a flow YAML file")
    p.add_argument("statuses", nargs="*", help="Ordered statuses to walk")
    p.set_defaults(func=cmd_path)

    p = sub.add_parser("evaluate", help="Evaluate a condition tree against a context")
    p.add_argument("conditions", help="JSON/YAML condition or condition group")
    p.add_argument("context", help="JSON/YAML evaluation context")
    p.set_defaults(func=cmd_evaluate)

    p = sub.add_parser("catalog", help="Load and list every flow in a sets directory")
    p.add_argument("--config-dir", default=None, help="Flow sets directory")
    p.set_defaults(func=cmd_catalog)

    return parser


def main(argv=None) -> int:
    args = build_parser().parse_args(argv)
    configure_logging(level=EngineSettings.from_env().log_level)
    try:
        return args.func(args)
    except (OSError, yaml.YAMLError, json.JSONDecodeError, FlowDefinitionError, ValueError) as exc:
        print(f"Error: {exc}", file=sys.stderr)
        return EXIT_BAD_INPUT


if __name__ == "__main__":
    sys.exit(main())
