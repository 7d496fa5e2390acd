"""
Tests for the flow authoring CLI (scripts/flow_cli.py).
"""

import json
from pathlib import Path

import pytest
import yaml

from scripts.flow_cli import EXIT_BAD_INPUT, EXIT_FAILED, EXIT_OK, main
from tests.conftest import review_flow_dict

SETS_DIR = Path(__file__).resolve().parents[2] / "flow_config" / "sets"
PURCHASE_FLOW = str(SETS_DIR / "purchase_request.yaml")


def write_json(path: Path, data) -> str:
    path.write_text(json.dumps(data))
    return str(path)


class TestValidateCommand:
    def test_shipped_flow_is_valid(self, capsys):
        assert main(["validate", PURCHASE_FLOW]) == EXIT_OK
        assert "VALID:" in capsys.readouterr().out

    def test_invalid_flow(self, tmp_path, capsys):
        data = review_flow_dict()
        data["stages"][1]["status"] = "undeclared"
        path = tmp_path / "bad.yaml"
        path.write_text(yaml.safe_dump(data))

        assert main(["validate", str(path)]) == EXIT_FAILED
        out = capsys.readouterr().out
        assert "ERROR: Stage 'revision' has unrecognized status 'undeclared'" in out
        assert "INVALID:" in out

    def test_missing_file(self, tmp_path, capsys):
        assert main(["validate", str(tmp_path / "missing.yaml")]) == EXIT_BAD_INPUT
        assert "Error:" in capsys.readouterr().err

    def test_unreadable_yaml(self, tmp_path):
        path = tmp_path / "broken.yaml"
        path.write_text("stages: [unclosed\n")
        assert main(["validate", str(path)]) == EXIT_BAD_INPUT


class TestPathCommand:
    def test_valid_path(self, capsys):
        code = main(["path", PURCHASE_FLOW, "in_process", "finance_review", "approved"])
        assert code == EXIT_OK
        assert "VALID PATH" in capsys.readouterr().out

    def test_invalid_path(self, capsys):
        code = main(["path", PURCHASE_FLOW, "in_process", "end"])
        assert code == EXIT_FAILED
        out = capsys.readouterr().out
        assert 'No transition from "in_process" to "end" in flow.' in out
        assert "INVALID PATH" in out


class TestEvaluateCommand:
    def test_passing_conditions(self, tmp_path, capsys):
        conditions = write_json(tmp_path / "conditions.json", {
            "operator": "AND",
            "conditions": [{"id": "big", "field": "amount", "operator": ">", "value": 100}],
        })
        context = write_json(tmp_path / "context.json", {"resource": {"amount": 500}})

        assert main(["evaluate", conditions, context]) == EXIT_OK
        output = json.loads(capsys.readouterr().out)
        assert output["passed"] is True
        assert len(output["details"]) == 1

    def test_failing_conditions(self, tmp_path, capsys):
        conditions = write_json(
            tmp_path / "conditions.json", {"field": "amount", "operator": ">", "value": 100}
        )
        context = write_json(tmp_path / "context.json", {"resource": {"amount": 5}})

        assert main(["evaluate", conditions, context]) == EXIT_FAILED
        assert json.loads(capsys.readouterr().out)["passed"] is False

    def test_undecodable_conditions(self, tmp_path):
        conditions = write_json(tmp_path / "conditions.json", ["not", "an", "object"])
        context = write_json(tmp_path / "context.json", {})
        assert main(["evaluate", conditions, context]) == EXIT_BAD_INPUT


class TestCatalogCommand:
    def test_lists_shipped_flows(self, capsys):
        assert main(["catalog", "--config-dir", str(SETS_DIR)]) == EXIT_OK
        out = capsys.readouterr().out
        assert "purchase-request" in out
        assert "leave-request" in out

    def test_missing_directory(self, tmp_path):
        assert main(["catalog", "--config-dir", str(tmp_path / "nope")]) == EXIT_BAD_INPUT


def test_command_is_required():
    with pytest.raises(SystemExit):
        main([])
