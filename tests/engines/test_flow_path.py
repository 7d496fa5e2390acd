"""
Unit tests for flow_engines.path.
"""

from flow_engines.path import evaluate_flow_path, status_graph
from flow_kernel.domain.codec import flow_definition_from_dict


class TestStatusGraph:
    def test_edges_follow_target_stage_status(self, review_flow):
        graph = status_graph(review_flow)

        assert graph["in_process"] == {"reject", "revision", "approved"}
        assert graph["revision"] == {"in_process"}
        assert graph["approved"] == set()

    def test_edge_without_target_uses_to(self, two_stage_flow):
        assert status_graph(two_stage_flow) == {"in_process": {"approved"}, "approved": set()}

    def test_target_stage_overrides_to(self):
        definition = flow_definition_from_dict({"stages": [
            {"id": "a", "status": "in_process", "transitions": [
                {"to": "approved", "targetStageId": "b"},
            ]},
            {"id": "b", "status": "reject", "transitions": []},
        ]})
        assert status_graph(definition)["in_process"] == {"reject"}


class TestEvaluateFlowPath:
    def test_two_stage_path_is_valid(self, two_stage_flow):
        evaluation = evaluate_flow_path(two_stage_flow, ["in_process", "approved"])
        assert evaluation.is_valid is True
        assert evaluation.issues == ()

    def test_missing_stage_is_reported(self, two_stage_flow):
        evaluation = evaluate_flow_path(two_stage_flow, ["in_process", "reject"])

        assert evaluation.is_valid is False
        assert evaluation.issues == ('Stage for status "reject" does not exist in flow.',)

    def test_missing_transition_is_reported(self, review_flow):
        evaluation = evaluate_flow_path(review_flow, ["in_process", "revision", "approved"])

        assert evaluation.is_valid is False
        assert evaluation.issues == ('No transition from "revision" to "approved" in flow.',)

    def test_unknown_first_status(self, two_stage_flow):
        evaluation = evaluate_flow_path(two_stage_flow, ["draft"])
        assert evaluation.issues == ('Stage for status "draft" does not exist in flow.',)

    def test_empty_path(self, two_stage_flow):
        evaluation = evaluate_flow_path(two_stage_flow, [])
        assert evaluation.is_valid is False
        assert evaluation.issues == ("Path must contain at least one status.",)

    def test_single_known_status(self, review_flow):
        assert evaluate_flow_path(review_flow, ["revision"]).is_valid is True

    def test_revision_loop(self, review_flow):
        path = ["in_process", "revision", "in_process", "revision", "in_process", "approved"]
        assert evaluate_flow_path(review_flow, path).is_valid is True

    def test_every_issue_is_collected(self, review_flow):
        evaluation = evaluate_flow_path(review_flow, ["approved", "reject", "draft"])
        assert evaluation.issues == (
            'No transition from "approved" to "reject" in flow.',
            'Stage for status "draft" does not exist in flow.',
        )
