"""
flow_engines.path -- Static walk of a status sequence through a flow.

Checks that every status in a literal path has a stage and that each
consecutive pair is joined by a declared transition.  Used to test flow
definitions without building approvals.
"""

from __future__ import annotations

from typing import Sequence

from flow_kernel.domain.flow import FlowDefinition, FlowPathEvaluation


def status_graph(definition: FlowDefinition) -> dict[str, set[str]]:
    """Status adjacency: a stage's status to the statuses it can move to.

    An edge follows the target stage's status when ``target_stage_id``
    resolves, else the transition's ``to``.
    """
    graph: dict[str, set[str]] = {}
    for stage in definition.stages:
        adjacency = graph.setdefault(stage.status, set())
        for transition in stage.transitions:
            target = definition.stage_by_id(transition.target_stage_id)
            adjacency.add(target.status if target is not None else transition.to)
    return graph


def evaluate_flow_path(
    definition: FlowDefinition,
    statuses: Sequence[str],
) -> FlowPathEvaluation:
    if not statuses:
        return FlowPathEvaluation(
            is_valid=False,
            issues=("Path must contain at least one status.",),
        )

    graph = status_graph(definition)
    issues: list[str] = []

    if statuses[0] not in graph:
        issues.append(f'Stage for status "{statuses[0]}" does not exist in flow.')

    for previous, current in zip(statuses, statuses[1:]):
        if current not in graph:
            issues.append(f'Stage for status "{current}" does not exist in flow.')
            continue
        if current not in graph.get(previous, ()):
            issues.append(f'No transition from "{previous}" to "{current}" in flow.')

    return FlowPathEvaluation(is_valid=not issues, issues=tuple(issues))
