"""
Pytest fixtures for the approval flow test suite.

Provides:
- A fresh in-memory SQLite database and session per test
- A DeterministicClock
- Structured log capture
- Flow definition factories shared by engine and service tests
"""

import json
import logging
from io import StringIO
from typing import Any, Generator

import pytest
from sqlalchemy.orm import Session

from flow_kernel.db.engine import (
    create_tables,
    get_session,
    init_engine_from_url,
    reset_engine,
)
from flow_kernel.domain.clock import DeterministicClock
from flow_kernel.domain.codec import flow_definition_from_dict
from flow_kernel.domain.flow import FlowDefinition
from flow_kernel.logging_config import (
    LogContext,
    StructuredFormatter,
    configure_logging,
    reset_logging,
)
from flow_kernel.services.approval_service import ApprovalService
from flow_kernel.services.flow_service import FlowService

TEST_ACTOR_ID = "user-approver-1"
TEST_REQUESTER_ID = "user-requester-1"


# =============================================================================
# Logging fixtures
# =============================================================================


@pytest.fixture(autouse=True, scope="session")
def _configure_test_logging():
    """Configure structured logging for the test suite."""
    reset_logging()
    configure_logging(level=logging.DEBUG)
    yield
    reset_logging()


@pytest.fixture(autouse=True)
def _clear_log_context():
    """Clear LogContext between tests to prevent cross-test contamination."""
    LogContext.clear()
    yield
    LogContext.clear()


@pytest.fixture
def captured_logs():
    """
    Capture flow_kernel logs as parsed JSON dicts.

    Usage::

        def test_something(captured_logs, flow_service):
            flow_service.create_flow(...)
            logs = captured_logs()
            assert any(r["message"] == "flow_created" for r in logs)
    """
    stream = StringIO()
    handler = logging.StreamHandler(stream)
    handler.setFormatter(StructuredFormatter())
    root = logging.getLogger("flow_kernel")
    root.addHandler(handler)

    def _get_records() -> list[dict]:
        lines = stream.getvalue().strip().split("\n")
        return [json.loads(line) for line in lines if line]

    yield _get_records

    root.removeHandler(handler)


# =============================================================================
# Database fixtures
# =============================================================================


@pytest.fixture
def db_engine():
    """A fresh in-memory SQLite database with all tables."""
    engine = init_engine_from_url("sqlite:///:memory:")
    create_tables()
    yield engine
    reset_engine()


@pytest.fixture
def session(db_engine) -> Generator[Session, None, None]:
    """Session for one test.  Services only flush; nothing is committed."""
    sess = get_session()
    yield sess
    sess.rollback()
    sess.close()


@pytest.fixture
def clock() -> DeterministicClock:
    return DeterministicClock()


# =============================================================================
# Flow factories
# =============================================================================


def stage_dict(
    stage_id: str,
    status: str,
    transitions: list[dict[str, Any]] | None = None,
    **extra: Any,
) -> dict[str, Any]:
    data = {
        "id": stage_id,
        "status": status,
        "name": extra.pop("name", stage_id.replace("-", " ").title()),
        "description": extra.pop("description", f"{stage_id} stage"),
        "actor": extra.pop("actor", "manager"),
        "transitions": transitions or [],
    }
    data.update(extra)
    return data


def review_flow_dict(max_iterations: int | None = None) -> dict[str, Any]:
    """Review stage with approve/reject/return, a revision stage and two ends.

    ``review`` routes by amount: over 10000 is rejected, anything else
    falls through to the default approval.
    """
    review_extra = {"maxIterations": max_iterations} if max_iterations is not None else {}
    return {
        "id": "review-flow",
        "name": "Review Flow",
        "description": "Single review with a revision loop",
        "version": "1.0.0",
        "customStatuses": ["revision"],
        "stages": [
            stage_dict("review", "in_process", [
                {
                    "to": "reject",
                    "targetStageId": "rejected",
                    "label": "reject",
                    "conditionGroups": [{
                        "id": "too-large",
                        "operator": "AND",
                        "conditions": [
                            {"id": "amount-cap", "field": "amount", "operator": ">", "value": 10000},
                        ],
                    }],
                },
                {"to": "revision", "targetStageId": "revision", "label": "return",
                 "conditionGroups": [{
                     "operator": "AND",
                     "conditions": [{"field": "needsRevision", "operator": "==", "value": True}],
                 }]},
                {"to": "approved", "targetStageId": "approved", "label": "approve", "isDefault": True},
            ], **review_extra),
            stage_dict("revision", "revision", [
                {"to": "in_process", "targetStageId": "review", "label": "resubmit", "isDefault": True},
            ], actor="requester"),
            stage_dict("approved", "approved", name="Approved"),
            stage_dict("rejected", "reject", name="Rejected"),
        ],
    }


@pytest.fixture
def review_flow() -> FlowDefinition:
    return flow_definition_from_dict(review_flow_dict())


@pytest.fixture
def two_stage_flow() -> FlowDefinition:
    return flow_definition_from_dict({
        "id": "two-stage",
        "name": "Two Stage",
        "description": "Submit then approve",
        "version": "1.0.0",
        "stages": [
            stage_dict("submit", "in_process", [{"to": "approved", "isDefault": True}]),
            stage_dict("done", "approved"),
        ],
    })


# =============================================================================
# Service fixtures
# =============================================================================


@pytest.fixture
def flow_service(session, clock):
    return FlowService(session, clock)


@pytest.fixture
def approval_service(session, clock):
    return ApprovalService(session, clock)


@pytest.fixture
def stored_review_flow(flow_service):
    """The review flow persisted with its first active version."""
    return flow_service.create_flow(review_flow_dict(), created_by=TEST_ACTOR_ID)
