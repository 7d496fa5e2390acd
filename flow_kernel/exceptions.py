"""
Typed Exception Hierarchy for the Flow Kernel.

===============================================================================
WHY TYPED EXCEPTIONS
===============================================================================

Callers of the approval flow engine must react to failures precisely: an
action against a closed approval is a harmless no-op for the caller, a
missing stage is a configuration-integrity alert, and a tripped iteration
guard is a business rule violation.  Parsing message strings to tell these
apart is fragile, so:

  1. Every error has a TYPED exception class (catch by type, not message)
  2. Every exception has a CODE attribute (machine-readable, API-safe)
  3. Exceptions carry structured DATA (not just a message string)

Example:
    try:
        resolved = resolve_for_approval(definition, approval, action, context)
    except AlreadyTerminalError as e:
        return api_response(code=e.code, status=e.status)
    except ResolutionError as e:
        return api_response(code=e.code, message=str(e))

===============================================================================
EXCEPTION HIERARCHY
===============================================================================

    FlowKernelError (base)
    |
    +-- FlowDefinitionError
    |   +-- FlowValidationError
    |   +-- FlowDecodeError
    |   +-- FlowInUseError
    |
    +-- ResolutionError
    |   +-- StageNotFoundError
    |   +-- NoEligibleTransitionError
    |   +-- IterationLimitExceededError
    |   +-- AlreadyTerminalError  (also a CommitError)
    |
    +-- CommitError
    |   +-- AlreadyTerminalError
    |   +-- StaleResolutionError
    |
    +-- NotFoundError
    |   +-- FlowNotFoundError
    |   +-- FlowVersionNotFoundError
    |   +-- ApprovalNotFoundError
    |
    +-- ConcurrencyError
        +-- OptimisticLockError

===============================================================================
ERROR CODES - QUICK REFERENCE
===============================================================================

Category        | Code                        | When Raised
----------------|-----------------------------|-----------------------------------------
Definition      | FLOW_VALIDATION_FAILED      | Malformed flow definition
                | FLOW_DECODE_FAILED          | JSON/YAML cannot become domain types
                | FLOW_IN_USE                 | Deleting a flow that approvals reference
----------------|-----------------------------|-----------------------------------------
Resolution      | STAGE_NOT_FOUND             | Approval points at an unknown stage
                | NO_ELIGIBLE_TRANSITION      | No action/conditioned/default match
                | ITERATION_LIMIT_EXCEEDED    | Stage return-loop guard tripped
----------------|-----------------------------|-----------------------------------------
Commit          | APPROVAL_ALREADY_TERMINAL   | Action against a closed approval
                | STALE_RESOLUTION            | Resolution computed for another stage
----------------|-----------------------------|-----------------------------------------
Lookup          | FLOW_NOT_FOUND              | Flow id doesn't exist
                | FLOW_VERSION_NOT_FOUND      | Version id doesn't exist for the flow
                | APPROVAL_NOT_FOUND          | Approval id doesn't exist
----------------|-----------------------------|-----------------------------------------
Concurrency     | OPTIMISTIC_LOCK_CONFLICT    | Concurrent commit on the same approval

===============================================================================
"""

from __future__ import annotations

from typing import Any


class FlowKernelError(Exception):
    """
    Base exception for all flow kernel errors.

    All subclasses must have a `code` class attribute for machine-readable
    error identification.
    """

    code: str = "FLOW_KERNEL_ERROR"


# Flow definition exceptions


class FlowDefinitionError(FlowKernelError):
    """Base exception for flow definition problems."""

    code: str = "FLOW_DEFINITION_ERROR"


class FlowValidationError(FlowDefinitionError):
    """Flow definition is structurally malformed.

    Raised at authoring time; never reaches a live approval.
    """

    code: str = "FLOW_VALIDATION_FAILED"

    def __init__(self, issues: list[str] | tuple[str, ...], flow_id: str | None = None):
        self.issues = tuple(issues)
        self.flow_id = flow_id
        label = f" {flow_id}" if flow_id else ""
        summary = "; ".join(self.issues) if self.issues else "unknown problem"
        super().__init__(f"Invalid flow definition{label}: {summary}")


class FlowDecodeError(FlowDefinitionError):
    """Serialized flow data cannot be decoded into domain types."""

    code: str = "FLOW_DECODE_FAILED"

    def __init__(self, path: str, reason: str):
        self.path = path
        self.reason = reason
        super().__init__(f"Cannot decode {path}: {reason}")


class FlowInUseError(FlowDefinitionError):
    """Flow cannot be deleted while approvals reference it."""

    code: str = "FLOW_IN_USE"

    def __init__(self, flow_id: str, approval_count: int):
        self.flow_id = flow_id
        self.approval_count = approval_count
        super().__init__(
            f"Cannot delete flow {flow_id}: {approval_count} approvals are using this flow"
        )


# Resolution and commit exceptions


class ResolutionError(FlowKernelError):
    """Base exception for transition resolution failures."""

    code: str = "RESOLUTION_ERROR"


class CommitError(FlowKernelError):
    """Base exception for failures applying a resolved transition."""

    code: str = "COMMIT_ERROR"


class StageNotFoundError(ResolutionError):
    """Approval references a stage id absent from its bound definition."""

    code: str = "STAGE_NOT_FOUND"

    def __init__(self, stage_id: str | None, flow_id: str | None = None):
        self.stage_id = stage_id
        self.flow_id = flow_id
        super().__init__(f"Current stage not found: {stage_id}")


class NoEligibleTransitionError(ResolutionError):
    """No transition matched the requested action or the context."""

    code: str = "NO_ELIGIBLE_TRANSITION"

    def __init__(
        self,
        stage_id: str,
        action: str | None,
        details: tuple[Any, ...] = (),
    ):
        self.stage_id = stage_id
        self.action = action
        self.details = details
        if action:
            message = f"Invalid action '{action}' for current stage {stage_id}"
        else:
            message = f"No eligible transition for current stage {stage_id}"
        super().__init__(message)


class IterationLimitExceededError(ResolutionError):
    """A stage's return-loop guard tripped."""

    code: str = "ITERATION_LIMIT_EXCEEDED"

    def __init__(self, stage_id: str, max_iterations: int, entries: int):
        self.stage_id = stage_id
        self.max_iterations = max_iterations
        self.entries = entries
        super().__init__(
            f"Iteration limit exceeded for stage {stage_id}: "
            f"entered {entries} times, max_iterations={max_iterations}"
        )


class AlreadyTerminalError(ResolutionError, CommitError):
    """Action requested against an approval in a final state."""

    code: str = "APPROVAL_ALREADY_TERMINAL"

    def __init__(self, approval_id: str | None, status: str):
        self.approval_id = approval_id
        self.status = status
        super().__init__(
            f"Cannot modify approval in final state ({status})"
        )


class StaleResolutionError(CommitError):
    """Resolved transition was computed against a different current stage."""

    code: str = "STALE_RESOLUTION"

    def __init__(self, expected_stage_id: str | None, actual_stage_id: str | None):
        self.expected_stage_id = expected_stage_id
        self.actual_stage_id = actual_stage_id
        super().__init__(
            f"Resolution was computed for stage {expected_stage_id}, "
            f"approval is at {actual_stage_id}"
        )


# Lookup exceptions


class NotFoundError(FlowKernelError):
    """Base exception for missing persisted records."""

    code: str = "NOT_FOUND"


class FlowNotFoundError(NotFoundError):
    """Flow with given ID was not found."""

    code: str = "FLOW_NOT_FOUND"

    def __init__(self, flow_id: str):
        self.flow_id = flow_id
        super().__init__(f"Flow not found: {flow_id}")


class FlowVersionNotFoundError(NotFoundError):
    """Flow version with given ID was not found for the flow."""

    code: str = "FLOW_VERSION_NOT_FOUND"

    def __init__(self, flow_id: str, version_id: str):
        self.flow_id = flow_id
        self.version_id = version_id
        super().__init__(f"Version not found: {version_id} (flow {flow_id})")


class ApprovalNotFoundError(NotFoundError):
    """Approval with given ID was not found."""

    code: str = "APPROVAL_NOT_FOUND"

    def __init__(self, approval_id: str):
        self.approval_id = approval_id
        super().__init__(f"Approval not found: {approval_id}")


# Concurrency exceptions


class ConcurrencyError(FlowKernelError):
    """Base exception for concurrency-related errors."""

    code: str = "CONCURRENCY_ERROR"


class OptimisticLockError(ConcurrencyError):
    """Concurrent modification detected on an approval row."""

    code: str = "OPTIMISTIC_LOCK_CONFLICT"

    def __init__(self, entity_type: str, entity_id: str):
        self.entity_type = entity_type
        self.entity_id = entity_id
        super().__init__(
            f"Concurrent modification of {entity_type} {entity_id}"
        )
