"""Host services for the flow kernel (write side)."""

from flow_kernel.services.approval_service import ApprovalService
from flow_kernel.services.flow_service import FlowService

__all__ = [
    "ApprovalService",
    "FlowService",
]
