"""SQLAlchemy ORM models for flows, flow versions and approvals."""

from flow_kernel.models.approval import ApprovalModel
from flow_kernel.models.flow import ApprovalFlowModel, FlowVersionModel

__all__ = [
    "ApprovalFlowModel",
    "FlowVersionModel",
    "ApprovalModel",
]
