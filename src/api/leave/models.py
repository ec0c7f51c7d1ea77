"""Pydantic request/response models for the leave approval API.

Field names are camelCase to match the JSON the API exchanges.
"""

from __future__ import annotations

from datetime import datetime
from typing import Optional

from pydantic import AliasChoices, BaseModel, Field

from src.leave.models import LeaveRequest, LeaveStatus, WorkflowState


# =============================================================================
# Request Models
# =============================================================================


class ApplyLeaveRequest(BaseModel):
    """Request body for applying for leave.

    Every field is optional at the schema level so that missing values are
    reported as a 400 by the workflow's own validation.
    """

    approverEmail: Optional[str] = Field(
        None,
        validation_alias=AliasChoices("approverEmail", "approverAddress"),
        description="Address the approval request is sent to",
    )
    leaveType: Optional[str] = None
    startDate: Optional[str] = None
    endDate: Optional[str] = None
    reason: Optional[str] = Field(None, description="Optional free-text reason")


# =============================================================================
# Response Models
# =============================================================================


class ApplyLeaveResponse(BaseModel):
    """Response after a leave request was created and the approver asked."""

    message: str = Field(default="Leave applied")
    requestId: str


class ResumeResponse(BaseModel):
    """Confirmation shown to the approver after clicking a link."""

    message: str
    requestId: str
    status: LeaveStatus


class RemindResponse(BaseModel):
    """Response after the approval request was sent again."""

    message: str = Field(default="Approval request sent again")
    requestId: str


class LeaveDetailsBody(BaseModel):
    leaveType: str
    startDate: str
    endDate: str
    reason: str


class LeaveRequestDetail(BaseModel):
    """Full view of a leave request."""

    requestId: str
    requesterAddress: str
    approverAddress: str
    leaveDetails: LeaveDetailsBody
    status: LeaveStatus
    workflowState: WorkflowState
    createdAt: datetime
    askSentAt: Optional[datetime] = None
    decidedAt: Optional[datetime] = None

    @classmethod
    def from_record(cls, record: LeaveRequest) -> "LeaveRequestDetail":
        return cls(
            requestId=record.request_id,
            requesterAddress=record.requester_address,
            approverAddress=record.approver_address,
            leaveDetails=LeaveDetailsBody(**record.leave_details.to_dict()),
            status=record.status,
            workflowState=record.workflow_state,
            createdAt=record.created_at,
            askSentAt=record.ask_sent_at,
            decidedAt=record.decided_at,
        )


class HealthResponse(BaseModel):
    """Health check response."""

    status: str = Field(description="ok or degraded")
    version: str
    storageBackend: Optional[str] = None


class ErrorResponse(BaseModel):
    """Standard error response."""

    detail: str = Field(description="Human-readable error message")
