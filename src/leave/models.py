"""Pydantic models for leave requests and their approval lifecycle.

LeaveRequest is the single record persisted per request. Timestamps are stored
as ISO-8601 strings so documents stay readable in the Firestore console.
"""

from __future__ import annotations

import secrets
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, Optional

from pydantic import BaseModel, ConfigDict, Field

DEFAULT_REASON = "Not provided"


class LeaveStatus(str, Enum):
    """Status of a leave request.

    State transitions:
    - PENDING -> APPROVED (terminal)
    - PENDING -> REJECTED (terminal)
    """

    PENDING = "PENDING"
    APPROVED = "APPROVED"
    REJECTED = "REJECTED"

    @property
    def is_terminal(self) -> bool:
        return self is not LeaveStatus.PENDING


class WorkflowState(str, Enum):
    """Position of a request in the approval workflow."""

    CREATED = "CREATED"
    ASK_SENT = "ASK_SENT"
    AWAITING_DECISION = "AWAITING_DECISION"
    RESOLVED = "RESOLVED"


APPROVE_DECISION = "approve"


def decision_to_status(decision: str) -> LeaveStatus:
    """Map an approver decision to a terminal status.

    Only the literal "approve" approves. Every other value rejects.
    """
    return LeaveStatus.APPROVED if decision == APPROVE_DECISION else LeaveStatus.REJECTED


def generate_request_id(now: Optional[datetime] = None) -> str:
    """Generate a request ID of the form LEAVE-<epoch millis>-<8 hex chars>."""
    now = now or datetime.now(timezone.utc)
    millis = int(now.timestamp() * 1000)
    return f"LEAVE-{millis}-{secrets.token_hex(4)}"


def _parse_timestamp(value: Any) -> Optional[datetime]:
    if value is None or value == "":
        return None
    if isinstance(value, datetime):
        return value
    return datetime.fromisoformat(value)


class LeaveDetails(BaseModel):
    """Opaque leave payload echoed back unchanged in notifications."""

    model_config = ConfigDict(frozen=True)

    leave_type: str
    start_date: str
    end_date: str
    reason: str = DEFAULT_REASON

    def to_dict(self) -> Dict[str, str]:
        return {
            "leaveType": self.leave_type,
            "startDate": self.start_date,
            "endDate": self.end_date,
            "reason": self.reason,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "LeaveDetails":
        return cls(
            leave_type=data["leaveType"],
            start_date=data["startDate"],
            end_date=data["endDate"],
            reason=data.get("reason") or DEFAULT_REASON,
        )


class LeaveRequest(BaseModel):
    """One leave application and its approval lifecycle."""

    request_id: str
    requester_address: str
    approver_address: str
    leave_details: LeaveDetails
    status: LeaveStatus = LeaveStatus.PENDING
    created_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
    ask_sent_at: Optional[datetime] = None
    decided_at: Optional[datetime] = None

    @property
    def workflow_state(self) -> WorkflowState:
        """Durable workflow position derived from the stored fields."""
        if self.status.is_terminal:
            return WorkflowState.RESOLVED
        if self.ask_sent_at is not None:
            return WorkflowState.AWAITING_DECISION
        return WorkflowState.CREATED

    def to_dict(self) -> Dict[str, Any]:
        """Serialize to Firestore-friendly dict."""
        return {
            "requestId": self.request_id,
            "requesterAddress": self.requester_address,
            "approverAddress": self.approver_address,
            "leaveDetails": self.leave_details.to_dict(),
            "status": self.status.value,
            "createdAt": self.created_at.isoformat(),
            "askSentAt": self.ask_sent_at.isoformat() if self.ask_sent_at else None,
            "decidedAt": self.decided_at.isoformat() if self.decided_at else None,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "LeaveRequest":
        """Build a record from a stored document."""
        return cls(
            request_id=data["requestId"],
            requester_address=data["requesterAddress"],
            approver_address=data["approverAddress"],
            leave_details=LeaveDetails.from_dict(data["leaveDetails"]),
            status=LeaveStatus(data.get("status", LeaveStatus.PENDING.value)),
            created_at=_parse_timestamp(data.get("createdAt")) or datetime.now(timezone.utc),
            ask_sent_at=_parse_timestamp(data.get("askSentAt")),
            decided_at=_parse_timestamp(data.get("decidedAt")),
        )


class ResumeLinks(BaseModel):
    """Approve/reject URLs embedded in the approval ask."""

    approve_url: str
    reject_url: str
