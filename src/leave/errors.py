"""Exception taxonomy for the leave approval workflow."""

from __future__ import annotations

from typing import Optional


class LeaveWorkflowError(Exception):
    """Base class for workflow errors."""


class ValidationError(LeaveWorkflowError):
    """Raised when caller input is missing or empty. The one caller-correctable error."""

    def __init__(self, message: str, fields: Optional[list[str]] = None):
        self.fields = fields or []
        super().__init__(message)


class UnauthorizedError(LeaveWorkflowError):
    """Raised when no authenticated identity is present."""


class RequestNotFoundError(LeaveWorkflowError):
    """Raised when a leave request does not exist."""

    def __init__(self, request_id: str):
        self.request_id = request_id
        super().__init__(f"Leave request {request_id} not found")


class DuplicateKeyError(LeaveWorkflowError):
    """Raised when a leave request with the same ID already exists."""

    def __init__(self, request_id: str):
        self.request_id = request_id
        super().__init__(f"Leave request {request_id} already exists")


class InvalidStatusTransitionError(LeaveWorkflowError):
    """Raised when a status transition is not valid."""

    def __init__(self, current_status: str, target_status: str):
        self.current_status = current_status
        self.target_status = target_status
        super().__init__(
            f"Cannot transition from '{current_status}' to '{target_status}'"
        )


class TokenNotFoundError(LeaveWorkflowError):
    """Raised when a callback token does not match any pending approval."""

    def __init__(self, request_id: str):
        self.request_id = request_id
        super().__init__(f"No matching callback token for request {request_id}")


class TokenAlreadyConsumedError(LeaveWorkflowError):
    """Raised when a callback token has already been redeemed."""

    def __init__(self, request_id: str):
        self.request_id = request_id
        super().__init__(f"Callback token for request {request_id} was already used")
