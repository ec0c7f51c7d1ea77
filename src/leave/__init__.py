"""Leave approval workflow.

Submodules:
    - models: LeaveRequest, LeaveDetails, status and workflow state enums
    - errors: Exception taxonomy
    - repository: RequestStore (Firestore and in-memory)
    - tokens: Single-use callback tokens (Firestore and in-memory)
    - notifications: Email rendering and delivery
    - engine: WorkflowEngine (create, suspend, resume)
    - substrate: Retrying delivery of the ask and outcome steps
"""

from src.leave.engine import WorkflowEngine
from src.leave.substrate import RetryingSubstrate

__all__ = ["WorkflowEngine", "RetryingSubstrate"]
