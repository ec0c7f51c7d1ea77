"""FastAPI router for the leave approval workflow.

Endpoints:
- POST /apply-leave: create a request and ask the approver (bearer JWT)
- GET /process-approval: resume callback from the approval email (token is the capability)
- GET /requests/{requestId}: request detail for the requester or approver (bearer JWT)
- POST /requests/{requestId}/remind: re-send the approval ask (bearer JWT, requester only)
"""

from __future__ import annotations

from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query, Request, status

from src.api.auth import get_requester
from src.api.leave.dependencies import get_substrate
from src.api.leave.models import (
    ApplyLeaveRequest,
    ApplyLeaveResponse,
    ErrorResponse,
    LeaveRequestDetail,
    RemindResponse,
    ResumeResponse,
)
from src.common.logging import get_logger, log_audit, log_error
from src.leave.engine import build_leave_details
from src.leave.errors import (
    InvalidStatusTransitionError,
    RequestNotFoundError,
    TokenAlreadyConsumedError,
    TokenNotFoundError,
    ValidationError,
)
from src.leave.substrate import RetryingSubstrate

logger = get_logger(__name__)

router = APIRouter(tags=["leave"])


def _base_url(request: Request) -> str:
    # base_url carries the mounted root path, so links work under any host or stage
    return str(request.base_url).rstrip("/")


def _internal_error() -> HTTPException:
    return HTTPException(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        detail="Internal server error",
    )


# =============================================================================
# Create
# =============================================================================


@router.post(
    "/apply-leave",
    response_model=ApplyLeaveResponse,
    responses={
        400: {"model": ErrorResponse, "description": "Missing required fields"},
        401: {"model": ErrorResponse, "description": "Missing or invalid bearer token"},
        500: {"model": ErrorResponse, "description": "Storage or notification failure"},
    },
)
async def apply_leave(
    request: Request,
    body: Optional[ApplyLeaveRequest] = None,
    requester: str = Depends(get_requester),
    substrate: RetryingSubstrate = Depends(get_substrate),
) -> ApplyLeaveResponse:
    """Apply for leave.

    Persists the request as PENDING, then emails the approver a pair of
    approve/reject links. The requester is taken from the bearer token.
    """
    body = body or ApplyLeaveRequest()
    try:
        details = build_leave_details(body.leaveType, body.startDate, body.endDate, body.reason)
        request_id = await substrate.start(
            requester_address=requester,
            approver_address=body.approverEmail,
            leave_details=details,
            base_url=_base_url(request),
        )
    except ValidationError as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e))
    except Exception as e:
        log_error(logger, "Failed to apply leave", error=e, requester=requester)
        raise _internal_error() from e

    log_audit(logger, actor=requester, action="apply_leave", target=request_id)
    return ApplyLeaveResponse(requestId=request_id)


# =============================================================================
# Resume
# =============================================================================


@router.get(
    "/process-approval",
    response_model=ResumeResponse,
    responses={
        400: {"model": ErrorResponse, "description": "Missing parameters, unknown or already used link"},
        500: {"model": ErrorResponse, "description": "Storage or notification failure"},
    },
)
async def process_approval(
    requestId: Optional[str] = Query(None, description="Leave request ID"),
    decision: Optional[str] = Query(None, description="approve or reject"),
    token: Optional[str] = Query(None, description="Single-use callback token"),
    substrate: RetryingSubstrate = Depends(get_substrate),
) -> ResumeResponse:
    """Record the approver's decision and notify the requester.

    Unauthenticated by design; the token in the link is the capability and
    works exactly once.
    """
    try:
        record = await substrate.resume(requestId, token, decision)
    except ValidationError as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e))
    except TokenNotFoundError:
        logger.warning("Unknown approval link", extra={"request_id": requestId})
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Invalid or expired approval link",
        )
    except TokenAlreadyConsumedError:
        logger.warning("Approval link replayed", extra={"request_id": requestId})
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="This approval link has already been used",
        )
    except Exception as e:
        log_error(logger, "Failed to process approval", request_id=requestId, error=e)
        raise _internal_error() from e

    return ResumeResponse(
        message=f"Leave request {record.request_id} {record.status.value.lower()}",
        requestId=record.request_id,
        status=record.status,
    )


# =============================================================================
# Queries and reminders
# =============================================================================


@router.get(
    "/requests/{requestId}",
    response_model=LeaveRequestDetail,
    responses={
        401: {"model": ErrorResponse, "description": "Missing or invalid bearer token"},
        403: {"model": ErrorResponse, "description": "Caller is neither requester nor approver"},
        404: {"model": ErrorResponse, "description": "Leave request not found"},
    },
)
def get_leave_request(
    requestId: str,
    caller: str = Depends(get_requester),
    substrate: RetryingSubstrate = Depends(get_substrate),
) -> LeaveRequestDetail:
    """Get a leave request and its workflow state."""
    try:
        record = substrate.engine.get_request(requestId)
    except RequestNotFoundError:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Leave request not found")

    if caller not in (record.requester_address, record.approver_address):
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Not allowed to view this request")

    return LeaveRequestDetail.from_record(record)


@router.post(
    "/requests/{requestId}/remind",
    response_model=RemindResponse,
    responses={
        401: {"model": ErrorResponse, "description": "Missing or invalid bearer token"},
        403: {"model": ErrorResponse, "description": "Caller is not the requester"},
        404: {"model": ErrorResponse, "description": "Leave request not found"},
        409: {"model": ErrorResponse, "description": "Leave request already resolved"},
        500: {"model": ErrorResponse, "description": "Notification failure"},
    },
)
async def remind_approver(
    requestId: str,
    request: Request,
    caller: str = Depends(get_requester),
    substrate: RetryingSubstrate = Depends(get_substrate),
) -> RemindResponse:
    """Send the approval request again with a fresh link.

    Links from earlier emails stop working.
    """
    try:
        record = substrate.engine.get_request(requestId)
        if caller != record.requester_address:
            raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Only the requester can send reminders")
        await substrate.remind(requestId, _base_url(request))
    except HTTPException:
        raise
    except RequestNotFoundError:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Leave request not found")
    except (InvalidStatusTransitionError, TokenAlreadyConsumedError) as e:
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail=f"Leave request is already resolved ({e})",
        )
    except Exception as e:
        log_error(logger, "Failed to send reminder", request_id=requestId, error=e)
        raise _internal_error() from e

    log_audit(logger, actor=caller, action="remind_approver", target=requestId)
    return RemindResponse(requestId=requestId)
