"""Callback-resumable workflow engine for leave approvals.

Lifecycle of one request:

    CREATED -> ASK_SENT -> AWAITING_DECISION -> RESOLVED

create() persists the request as PENDING before a token is minted or any
email leaves, then suspends. Nothing is held in process while suspended;
resume() runs later, in a different invocation, driven only by the callback
carrying (request_id, token, decision).

Failures are never swallowed or retried here. Retrying is the substrate's job
(see src.leave.substrate).
"""

from __future__ import annotations

from typing import Callable, Optional

from src.common.logging import get_logger, log_audit, log_transition
from src.leave.errors import (
    InvalidStatusTransitionError,
    TokenAlreadyConsumedError,
    ValidationError,
)
from src.leave.models import (
    DEFAULT_REASON,
    LeaveDetails,
    LeaveRequest,
    LeaveStatus,
    WorkflowState,
    decision_to_status,
    generate_request_id,
)
from src.leave.notifications import NotificationPort, build_resume_links
from src.leave.repository import RequestStore
from src.leave.tokens import CallbackTokens

logger = get_logger(__name__)


def _blank(value: Optional[str]) -> bool:
    return value is None or not str(value).strip()


def _absent(value: Optional[str]) -> bool:
    return value is None or value == ""


def _require(
    fields: dict[str, Optional[str]],
    message: str,
    is_missing: Callable[[Optional[str]], bool] = _blank,
) -> None:
    missing = [name for name, value in fields.items() if is_missing(value)]
    if missing:
        raise ValidationError(f"{message}: {', '.join(missing)}", fields=missing)


def build_leave_details(
    leave_type: Optional[str],
    start_date: Optional[str],
    end_date: Optional[str],
    reason: Optional[str] = None,
) -> LeaveDetails:
    """Validate raw leave fields and build LeaveDetails.

    Raises:
        ValidationError: If leave type, start date or end date is missing.
    """
    _require(
        {"leaveType": leave_type, "startDate": start_date, "endDate": end_date},
        "Missing required fields",
    )
    return LeaveDetails(
        leave_type=leave_type.strip(),
        start_date=start_date.strip(),
        end_date=end_date.strip(),
        reason=reason.strip() if not _blank(reason) else DEFAULT_REASON,
    )


class WorkflowEngine:
    """Orchestrates the single approval gate of a leave request.

    The engine is the only component that changes a request's status. Its
    collaborators are injected so each can be replaced independently.
    """

    def __init__(
        self,
        store: RequestStore,
        tokens: CallbackTokens,
        notifier: NotificationPort,
    ):
        """Initialize the engine.

        Args:
            store: Durable request ledger.
            tokens: Single-use callback token issuer.
            notifier: Outbound message port for the ask and the outcome.
        """
        self.store = store
        self.tokens = tokens
        self.notifier = notifier

    # ------------------------------------------------------------------
    # Create
    # ------------------------------------------------------------------

    async def create(
        self,
        requester_address: Optional[str],
        approver_address: Optional[str],
        leave_details: Optional[LeaveDetails],
        base_url: str,
    ) -> str:
        """Create a request, ask the approver, and suspend.

        Args:
            requester_address: Authenticated requester's address.
            approver_address: Address the approval ask is sent to.
            leave_details: Validated leave payload.
            base_url: Origin used to build the resume links.

        Returns:
            The new request_id.

        Raises:
            ValidationError: If any required field is missing or empty.
            NotificationError: If the ask could not be sent. The request stays
                PENDING and request_approval() can be retried.
        """
        record = self.open_request(requester_address, approver_address, leave_details)
        await self.request_approval(record.request_id, base_url)
        return record.request_id

    def open_request(
        self,
        requester_address: Optional[str],
        approver_address: Optional[str],
        leave_details: Optional[LeaveDetails],
    ) -> LeaveRequest:
        """Validate input and durably persist a PENDING request."""
        _require(
            {"requesterAddress": requester_address, "approverAddress": approver_address},
            "Missing required fields",
        )
        if leave_details is None:
            raise ValidationError("Missing required fields: leaveDetails", fields=["leaveDetails"])
        _require(
            {
                "leaveType": leave_details.leave_type,
                "startDate": leave_details.start_date,
                "endDate": leave_details.end_date,
            },
            "Missing required fields",
        )

        record = LeaveRequest(
            request_id=generate_request_id(),
            requester_address=requester_address.strip(),
            approver_address=approver_address.strip(),
            leave_details=leave_details,
        )
        self.store.put(record)

        log_transition(
            logger,
            request_id=record.request_id,
            from_state=None,
            to_state=WorkflowState.CREATED.value,
            requester=record.requester_address,
            approver=record.approver_address,
        )
        return record

    async def request_approval(self, request_id: str, base_url: str) -> None:
        """Mint a fresh token and send the approval ask for a pending request.

        Issuing replaces any earlier unconsumed token, so only the links in
        the latest ask stay valid.

        Raises:
            RequestNotFoundError: If the request doesn't exist.
            InvalidStatusTransitionError: If the request is already resolved.
            NotificationError: If the ask could not be sent.
        """
        record = self.store.get(request_id)
        if record.status.is_terminal:
            raise InvalidStatusTransitionError(record.status.value, WorkflowState.ASK_SENT.value)

        token = self.tokens.issue(request_id)
        links = build_resume_links(base_url, request_id, token)

        await self.notifier.send_ask(
            request_id,
            record.requester_address,
            record.approver_address,
            record.leave_details,
            links,
        )
        log_transition(
            logger,
            request_id=request_id,
            from_state=record.workflow_state.value,
            to_state=WorkflowState.ASK_SENT.value,
        )

        self.store.mark_ask_sent(request_id)
        log_transition(
            logger,
            request_id=request_id,
            from_state=WorkflowState.ASK_SENT.value,
            to_state=WorkflowState.AWAITING_DECISION.value,
        )

    # ------------------------------------------------------------------
    # Resume
    # ------------------------------------------------------------------

    async def resume(
        self,
        request_id: Optional[str],
        token: Optional[str],
        decision: Optional[str],
    ) -> LeaveRequest:
        """Resume a suspended request with the approver's decision.

        Only the token and the decision come from the caller. Addresses and
        leave details are always reloaded from the store. The decision is
        recorded with the redeemed token, so replaying the same link after a
        failed status commit finishes that commit with the first decision.

        Returns:
            The resolved request.

        Raises:
            ValidationError: If request_id, token or decision is missing.
            TokenNotFoundError: If the token doesn't match the request.
            TokenAlreadyConsumedError: If the token was already redeemed and
                the request is resolved.
            NotificationError: If the outcome notice failed. The status
                transition has already committed and is not rolled back.
        """
        _require(
            {"requestId": request_id, "decision": decision, "token": token},
            "Missing required query parameters",
            is_missing=_absent,
        )

        try:
            self.tokens.redeem(request_id, token, decision)
        except TokenAlreadyConsumedError:
            return await self.settle(request_id)

        try:
            record = self._commit(request_id, decision_to_status(decision))
        except InvalidStatusTransitionError:
            # A concurrent replay settled this decision first and sends the outcome
            raise TokenAlreadyConsumedError(request_id) from None
        await self._send_outcome(record)
        return record

    async def settle(self, request_id: str) -> LeaveRequest:
        """Commit a decision whose token was redeemed but whose status never was.

        Returns:
            The resolved request, after its outcome notice was sent.

        Raises:
            RequestNotFoundError: If the request doesn't exist.
            TokenAlreadyConsumedError: If there is no uncommitted decision,
                because the request is resolved or its token is unredeemed.
            NotificationError: If the outcome notice failed.
        """
        record = self.store.get(request_id)
        decision = self.tokens.recorded_decision(request_id)
        if record.status.is_terminal or decision is None:
            raise TokenAlreadyConsumedError(request_id)

        logger.warning(
            "Committing decision left by an interrupted resume",
            extra={"request_id": request_id},
        )
        try:
            record = self._commit(request_id, decision_to_status(decision))
        except InvalidStatusTransitionError:
            # A concurrent resume or settle committed first
            raise TokenAlreadyConsumedError(request_id) from None

        await self._send_outcome(record)
        return record

    def _commit(self, request_id: str, final_status: LeaveStatus) -> LeaveRequest:
        record = self.store.update_status(request_id, final_status)
        log_transition(
            logger,
            request_id=request_id,
            from_state=WorkflowState.AWAITING_DECISION.value,
            to_state=WorkflowState.RESOLVED.value,
            status=final_status.value,
        )
        log_audit(
            logger,
            actor=record.approver_address,
            action="resolve_leave_request",
            target=request_id,
            status=final_status.value.lower(),
        )
        return record

    async def notify_outcome(self, request_id: str) -> LeaveRequest:
        """Re-send the outcome notice of an already resolved request.

        Raises:
            RequestNotFoundError: If the request doesn't exist.
            InvalidStatusTransitionError: If the request is still pending.
        """
        record = self.store.get(request_id)
        if not record.status.is_terminal:
            raise InvalidStatusTransitionError(record.status.value, WorkflowState.RESOLVED.value)
        await self._send_outcome(record)
        return record

    async def _send_outcome(self, record: LeaveRequest) -> None:
        await self.notifier.send_outcome(
            record.request_id,
            record.requester_address,
            record.leave_details,
            record.status,
        )

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    def get_request(self, request_id: str) -> LeaveRequest:
        """Load a request from the store.

        Raises:
            RequestNotFoundError: If the request doesn't exist.
        """
        return self.store.get(request_id)
