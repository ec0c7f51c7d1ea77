"""Retrying trigger that drives the workflow engine.

Stands in for a managed orchestration service: it delivers the approval ask
and the outcome notice at-least-once, with exponential backoff, retrying only
on NotificationError. The resume itself is never retried because a replayed
token must fail.
"""

from __future__ import annotations

import logging
from typing import Any, Awaitable, Callable, Optional

from tenacity import (
    AsyncRetrying,
    before_sleep_log,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential,
)

from src.common.config import DeliveryConfig
from src.common.logging import get_logger, log_error
from src.leave.engine import WorkflowEngine
from src.leave.errors import InvalidStatusTransitionError, TokenAlreadyConsumedError
from src.leave.models import LeaveDetails, LeaveRequest, WorkflowState
from src.leave.notifications import NotificationError

logger = get_logger(__name__)


class RetryingSubstrate:
    """Runs engine steps with the configured delivery retry policy."""

    def __init__(self, engine: WorkflowEngine, config: DeliveryConfig):
        self.engine = engine
        self.config = config

    def _retrying(self, attempts: int) -> AsyncRetrying:
        return AsyncRetrying(
            retry=retry_if_exception_type(NotificationError),
            stop=stop_after_attempt(attempts),
            wait=wait_exponential(
                multiplier=self.config.initial_backoff_seconds,
                max=self.config.max_backoff_seconds,
            ),
            before_sleep=before_sleep_log(logger, logging.WARNING),
            reraise=True,
        )

    async def _deliver(
        self,
        step: Callable[..., Awaitable[Any]],
        *args: Any,
        attempts: Optional[int] = None,
    ) -> Any:
        return await self._retrying(attempts or self.config.max_attempts)(step, *args)

    async def start(
        self,
        requester_address: Optional[str],
        approver_address: Optional[str],
        leave_details: Optional[LeaveDetails],
        base_url: str,
    ) -> str:
        """Persist a new request once, then deliver the approval ask.

        A send can report failure after the email went out. When a retry
        finds the request already answered, the ask counts as delivered.

        Returns:
            The new request_id.

        Raises:
            ValidationError: If input is incomplete (nothing is written).
            NotificationError: If every delivery attempt failed. The request
                stays PENDING and can be re-asked with remind().
        """
        record = self.engine.open_request(requester_address, approver_address, leave_details)
        try:
            await self._deliver(self.engine.request_approval, record.request_id, base_url)
        except (InvalidStatusTransitionError, TokenAlreadyConsumedError) as e:
            logger.info(
                "Approver answered before the ask reported delivery",
                extra={"request_id": record.request_id, "error": str(e)},
            )
        except NotificationError as e:
            log_error(
                logger,
                "Approval ask undeliverable, request left pending",
                request_id=record.request_id,
                error=e,
                attempts=self.config.max_attempts,
            )
            raise
        return record.request_id

    async def resume(
        self,
        request_id: Optional[str],
        token: Optional[str],
        decision: Optional[str],
    ) -> LeaveRequest:
        """Resume once; if only the outcome notice failed, retry the notice.

        Raises:
            ValidationError, TokenNotFoundError, TokenAlreadyConsumedError:
                From the engine, never retried.
            NotificationError: If the outcome notice still fails after the
                remaining attempts. The status stays committed.
        """
        return await self._resolve(self.engine.resume, request_id, token, decision)

    async def remind(self, request_id: str, base_url: str) -> None:
        """Re-send the approval ask for a pending request with a fresh token.

        If the approver already redeemed the token but the status never
        committed, the recorded decision is committed instead.

        Raises:
            InvalidStatusTransitionError: If the request is resolved, including
                by a decision committed here.
            TokenAlreadyConsumedError: If the token was redeemed and the
                request resolved meanwhile.
            NotificationError: If delivery kept failing.
        """
        try:
            await self._deliver(self.engine.request_approval, request_id, base_url)
        except TokenAlreadyConsumedError:
            record = await self._resolve(self.engine.settle, request_id)
            raise InvalidStatusTransitionError(
                record.status.value, WorkflowState.ASK_SENT.value
            ) from None

    async def _resolve(
        self,
        step: Callable[..., Awaitable[LeaveRequest]],
        request_id: Optional[str],
        *args: Any,
    ) -> LeaveRequest:
        # The status commits before the outcome notice, so only the notice is retried
        try:
            return await step(request_id, *args)
        except NotificationError as e:
            remaining = self.config.max_attempts - 1
            if remaining < 1:
                raise
            logger.warning(
                "Outcome notice failed after status commit, retrying",
                extra={"request_id": request_id, "error": str(e)},
            )
            return await self._deliver(self.engine.notify_outcome, request_id, attempts=remaining)
