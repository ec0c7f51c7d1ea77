"""Email notifications for the approval ask and the final outcome.

Rendering and transport only; no business logic lives here. Delivery failures
raise NotificationError so the substrate can retry them.
"""

from __future__ import annotations

import html
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Any, Optional, Protocol
from urllib.parse import urlencode

import httpx

from src.common.config import EmailConfig
from src.common.logging import get_logger
from src.leave.models import LeaveDetails, LeaveStatus, ResumeLinks

logger = get_logger(__name__)

ASK_SUBJECT = "Leave Approval Request"
OUTCOME_SUBJECT = "Leave Request Outcome"
RESUME_PATH = "/process-approval"


class NotificationError(Exception):
    """Raised when a message could not be delivered."""

    def __init__(self, message: str, status_code: Optional[int] = None):
        self.status_code = status_code
        super().__init__(message)


@dataclass
class EmailMessage:
    """A rendered email ready for transport."""

    to: str
    subject: str
    html: str


class NotificationPort(Protocol):
    """Send-a-message capability used by the workflow engine."""

    async def send_ask(
        self,
        request_id: str,
        requester_address: str,
        approver_address: str,
        leave_details: LeaveDetails,
        links: ResumeLinks,
    ) -> None: ...

    async def send_outcome(
        self,
        request_id: str,
        requester_address: str,
        leave_details: LeaveDetails,
        final_status: LeaveStatus,
    ) -> None: ...


def build_resume_links(base_url: str, request_id: str, token: str) -> ResumeLinks:
    """Build approve/reject URLs carrying requestId, decision and token.

    Args:
        base_url: Origin of the inbound request, including any stage prefix.
        request_id: The leave request ID.
        token: The callback token for this suspension.

    Returns:
        ResumeLinks with URL-encoded query strings.
    """
    base = base_url.rstrip("/")

    def link(decision: str) -> str:
        query = urlencode({"requestId": request_id, "decision": decision, "token": token})
        return f"{base}{RESUME_PATH}?{query}"

    return ResumeLinks(approve_url=link("approve"), reject_url=link("reject"))


def _details_html(leave_details: LeaveDetails) -> str:
    rows = [
        ("Type", leave_details.leave_type),
        ("From", leave_details.start_date),
        ("To", leave_details.end_date),
        ("Reason", leave_details.reason),
    ]
    items = "".join(
        f"<li><strong>{label}:</strong> {html.escape(value)}</li>" for label, value in rows
    )
    return f"<ul>{items}</ul>"


def render_ask_email(
    request_id: str,
    requester_address: str,
    approver_address: str,
    leave_details: LeaveDetails,
    links: ResumeLinks,
) -> EmailMessage:
    """Render the approval ask sent to the approver."""
    approve = html.escape(links.approve_url, quote=True)
    reject = html.escape(links.reject_url, quote=True)
    body = (
        f"<p>A leave request ({html.escape(request_id)}) from "
        f"{html.escape(requester_address)} needs your approval:</p>"
        f"{_details_html(leave_details)}"
        f'<p><a href="{approve}"><button>Approve</button></a> '
        f'<a href="{reject}"><button>Reject</button></a></p>'
    )
    return EmailMessage(to=approver_address, subject=ASK_SUBJECT, html=body)


def render_outcome_email(
    request_id: str,
    requester_address: str,
    leave_details: LeaveDetails,
    final_status: LeaveStatus,
) -> EmailMessage:
    """Render the terminal notice sent to the requester."""
    body = (
        f"<p>Your leave request ({html.escape(request_id)}) has been "
        f"{final_status.value}.</p>"
        f"{_details_html(leave_details)}"
    )
    return EmailMessage(to=requester_address, subject=OUTCOME_SUBJECT, html=body)


class EmailNotifier(ABC):
    """Renders notifications as email and hands them to deliver()."""

    async def send_ask(
        self,
        request_id: str,
        requester_address: str,
        approver_address: str,
        leave_details: LeaveDetails,
        links: ResumeLinks,
    ) -> None:
        message = render_ask_email(request_id, requester_address, approver_address, leave_details, links)
        logger.info("Sending approval email", extra={"request_id": request_id, "to": message.to})
        await self.deliver(message)

    async def send_outcome(
        self,
        request_id: str,
        requester_address: str,
        leave_details: LeaveDetails,
        final_status: LeaveStatus,
    ) -> None:
        message = render_outcome_email(request_id, requester_address, leave_details, final_status)
        logger.info(
            "Notifying requester",
            extra={"request_id": request_id, "to": message.to, "final_status": final_status.value},
        )
        await self.deliver(message)

    @abstractmethod
    async def deliver(self, message: EmailMessage) -> None:
        """Hand a rendered message to the transport.

        Raises:
            NotificationError: If the message was not accepted.
        """


class HttpEmailNotifier(EmailNotifier):
    """Sends email through a transactional email HTTP API.

    Posts {from, to, subject, html} as JSON with a bearer API key.
    """

    def __init__(self, config: EmailConfig, transport: Optional[httpx.AsyncBaseTransport] = None):
        if not config.api_key:
            raise ValueError("HttpEmailNotifier requires EmailConfig.api_key")
        self.config = config
        self._transport = transport

    def _payload(self, message: EmailMessage) -> dict[str, Any]:
        return {
            "from": self.config.sender,
            "to": [message.to],
            "subject": message.subject,
            "html": message.html,
        }

    async def deliver(self, message: EmailMessage) -> None:
        headers = {"Authorization": f"Bearer {self.config.api_key}"}
        try:
            async with httpx.AsyncClient(
                timeout=self.config.timeout_seconds,
                transport=self._transport,
            ) as client:
                response = await client.post(self.config.api_url, json=self._payload(message), headers=headers)
        except httpx.TimeoutException as e:
            logger.warning("Email API timed out", extra={"to": message.to})
            raise NotificationError(f"Email API timed out after {self.config.timeout_seconds}s") from e
        except httpx.HTTPError as e:
            logger.warning("Email API transport error", extra={"to": message.to, "error": str(e)})
            raise NotificationError(f"Email API transport error: {e}") from e

        if response.status_code >= 300:
            logger.warning(
                "Email API rejected message",
                extra={
                    "to": message.to,
                    "status_code": response.status_code,
                    "response": response.text[:200],
                },
            )
            raise NotificationError(
                f"Email API returned {response.status_code}",
                status_code=response.status_code,
            )


class LoggingNotifier(EmailNotifier):
    """Development notifier: logs rendered messages instead of sending them."""

    def __init__(self) -> None:
        self.delivered: list[EmailMessage] = []

    async def deliver(self, message: EmailMessage) -> None:
        self.delivered.append(message)
        logger.info(
            "EMAIL_API_KEY not configured, email logged instead of sent",
            extra={"to": message.to, "subject": message.subject, "html": message.html},
        )
