"""Unit tests for rendering and delivering notification emails."""

import asyncio
import json

import httpx
import pytest

from fakes import link_params
from src.common.config import EmailConfig
from src.leave.models import LeaveDetails, LeaveStatus
from src.leave.notifications import (
    ASK_SUBJECT,
    OUTCOME_SUBJECT,
    EmailNotifier,
    HttpEmailNotifier,
    LoggingNotifier,
    NotificationError,
    build_resume_links,
    render_ask_email,
    render_outcome_email,
)

API_URL = "https://mail.example.com/emails"


def _config(api_key="re_test_key"):
    return EmailConfig(
        api_url=API_URL,
        sender="leave-approvals@example.com",
        timeout_seconds=2.0,
        api_key=api_key,
    )


def _details(reason="Family trip"):
    return LeaveDetails(
        leave_type="Vacation",
        start_date="2025-04-01",
        end_date="2025-04-05",
        reason=reason,
    )


# =============================================================================
# Links and rendering
# =============================================================================


def test_resume_links_carry_request_decision_and_token():
    links = build_resume_links("https://api.example.com/prod/", "LEAVE-1-abcdef01", "tok-_123")

    assert links.approve_url.startswith("https://api.example.com/prod/process-approval?")
    assert link_params(links.approve_url) == {
        "requestId": "LEAVE-1-abcdef01",
        "decision": "approve",
        "token": "tok-_123",
    }
    assert link_params(links.reject_url)["decision"] == "reject"


def test_resume_links_encode_query_values():
    links = build_resume_links("http://localhost:8000", "LEAVE-1-abcdef01", "a+b/c=d&e")

    assert "a%2Bb%2Fc%3Dd%26e" in links.approve_url
    assert link_params(links.approve_url)["token"] == "a+b/c=d&e"


def test_ask_email_goes_to_approver_with_both_links():
    links = build_resume_links("https://api.example.com", "LEAVE-1-abcdef01", "tok")

    message = render_ask_email(
        "LEAVE-1-abcdef01", "alice@example.com", "bob@example.com", _details(), links
    )

    assert message.to == "bob@example.com"
    assert message.subject == ASK_SUBJECT
    assert "alice@example.com" in message.html
    assert "Vacation" in message.html
    assert "2025-04-01" in message.html
    assert "decision=approve" in message.html
    assert "decision=reject" in message.html


def test_ask_email_escapes_user_supplied_text():
    links = build_resume_links("https://api.example.com", "LEAVE-1-abcdef01", "tok")

    message = render_ask_email(
        "LEAVE-1-abcdef01",
        "alice@example.com",
        "bob@example.com",
        _details(reason="<script>alert(1)</script>"),
        links,
    )

    assert "<script>" not in message.html
    assert "&lt;script&gt;" in message.html


@pytest.mark.parametrize("status", [LeaveStatus.APPROVED, LeaveStatus.REJECTED])
def test_outcome_email_goes_to_requester(status):
    message = render_outcome_email("LEAVE-1-abcdef01", "alice@example.com", _details(), status)

    assert message.to == "alice@example.com"
    assert message.subject == OUTCOME_SUBJECT
    assert f"has been {status.value}" in message.html


# =============================================================================
# HTTP delivery
# =============================================================================


def test_http_notifier_posts_message():
    captured = []

    def handler(request):
        captured.append(request)
        return httpx.Response(200, json={"id": "email_123"})

    notifier = HttpEmailNotifier(_config(), transport=httpx.MockTransport(handler))

    asyncio.run(
        notifier.send_outcome("LEAVE-1-abcdef01", "alice@example.com", _details(), LeaveStatus.APPROVED)
    )

    assert len(captured) == 1
    request = captured[0]
    assert str(request.url) == API_URL
    assert request.headers["Authorization"] == "Bearer re_test_key"
    payload = json.loads(request.content)
    assert payload["from"] == "leave-approvals@example.com"
    assert payload["to"] == ["alice@example.com"]
    assert payload["subject"] == OUTCOME_SUBJECT
    assert "APPROVED" in payload["html"]


def test_http_notifier_raises_on_rejected_message():
    transport = httpx.MockTransport(lambda request: httpx.Response(422, json={"message": "invalid to"}))
    notifier = HttpEmailNotifier(_config(), transport=transport)
    links = build_resume_links("https://api.example.com", "LEAVE-1-abcdef01", "tok")

    with pytest.raises(NotificationError) as exc_info:
        asyncio.run(
            notifier.send_ask("LEAVE-1-abcdef01", "alice@example.com", "bob@example.com", _details(), links)
        )

    assert exc_info.value.status_code == 422


def test_http_notifier_raises_on_timeout():
    def handler(request):
        raise httpx.ReadTimeout("timed out", request=request)

    notifier = HttpEmailNotifier(_config(), transport=httpx.MockTransport(handler))

    with pytest.raises(NotificationError) as exc_info:
        asyncio.run(
            notifier.send_outcome("LEAVE-1-abcdef01", "alice@example.com", _details(), LeaveStatus.REJECTED)
        )

    assert "timed out" in str(exc_info.value)
    assert exc_info.value.status_code is None


def test_http_notifier_raises_on_connection_error():
    def handler(request):
        raise httpx.ConnectError("connection refused", request=request)

    notifier = HttpEmailNotifier(_config(), transport=httpx.MockTransport(handler))

    with pytest.raises(NotificationError):
        asyncio.run(
            notifier.send_outcome("LEAVE-1-abcdef01", "alice@example.com", _details(), LeaveStatus.REJECTED)
        )


def test_http_notifier_requires_api_key():
    with pytest.raises(ValueError):
        HttpEmailNotifier(_config(api_key=None))


def test_email_notifier_needs_a_transport():
    class Unsent(EmailNotifier):
        pass

    with pytest.raises(TypeError):
        EmailNotifier()
    with pytest.raises(TypeError):
        Unsent()


def test_logging_notifier_keeps_rendered_messages():
    notifier = LoggingNotifier()
    links = build_resume_links("http://localhost:8000", "LEAVE-1-abcdef01", "tok")

    asyncio.run(
        notifier.send_ask("LEAVE-1-abcdef01", "alice@example.com", "bob@example.com", _details(), links)
    )
    asyncio.run(
        notifier.send_outcome("LEAVE-1-abcdef01", "alice@example.com", _details(), LeaveStatus.APPROVED)
    )

    assert [m.to for m in notifier.delivered] == ["bob@example.com", "alice@example.com"]
    assert [m.subject for m in notifier.delivered] == [ASK_SUBJECT, OUTCOME_SUBJECT]
