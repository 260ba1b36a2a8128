"""
Unit Tests for the notification side channel
Tests for: notice snapshots, CampusNotifier routing, SMS/email transports and
the background dispatcher
"""
import asyncio
import pytest
from datetime import datetime
from types import SimpleNamespace
from unittest.mock import AsyncMock, MagicMock, patch

from app.core.config import settings
from app.models.gate_pass import GatePassStatus, GatePassType, RequesterType
from app.models.user import UserRole
from app.services.directory_service import DirectoryUser
from app.services.email_service import EmailService
from app.services.notification_service import (
    CampusNotifier,
    GatePassNotice,
    NotificationDispatcher,
    to_local_time,
)
from app.services.sms_service import SmsService, normalize_phone_number, parent_exit_message


def make_notice(**overrides) -> GatePassNotice:
    values = dict(
        id="gp-1",
        status="approved",
        type="leave",
        reason="Sister's wedding",
        start_date=datetime(2025, 3, 7, 3, 30),
        end_date=datetime(2025, 3, 9, 3, 30),
        requester_id="u-1",
        requester_type="student",
        requester_name="Asha Rao",
        department_id="d-1",
    )
    values.update(overrides)
    return GatePassNotice(**values)


def make_user(**overrides) -> DirectoryUser:
    values = dict(
        id="u-1", name="Asha Rao", email="asha@campus.edu", role=UserRole.STUDENT,
        department_id="d-1", parent_phone="9876543210",
    )
    values.update(overrides)
    return DirectoryUser(**values)


class TestGatePassNotice:

    def test_from_gate_pass_collects_comments(self):
        gate_pass = SimpleNamespace(
            id="gp-9", status=GatePassStatus.REJECTED_BY_HOD, type=GatePassType.EMERGENCY,
            reason="Fever", start_date=datetime(2025, 1, 1), end_date=datetime(2025, 1, 2),
            requester_id="u-2", requester_type=RequesterType.STUDENT, department_id="d-1",
            checkout_time=None, staff_comment="ok", hod_comment="see me first",
            hostel_warden_comment=None, academic_director_comment=None, security_comment="",
        )

        notice = GatePassNotice.from_gate_pass(gate_pass, "Ravi")

        assert notice.status == "rejected_by_hod"
        assert notice.type == "emergency"
        assert notice.requester_type == "student"
        assert notice.requester_name == "Ravi"
        assert notice.comments == (("staff", "ok"), ("hod", "see me first"))

    def test_notice_is_immutable(self):
        notice = make_notice()

        with pytest.raises(Exception):
            notice.status = "used"


class TestSmsHelpers:

    @pytest.mark.parametrize("raw,expected", [
        ("9876543210", "+919876543210"),
        ("+1 (415) 555-0100", "+14155550100"),
        ("919876543210", "+919876543210"),
        ("09876543210", "+919876543210"),
        ("", ""),
        (None, ""),
    ])
    def test_normalize_phone_number(self, raw, expected):
        assert normalize_phone_number(raw, "+91") == expected

    def test_parent_exit_message(self):
        message = parent_exit_message("Asha Rao", datetime(2025, 3, 7, 9, 5))

        assert message == (
            "IMPORTANT: Your child Asha Rao has left the college campus at 9:05 AM on Mar 07, 2025."
            " - College Management"
        )

    def test_to_local_time(self, monkeypatch):
        monkeypatch.setattr(settings, "NOTIFICATION_TIMEZONE", "Asia/Kolkata")

        local = to_local_time(datetime(2025, 1, 1, 0, 0))

        assert (local.hour, local.minute) == (5, 30)


class TestSmsService:

    def configured(self) -> SmsService:
        sms = SmsService()
        sms.account_sid, sms.auth_token, sms.from_number = "AC123", "secret", "+15550001111"
        return sms

    async def test_not_configured(self):
        sms = SmsService()
        sms.account_sid = ""

        assert await sms.send_sms("9876543210", "hello") is False

    async def test_send_through_twilio(self):
        sms = self.configured()
        with patch("app.services.sms_service.Client") as mock_client:
            mock_client.return_value.messages.create.return_value = SimpleNamespace(sid="SM1")

            sent = await sms.send_parent_exit_notification("9876543210", "Asha", datetime(2025, 3, 7, 9, 5))

        assert sent is True
        kwargs = mock_client.return_value.messages.create.call_args.kwargs
        assert kwargs["to"] == "+919876543210"
        assert kwargs["from_"] == "+15550001111"
        assert "Asha has left the college campus" in kwargs["body"]

    async def test_twilio_failure_returns_false(self):
        sms = self.configured()
        with patch("app.services.sms_service.Client") as mock_client:
            mock_client.return_value.messages.create.side_effect = RuntimeError("rate limited")

            assert await sms.send_sms("9876543210", "hello") is False


class TestEmailService:

    def configured(self) -> EmailService:
        email = EmailService()
        email.smtp_user, email.smtp_password = "mailer", "secret"
        return email

    async def test_not_configured(self):
        email = EmailService()
        email.smtp_user = ""

        assert await email.send_email("a@b.c", "subject", "<p>hi</p>") is False

    async def test_approval_pending_email(self):
        email = self.configured()
        with patch("app.services.email_service.aiosmtplib.send", new_callable=AsyncMock) as mock_send:
            sent = await email.send_approval_pending_email(make_notice(), make_user(name="Dr. Iyer",
                                                                                    email="hod@campus.edu"),
                                                           "hod")

        assert sent is True
        message = mock_send.call_args.args[0]
        assert message["To"] == "hod@campus.edu"
        assert message["Subject"] == "Gate Pass #gp-1 Pending Your Approval"

    async def test_requester_text_is_escaped_in_html(self):
        email = self.configured()
        notice = make_notice(
            reason="<script>alert(1)</script>",
            requester_name="<b>Asha</b>",
            comments=(("staff", "<img src=x onerror=alert(2)>"),),
        )
        with patch("app.services.email_service.aiosmtplib.send", new_callable=AsyncMock) as mock_send:
            await email.send_approval_pending_email(notice, make_user(name="<i>Dr. Iyer</i>"), "hod")

        message = mock_send.call_args.args[0]
        html_part = next(part for part in message.get_payload() if part.get_content_type() == "text/html")
        body = html_part.get_payload(decode=True).decode()
        assert "<script>" not in body
        assert "&lt;script&gt;alert(1)&lt;/script&gt;" in body
        assert "&lt;b&gt;Asha&lt;/b&gt;" in body
        assert "&lt;i&gt;Dr. Iyer&lt;/i&gt;" in body
        assert "<img" not in body

    async def test_smtp_failure_returns_false(self):
        email = self.configured()
        with patch("app.services.email_service.aiosmtplib.send", new_callable=AsyncMock) as mock_send:
            mock_send.side_effect = OSError("connection refused")

            assert await email.send_outcome_email(make_notice(status="used"), make_user()) is False


class TestCampusNotifier:

    def notifier(self):
        email = MagicMock()
        email.send_approval_pending_email = AsyncMock(return_value=True)
        email.send_outcome_email = AsyncMock(return_value=True)
        sms = MagicMock()
        sms.send_parent_exit_notification = AsyncMock(return_value=True)
        return CampusNotifier(email=email, sms=sms), email, sms

    async def test_routes_to_email(self):
        notifier, email, _ = self.notifier()
        notice, approver = make_notice(status="pending_hod"), make_user(role=UserRole.HOD)

        await notifier.notify_approval_pending(notice, approver, "hod")
        await notifier.notify_outcome(notice, approver)

        email.send_approval_pending_email.assert_awaited_once_with(notice, approver, "hod")
        email.send_outcome_email.assert_awaited_once_with(notice, approver)

    async def test_parent_exit_uses_checkout_time_in_local_zone(self, monkeypatch):
        monkeypatch.setattr(settings, "NOTIFICATION_TIMEZONE", "Asia/Kolkata")
        notifier, _, sms = self.notifier()
        notice = make_notice(status="used", checkout_time=datetime(2025, 3, 7, 3, 35))

        await notifier.notify_parent_exit(notice, make_user())

        phone, name, when = sms.send_parent_exit_notification.call_args.args
        assert (phone, name) == ("9876543210", "Asha Rao")
        assert (when.hour, when.minute) == (9, 5)

    async def test_parent_exit_without_phone(self):
        notifier, _, sms = self.notifier()

        await notifier.notify_parent_exit(make_notice(status="used"), make_user(parent_phone=None))

        sms.send_parent_exit_notification.assert_not_awaited()

    async def test_disabled(self, monkeypatch):
        monkeypatch.setattr(settings, "NOTIFICATIONS_ENABLED", False)
        notifier, email, sms = self.notifier()

        await notifier.notify_outcome(make_notice(), make_user())
        await notifier.notify_parent_exit(make_notice(status="used"), make_user())

        email.send_outcome_email.assert_not_awaited()
        sms.send_parent_exit_notification.assert_not_awaited()


class TestNotificationDispatcher:

    async def test_drain_waits_for_tasks(self):
        dispatcher = NotificationDispatcher()
        finished = []

        async def slow():
            await asyncio.sleep(0.01)
            finished.append(True)

        dispatcher.dispatch(slow(), "slow")
        assert dispatcher.pending == 1

        await dispatcher.drain()

        assert finished == [True]
        assert dispatcher.pending == 0

    async def test_failures_are_logged_not_raised(self):
        dispatcher = NotificationDispatcher()

        async def broken():
            raise RuntimeError("smtp down")

        with patch("app.services.notification_service.logger") as mock_logger:
            dispatcher.dispatch(broken(), "outcome -> u-1", gate_pass_id="gp-1")
            await dispatcher.drain()

        mock_logger.log_error_with_context.assert_called_once()
        assert mock_logger.log_error_with_context.call_args.kwargs["gate_pass_id"] == "gp-1"

    async def test_drain_timeout_leaves_task_running(self):
        dispatcher = NotificationDispatcher()
        blocker = asyncio.Event()

        async def stuck():
            await blocker.wait()

        dispatcher.dispatch(stuck(), "stuck")
        await dispatcher.drain(timeout=0.01)

        assert dispatcher.pending == 1
        blocker.set()
        await dispatcher.drain()
        assert dispatcher.pending == 0
