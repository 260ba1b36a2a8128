"""
Notification Service
====================

Best-effort email/SMS side channel for gate pass transitions.

The gate pass service commits first, snapshots the record into an immutable
GatePassNotice, then hands notifier coroutines to the NotificationDispatcher.
The dispatcher runs them as background tasks; a failing notification is
logged and never reaches the caller.
"""

import asyncio
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Awaitable, Optional, Protocol, Set, Tuple
from zoneinfo import ZoneInfo

from app.core.config import settings
from app.core.logging_config import logger
from app.services.directory_service import DirectoryUser
from app.services.email_service import EmailService, email_service
from app.services.sms_service import SmsService, sms_service


_COMMENT_STAGES = ("staff", "hod", "hostel_warden", "academic_director", "security")


@dataclass(frozen=True)
class GatePassNotice:
    """Read-only snapshot of a gate pass taken after commit"""
    id: str
    status: str
    type: str
    reason: str
    start_date: datetime
    end_date: datetime
    requester_id: str
    requester_type: str
    requester_name: str
    department_id: Optional[str] = None
    checkout_time: Optional[datetime] = None
    comments: Tuple[Tuple[str, str], ...] = ()

    @classmethod
    def from_gate_pass(cls, gate_pass, requester_name: str) -> "GatePassNotice":
        return cls(
            id=str(gate_pass.id),
            status=gate_pass.status.value,
            type=gate_pass.type.value,
            reason=gate_pass.reason,
            start_date=gate_pass.start_date,
            end_date=gate_pass.end_date,
            requester_id=str(gate_pass.requester_id),
            requester_type=gate_pass.requester_type.value,
            requester_name=requester_name,
            department_id=str(gate_pass.department_id) if gate_pass.department_id else None,
            checkout_time=gate_pass.checkout_time,
            comments=tuple(
                (stage, getattr(gate_pass, f"{stage}_comment"))
                for stage in _COMMENT_STAGES
                if getattr(gate_pass, f"{stage}_comment")
            ),
        )


class Notifier(Protocol):
    async def notify_approval_pending(self, notice: GatePassNotice, approver: DirectoryUser,
                                      stage: str) -> None:
        ...

    async def notify_outcome(self, notice: GatePassNotice, recipient: DirectoryUser) -> None:
        ...

    async def notify_parent_exit(self, notice: GatePassNotice, student: DirectoryUser) -> None:
        ...


def to_local_time(value: datetime) -> datetime:
    """Convert a stored naive-UTC timestamp to the campus timezone"""
    return value.replace(tzinfo=timezone.utc).astimezone(ZoneInfo(settings.NOTIFICATION_TIMEZONE))


class CampusNotifier:
    """Notifier delivering email through EmailService and SMS through SmsService"""

    def __init__(self, email: Optional[EmailService] = None, sms: Optional[SmsService] = None):
        self.email = email or email_service
        self.sms = sms or sms_service

    async def notify_approval_pending(self, notice: GatePassNotice, approver: DirectoryUser,
                                      stage: str) -> None:
        if not settings.NOTIFICATIONS_ENABLED:
            return
        sent = await self.email.send_approval_pending_email(notice, approver, stage)
        logger.log_notification("email", approver.email, sent, gate_pass_id=notice.id)

    async def notify_outcome(self, notice: GatePassNotice, recipient: DirectoryUser) -> None:
        if not settings.NOTIFICATIONS_ENABLED:
            return
        sent = await self.email.send_outcome_email(notice, recipient)
        logger.log_notification("email", recipient.email, sent, gate_pass_id=notice.id)

    async def notify_parent_exit(self, notice: GatePassNotice, student: DirectoryUser) -> None:
        if not settings.NOTIFICATIONS_ENABLED:
            return
        if not student.parent_phone:
            logger.log_notification("sms", "-", False, gate_pass_id=notice.id,
                                    reason="no parent phone on file")
            return
        when = to_local_time(notice.checkout_time or notice.start_date)
        sent = await self.sms.send_parent_exit_notification(student.parent_phone, student.name, when)
        logger.log_notification("sms", student.parent_phone, sent, gate_pass_id=notice.id)


class NotificationDispatcher:
    """
    Runs notification coroutines as fire-and-forget asyncio tasks.

    Tasks are tracked so they are not garbage collected mid-flight and so
    shutdown (and tests) can wait for them with drain().
    """

    def __init__(self):
        self._tasks: Set[asyncio.Task] = set()

    @property
    def pending(self) -> int:
        return len(self._tasks)

    def dispatch(self, coro: Awaitable[None], description: str,
                 gate_pass_id: Optional[str] = None) -> asyncio.Task:
        task = asyncio.ensure_future(coro)
        self._tasks.add(task)
        task.add_done_callback(lambda t: self._on_done(t, description, gate_pass_id))
        return task

    def _on_done(self, task: asyncio.Task, description: str, gate_pass_id: Optional[str]) -> None:
        self._tasks.discard(task)
        if task.cancelled():
            logger.warning(f"[Notify] {description} cancelled")
            return
        error = task.exception()
        if error is not None:
            logger.log_error_with_context(error, context=f"notification: {description}",
                                          gate_pass_id=gate_pass_id)

    async def drain(self, timeout: Optional[float] = None) -> None:
        """Wait for every in-flight notification to finish"""
        while self._tasks:
            tasks = list(self._tasks)
            done, pending = await asyncio.wait(tasks, timeout=timeout)
            if pending:
                logger.warning(f"[Notify] {len(pending)} notification(s) still running after drain timeout")
                return


_notifier: Optional[CampusNotifier] = None
_dispatcher: Optional[NotificationDispatcher] = None


def get_notifier() -> CampusNotifier:
    global _notifier
    if _notifier is None:
        _notifier = CampusNotifier()
    return _notifier


def get_dispatcher() -> NotificationDispatcher:
    global _dispatcher
    if _dispatcher is None:
        _dispatcher = NotificationDispatcher()
    return _dispatcher
