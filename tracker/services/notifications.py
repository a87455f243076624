"""
Task Notifications
=============================================================================
Managers select tasks in the UI and send each assignee a short message.
The API hands the batch to NotificationService, which validates every
request up front and then passes them one by one to an EmailSender.

Delivery itself is not this service's job. EmailSender is the seam:

    class EmailSender(Protocol):
        async def send(self, to: str, subject: str, body: str) -> None: ...

LogEmailSender, the default, only writes a log line per message. A real
transport (SMTP relay, provider API) is plugged in by setting
`app.state.email_sender` at startup.
=============================================================================
"""

import re
from dataclasses import dataclass, field
from typing import Protocol

from tracker.errors import ValidationError
from tracker.observability.logging import get_logger

logger = get_logger(__name__)

EMAIL_PATTERN = re.compile(r"[A-Za-z0-9._%+-]+@[A-Za-z0-9.-]+\.[A-Za-z]{2,}")


class EmailSender(Protocol):
    async def send(self, to: str, subject: str, body: str) -> None:
        ...


class LogEmailSender:
    """Logs instead of delivering."""

    async def send(self, to: str, subject: str, body: str) -> None:
        logger.info("email_dispatched", to=to, subject=subject, body_length=len(body))


@dataclass
class NotificationRequest:
    email: str
    message: str
    task_id: str | None = None
    task_name: str | None = None
    employee_name: str | None = None


@dataclass
class NotificationResult:
    notification_count: int = 0
    recipients: list[str] = field(default_factory=list)


class NotificationService:
    def __init__(self, sender: EmailSender) -> None:
        self.sender = sender

    @staticmethod
    def validate(requests: list[NotificationRequest]) -> None:
        invalid = []
        for row, request in enumerate(requests):
            errors = []
            if not EMAIL_PATTERN.fullmatch((request.email or "").strip()):
                errors.append("invalid email")
            if not (request.message or "").strip():
                errors.append("missing message")
            if errors:
                invalid.append({"row": row, "errors": errors})

        if invalid:
            raise ValidationError("Invalid notification requests", invalid=invalid)
        if not requests:
            raise ValidationError("No notifications submitted", invalid=[])

    async def send(self, requests: list[NotificationRequest]) -> NotificationResult:
        """
        Validate the whole batch, then send one email per request.

        `recipients` lists each address once, in the order first seen.
        """
        self.validate(requests)

        result = NotificationResult()
        for request in requests:
            email = request.email.strip().lower()
            subject = f"Task update: {request.task_name}" if request.task_name else "Task update"
            greeting = f"Hello {request.employee_name},\n\n" if request.employee_name else ""

            await self.sender.send(email, subject, f"{greeting}{request.message.strip()}")

            result.notification_count += 1
            if email not in result.recipients:
                result.recipients.append(email)

        logger.info(
            "notifications_sent",
            notification_count=result.notification_count,
            recipient_count=len(result.recipients),
        )
        return result
