"""Best-effort notification dispatch for appointment events.

The scheduling service calls :meth:`NotificationDispatcher.dispatch` once per
committed transition. Dispatch only snapshots the appointment and puts an
event on an in-process queue; a background worker hands queued events to a
:class:`NotificationSender`, which writes the in-app notification and sends
the email. Nothing on this path can fail a transition.
"""

import asyncio
import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, Callable
from uuid import uuid4

from sqlalchemy.ext.asyncio import AsyncSession

from slotbook.fixtures.message_templates import MESSAGE_TEMPLATES, render_template
from slotbook.models.appointment import Appointment
from slotbook.models.notification import Notification
from slotbook.utils.time import ensure_utc, format_for_humans

logger = logging.getLogger(__name__)


class NotificationKind(str, Enum):
    """Event kinds, one per transition plus reminders."""

    CREATED = "created"
    CONFIRMED = "confirmed"
    RESCHEDULED = "rescheduled"
    CANCELLED = "cancelled"
    COMPLETED = "completed"
    REMINDER = "reminder"


@dataclass(frozen=True)
class NotificationEvent:
    """Detached snapshot of an appointment at dispatch time.

    Carries plain values only, so the worker never touches an ORM object
    bound to the request's session.
    """

    kind: NotificationKind
    appointment_id: str
    owner_id: str
    title: str
    start_time: datetime
    end_time: datetime
    location: str | None = None
    meeting_url: str | None = None
    contact_email: str | None = None
    context: dict[str, Any] = field(default_factory=dict)
    event_id: str = field(default_factory=lambda: uuid4().hex)

    @classmethod
    def from_appointment(
        cls,
        kind: NotificationKind,
        appointment: Appointment,
        **context: Any,
    ) -> "NotificationEvent":
        return cls(
            kind=kind,
            appointment_id=str(appointment.id),
            owner_id=appointment.owner_id,
            title=appointment.title,
            start_time=ensure_utc(appointment.start_time),
            end_time=ensure_utc(appointment.end_time),
            location=appointment.location,
            meeting_url=appointment.meeting_url,
            contact_email=appointment.contact_email,
            context=context,
        )

    def template_context(self) -> dict[str, str]:
        """Values available to ``{{placeholder}}`` substitution."""
        values = {
            "title": self.title,
            "start": format_for_humans(self.start_time),
            "end": format_for_humans(self.end_time),
            "location": self.location or "Not specified",
            "meeting_url": self.meeting_url or "Not provided",
            "reason": "Not provided",
            "previous_start": "",
        }
        for key, value in self.context.items():
            if isinstance(value, datetime):
                value = format_for_humans(value)
            if value is not None:
                values[key] = str(value)
        return values


class MessageProviderError(Exception):
    """Base exception for messaging provider errors."""

    pass


class MessageProvider(ABC):
    """Abstract base class for outbound message providers."""

    @abstractmethod
    async def send(
        self,
        recipient: str,
        subject: str | None,
        body: str,
        **kwargs: Any,
    ) -> tuple[str, dict]:
        """Send a message and return (provider_message_id, metadata).

        Raises MessageProviderError on failure.
        """
        pass


class EmailProvider(MessageProvider):
    """Email provider stand-in.

    Transport belongs to the external mail service; this provider records
    the hand-off in the log and returns a synthetic message id.
    """

    def __init__(
        self,
        from_email: str = "",
        from_name: str = "Slotbook",
    ):
        self.from_email = from_email
        self.from_name = from_name

    async def send(
        self,
        recipient: str,
        subject: str | None,
        body: str,
        **kwargs: Any,
    ) -> tuple[str, dict]:
        """Send email message."""
        logger.info(f"Sending email to {recipient}: {subject}")

        message_id = f"email_{uuid4().hex[:16]}"

        return message_id, {
            "provider": "log",
            "from": f"{self.from_name} <{self.from_email}>",
            "to": recipient,
        }


class NotificationSender:
    """Delivers one event: in-app notification row, then email."""

    def __init__(
        self,
        session_factory: Callable[[], AsyncSession],
        email_provider: MessageProvider | None = None,
    ):
        self.session_factory = session_factory
        self.email_provider = email_provider or EmailProvider()

    async def send(self, event: NotificationEvent) -> None:
        template = MESSAGE_TEMPLATES[event.kind.value]
        context = event.template_context()

        async with self.session_factory() as session:
            session.add(
                Notification(
                    user_id=event.owner_id,
                    title=render_template(template["title"], context),
                    description=render_template(template["description"], context),
                    type=template["notification_type"].value,
                    entity_type="appointment",
                    entity_id=event.appointment_id,
                )
            )
            await session.commit()

        if event.contact_email:
            await self.email_provider.send(
                recipient=event.contact_email,
                subject=render_template(template["subject"], context),
                body=render_template(template["body"], context),
            )


class NotificationDispatcher:
    """Queue-backed, fire-and-forget dispatcher.

    ``dispatch`` never raises and never awaits. Events are delivered by the
    worker task started with :meth:`start`, or inline by :meth:`drain` for
    batch jobs that run without a worker.
    """

    def __init__(
        self,
        sender: NotificationSender | None = None,
        maxsize: int = 1000,
    ):
        self.sender = sender
        self._queue: asyncio.Queue[NotificationEvent] = asyncio.Queue(maxsize=maxsize)
        self._worker: asyncio.Task | None = None

    @property
    def pending(self) -> int:
        return self._queue.qsize()

    def dispatch(
        self,
        kind: NotificationKind,
        appointment: Appointment,
        **context: Any,
    ) -> bool:
        """Enqueue one event for ``appointment``.

        Never raises. Returns False when the event could not be queued; the
        failure is logged.
        """
        try:
            event = NotificationEvent.from_appointment(kind, appointment, **context)
            self._queue.put_nowait(event)
        except asyncio.QueueFull:
            logger.error(
                f"Notification queue full, dropping {kind.value} event "
                f"for appointment {appointment.id}"
            )
            return False
        except Exception:
            logger.exception(
                f"Failed to enqueue {kind.value} notification "
                f"for appointment {getattr(appointment, 'id', None)}"
            )
            return False
        return True

    async def _deliver(self, event: NotificationEvent) -> bool:
        if self.sender is None:
            logger.warning(f"No notification sender configured, dropping {event.kind.value} event")
            return False
        try:
            await self.sender.send(event)
        except Exception:
            logger.exception(
                f"Notification delivery failed: kind={event.kind.value} "
                f"appointment={event.appointment_id}"
            )
            return False
        return True

    async def _run(self) -> None:
        while True:
            event = await self._queue.get()
            try:
                await self._deliver(event)
            finally:
                self._queue.task_done()

    async def start(self) -> None:
        if self._worker is None or self._worker.done():
            self._worker = asyncio.create_task(self._run(), name="notification-worker")
            logger.info("Notification worker started")

    async def stop(self, timeout: float = 5.0) -> None:
        """Give queued events ``timeout`` seconds to flush, then stop the worker."""
        if self._worker is None:
            return
        try:
            await asyncio.wait_for(self._queue.join(), timeout=timeout)
        except asyncio.TimeoutError:
            logger.warning(f"Stopping notification worker with {self.pending} events pending")
        self._worker.cancel()
        try:
            await self._worker
        except asyncio.CancelledError:
            pass
        self._worker = None
        logger.info("Notification worker stopped")

    async def drain(self) -> tuple[int, int]:
        """Deliver everything queued right now. Returns (sent, failed)."""
        sent = failed = 0
        while not self._queue.empty():
            event = self._queue.get_nowait()
            try:
                if await self._deliver(event):
                    sent += 1
                else:
                    failed += 1
            finally:
                self._queue.task_done()
        return sent, failed
