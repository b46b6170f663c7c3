"""Notification collaborator: provider notifications, email and outbox relay.

The booking core hands structured events to ``NotificationEmitter.emit``.
The emitter stores an in-app notification for the provider and sends an
email through an ``EmailProvider``. It works in its own session so a
failure here never touches the caller's transaction.

Lifecycle transitions do not call the emitter directly: they commit a
``DomainEvent`` outbox row together with the status change and the
``OutboxRelay`` delivers it afterwards.
"""

import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Any, Protocol, Sequence
from uuid import uuid4

from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from consultdesk.core.config import Settings
from consultdesk.models.notification import (
    DomainEvent,
    EventKind,
    EventStatus,
    Notification,
    NotificationType,
)
from consultdesk.models.provider import Provider
from consultdesk.services.exceptions import DependencyFailureError

logger = logging.getLogger(__name__)


# Email subjects per event kind; bodies carry the event message as-is
EMAIL_SUBJECTS: dict[EventKind, str] = {
    EventKind.BOOKED: "New Consultation Scheduled",
    EventKind.RESCHEDULED: "Consultation Rescheduled",
    EventKind.MISSED: "Missed Consultation Alert",
    EventKind.COMPLETED: "Consultation Completed",
    EventKind.CANCELED: "Consultation Canceled",
    EventKind.REMINDER: "Upcoming Consultation Reminder",
    EventKind.LICENSE_EXPIRY: "Urgent: Your Medical License Has Expired",
    EventKind.SUMMARY: "Your Consultation Summary",
}


@dataclass
class NotificationEvent:
    """Structured event handed to the notification collaborator."""

    kind: EventKind
    provider_id: str
    message: str
    context: dict[str, Any] = field(default_factory=dict)

    @classmethod
    def from_outbox(cls, event: DomainEvent) -> "NotificationEvent":
        """Build from a stored outbox row."""
        return cls(
            kind=EventKind(event.kind),
            provider_id=event.provider_id,
            message=event.message,
            context=dict(event.context or {}),
        )


class EventEmitter(Protocol):
    """Anything that can take a notification event."""

    async def emit(self, event: NotificationEvent) -> None:
        ...


class MessageProviderError(Exception):
    """Base exception for messaging provider errors."""

    pass


class MessageProvider(ABC):
    """Abstract base class for messaging providers."""

    @abstractmethod
    async def send(
        self,
        recipient: str,
        subject: str,
        body: str,
        context: dict[str, Any] | None = None,
    ) -> tuple[str, dict]:
        """Send a message and return (provider_message_id, metadata).

        Raises MessageProviderError on failure.
        """
        pass


class EmailProvider(MessageProvider):
    """Email provider abstraction.

    Supports SMTP, SendGrid, AWS SES, or other email providers. Settings are
    passed in at construction; nothing is read from the environment here.
    """

    def __init__(
        self,
        provider_name: str = "smtp",
        smtp_host: str = "",
        smtp_port: int = 587,
        smtp_user: str = "",
        smtp_password: str = "",
        from_email: str = "",
        from_name: str = "Consultation Team",
    ):
        self.provider_name = provider_name
        self.smtp_host = smtp_host
        self.smtp_port = smtp_port
        self.smtp_user = smtp_user
        self.smtp_password = smtp_password
        self.from_email = from_email
        self.from_name = from_name

    async def send(
        self,
        recipient: str,
        subject: str,
        body: str,
        context: dict[str, Any] | None = None,
    ) -> tuple[str, dict]:
        """Send email message."""
        if not recipient:
            raise MessageProviderError("Recipient address is empty")

        # In production, this would send via SMTP or API
        logger.info(f"Sending email to {recipient}: {subject}")

        message_id = f"email_{uuid4().hex[:16]}"

        return message_id, {
            "provider": self.provider_name,
            "from": f"{self.from_name} <{self.from_email}>",
            "to": recipient,
            "context_keys": sorted((context or {}).keys()),
        }


def notification_type_for(kind: EventKind) -> NotificationType:
    """Map an event kind to the provider-facing notification category."""
    if kind == EventKind.LICENSE_EXPIRY:
        return NotificationType.LICENSE_EXPIRY
    return NotificationType.CONSULTATION


class NotificationEmitter:
    """Stores provider notifications and sends provider emails."""

    def __init__(
        self,
        session_factory: async_sessionmaker[AsyncSession],
        email_provider: MessageProvider | None = None,
        email_enabled: bool = True,
    ):
        self.session_factory = session_factory
        self.email_provider = email_provider or EmailProvider()
        self.email_enabled = email_enabled

    async def emit(self, event: NotificationEvent) -> None:
        """Deliver one event.

        Raises:
            DependencyFailureError: If the notification could not be stored
                or the email could not be sent
        """
        try:
            async with self.session_factory() as session:
                provider = await session.get(Provider, event.provider_id)
                if not provider:
                    raise DependencyFailureError(
                        f"Provider {event.provider_id} not found for {event.kind} event"
                    )

                session.add(
                    Notification(
                        id=str(uuid4()),
                        provider_id=provider.id,
                        type=notification_type_for(event.kind),
                        event_kind=event.kind,
                        message=event.message,
                    )
                )

                if self.email_enabled:
                    await self.email_provider.send(
                        recipient=provider.email,
                        subject=EMAIL_SUBJECTS.get(event.kind, "Consultation Update"),
                        body=event.message,
                        context={"provider_name": provider.name, **event.context},
                    )

                await session.commit()
        except DependencyFailureError:
            raise
        except MessageProviderError as e:
            raise DependencyFailureError(f"Email delivery failed: {e}") from e
        except SQLAlchemyError as e:
            raise DependencyFailureError(f"Notification storage failed: {e}") from e
        except Exception as e:
            raise DependencyFailureError(f"Notification delivery failed: {e}") from e


class OutboxRelay:
    """Delivers committed outbox events to the emitter.

    Delivery is best-effort: a failure is recorded on the event and logged,
    and the event stays pending until it is delivered or runs out of
    attempts.
    """

    def __init__(
        self,
        session: AsyncSession,
        emitter: EventEmitter,
        max_attempts: int = 5,
    ):
        self.session = session
        self.emitter = emitter
        self.max_attempts = max_attempts

    async def get_pending_events(self, limit: int = 100) -> Sequence[DomainEvent]:
        """Get undelivered events, oldest first."""
        result = await self.session.execute(
            select(DomainEvent)
            .where(DomainEvent.status == EventStatus.PENDING)
            .order_by(DomainEvent.created_at, DomainEvent.id)
            .limit(limit)
        )
        return result.scalars().all()

    async def deliver(self, events: Sequence[DomainEvent]) -> dict:
        """Try to deliver the given events.

        Returns:
            Counts of delivered and failed events
        """
        results = {"delivered": 0, "failed": 0}

        for event in events:
            if event.status != EventStatus.PENDING:
                continue

            try:
                await self.emitter.emit(NotificationEvent.from_outbox(event))
            except Exception as e:
                logger.warning(
                    f"Event {event.id} ({event.kind}) delivery failed: {e}",
                    extra={"provider_id": event.provider_id, "action": "outbox_deliver"},
                )
                event.record_failure(str(e), self.max_attempts)
                results["failed"] += 1
            else:
                event.mark_delivered()
                results["delivered"] += 1

        try:
            await self.session.commit()
        except SQLAlchemyError as e:
            # Delivery state is lost, not the events; they will be re-driven
            logger.error(f"Failed to record outbox delivery state: {e}")
            await self.session.rollback()

        return results

    async def deliver_pending(self, limit: int = 100) -> dict:
        """Re-drive every pending event (used by the scheduled relay task)."""
        events = await self.get_pending_events(limit=limit)
        results = await self.deliver(events)
        logger.info(f"Outbox relay processed {len(events)} events: {results}")
        return {"processed": len(events), **results}


def build_emitter(
    session_factory: async_sessionmaker[AsyncSession],
    settings: Settings,
) -> NotificationEmitter:
    """Build a notification emitter from application settings."""
    return NotificationEmitter(
        session_factory,
        email_provider=EmailProvider(
            smtp_host=settings.smtp_host,
            smtp_port=settings.smtp_port,
            smtp_user=settings.smtp_user,
            smtp_password=settings.smtp_password,
            from_email=settings.email_from,
            from_name=settings.email_from_name,
        ),
        email_enabled=settings.email_enabled,
    )
