"""In-app notifications and the domain event outbox."""

from datetime import datetime
from enum import Enum

from sqlalchemy import JSON, Boolean, DateTime, ForeignKey, Integer, String, Text
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.orm import Mapped, mapped_column

from consultdesk.db.base import Base, TimestampMixin, utc_now


class EventKind(str, Enum):
    """Kinds of domain events emitted by the booking core."""

    BOOKED = "booked"
    RESCHEDULED = "rescheduled"
    MISSED = "missed"
    COMPLETED = "completed"
    CANCELED = "canceled"
    REMINDER = "reminder"
    LICENSE_EXPIRY = "license_expiry"
    SUMMARY = "summary"


class NotificationType(str, Enum):
    """Category shown to the provider."""

    CONSULTATION = "consultation"
    LICENSE_EXPIRY = "license_expiry"


class EventStatus(str, Enum):
    """Delivery status of an outbox event."""

    PENDING = "pending"  # Committed, not yet delivered
    DELIVERED = "delivered"  # Accepted by the notification emitter
    FAILED = "failed"  # Gave up after max attempts


class DomainEvent(Base, TimestampMixin):
    """Outbox row for a lifecycle transition.

    Written in the same transaction as the status change it describes,
    then delivered to the notification emitter. Undelivered rows are
    re-driven by the outbox relay task.
    """

    __tablename__ = "domain_events"

    kind: Mapped[EventKind] = mapped_column(
        String(30),
        nullable=False,
        index=True,
    )
    provider_id: Mapped[str] = mapped_column(
        UUID(as_uuid=False),
        ForeignKey("providers.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    consultation_id: Mapped[str | None] = mapped_column(
        UUID(as_uuid=False),
        ForeignKey("consultations.id", ondelete="SET NULL"),
        nullable=True,
        index=True,
    )
    message: Mapped[str] = mapped_column(
        Text,
        nullable=False,
    )
    context: Mapped[dict | None] = mapped_column(
        JSON,
        nullable=True,
    )
    status: Mapped[EventStatus] = mapped_column(
        String(20),
        default=EventStatus.PENDING,
        nullable=False,
        index=True,
    )
    attempts: Mapped[int] = mapped_column(
        Integer,
        default=0,
        nullable=False,
    )
    last_error: Mapped[str | None] = mapped_column(
        Text,
        nullable=True,
    )
    delivered_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True),
        nullable=True,
    )

    def record_failure(self, error: str, max_attempts: int) -> None:
        """Count a failed delivery, parking the event once attempts run out."""
        self.attempts += 1
        self.last_error = error
        if self.attempts >= max_attempts:
            self.status = EventStatus.FAILED

    def mark_delivered(self) -> None:
        """Mark the event as handed to the emitter."""
        self.attempts += 1
        self.status = EventStatus.DELIVERED
        self.delivered_at = utc_now()
        self.last_error = None

    def __repr__(self) -> str:
        return f"<DomainEvent {self.kind} status={self.status}>"


class Notification(Base, TimestampMixin):
    """Notification shown to a provider inside the app."""

    __tablename__ = "notifications"

    provider_id: Mapped[str] = mapped_column(
        UUID(as_uuid=False),
        ForeignKey("providers.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    type: Mapped[NotificationType] = mapped_column(
        String(30),
        nullable=False,
    )
    event_kind: Mapped[EventKind] = mapped_column(
        String(30),
        nullable=False,
    )
    message: Mapped[str] = mapped_column(
        Text,
        nullable=False,
    )
    is_read: Mapped[bool] = mapped_column(
        Boolean,
        default=False,
        nullable=False,
    )

    def __repr__(self) -> str:
        return f"<Notification {self.type} provider={self.provider_id[:8]}...>"
