"""Consultation model and lifecycle enums."""

from datetime import date as date_type, datetime
from enum import Enum

from sqlalchemy import Date, DateTime, ForeignKey, Index, Integer, String, Text, text
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.orm import Mapped, mapped_column

from consultdesk.db.base import Base, TimestampMixin


class ConsultationStatus(str, Enum):
    """Lifecycle status of a consultation."""

    SCHEDULED = "scheduled"
    RESCHEDULED = "rescheduled"
    MISSED = "missed"
    COMPLETED = "completed"
    CANCELED = "canceled"


# Statuses that hold a slot
ACTIVE_STATUSES = frozenset({ConsultationStatus.SCHEDULED, ConsultationStatus.RESCHEDULED})

_ACTIVE_SLOT_PREDICATE = "status IN ('scheduled', 'rescheduled')"


class ConsultationPriority(str, Enum):
    """Priority carried into notifications; never used for matching."""

    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"


class Consultation(Base, TimestampMixin):
    """A booked consultation between a patient and a provider.

    At most one active (scheduled or rescheduled) consultation may hold a
    given (provider, date, time) slot. The partial unique index below is
    the authority for that rule; service-level checks only produce nicer
    errors before hitting it.
    """

    __tablename__ = "consultations"
    __table_args__ = (
        Index(
            "uq_consultations_active_slot",
            "provider_id",
            "date",
            "time",
            unique=True,
            postgresql_where=text(_ACTIVE_SLOT_PREDICATE),
            sqlite_where=text(_ACTIVE_SLOT_PREDICATE),
        ),
    )

    patient_id: Mapped[str] = mapped_column(
        UUID(as_uuid=False),
        ForeignKey("patients.id", ondelete="RESTRICT"),
        nullable=False,
        index=True,
    )
    provider_id: Mapped[str | None] = mapped_column(
        UUID(as_uuid=False),
        ForeignKey("providers.id", ondelete="RESTRICT"),
        nullable=True,
        index=True,
    )
    # Calendar date, no time component
    date: Mapped[date_type] = mapped_column(
        Date,
        nullable=False,
        index=True,
    )
    # Opaque time-of-day key, compared by equality only
    time: Mapped[str] = mapped_column(
        String(16),
        nullable=False,
    )
    status: Mapped[ConsultationStatus] = mapped_column(
        String(20),
        default=ConsultationStatus.SCHEDULED,
        nullable=False,
        index=True,
    )
    priority: Mapped[ConsultationPriority] = mapped_column(
        String(10),
        default=ConsultationPriority.MEDIUM,
        nullable=False,
    )
    reschedule_count: Mapped[int] = mapped_column(
        Integer,
        default=0,
        nullable=False,
    )
    status_changed_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True),
        nullable=True,
    )
    # Cancellation keeps the record
    canceled_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True),
        nullable=True,
    )
    cancellation_reason: Mapped[str | None] = mapped_column(
        Text,
        nullable=True,
    )

    @property
    def is_active(self) -> bool:
        """Whether this consultation currently holds its slot."""
        return self.status in ACTIVE_STATUSES

    def __repr__(self) -> str:
        return f"<Consultation {self.id[:8]}... {self.date} {self.time} status={self.status}>"
