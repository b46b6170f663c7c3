"""Database models for ConsultDesk."""

from consultdesk.models.consultation import (
    ACTIVE_STATUSES,
    Consultation,
    ConsultationPriority,
    ConsultationStatus,
)
from consultdesk.models.notification import (
    DomainEvent,
    EventKind,
    EventStatus,
    Notification,
    NotificationType,
)
from consultdesk.models.patient import Patient
from consultdesk.models.provider import Provider

__all__ = [
    # Directory
    "Provider",
    "Patient",
    # Consultations
    "Consultation",
    "ConsultationStatus",
    "ConsultationPriority",
    "ACTIVE_STATUSES",
    # Notifications
    "DomainEvent",
    "EventKind",
    "EventStatus",
    "Notification",
    "NotificationType",
]
