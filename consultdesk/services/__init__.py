"""Business logic services."""

from consultdesk.services.conflicts import SlotConflictIndex, SlotKey, slot_key
from consultdesk.services.directory import ProviderDirectory
from consultdesk.services.exceptions import (
    AllBusyError,
    AlreadyMissedError,
    ConflictError,
    ConsultDeskError,
    DependencyFailureError,
    InvalidTransitionError,
    NoProvidersError,
    NotFoundError,
)
from consultdesk.services.lifecycle import TRANSITIONS, ConsultationService, can_transition
from consultdesk.services.matcher import ProviderMatcher
from consultdesk.services.notifications import (
    EmailProvider,
    NotificationEmitter,
    NotificationEvent,
    OutboxRelay,
)
from consultdesk.services.scanner import ConsultationScanner, ScanResult

__all__ = [
    "ProviderDirectory",
    "SlotConflictIndex",
    "SlotKey",
    "slot_key",
    "ProviderMatcher",
    "ConsultationService",
    "TRANSITIONS",
    "can_transition",
    "ConsultationScanner",
    "ScanResult",
    "EmailProvider",
    "NotificationEmitter",
    "NotificationEvent",
    "OutboxRelay",
    "ConsultDeskError",
    "NotFoundError",
    "NoProvidersError",
    "AllBusyError",
    "ConflictError",
    "InvalidTransitionError",
    "AlreadyMissedError",
    "DependencyFailureError",
]
