"""FastAPI dependency injection utilities."""

from typing import Annotated

from fastapi import Depends, Request
from sqlalchemy.ext.asyncio import AsyncSession

from consultdesk.core.config import Settings, get_settings
from consultdesk.db.session import AsyncSessionLocal, get_db
from consultdesk.services.lifecycle import ConsultationService
from consultdesk.services.notifications import EventEmitter, build_emitter
from consultdesk.services.scanner import ConsultationScanner


def get_notification_emitter(
    settings: Annotated[Settings, Depends(get_settings)],
) -> EventEmitter:
    """Build the notification emitter.

    The emitter opens its own sessions so that a notification failure
    never touches the request transaction.
    """
    return build_emitter(AsyncSessionLocal, settings)


def get_consultation_service(
    session: Annotated[AsyncSession, Depends(get_db)],
    emitter: Annotated[EventEmitter, Depends(get_notification_emitter)],
    settings: Annotated[Settings, Depends(get_settings)],
) -> ConsultationService:
    """Get the consultation service bound to the request session."""
    return ConsultationService(
        session,
        emitter=emitter,
        exclude_expired_providers=settings.exclude_expired_providers,
        outbox_max_attempts=settings.outbox_max_attempts,
    )


def get_scanner(
    session: Annotated[AsyncSession, Depends(get_db)],
    emitter: Annotated[EventEmitter, Depends(get_notification_emitter)],
    settings: Annotated[Settings, Depends(get_settings)],
) -> ConsultationScanner:
    """Get the reminder / expiry / summary scanner."""
    return ConsultationScanner(
        session,
        emitter,
        reminder_lead_days=settings.reminder_lead_days,
    )


def get_request_id(request: Request) -> str | None:
    """Extract request ID from headers.

    Args:
        request: FastAPI request

    Returns:
        Request ID or None
    """
    return request.headers.get("X-Request-ID")


# Type aliases for cleaner dependency injection
DbSession = Annotated[AsyncSession, Depends(get_db)]
Consultations = Annotated[ConsultationService, Depends(get_consultation_service)]
Scanner = Annotated[ConsultationScanner, Depends(get_scanner)]
RequestId = Annotated[str | None, Depends(get_request_id)]
