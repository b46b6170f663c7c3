"""Consultation API endpoints.

Booking, rescheduling, status changes and the reminder / summary
triggers. Every handler is a thin wrapper over ConsultationService or
ConsultationScanner; errors are mapped to HTTP statuses here.
"""

import logging
from datetime import date as date_type, datetime

from fastapi import APIRouter, HTTPException, Query, status
from pydantic import BaseModel, ConfigDict, Field

from consultdesk.api.deps import Consultations, RequestId, Scanner
from consultdesk.models.consultation import ConsultationPriority, ConsultationStatus
from consultdesk.services.exceptions import (
    AllBusyError,
    ConflictError,
    InvalidTransitionError,
    NotFoundError,
)

logger = logging.getLogger(__name__)

router = APIRouter()


# ============================================================================
# Request/Response Schemas
# ============================================================================


class BookConsultationRequest(BaseModel):
    """Request to book a consultation."""

    patient_id: str
    date: date_type
    time: str = Field(min_length=1, max_length=16, description="Time of day, e.g. 10:00")
    priority: ConsultationPriority = ConsultationPriority.MEDIUM
    specialization: str | None = Field(
        None,
        max_length=100,
        description="Defaults to the patient's reason for consultation",
    )


class RescheduleConsultationRequest(BaseModel):
    """Request to move a consultation to another slot."""

    date: date_type
    time: str = Field(min_length=1, max_length=16)
    priority: ConsultationPriority | None = None


class CancelConsultationRequest(BaseModel):
    """Optional body for a cancellation."""

    reason: str | None = Field(None, max_length=1000)


class ConsultationResponse(BaseModel):
    """Consultation response."""

    model_config = ConfigDict(from_attributes=True)

    id: str
    patient_id: str
    provider_id: str | None
    date: date_type
    time: str
    status: ConsultationStatus
    priority: ConsultationPriority
    reschedule_count: int
    status_changed_at: datetime | None
    canceled_at: datetime | None
    cancellation_reason: str | None
    created_at: datetime


class ScanResultResponse(BaseModel):
    """Result of a reminder or expiry scan."""

    scan: str
    run_date: date_type
    target_date: date_type
    scanned: int
    emitted: int
    failed: int
    item_ids: list[str]
    failed_ids: list[str]


class ReminderScanRequest(BaseModel):
    """Optional body for a reminder scan."""

    today: date_type | None = None


class SummaryEntryResponse(BaseModel):
    """One consultation line in a provider summary."""

    model_config = ConfigDict(from_attributes=True)

    consultation_id: str
    patient_name: str
    time: str
    status: str


class ProviderSummaryResponse(BaseModel):
    """Provider daily summary."""

    model_config = ConfigDict(from_attributes=True)

    provider_id: str
    provider_name: str
    date: date_type
    entries: list[SummaryEntryResponse]
    notified: bool
    text: str


# ============================================================================
# Scans
# ============================================================================


@router.post(
    "/reminders",
    response_model=ScanResultResponse,
)
async def run_reminder_scan(
    scanner: Scanner,
    request: ReminderScanRequest | None = None,
) -> ScanResultResponse:
    """Send reminders for active consultations due tomorrow."""
    result = await scanner.run_reminder_scan(today=request.today if request else None)
    return ScanResultResponse(**result.to_dict())


@router.post(
    "/summary/{provider_id}/{day}",
    response_model=ProviderSummaryResponse,
)
async def send_provider_summary(
    provider_id: str,
    day: date_type,
    scanner: Scanner,
) -> ProviderSummaryResponse:
    """Send a provider the summary of their consultations on a day."""
    try:
        summary = await scanner.send_provider_summary(provider_id, day)
    except NotFoundError as e:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=str(e),
        )

    return ProviderSummaryResponse.model_validate(summary)


# ============================================================================
# Booking and lifecycle
# ============================================================================


@router.post(
    "",
    response_model=ConsultationResponse,
    status_code=status.HTTP_201_CREATED,
)
async def book_consultation(
    request: BookConsultationRequest,
    service: Consultations,
    request_id: RequestId,
) -> ConsultationResponse:
    """Book a consultation with the first available provider."""
    try:
        consultation = await service.book_consultation(
            patient_id=request.patient_id,
            day=request.date,
            slot_time=request.time,
            priority=request.priority,
            specialization=request.specialization,
        )
    except NotFoundError as e:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=str(e),
        )
    except AllBusyError as e:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=str(e),
        )
    except ConflictError as e:
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail=str(e),
        )

    logger.info(
        f"Booked consultation {consultation.id} (request_id={request_id})",
        extra={"consultation_id": consultation.id, "provider_id": consultation.provider_id},
    )
    return ConsultationResponse.model_validate(consultation)


@router.get(
    "",
    response_model=list[ConsultationResponse],
)
async def list_consultations(
    service: Consultations,
    provider_id: str | None = None,
    day: date_type | None = None,
    status_filter: ConsultationStatus | None = Query(None, alias="status"),
) -> list[ConsultationResponse]:
    """List consultations with optional filters."""
    consultations = await service.list_consultations(
        provider_id=provider_id,
        day=day,
        status=status_filter,
    )
    return [ConsultationResponse.model_validate(c) for c in consultations]


@router.get(
    "/{consultation_id}",
    response_model=ConsultationResponse,
)
async def get_consultation(
    consultation_id: str,
    service: Consultations,
) -> ConsultationResponse:
    """Get a consultation by ID."""
    try:
        consultation = await service.get_consultation(consultation_id)
    except NotFoundError:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Consultation not found",
        )

    return ConsultationResponse.model_validate(consultation)


@router.put(
    "/{consultation_id}",
    response_model=ConsultationResponse,
)
async def reschedule_consultation(
    consultation_id: str,
    request: RescheduleConsultationRequest,
    service: Consultations,
) -> ConsultationResponse:
    """Move a consultation to another slot with the same provider."""
    try:
        consultation = await service.reschedule(
            consultation_id,
            day=request.date,
            slot_time=request.time,
            priority=request.priority,
        )
    except NotFoundError:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Consultation not found",
        )
    except InvalidTransitionError as e:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=str(e),
        )
    except ConflictError as e:
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail=str(e),
        )

    return ConsultationResponse.model_validate(consultation)


@router.put(
    "/{consultation_id}/missed",
    response_model=ConsultationResponse,
)
async def mark_consultation_missed(
    consultation_id: str,
    service: Consultations,
) -> ConsultationResponse:
    """Mark a consultation as missed."""
    try:
        consultation = await service.mark_missed(consultation_id)
    except NotFoundError:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Consultation not found",
        )
    except InvalidTransitionError as e:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=str(e),
        )

    return ConsultationResponse.model_validate(consultation)


@router.put(
    "/{consultation_id}/completed",
    response_model=ConsultationResponse,
)
async def mark_consultation_completed(
    consultation_id: str,
    service: Consultations,
) -> ConsultationResponse:
    """Mark a consultation as completed."""
    try:
        consultation = await service.mark_completed(consultation_id)
    except NotFoundError:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Consultation not found",
        )
    except InvalidTransitionError as e:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=str(e),
        )

    return ConsultationResponse.model_validate(consultation)


@router.delete(
    "/{consultation_id}",
    response_model=ConsultationResponse,
)
async def cancel_consultation(
    consultation_id: str,
    service: Consultations,
    request: CancelConsultationRequest | None = None,
) -> ConsultationResponse:
    """Cancel a consultation. The record is kept with status canceled."""
    try:
        consultation = await service.cancel(
            consultation_id,
            reason=request.reason if request else None,
        )
    except NotFoundError:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Consultation not found",
        )
    except InvalidTransitionError as e:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=str(e),
        )

    return ConsultationResponse.model_validate(consultation)
