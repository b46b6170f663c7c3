"""Consultation booking and lifecycle service.

Handles booking (provider matching + creation), rescheduling, and the
missed / completed / canceled transitions.

Every transition commits the status change together with one outbox
event. Delivery of that event to the notification collaborator happens
after the commit and may fail without affecting the transition.

Transition table:

    scheduled   -> rescheduled | missed | completed | canceled
    rescheduled -> rescheduled | missed | completed | canceled
    missed, completed, canceled are terminal
"""

import logging
from datetime import date, datetime, time
from typing import Any, Sequence
from uuid import uuid4

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from consultdesk.core.logging import audit_logger
from consultdesk.models.consultation import (
    Consultation,
    ConsultationPriority,
    ConsultationStatus,
)
from consultdesk.models.notification import DomainEvent, EventKind, EventStatus
from consultdesk.models.patient import Patient
from consultdesk.services.conflicts import SlotConflictIndex, SlotKey, slot_key
from consultdesk.services.directory import ProviderDirectory
from consultdesk.services.exceptions import (
    AlreadyMissedError,
    ConflictError,
    InvalidTransitionError,
    NotFoundError,
)
from consultdesk.services.matcher import ProviderMatcher
from consultdesk.services.notifications import EventEmitter, OutboxRelay
from consultdesk.utils.time import normalize_date, normalize_time, utc_now

logger = logging.getLogger(__name__)


TRANSITIONS: dict[ConsultationStatus, frozenset[ConsultationStatus]] = {
    ConsultationStatus.SCHEDULED: frozenset(
        {
            ConsultationStatus.RESCHEDULED,
            ConsultationStatus.MISSED,
            ConsultationStatus.COMPLETED,
            ConsultationStatus.CANCELED,
        }
    ),
    ConsultationStatus.RESCHEDULED: frozenset(
        {
            ConsultationStatus.RESCHEDULED,
            ConsultationStatus.MISSED,
            ConsultationStatus.COMPLETED,
            ConsultationStatus.CANCELED,
        }
    ),
    ConsultationStatus.MISSED: frozenset(),
    ConsultationStatus.COMPLETED: frozenset(),
    ConsultationStatus.CANCELED: frozenset(),
}


def can_transition(current: ConsultationStatus | str, target: ConsultationStatus | str) -> bool:
    """Check whether the transition table allows current -> target."""
    return ConsultationStatus(target) in TRANSITIONS[ConsultationStatus(current)]


def check_transition(current: ConsultationStatus | str, target: ConsultationStatus | str) -> None:
    """Raise if current -> target is not in the transition table.

    Raises:
        AlreadyMissedError: If marking a missed consultation as missed again
        InvalidTransitionError: For any other transition not in the table
    """
    current = ConsultationStatus(current)
    target = ConsultationStatus(target)

    if current == ConsultationStatus.MISSED and target == ConsultationStatus.MISSED:
        raise AlreadyMissedError()

    if target not in TRANSITIONS[current]:
        raise InvalidTransitionError(current.value, target.value)


class ConsultationService:
    """Service for booking consultations and changing their status."""

    def __init__(
        self,
        session: AsyncSession,
        emitter: EventEmitter | None = None,
        exclude_expired_providers: bool = True,
        outbox_max_attempts: int = 5,
    ):
        self.session = session
        self.emitter = emitter
        self.outbox_max_attempts = outbox_max_attempts
        self.directory = ProviderDirectory(session)
        self.conflicts = SlotConflictIndex(session)
        self.matcher = ProviderMatcher(
            self.directory,
            self.conflicts,
            exclude_expired=exclude_expired_providers,
        )

    # =========================================================================
    # QUERIES
    # =========================================================================

    async def get_consultation(self, consultation_id: str) -> Consultation:
        """Get a consultation by ID."""
        consultation = await self.session.get(Consultation, consultation_id)
        if not consultation:
            raise NotFoundError(f"Consultation {consultation_id} not found")
        return consultation

    async def list_consultations(
        self,
        provider_id: str | None = None,
        day: date | datetime | str | None = None,
        status: ConsultationStatus | None = None,
    ) -> Sequence[Consultation]:
        """List consultations with optional filters."""
        query = select(Consultation)

        if provider_id:
            query = query.where(Consultation.provider_id == provider_id)

        if day is not None:
            query = query.where(Consultation.date == normalize_date(day))

        if status:
            query = query.where(Consultation.status == status)

        query = query.order_by(Consultation.date, Consultation.time, Consultation.id)

        result = await self.session.execute(query)
        return result.scalars().all()

    # =========================================================================
    # BOOKING
    # =========================================================================

    async def book_consultation(
        self,
        patient_id: str,
        day: date | datetime | str,
        slot_time: time | str,
        priority: ConsultationPriority | str = ConsultationPriority.MEDIUM,
        specialization: str | None = None,
    ) -> Consultation:
        """Book a consultation with the first available provider.

        The specialization defaults to the patient's reason for
        consultation.

        Raises:
            NotFoundError: If the patient does not exist
            NoProvidersError: If no provider has the specialization
            AllBusyError: If every eligible provider holds the slot
            ConflictError: If a concurrent booking took the slot first
        """
        patient = await self.session.get(Patient, patient_id)
        if not patient:
            raise NotFoundError(f"Patient {patient_id} not found")

        specialization = specialization or patient.reason_for_consultation
        requested_date = normalize_date(day)
        requested_time = normalize_time(slot_time)
        priority = ConsultationPriority(priority)

        provider = await self.matcher.assign(specialization, requested_date, requested_time)

        consultation = Consultation(
            id=str(uuid4()),
            patient_id=patient.id,
            provider_id=provider.id,
            date=requested_date,
            time=requested_time,
            status=ConsultationStatus.SCHEDULED,
            priority=priority,
            status_changed_at=utc_now(),
        )
        self.session.add(consultation)
        await self._claim_slot(slot_key(provider.id, requested_date, requested_time))

        event = self._add_event(
            EventKind.BOOKED,
            consultation,
            message=(
                f"New consultation on {requested_date.isoformat()} at {requested_time} "
                f"(Priority: {priority.value})"
            ),
            context={
                "patient_name": patient.name,
                "specialization": specialization,
            },
        )

        await self.session.commit()

        audit_logger.log(
            action="consultation_booked",
            actor_type="system",
            actor_id="booking",
            entity_type="consultation",
            entity_id=consultation.id,
            metadata={
                "provider_id": provider.id,
                "date": requested_date.isoformat(),
                "time": requested_time,
            },
        )

        await self._dispatch(event, consultation)
        return consultation

    # =========================================================================
    # TRANSITIONS
    # =========================================================================

    async def reschedule(
        self,
        consultation_id: str,
        day: date | datetime | str,
        slot_time: time | str,
        priority: ConsultationPriority | str | None = None,
    ) -> Consultation:
        """Move a consultation to a new slot with the same provider.

        Moving onto its own current slot is allowed.

        Raises:
            NotFoundError: If the consultation does not exist
            InvalidTransitionError: If the consultation is not active
            ConflictError: If another active consultation holds the new slot
        """
        consultation = await self.get_consultation(consultation_id)
        check_transition(consultation.status, ConsultationStatus.RESCHEDULED)

        new_date = normalize_date(day)
        new_time = normalize_time(slot_time)

        if await self.conflicts.has_conflict(
            consultation.provider_id,
            new_date,
            new_time,
            exclude_consultation_id=consultation.id,
        ):
            raise ConflictError(
                f"Provider already has a consultation on {new_date.isoformat()} at {new_time}"
            )

        previous = {"date": consultation.date.isoformat(), "time": consultation.time}

        consultation.date = new_date
        consultation.time = new_time
        if priority is not None:
            consultation.priority = ConsultationPriority(priority)
        consultation.reschedule_count += 1
        self._set_status(consultation, ConsultationStatus.RESCHEDULED)
        await self._claim_slot(slot_key(consultation.provider_id, new_date, new_time))

        priority_value = ConsultationPriority(consultation.priority).value
        event = self._add_event(
            EventKind.RESCHEDULED,
            consultation,
            message=(
                f"Consultation updated to {new_date.isoformat()} at {new_time} "
                f"(Priority: {priority_value})"
            ),
            context={"previous_date": previous["date"], "previous_time": previous["time"]},
        )

        await self.session.commit()

        audit_logger.log(
            action="consultation_rescheduled",
            actor_type="system",
            actor_id="booking",
            entity_type="consultation",
            entity_id=consultation.id,
            metadata={"from": previous, "to": {"date": new_date.isoformat(), "time": new_time}},
        )

        await self._dispatch(event, consultation)
        return consultation

    async def mark_missed(self, consultation_id: str) -> Consultation:
        """Mark a consultation as missed.

        Raises:
            AlreadyMissedError: If it is already missed
            InvalidTransitionError: If it is completed or canceled
        """
        consultation = await self.get_consultation(consultation_id)
        check_transition(consultation.status, ConsultationStatus.MISSED)

        self._set_status(consultation, ConsultationStatus.MISSED)
        event = self._add_event(
            EventKind.MISSED,
            consultation,
            message=(
                f"A consultation with Patient ID {consultation.patient_id} on "
                f"{consultation.date.isoformat()} at {consultation.time} was missed."
            ),
        )
        return await self._commit_transition(consultation, event, "consultation_missed")

    async def mark_completed(self, consultation_id: str) -> Consultation:
        """Mark a consultation as completed.

        Raises:
            InvalidTransitionError: If it is already in a terminal status
        """
        consultation = await self.get_consultation(consultation_id)
        check_transition(consultation.status, ConsultationStatus.COMPLETED)

        self._set_status(consultation, ConsultationStatus.COMPLETED)
        event = self._add_event(
            EventKind.COMPLETED,
            consultation,
            message=(
                f"Consultation on {consultation.date.isoformat()} at "
                f"{consultation.time} was marked as completed."
            ),
        )
        return await self._commit_transition(consultation, event, "consultation_completed")

    async def cancel(self, consultation_id: str, reason: str | None = None) -> Consultation:
        """Cancel a consultation. The record is kept with status canceled.

        Raises:
            InvalidTransitionError: If it is already in a terminal status
        """
        consultation = await self.get_consultation(consultation_id)
        check_transition(consultation.status, ConsultationStatus.CANCELED)

        self._set_status(consultation, ConsultationStatus.CANCELED)
        consultation.canceled_at = consultation.status_changed_at
        consultation.cancellation_reason = reason

        event = self._add_event(
            EventKind.CANCELED,
            consultation,
            message=(
                f"Consultation on {consultation.date.isoformat()} at "
                f"{consultation.time} has been canceled."
            ),
            context={"reason": reason} if reason else None,
        )
        return await self._commit_transition(consultation, event, "consultation_canceled")

    # =========================================================================
    # INTERNALS
    # =========================================================================

    def _set_status(self, consultation: Consultation, status: ConsultationStatus) -> None:
        consultation.status = status
        consultation.status_changed_at = utc_now()

    def _add_event(
        self,
        kind: EventKind,
        consultation: Consultation,
        message: str,
        context: dict[str, Any] | None = None,
    ) -> DomainEvent:
        """Stage the outbox event for a transition in the current transaction."""
        event = DomainEvent(
            id=str(uuid4()),
            kind=kind,
            provider_id=consultation.provider_id,
            consultation_id=consultation.id,
            message=message,
            context={
                "consultation_id": consultation.id,
                "patient_id": consultation.patient_id,
                "date": consultation.date.isoformat(),
                "time": consultation.time,
                "status": ConsultationStatus(consultation.status).value,
                "priority": ConsultationPriority(consultation.priority).value,
                **(context or {}),
            },
            status=EventStatus.PENDING,
            attempts=0,
        )
        self.session.add(event)
        return event

    async def _claim_slot(self, key: SlotKey) -> None:
        """Flush a change that puts a consultation on a slot.

        The unique index on active slots rejects the flush when a
        concurrent booking took the slot after our conflict check.
        """
        try:
            await self.session.flush()
        except IntegrityError as e:
            await self.session.rollback()
            logger.info(f"Lost race for slot {key}")
            raise ConflictError(f"Slot {key.date.isoformat()} {key.time} is no longer available") from e

    async def _commit_transition(
        self,
        consultation: Consultation,
        event: DomainEvent,
        action: str,
    ) -> Consultation:
        await self.session.commit()

        audit_logger.log(
            action=action,
            actor_type="system",
            actor_id="booking",
            entity_type="consultation",
            entity_id=consultation.id,
            metadata={"status": ConsultationStatus(consultation.status).value},
        )

        await self._dispatch(event, consultation)
        return consultation

    async def _dispatch(self, event: DomainEvent, consultation: Consultation) -> None:
        """Best-effort inline delivery of a committed event."""
        if self.emitter is None:
            return

        relay = OutboxRelay(self.session, self.emitter, max_attempts=self.outbox_max_attempts)
        await relay.deliver([event])
        await self.session.refresh(consultation)

