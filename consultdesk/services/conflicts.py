"""Slot conflict index.

A slot is the (provider, calendar date, time) triple. It is taken when an
active consultation (scheduled or rescheduled) sits on it.
"""

from dataclasses import dataclass
from datetime import date, datetime, time

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from consultdesk.models.consultation import ACTIVE_STATUSES, Consultation
from consultdesk.utils.time import normalize_date, normalize_time


@dataclass(frozen=True)
class SlotKey:
    """Uniqueness key for active consultations."""

    provider_id: str
    date: date
    time: str

    def __str__(self) -> str:
        return f"{self.provider_id}@{self.date.isoformat()}T{self.time}"


def slot_key(
    provider_id: str,
    day: date | datetime | str,
    slot_time: time | str,
) -> SlotKey:
    """Build a normalized slot key."""
    return SlotKey(
        provider_id=provider_id,
        date=normalize_date(day),
        time=normalize_time(slot_time),
    )


class SlotConflictIndex:
    """Answers whether a provider's slot is already taken."""

    def __init__(self, session: AsyncSession):
        self.session = session

    async def has_conflict(
        self,
        provider_id: str,
        day: date | datetime | str,
        slot_time: time | str,
        exclude_consultation_id: str | None = None,
    ) -> bool:
        """Check for an active consultation on the slot.

        Args:
            provider_id: Provider holding the slot
            day: Requested date, normalized to a calendar day
            slot_time: Requested time-of-day key
            exclude_consultation_id: Consultation to ignore (the one being
                rescheduled)
        """
        key = slot_key(provider_id, day, slot_time)

        query = select(func.count(Consultation.id)).where(
            Consultation.provider_id == key.provider_id,
            Consultation.date == key.date,
            Consultation.time == key.time,
            Consultation.status.in_([s.value for s in ACTIVE_STATUSES]),
        )

        if exclude_consultation_id:
            query = query.where(Consultation.id != exclude_consultation_id)

        result = await self.session.execute(query)
        return result.scalar_one() > 0
