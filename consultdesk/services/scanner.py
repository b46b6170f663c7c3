"""Reminder, license expiry and daily summary scans.

Scans only read consultations and providers and hand events to the
notification emitter. Each item is emitted independently: one failed
notification is logged and counted, and the scan moves on.
"""

import logging
from dataclasses import dataclass, field
from datetime import date, datetime

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from consultdesk.models.consultation import ACTIVE_STATUSES, Consultation, ConsultationStatus
from consultdesk.models.notification import EventKind
from consultdesk.models.patient import Patient
from consultdesk.services.directory import ProviderDirectory
from consultdesk.services.exceptions import NotFoundError
from consultdesk.services.notifications import EventEmitter, NotificationEvent
from consultdesk.utils.time import add_days, normalize_date, utc_today

logger = logging.getLogger(__name__)


@dataclass
class ScanResult:
    """Outcome of one scan run."""

    scan: str
    run_date: date
    target_date: date
    scanned: int = 0
    emitted: int = 0
    failed: int = 0
    item_ids: list[str] = field(default_factory=list)
    failed_ids: list[str] = field(default_factory=list)

    def to_dict(self) -> dict:
        return {
            "scan": self.scan,
            "run_date": self.run_date.isoformat(),
            "target_date": self.target_date.isoformat(),
            "scanned": self.scanned,
            "emitted": self.emitted,
            "failed": self.failed,
            "item_ids": list(self.item_ids),
            "failed_ids": list(self.failed_ids),
        }


@dataclass
class SummaryEntry:
    """One consultation line in a provider's daily summary."""

    consultation_id: str
    patient_name: str
    time: str
    status: str


@dataclass
class ProviderSummary:
    """Consultations of one provider on one day."""

    provider_id: str
    provider_name: str
    date: date
    entries: list[SummaryEntry]
    notified: bool = False

    @property
    def text(self) -> str:
        lines = [f"Consultation Summary for Dr. {self.provider_name} on {self.date.isoformat()}", ""]
        for index, entry in enumerate(self.entries, start=1):
            lines.extend(
                [
                    f"#{index}",
                    f"Patient: {entry.patient_name}",
                    f"Time: {entry.time}",
                    f"Status: {entry.status}",
                    "",
                ]
            )
        return "\n".join(lines)


class ConsultationScanner:
    """Periodic scans over consultations and providers."""

    def __init__(
        self,
        session: AsyncSession,
        emitter: EventEmitter,
        reminder_lead_days: int = 1,
    ):
        self.session = session
        self.emitter = emitter
        self.reminder_lead_days = reminder_lead_days
        self.directory = ProviderDirectory(session)

    async def _emit_all(
        self,
        result: ScanResult,
        events: list[tuple[str, NotificationEvent]],
    ) -> ScanResult:
        """Emit events one by one, isolating failures per item."""
        for item_id, event in events:
            try:
                await self.emitter.emit(event)
            except Exception as e:
                logger.warning(
                    f"{result.scan}: notification for {item_id} failed: {e}",
                    extra={"provider_id": event.provider_id, "action": result.scan},
                )
                result.failed += 1
                result.failed_ids.append(item_id)
            else:
                result.emitted += 1

        logger.info(
            f"{result.scan} for {result.target_date}: scanned={result.scanned} "
            f"emitted={result.emitted} failed={result.failed}"
        )
        return result

    async def run_reminder_scan(self, today: date | datetime | str | None = None) -> ScanResult:
        """Emit a reminder for each active consultation due tomorrow.

        Args:
            today: Reference day (defaults to the current UTC date)

        Returns:
            Scan counts and the consultation ids that were selected
        """
        run_date = normalize_date(today) if today is not None else utc_today()
        target = add_days(run_date, self.reminder_lead_days)

        rows = await self.session.execute(
            select(Consultation, Patient.name)
            .outerjoin(Patient, Patient.id == Consultation.patient_id)
            .where(
                Consultation.date == target,
                Consultation.status.in_([s.value for s in ACTIVE_STATUSES]),
                Consultation.provider_id.isnot(None),
            )
            .order_by(Consultation.provider_id, Consultation.time, Consultation.id)
        )

        result = ScanResult(scan="reminder_scan", run_date=run_date, target_date=target)
        events: list[tuple[str, NotificationEvent]] = []

        for consultation, patient_name in rows.all():
            result.scanned += 1
            result.item_ids.append(consultation.id)
            events.append(
                (
                    consultation.id,
                    NotificationEvent(
                        kind=EventKind.REMINDER,
                        provider_id=consultation.provider_id,
                        message=(
                            f"Reminder: Your upcoming consultation is on "
                            f"{consultation.date.isoformat()} at {consultation.time}."
                        ),
                        context={
                            "consultation_id": consultation.id,
                            "patient_id": consultation.patient_id,
                            "patient_name": patient_name,
                            "date": consultation.date.isoformat(),
                            "time": consultation.time,
                            "status": ConsultationStatus(consultation.status).value,
                        },
                    ),
                )
            )

        return await self._emit_all(result, events)

    async def run_license_expiry_scan(self, today: date | datetime | str | None = None) -> ScanResult:
        """Emit an expiry notice for each provider whose license expired before today."""
        run_date = normalize_date(today) if today is not None else utc_today()

        providers = await self.directory.providers_with_license_expired_before(run_date)

        result = ScanResult(scan="license_expiry_scan", run_date=run_date, target_date=run_date)
        events: list[tuple[str, NotificationEvent]] = []

        for provider in providers:
            expiry = provider.license_expiry_date.isoformat()
            result.scanned += 1
            result.item_ids.append(provider.id)
            events.append(
                (
                    provider.id,
                    NotificationEvent(
                        kind=EventKind.LICENSE_EXPIRY,
                        provider_id=provider.id,
                        message=(
                            f"Your medical license (License No: {provider.license_number}) "
                            f"expired on {expiry}. Please renew it immediately."
                        ),
                        context={
                            "license_number": provider.license_number,
                            "license_expiry_date": expiry,
                        },
                    ),
                )
            )

        return await self._emit_all(result, events)

    async def send_provider_summary(
        self,
        provider_id: str,
        day: date | datetime | str,
    ) -> ProviderSummary:
        """Build and send a provider's consultation summary for a day.

        Raises:
            NotFoundError: If the provider is unknown or has no
                consultations that day
        """
        provider = await self.directory.get_provider(provider_id)
        target = normalize_date(day)

        rows = await self.session.execute(
            select(Consultation, Patient.name)
            .outerjoin(Patient, Patient.id == Consultation.patient_id)
            .where(
                Consultation.provider_id == provider.id,
                Consultation.date == target,
            )
            .order_by(Consultation.time, Consultation.id)
        )

        entries = [
            SummaryEntry(
                consultation_id=consultation.id,
                patient_name=patient_name or "Unknown Patient",
                time=consultation.time,
                status=ConsultationStatus(consultation.status).value,
            )
            for consultation, patient_name in rows.all()
        ]

        if not entries:
            raise NotFoundError(
                f"No consultations found for provider {provider_id} on {target.isoformat()}"
            )

        summary = ProviderSummary(
            provider_id=provider.id,
            provider_name=provider.name,
            date=target,
            entries=entries,
        )

        try:
            await self.emitter.emit(
                NotificationEvent(
                    kind=EventKind.SUMMARY,
                    provider_id=provider.id,
                    message=f"Your consultation summary for {target.isoformat()} is available.",
                    context={"date": target.isoformat(), "summary": summary.text},
                )
            )
        except Exception as e:
            logger.warning(f"Summary notification for provider {provider.id} failed: {e}")
        else:
            summary.notified = True

        return summary
