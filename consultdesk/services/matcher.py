"""First-fit provider matching.

The matcher walks the directory's eligible providers in their stable order
and takes the first one whose slot is free. It is not load-balanced: the
same inputs over the same data always pick the same provider.
"""

import logging
from datetime import date, datetime, time

from consultdesk.models.provider import Provider
from consultdesk.services.conflicts import SlotConflictIndex
from consultdesk.services.directory import ProviderDirectory
from consultdesk.services.exceptions import AllBusyError
from consultdesk.utils.time import normalize_date, normalize_time

logger = logging.getLogger(__name__)


class ProviderMatcher:
    """Select a provider for a requested slot.

    Selection has no side effects. The caller creates the consultation and
    relies on the unique slot index to reject a booking that lost a race
    between selection and insert.
    """

    def __init__(
        self,
        directory: ProviderDirectory,
        conflicts: SlotConflictIndex,
        exclude_expired: bool = True,
    ):
        self.directory = directory
        self.conflicts = conflicts
        self.exclude_expired = exclude_expired

    async def assign(
        self,
        specialization: str,
        day: date | datetime | str,
        slot_time: time | str,
        as_of: date | None = None,
    ) -> Provider:
        """Pick the first eligible provider without a conflict.

        Args:
            specialization: Required specialization
            day: Requested date
            slot_time: Requested time-of-day
            as_of: Day used for license validity (only when expired
                providers are excluded); defaults to the requested date

        Raises:
            NoProvidersError: If no provider has the specialization
            AllBusyError: If every eligible provider holds the slot
        """
        requested_date = normalize_date(day)
        requested_time = normalize_time(slot_time)

        license_day = None
        if self.exclude_expired:
            license_day = as_of or requested_date

        providers = await self.directory.eligible_providers(
            specialization, as_of=license_day
        )

        for provider in providers:
            if not await self.conflicts.has_conflict(
                provider.id, requested_date, requested_time
            ):
                logger.debug(
                    f"Matched provider {provider.id} for {specialization} "
                    f"on {requested_date} at {requested_time}"
                )
                return provider

        logger.info(
            f"All {len(providers)} {specialization} providers busy "
            f"on {requested_date} at {requested_time}"
        )
        raise AllBusyError(specialization, requested_date, requested_time)
