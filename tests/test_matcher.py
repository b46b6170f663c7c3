"""Tests for first-fit provider matching."""

from datetime import date
from unittest.mock import AsyncMock, MagicMock

import pytest
from sqlalchemy.ext.asyncio import AsyncSession

from consultdesk.models.patient import Patient
from consultdesk.models.provider import Provider
from consultdesk.services.conflicts import SlotConflictIndex
from consultdesk.services.directory import ProviderDirectory
from consultdesk.services.exceptions import AllBusyError, NoProvidersError
from consultdesk.services.matcher import ProviderMatcher

from tests.conftest import PROVIDER_A_ID, PROVIDER_B_ID, make_consultation, make_provider


def build_matcher(session: AsyncSession, exclude_expired: bool = True) -> ProviderMatcher:
    return ProviderMatcher(
        ProviderDirectory(session),
        SlotConflictIndex(session),
        exclude_expired=exclude_expired,
    )


class TestFirstFit:
    """Tests for provider selection order."""

    @pytest.mark.asyncio
    async def test_busy_first_provider_falls_through_to_second(
        self,
        async_session: AsyncSession,
        cardiologists: list[Provider],
        test_patient: Patient,
    ) -> None:
        """A is booked at 2024-01-10 10:00, so B is chosen."""
        async_session.add(make_consultation(PROVIDER_A_ID, day=date(2024, 1, 10), slot_time="10:00"))
        await async_session.commit()

        provider = await build_matcher(async_session).assign("Cardiology", date(2024, 1, 10), "10:00")

        assert provider.id == PROVIDER_B_ID

    @pytest.mark.asyncio
    async def test_free_slot_goes_to_first_provider(
        self,
        async_session: AsyncSession,
        cardiologists: list[Provider],
    ) -> None:
        provider = await build_matcher(async_session).assign("Cardiology", "2024-01-10", "10:00")

        assert provider.id == PROVIDER_A_ID

    @pytest.mark.asyncio
    async def test_assign_is_deterministic(
        self,
        async_session: AsyncSession,
        cardiologists: list[Provider],
    ) -> None:
        matcher = build_matcher(async_session)

        picks = {
            (await matcher.assign("Cardiology", date(2024, 1, 10), "10:00")).id for _ in range(5)
        }

        assert picks == {PROVIDER_A_ID}

    @pytest.mark.asyncio
    async def test_assign_has_no_side_effects(
        self,
        async_session: AsyncSession,
        cardiologists: list[Provider],
    ) -> None:
        matcher = build_matcher(async_session)

        await matcher.assign("Cardiology", date(2024, 1, 10), "10:00")

        assert not async_session.new
        assert not async_session.dirty


class TestMatchFailures:
    """Tests for NoProviders and AllBusy outcomes."""

    @pytest.mark.asyncio
    async def test_all_providers_busy(
        self,
        async_session: AsyncSession,
        cardiologists: list[Provider],
        test_patient: Patient,
    ) -> None:
        async_session.add_all(
            [
                make_consultation(PROVIDER_A_ID),
                make_consultation(PROVIDER_B_ID),
            ]
        )
        await async_session.commit()

        with pytest.raises(AllBusyError) as exc_info:
            await build_matcher(async_session).assign("Cardiology", date(2024, 1, 10), "10:00")

        assert exc_info.value.specialization == "Cardiology"
        assert exc_info.value.time == "10:00"

    @pytest.mark.asyncio
    async def test_no_provider_with_specialization(
        self,
        async_session: AsyncSession,
        cardiologists: list[Provider],
    ) -> None:
        with pytest.raises(NoProvidersError):
            await build_matcher(async_session).assign("Neurology", date(2024, 1, 10), "10:00")

    @pytest.mark.asyncio
    async def test_all_busy_checks_every_provider_once(self) -> None:
        """Each eligible provider is checked exactly once before giving up."""
        providers = [MagicMock(id=f"provider-{i}") for i in range(3)]
        directory = MagicMock()
        directory.eligible_providers = AsyncMock(return_value=providers)
        conflicts = MagicMock()
        conflicts.has_conflict = AsyncMock(return_value=True)

        matcher = ProviderMatcher(directory, conflicts)

        with pytest.raises(AllBusyError):
            await matcher.assign("Cardiology", date(2024, 1, 10), "10:00")

        assert conflicts.has_conflict.await_count == 3


class TestLicenseFilter:
    """Expired providers receive no new bookings unless configured."""

    @pytest.mark.asyncio
    async def test_expired_provider_skipped(self, async_session: AsyncSession) -> None:
        async_session.add_all(
            [
                make_provider(PROVIDER_A_ID, "Dr Adams", license_expiry_date=date(2024, 1, 1)),
                make_provider(PROVIDER_B_ID, "Dr Bell"),
            ]
        )
        await async_session.commit()

        provider = await build_matcher(async_session).assign("Cardiology", date(2024, 1, 10), "10:00")

        assert provider.id == PROVIDER_B_ID

    @pytest.mark.asyncio
    async def test_only_expired_providers_is_no_providers(self, async_session: AsyncSession) -> None:
        async_session.add(
            make_provider(PROVIDER_A_ID, "Dr Adams", license_expiry_date=date(2024, 1, 1))
        )
        await async_session.commit()

        with pytest.raises(NoProvidersError):
            await build_matcher(async_session).assign("Cardiology", date(2024, 1, 10), "10:00")

    @pytest.mark.asyncio
    async def test_filter_can_be_disabled(self, async_session: AsyncSession) -> None:
        async_session.add(
            make_provider(PROVIDER_A_ID, "Dr Adams", license_expiry_date=date(2024, 1, 1))
        )
        await async_session.commit()

        provider = await build_matcher(async_session, exclude_expired=False).assign(
            "Cardiology", date(2024, 1, 10), "10:00"
        )

        assert provider.id == PROVIDER_A_ID

    @pytest.mark.asyncio
    async def test_as_of_overrides_requested_date(self, async_session: AsyncSession) -> None:
        """License valid on the booking date but checked as of a later day."""
        async_session.add_all(
            [
                make_provider(PROVIDER_A_ID, "Dr Adams", license_expiry_date=date(2024, 1, 15)),
                make_provider(PROVIDER_B_ID, "Dr Bell"),
            ]
        )
        await async_session.commit()
        matcher = build_matcher(async_session)

        by_booking_date = await matcher.assign("Cardiology", date(2024, 1, 10), "10:00")
        by_later_day = await matcher.assign(
            "Cardiology", date(2024, 1, 10), "10:00", as_of=date(2024, 1, 20)
        )

        assert by_booking_date.id == PROVIDER_A_ID
        assert by_later_day.id == PROVIDER_B_ID
