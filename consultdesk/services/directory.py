"""Provider directory queries."""

from datetime import date
from typing import Sequence

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from consultdesk.models.provider import Provider
from consultdesk.services.exceptions import NoProvidersError, NotFoundError


class ProviderDirectory:
    """Read-only access to providers.

    Listings are ordered by provider id so that repeated calls return the
    same sequence; the matcher relies on this order as its tie-break.
    """

    def __init__(self, session: AsyncSession):
        self.session = session

    async def get_provider(self, provider_id: str) -> Provider:
        """Get a provider by ID."""
        provider = await self.session.get(Provider, provider_id)
        if not provider:
            raise NotFoundError(f"Provider {provider_id} not found")
        return provider

    async def list_providers(
        self,
        specialization: str | None = None,
    ) -> Sequence[Provider]:
        """List providers, optionally for one specialization."""
        query = select(Provider)

        if specialization:
            query = query.where(Provider.specialization == specialization)

        query = query.order_by(Provider.id)

        result = await self.session.execute(query)
        return result.scalars().all()

    async def eligible_providers(
        self,
        specialization: str,
        as_of: date | None = None,
    ) -> list[Provider]:
        """Get providers that can take a consultation for a specialization.

        Args:
            specialization: Required specialization tag (exact match)
            as_of: When given, providers whose license expired before this
                day are left out

        Returns:
            Providers in stable id order

        Raises:
            NoProvidersError: If no provider qualifies
        """
        query = select(Provider).where(Provider.specialization == specialization)

        if as_of is not None:
            query = query.where(Provider.license_expiry_date >= as_of)

        query = query.order_by(Provider.id)

        result = await self.session.execute(query)
        providers = list(result.scalars().all())

        if not providers:
            raise NoProvidersError(specialization)

        return providers

    async def providers_with_license_expired_before(self, day: date) -> Sequence[Provider]:
        """Get providers whose license expiry date is strictly before a day."""
        result = await self.session.execute(
            select(Provider)
            .where(Provider.license_expiry_date < day)
            .order_by(Provider.id)
        )
        return result.scalars().all()
