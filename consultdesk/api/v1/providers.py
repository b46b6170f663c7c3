"""Provider directory endpoints."""

from datetime import date as date_type

from fastapi import APIRouter
from pydantic import BaseModel, ConfigDict

from consultdesk.api.deps import DbSession, Scanner
from consultdesk.api.v1.consultations import ScanResultResponse
from consultdesk.services.directory import ProviderDirectory

router = APIRouter()


class ProviderResponse(BaseModel):
    """Provider response."""

    model_config = ConfigDict(from_attributes=True)

    id: str
    name: str
    email: str
    specialization: str
    license_number: str | None
    license_expiry_date: date_type
    state: str | None


class LicenseExpiryCheckRequest(BaseModel):
    """Optional body for a license expiry check."""

    today: date_type | None = None


@router.get(
    "",
    response_model=list[ProviderResponse],
)
async def list_providers(
    session: DbSession,
    specialization: str | None = None,
) -> list[ProviderResponse]:
    """List providers, optionally for one specialization."""
    directory = ProviderDirectory(session)
    providers = await directory.list_providers(specialization=specialization)

    return [ProviderResponse.model_validate(p) for p in providers]


@router.post(
    "/license-expiry-check",
    response_model=ScanResultResponse,
)
async def run_license_expiry_check(
    scanner: Scanner,
    request: LicenseExpiryCheckRequest | None = None,
) -> ScanResultResponse:
    """Notify every provider whose license expired before today."""
    result = await scanner.run_license_expiry_scan(today=request.today if request else None)
    return ScanResultResponse(**result.to_dict())
