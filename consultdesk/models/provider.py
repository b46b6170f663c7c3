"""Provider directory model."""

from datetime import date

from sqlalchemy import Date, String
from sqlalchemy.orm import Mapped, mapped_column

from consultdesk.db.base import Base, TimestampMixin


class Provider(Base, TimestampMixin):
    """A clinician who can be matched to consultations.

    Created by onboarding outside this service. The booking core only
    reads providers: by id, by specialization and by license expiry.
    """

    __tablename__ = "providers"

    name: Mapped[str] = mapped_column(
        String(150),
        nullable=False,
    )
    email: Mapped[str] = mapped_column(
        String(255),
        unique=True,
        nullable=False,
    )
    # Single specialization tag, matched by equality
    specialization: Mapped[str] = mapped_column(
        String(100),
        nullable=False,
        index=True,
    )
    license_number: Mapped[str | None] = mapped_column(
        String(50),
        nullable=True,
    )
    license_expiry_date: Mapped[date] = mapped_column(
        Date,
        nullable=False,
        index=True,
    )
    # Licensing jurisdiction
    state: Mapped[str | None] = mapped_column(
        String(50),
        nullable=True,
    )

    def __repr__(self) -> str:
        return f"<Provider {self.name} ({self.specialization})>"
