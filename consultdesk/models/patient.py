"""Patient model."""

from sqlalchemy import String
from sqlalchemy.orm import Mapped, mapped_column

from consultdesk.db.base import Base, TimestampMixin


class Patient(Base, TimestampMixin):
    """Patient requesting consultations.

    Registered by the intake flow; read-only here.
    """

    __tablename__ = "patients"

    name: Mapped[str] = mapped_column(
        String(150),
        nullable=False,
    )
    email: Mapped[str | None] = mapped_column(
        String(255),
        nullable=True,
    )
    # Specialization the patient was referred for; used when a booking
    # request does not name one
    reason_for_consultation: Mapped[str] = mapped_column(
        String(100),
        nullable=False,
    )

    def __repr__(self) -> str:
        return f"<Patient {self.name}>"
