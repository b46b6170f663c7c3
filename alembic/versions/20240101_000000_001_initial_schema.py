"""Initial schema: providers, patients, consultations and notifications.

Revision ID: 001
Revises:
Create Date: 2024-01-01 00:00:00.000000

"""

from typing import Sequence, Union

import sqlalchemy as sa
from alembic import op
from sqlalchemy.dialects import postgresql

# revision identifiers, used by Alembic.
revision: str = "001"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


ACTIVE_SLOT_PREDICATE = "status IN ('scheduled', 'rescheduled')"


def upgrade() -> None:
    """Create initial database schema."""

    # Providers table
    op.create_table(
        "providers",
        sa.Column("id", postgresql.UUID(as_uuid=False), nullable=False),
        sa.Column("name", sa.String(150), nullable=False),
        sa.Column("email", sa.String(255), nullable=False),
        sa.Column("specialization", sa.String(100), nullable=False),
        sa.Column("license_number", sa.String(50), nullable=True),
        sa.Column("license_expiry_date", sa.Date(), nullable=False),
        sa.Column("state", sa.String(50), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=True),
        sa.PrimaryKeyConstraint("id", name="pk_providers"),
        sa.UniqueConstraint("email", name="uq_providers_email"),
    )
    op.create_index("ix_providers_specialization", "providers", ["specialization"])
    op.create_index("ix_providers_license_expiry_date", "providers", ["license_expiry_date"])

    # Patients table
    op.create_table(
        "patients",
        sa.Column("id", postgresql.UUID(as_uuid=False), nullable=False),
        sa.Column("name", sa.String(150), nullable=False),
        sa.Column("email", sa.String(255), nullable=True),
        sa.Column("reason_for_consultation", sa.String(100), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=True),
        sa.PrimaryKeyConstraint("id", name="pk_patients"),
    )

    # Consultations table
    op.create_table(
        "consultations",
        sa.Column("id", postgresql.UUID(as_uuid=False), nullable=False),
        sa.Column("patient_id", postgresql.UUID(as_uuid=False), nullable=False),
        sa.Column("provider_id", postgresql.UUID(as_uuid=False), nullable=True),
        sa.Column("date", sa.Date(), nullable=False),
        sa.Column("time", sa.String(16), nullable=False),
        sa.Column("status", sa.String(20), nullable=False),
        sa.Column("priority", sa.String(10), nullable=False),
        sa.Column("reschedule_count", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("status_changed_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("canceled_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("cancellation_reason", sa.Text(), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=True),
        sa.ForeignKeyConstraint(
            ["patient_id"],
            ["patients.id"],
            name="fk_consultations_patient_id_patients",
            ondelete="RESTRICT",
        ),
        sa.ForeignKeyConstraint(
            ["provider_id"],
            ["providers.id"],
            name="fk_consultations_provider_id_providers",
            ondelete="RESTRICT",
        ),
        sa.PrimaryKeyConstraint("id", name="pk_consultations"),
    )
    op.create_index("ix_consultations_patient_id", "consultations", ["patient_id"])
    op.create_index("ix_consultations_provider_id", "consultations", ["provider_id"])
    op.create_index("ix_consultations_date", "consultations", ["date"])
    op.create_index("ix_consultations_status", "consultations", ["status"])

    # One active consultation per provider slot
    op.create_index(
        "uq_consultations_active_slot",
        "consultations",
        ["provider_id", "date", "time"],
        unique=True,
        postgresql_where=sa.text(ACTIVE_SLOT_PREDICATE),
        sqlite_where=sa.text(ACTIVE_SLOT_PREDICATE),
    )

    # Domain event outbox
    op.create_table(
        "domain_events",
        sa.Column("id", postgresql.UUID(as_uuid=False), nullable=False),
        sa.Column("kind", sa.String(30), nullable=False),
        sa.Column("provider_id", postgresql.UUID(as_uuid=False), nullable=False),
        sa.Column("consultation_id", postgresql.UUID(as_uuid=False), nullable=True),
        sa.Column("message", sa.Text(), nullable=False),
        sa.Column("context", sa.JSON(), nullable=True),
        sa.Column("status", sa.String(20), nullable=False),
        sa.Column("attempts", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("last_error", sa.Text(), nullable=True),
        sa.Column("delivered_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=True),
        sa.ForeignKeyConstraint(
            ["provider_id"],
            ["providers.id"],
            name="fk_domain_events_provider_id_providers",
            ondelete="CASCADE",
        ),
        sa.ForeignKeyConstraint(
            ["consultation_id"],
            ["consultations.id"],
            name="fk_domain_events_consultation_id_consultations",
            ondelete="SET NULL",
        ),
        sa.PrimaryKeyConstraint("id", name="pk_domain_events"),
    )
    op.create_index("ix_domain_events_kind", "domain_events", ["kind"])
    op.create_index("ix_domain_events_provider_id", "domain_events", ["provider_id"])
    op.create_index("ix_domain_events_consultation_id", "domain_events", ["consultation_id"])
    op.create_index("ix_domain_events_status", "domain_events", ["status"])

    # Provider notifications
    op.create_table(
        "notifications",
        sa.Column("id", postgresql.UUID(as_uuid=False), nullable=False),
        sa.Column("provider_id", postgresql.UUID(as_uuid=False), nullable=False),
        sa.Column("type", sa.String(30), nullable=False),
        sa.Column("event_kind", sa.String(30), nullable=False),
        sa.Column("message", sa.Text(), nullable=False),
        sa.Column("is_read", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=True),
        sa.ForeignKeyConstraint(
            ["provider_id"],
            ["providers.id"],
            name="fk_notifications_provider_id_providers",
            ondelete="CASCADE",
        ),
        sa.PrimaryKeyConstraint("id", name="pk_notifications"),
    )
    op.create_index("ix_notifications_provider_id", "notifications", ["provider_id"])


def downgrade() -> None:
    """Drop initial database schema."""
    op.drop_index("ix_notifications_provider_id", table_name="notifications")
    op.drop_table("notifications")

    op.drop_index("ix_domain_events_status", table_name="domain_events")
    op.drop_index("ix_domain_events_consultation_id", table_name="domain_events")
    op.drop_index("ix_domain_events_provider_id", table_name="domain_events")
    op.drop_index("ix_domain_events_kind", table_name="domain_events")
    op.drop_table("domain_events")

    op.drop_index("uq_consultations_active_slot", table_name="consultations")
    op.drop_index("ix_consultations_status", table_name="consultations")
    op.drop_index("ix_consultations_date", table_name="consultations")
    op.drop_index("ix_consultations_provider_id", table_name="consultations")
    op.drop_index("ix_consultations_patient_id", table_name="consultations")
    op.drop_table("consultations")

    op.drop_table("patients")

    op.drop_index("ix_providers_license_expiry_date", table_name="providers")
    op.drop_index("ix_providers_specialization", table_name="providers")
    op.drop_table("providers")
