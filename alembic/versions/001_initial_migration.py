"""Initial migration - create appointments table and doctor view.

Revision ID: 001
Revises:
Create Date: 2025-10-20 00:00:00.000000

"""

from typing import Sequence, Union

import sqlalchemy as sa
from sqlalchemy.dialects import postgresql

from alembic import op
from app.models.appointments import DOCTOR_APPOINTMENTS_VIEW_SQL

# revision identifiers, used by Alembic.
revision: str = "001"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def _timestamps() -> list[sa.Column]:
    return [
        sa.Column(
            "created_at",
            postgresql.TIMESTAMP(timezone=True),
            server_default=sa.text("NOW()"),
            nullable=False,
        ),
        sa.Column(
            "updated_at",
            postgresql.TIMESTAMP(timezone=True),
            server_default=sa.text("NOW()"),
            nullable=False,
        ),
    ]


def upgrade() -> None:
    """Upgrade database schema."""
    # Enable pgcrypto extension
    op.execute('CREATE EXTENSION IF NOT EXISTS "pgcrypto"')

    # Display data for the doctor view
    op.create_table(
        "patients",
        sa.Column(
            "id", postgresql.UUID(), server_default=sa.text("gen_random_uuid()"), nullable=False
        ),
        sa.Column("patient_name", sa.Text(), nullable=True),
        sa.Column("username", sa.String(length=100), nullable=True),
        *_timestamps(),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("username"),
    )
    op.create_table(
        "doctors",
        sa.Column(
            "id", postgresql.UUID(), server_default=sa.text("gen_random_uuid()"), nullable=False
        ),
        sa.Column("doctor_id", sa.String(length=100), nullable=True),
        sa.Column("name", sa.Text(), nullable=False),
        sa.Column("specialization", sa.String(length=200), nullable=True),
        *_timestamps(),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("doctor_id"),
    )
    op.create_index("ix_doctors_specialization", "doctors", ["specialization"])

    # Create appointments table
    op.create_table(
        "appointments",
        sa.Column(
            "id", postgresql.UUID(), server_default=sa.text("gen_random_uuid()"), nullable=False
        ),
        sa.Column("patient_id", postgresql.UUID(), nullable=False),
        sa.Column("therapist_id", postgresql.UUID(), nullable=False),
        sa.Column("appointment_date", postgresql.TIMESTAMP(timezone=False), nullable=True),
        sa.Column("status", sa.Text(), server_default="pending", nullable=False),
        sa.Column("reason", sa.Text(), nullable=True),
        sa.Column("notes", sa.Text(), nullable=True),
        *_timestamps(),
        sa.CheckConstraint(
            "status IN ('pending', 'confirmed', 'completed', 'cancelled')",
            name="appointments_status_check",
        ),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index(
        "idx_appointments_therapist_date", "appointments", ["therapist_id", "appointment_date"]
    )
    op.create_index(
        "idx_appointments_patient_date", "appointments", ["patient_id", "appointment_date"]
    )

    op.execute(DOCTOR_APPOINTMENTS_VIEW_SQL)


def downgrade() -> None:
    """Downgrade database schema."""
    op.execute("DROP VIEW IF EXISTS v_doctor_appointments")
    op.drop_index("idx_appointments_patient_date", table_name="appointments")
    op.drop_index("idx_appointments_therapist_date", table_name="appointments")
    op.drop_table("appointments")
    op.drop_index("ix_doctors_specialization", table_name="doctors")
    op.drop_table("doctors")
    op.drop_table("patients")
