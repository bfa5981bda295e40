"""Appointment storage definitions using SQLAlchemy Core."""

from sqlalchemy import (
    CheckConstraint,
    Column,
    Index,
    MetaData,
    Table,
    Text,
    text,
)
from sqlalchemy.dialects.postgresql import TIMESTAMP, UUID

# Metadata for all tables
metadata = MetaData()

# Views are reflected by name only, create_all must not touch them
view_metadata = MetaData()

# Base appointments table
appointments = Table(
    "appointments",
    metadata,
    Column(
        "id",
        UUID(as_uuid=False),
        primary_key=True,
        server_default=text("gen_random_uuid()"),
    ),
    # Ownership / references
    Column("patient_id", UUID(as_uuid=False), nullable=False),
    # Assigned clinician, exposed as doctor_id
    Column("therapist_id", UUID(as_uuid=False), nullable=False),
    # Wall-clock instant, kept without a zone
    Column("appointment_date", TIMESTAMP(timezone=False), nullable=True),
    Column("status", Text, nullable=False, server_default="pending"),
    Column("reason", Text, nullable=True),
    Column("notes", Text, nullable=True),
    # Audit fields
    Column("created_at", TIMESTAMP(timezone=True), nullable=False, server_default=text("NOW()")),
    Column("updated_at", TIMESTAMP(timezone=True), nullable=False, server_default=text("NOW()")),
    CheckConstraint(
        "status IN ('pending', 'confirmed', 'completed', 'cancelled')",
        name="appointments_status_check",
    ),
    Index("idx_appointments_therapist_date", "therapist_id", "appointment_date"),
    Index("idx_appointments_patient_date", "patient_id", "appointment_date"),
)

# Enriched read view joining patient and doctor display data
doctor_appointments_view = Table(
    "v_doctor_appointments",
    view_metadata,
    Column("id", UUID(as_uuid=False), primary_key=True),
    Column("patient_id", UUID(as_uuid=False)),
    Column("therapist_id", UUID(as_uuid=False)),
    Column("status", Text),
    Column("appointment_date", TIMESTAMP(timezone=False)),
    Column("appointment_day", Text),
    Column("appointment_time", Text),
    Column("created_at", TIMESTAMP(timezone=True)),
    Column("updated_at", TIMESTAMP(timezone=True)),
    Column("display_patient_name", Text),
    Column("display_username", Text),
    Column("reason", Text),
    Column("doctor_name", Text),
    Column("specialization", Text),
)

DOCTOR_APPOINTMENTS_VIEW_SQL = """
CREATE OR REPLACE VIEW v_doctor_appointments AS
SELECT
    a.id,
    a.patient_id,
    a.therapist_id,
    a.status,
    a.appointment_date,
    to_char(a.appointment_date, 'YYYY-MM-DD') AS appointment_day,
    to_char(a.appointment_date, 'HH24:MI:SS') AS appointment_time,
    a.created_at,
    a.updated_at,
    p.patient_name AS display_patient_name,
    p.username AS display_username,
    COALESCE(a.reason, a.notes) AS reason,
    d.name AS doctor_name,
    d.specialization
FROM appointments a
LEFT JOIN patients p ON p.id = a.patient_id
LEFT JOIN doctors d ON d.id = a.therapist_id
"""
