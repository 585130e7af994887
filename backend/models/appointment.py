"""Appointment model definitions."""

from datetime import datetime

from sqlalchemy import Column, Date, DateTime, ForeignKey, Index, Integer, String, text
from backend.database import Base


class Appointment(Base):
    """Represents a booked 30-minute slot with a doctor."""
    __tablename__ = "appointments"
    __table_args__ = (
        Index(
            "uq_appointments_active_slot",
            "doctor_id",
            "date",
            "time_slot",
            unique=True,
            postgresql_where=text("status <> 'cancelled'"),
            sqlite_where=text("status <> 'cancelled'"),
        ),
        Index("idx_appointments_patient_date", "patient_id", "date"),
    )

    id = Column(Integer, primary_key=True)
    patient_id = Column(Integer, ForeignKey("users.id"), nullable=False)
    doctor_id = Column(Integer, ForeignKey("doctors.id"), nullable=False)
    date = Column(Date, nullable=False)
    time_slot = Column(String(5), nullable=False)
    appointment_type = Column(String, nullable=False)
    status = Column(String, nullable=False, default="pending")
    symptoms = Column(String)
    notes = Column(String)
    cancellation_reason = Column(String)
    cancelled_by = Column(String)
    created_at = Column(DateTime, default=datetime.now)
    updated_at = Column(DateTime, default=datetime.now, onupdate=datetime.now)
