"""Prescription model definitions."""

from datetime import datetime

from sqlalchemy import JSON, Column, Date, DateTime, ForeignKey, Integer, String
from backend.database import Base


class Prescription(Base):
    """Prescription written for a completed appointment."""
    __tablename__ = "prescriptions"

    id = Column(Integer, primary_key=True)
    appointment_id = Column(Integer, ForeignKey("appointments.id"), unique=True, nullable=False)
    patient_id = Column(Integer, ForeignKey("users.id"), nullable=False)
    doctor_id = Column(Integer, ForeignKey("doctors.id"), nullable=False)
    diagnosis = Column(String, nullable=False)
    medicines = Column(JSON, default=list)  # [{name, dosage, frequency, duration}]
    tests = Column(JSON, default=list)
    notes = Column(String)
    follow_up_date = Column(Date)
    created_at = Column(DateTime, default=datetime.now)
