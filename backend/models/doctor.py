"""Doctor profile and weekly availability model definitions."""

from sqlalchemy import Boolean, Column, ForeignKey, Integer, String, UniqueConstraint
from sqlalchemy.orm import relationship

from backend.database import Base


class Doctor(Base):
    """Doctor profile attached to a user account."""
    __tablename__ = "doctors"

    id = Column(Integer, primary_key=True)
    user_id = Column(Integer, ForeignKey("users.id"), index=True)
    specialization = Column(String)
    is_approved = Column(Boolean, default=False)
    status = Column(String, default="inactive")  # active/inactive/suspended

    availability = relationship(
        "DoctorAvailability",
        cascade="all, delete-orphan",
        order_by="DoctorAvailability.day_of_week",
    )


class DoctorAvailability(Base):
    """One day-of-week window of a doctor's weekly template (Sunday = 0)."""
    __tablename__ = "doctor_availability"
    __table_args__ = (
        UniqueConstraint("doctor_id", "day_of_week", name="uq_doctor_availability_day"),
    )

    id = Column(Integer, primary_key=True)
    doctor_id = Column(Integer, ForeignKey("doctors.id"), nullable=False)
    day_of_week = Column(Integer, nullable=False)
    start_time = Column(String(5), nullable=False)
    end_time = Column(String(5), nullable=False)
    is_available = Column(Boolean, default=True)
