from datetime import datetime

import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker

from backend.database import Base
from backend.models.appointment import Appointment  # noqa: F401
from backend.models.doctor import Doctor, DoctorAvailability  # noqa: F401
from backend.models.prescription import Prescription  # noqa: F401
from backend.models.user import User
from backend.scheduling.availability import AvailabilityWindow
from backend.scheduling.clock import FixedClock
from backend.scheduling.repository import SqlAlchemyRepository
from backend.scheduling.service import SchedulingService
from backend.scheduling.state_machine import Actor

# Monday 5 January 2026, 08:00.
NOW = datetime(2026, 1, 5, 8, 0)
WEDNESDAY = 3


@pytest.fixture
def scheduling_db():
    engine = create_engine('sqlite:///:memory:')
    testing_session_local = sessionmaker(autocommit=False, autoflush=False, bind=engine)
    Base.metadata.create_all(bind=engine)

    db = testing_session_local()
    try:
        yield db
    finally:
        db.close()
        Base.metadata.drop_all(bind=engine)


@pytest.fixture
def repository(scheduling_db):
    return SqlAlchemyRepository(scheduling_db)


@pytest.fixture
def clock():
    return FixedClock(NOW)


@pytest.fixture
def service(repository, clock):
    return SchedulingService(repository, clock)


@pytest.fixture
def wednesday_template():
    return [
        AvailabilityWindow(day, '09:00', '10:00', True)
        if day == WEDNESDAY
        else AvailabilityWindow(day, '09:00', '19:00', False)
        for day in range(7)
    ]


def _add_user(db, email: str, role: str) -> User:
    user = User(email=email, name=email.split('@')[0].title(), hashed_password='', role=role)
    db.add(user)
    db.commit()
    db.refresh(user)
    return user


@pytest.fixture
def patient(scheduling_db):
    return _add_user(scheduling_db, 'patient@example.com', 'patient')


@pytest.fixture
def other_patient(scheduling_db):
    return _add_user(scheduling_db, 'other@example.com', 'patient')


@pytest.fixture
def doctor_user(scheduling_db):
    return _add_user(scheduling_db, 'doctor@example.com', 'doctor')


@pytest.fixture
def admin_user(scheduling_db):
    return _add_user(scheduling_db, 'admin@example.com', 'admin')


@pytest.fixture
def doctor(repository, doctor_user, wednesday_template):
    return repository.create_doctor(
        doctor_user.id,
        'Cardiology',
        is_approved=True,
        availability=wednesday_template,
    )


@pytest.fixture
def patient_actor(patient):
    return Actor(actor_id=patient.id, role='patient')


@pytest.fixture
def other_patient_actor(other_patient):
    return Actor(actor_id=other_patient.id, role='patient')


@pytest.fixture
def doctor_actor(doctor_user, doctor):
    return Actor(actor_id=doctor_user.id, role='doctor', doctor_id=doctor.id)


@pytest.fixture
def admin_actor(admin_user):
    return Actor(actor_id=admin_user.id, role='admin')
