import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

import timetabling.models  # noqa: F401
from timetabling.api.deps import get_db
from timetabling.db.base import Base
from timetabling.main import app
from timetabling.models import (
    Booking,
    BookingKind,
    Enrollment,
    Lecturer,
    Room,
    RoomKind,
    TeachingMode,
    TimeSlot,
    Unit,
    UnitAssignment,
)


class Factory:
    """Persists catalog rows for tests; every call flushes."""

    def __init__(self, db):
        self.db = db

    def _save(self, row):
        self.db.add(row)
        self.db.flush()
        return row

    def room(self, name, capacity, kind=RoomKind.classroom, location="Main Campus"):
        return self._save(Room(name=name, capacity=capacity, kind=kind, location=location, is_active=True))

    def slot(self, day, start_time, end_time):
        return self._save(TimeSlot(day=day, start_time=start_time, end_time=end_time))

    def unit(self, code, credit_hours=3):
        return self._save(Unit(code=code, name=f"Unit {code}", credit_hours=credit_hours))

    def lecturer(self, code):
        return self._save(Lecturer(code=code, name=f"Lecturer {code}"))

    def enroll(self, unit_id, class_id, students, semester_id="S1"):
        for student_code in students:
            self._save(
                Enrollment(
                    student_code=student_code,
                    unit_id=unit_id,
                    class_id=class_id,
                    semester_id=semester_id,
                    status="enrolled",
                )
            )

    def assign(self, unit_id, class_id, lecturer_code, semester_id="S1"):
        return self._save(
            UnitAssignment(unit_id=unit_id, class_id=class_id, semester_id=semester_id, lecturer_code=lecturer_code)
        )

    def booking(self, **fields):
        defaults = {
            "kind": BookingKind.class_session,
            "unit_id": "U-existing",
            "class_id": None,
            "cohort_class_ids": [],
            "venue": "Remote",
            "location": None,
            "teaching_mode": TeachingMode.physical,
            "headcount": 1,
        }
        defaults.update(fields)
        if defaults["class_id"] and not defaults["cohort_class_ids"]:
            defaults["cohort_class_ids"] = [defaults["class_id"]]
        return self._save(Booking(**defaults))


@pytest.fixture()
def engine():
    engine = create_engine(
        "sqlite+pysqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(bind=engine)
    yield engine
    engine.dispose()


@pytest.fixture()
def session_factory(engine):
    return sessionmaker(autoflush=False, bind=engine)


@pytest.fixture()
def db_session(session_factory):
    db = session_factory()
    try:
        yield db
    finally:
        db.rollback()
        db.close()


@pytest.fixture()
def factory(db_session):
    return Factory(db_session)


@pytest.fixture()
def client(session_factory):
    def override_get_db():
        db = session_factory()
        try:
            yield db
        finally:
            db.close()

    app.dependency_overrides[get_db] = override_get_db

    with TestClient(app) as test_client:
        yield test_client

    app.dependency_overrides.clear()
