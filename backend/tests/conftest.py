import os

# Point the application at throwaway settings before the package is imported.
os.environ.setdefault("DATABASE_URL", "sqlite://")
os.environ.setdefault("SEED_CATALOG", "false")
os.environ.setdefault("ADMIN_PASSWORD", "")

import pytest
from fastapi.testclient import TestClient
from sqlalchemy.pool import StaticPool
from sqlmodel import SQLModel, Session, create_engine

from student_registration import models
from student_registration.database import get_session
from student_registration.main import app, _login_rate_limiter


@pytest.fixture
def engine():
    """A fresh in-memory SQLite database per test."""
    eng = create_engine("sqlite://", connect_args={"check_same_thread": False}, poolclass=StaticPool)
    SQLModel.metadata.create_all(eng)
    yield eng
    eng.dispose()


@pytest.fixture
def session(engine):
    with Session(engine) as s:
        yield s


@pytest.fixture
def client(engine):
    def _session_override():
        with Session(engine) as s:
            yield s

    app.dependency_overrides[get_session] = _session_override
    _login_rate_limiter.reset()
    yield TestClient(app)
    app.dependency_overrides.clear()


@pytest.fixture
def catalog(session):
    """Three professors; professor 1 teaches two courses.

    Returns `(professor_ids, course_ids)` where `course_ids[i]` is taught by
    `professor_ids[[0, 0, 1, 2][i]]`.
    """
    profs = [
        models.Professor(first_name="Ana", last_name="García", email="ana@uni.edu", department="Math"),
        models.Professor(first_name="Carlos", last_name="López", email="carlos@uni.edu", department="Science"),
        models.Professor(first_name="Laura", last_name="Fernández", email="laura@uni.edu", department="Tech"),
    ]
    session.add_all(profs)
    session.commit()
    owners = [profs[0], profs[0], profs[1], profs[2]]
    courses = [models.Course(name=f"Course {i}", description="", professor_id=p.id) for i, p in enumerate(owners)]
    session.add_all(courses)
    session.commit()
    return [p.id for p in profs], [c.id for c in courses]


@pytest.fixture
def make_student(session):
    counter = {"n": 0}

    def _make(first_name="Test", last_name="Student"):
        counter["n"] += 1
        student = models.Student(
            first_name=first_name,
            last_name=last_name,
            email=f"student{counter['n']}@test.com",
            student_code=f"STU2024{1000 + counter['n']}",
        )
        session.add(student)
        session.commit()
        session.refresh(student)
        return student

    return _make
