"""Explicit, idempotent database initialisation.

`init_db` creates missing tables, seeds the default course catalogue
when no professor exists yet and ensures the bootstrap admin account.
It never drops or rewrites existing data, so it is safe to run on
every start and from `scripts/init_db.py`.
"""

import logging
from typing import Optional
from sqlmodel import Session
from sqlalchemy.engine import Engine

from . import models, repositories
from .config import settings
from .database import UnitOfWork, create_db_and_tables, engine as default_engine
from .services import AuthService

logger = logging.getLogger("registration.bootstrap")

# (first_name, last_name, email, department, [(course name, description), ...])
DEFAULT_CATALOG = [
    ("Ana", "García", "ana.garcia@university.edu", "Mathematics", [
        ("Linear Algebra", "Foundations of linear algebra"),
        ("Differential Calculus", "Introduction to differential calculus"),
    ]),
    ("Carlos", "López", "carlos.lopez@university.edu", "Sciences", [
        ("General Physics", "Basic principles of physics"),
        ("Organic Chemistry", "Study of organic compounds"),
    ]),
    ("María", "Rodríguez", "maria.rodriguez@university.edu", "Humanities", [
        ("Spanish Literature", "Analysis of literary texts"),
        ("World History", "Major events of world history"),
    ]),
    ("José", "Martínez", "jose.martinez@university.edu", "Engineering", [
        ("Data Structures", "Fundamental algorithms and data structures"),
        ("Databases", "Design and management of databases"),
    ]),
    ("Laura", "Fernández", "laura.fernandez@university.edu", "Technology", [
        ("Web Programming", "Building web applications"),
        ("Computer Networks", "Networking fundamentals"),
    ]),
]


def seed_catalog(session: Session) -> int:
    """Insert the default professors and courses if there are no professors.

    Returns the number of courses created (0 when the catalogue exists).
    """
    professor_repo = repositories.ProfessorRepository(session)
    course_repo = repositories.CourseRepository(session)
    if professor_repo.count() > 0:
        return 0
    created = 0
    with UnitOfWork(session):
        for first, last, email, department, courses in DEFAULT_CATALOG:
            professor = professor_repo.add(models.Professor(
                first_name=first, last_name=last, email=email, department=department
            ))
            for name, description in courses:
                course_repo.add(models.Course(name=name, description=description, professor_id=professor.id))
                created += 1
    logger.info("catalog_seeded professors=%d courses=%d", len(DEFAULT_CATALOG), created)
    return created


def init_db(bind: Optional[Engine] = None, seed: Optional[bool] = None) -> dict:
    """Create tables, seed the catalogue and ensure the admin account.

    `seed` defaults to `settings.SEED_CATALOG`. The admin account is only
    bootstrapped when `settings.ADMIN_PASSWORD` is set.
    """
    bind = bind or default_engine
    seed = settings.SEED_CATALOG if seed is None else seed
    create_db_and_tables(bind)
    summary = {"courses_seeded": 0, "admin_created": False}
    with Session(bind) as session:
        if seed:
            summary["courses_seeded"] = seed_catalog(session)
        if settings.ADMIN_PASSWORD:
            summary["admin_created"] = AuthService(session).ensure_admin_account(
                settings.ADMIN_USERNAME, settings.ADMIN_EMAIL, settings.ADMIN_PASSWORD
            )
        else:
            logger.info("admin bootstrap skipped: ADMIN_PASSWORD not set")
    return summary
