"""SQLModel data models.

This module defines the registration tables using SQLModel. Links
between tables are plain foreign-key columns; joins are performed
explicitly in `repositories` instead of through ORM relationships.
"""

from typing import Optional
from enum import Enum
from sqlmodel import SQLModel, Field
from sqlalchemy import UniqueConstraint
from datetime import datetime, timezone

# Every course is worth the same number of credits.
CREDITS_PER_COURSE = 3
MAX_COURSES_PER_STUDENT = 3
# Largest value an INTEGER primary key column can hold.
MAX_ID = 2**63 - 1


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class Role(str, Enum):
    STUDENT = "Student"
    PROFESSOR = "Professor"
    ADMIN = "Admin"


class Professor(SQLModel, table=True):
    """A professor who teaches zero or more courses."""
    id: Optional[int] = Field(default=None, primary_key=True)
    first_name: str = Field(max_length=100)
    last_name: str = Field(max_length=100)
    email: str = Field(index=True, unique=True, max_length=255)
    department: str = Field(default="", max_length=100)


class Course(SQLModel, table=True):
    """A course owned by exactly one `Professor`."""
    id: Optional[int] = Field(default=None, primary_key=True)
    name: str = Field(max_length=100)
    description: str = Field(default="", max_length=500)
    credits: int = CREDITS_PER_COURSE
    professor_id: int = Field(foreign_key='professor.id', index=True)


class Student(SQLModel, table=True):
    """A registered student.

    Fields:
    - `student_code`: generated human-readable identifier (`STU<year><4 digits>`)
    - `total_credits`: sum of the credits of the current enrollments
    """
    id: Optional[int] = Field(default=None, primary_key=True)
    first_name: str = Field(max_length=100)
    last_name: str = Field(max_length=100)
    email: str = Field(index=True, unique=True, max_length=255)
    student_code: str = Field(index=True, unique=True, max_length=20)
    registration_date: datetime = Field(default_factory=utcnow)
    total_credits: int = 0


class Enrollment(SQLModel, table=True):
    """Link between one `Student` and one `Course`."""
    __table_args__ = (UniqueConstraint('student_id', 'course_id', name='uq_enrollment_student_course'),)

    id: Optional[int] = Field(default=None, primary_key=True)
    student_id: int = Field(foreign_key='student.id', index=True)
    course_id: int = Field(foreign_key='course.id', index=True)
    enrollment_date: datetime = Field(default_factory=utcnow)


class User(SQLModel, table=True):
    """A login account.

    Fields:
    - `username`: unique login name
    - `password_hash`: hashed password string (never store plaintext)
    - `role`: one of `Role`
    - `student_id` / `professor_id`: optional link to the person record
    """
    id: Optional[int] = Field(default=None, primary_key=True)
    username: str = Field(index=True, nullable=False, unique=True, max_length=50)
    email: str = Field(index=True, nullable=False, unique=True, max_length=255)
    password_hash: str
    first_name: str = Field(default="", max_length=100)
    last_name: str = Field(default="", max_length=100)
    role: str = Field(default=Role.STUDENT.value, max_length=20)
    is_active: bool = True
    created_at: datetime = Field(default_factory=utcnow)
    last_login_at: Optional[datetime] = None
    student_id: Optional[int] = Field(default=None, foreign_key='student.id')
    professor_id: Optional[int] = Field(default=None, foreign_key='professor.id')
