"""Pydantic request/response schemas used by the API.

Schemas keep API input/output shapes stable and provide validation for
controller handlers and tests. Output schemas are the public
projections of the tables: no password hash ever appears in them.
"""

from datetime import datetime
from email_validator import EmailNotValidError, validate_email
from pydantic import AfterValidator, BaseModel, ConfigDict, Field
from typing import Annotated, List, Optional

from .errors import EnrollmentFailure
from .models import MAX_ID


def _check_email(value: str) -> str:
    """Reject malformed addresses but keep the exact spelling that was sent.

    Emails are stored and compared as given, so the normalized form
    returned by `validate_email` is discarded.
    """
    try:
        validate_email(value, check_deliverability=False)
    except EmailNotValidError as exc:
        raise ValueError(str(exc)) from exc
    return value


Email = Annotated[str, Field(max_length=255), AfterValidator(_check_email)]


class LoginIn(BaseModel):
    """Payload for the login endpoint."""
    username: str
    password: str


class RegisterIn(BaseModel):
    """Payload for account registration."""
    username: str = Field(min_length=1, max_length=50)
    email: Email
    password: str
    first_name: str = Field(min_length=1, max_length=100)
    last_name: str = Field(min_length=1, max_length=100)
    role: Optional[str] = None


class ChangePasswordIn(BaseModel):
    current_password: str
    new_password: str


class UserOut(BaseModel):
    """Public projection of a `User`."""
    model_config = ConfigDict(from_attributes=True)

    id: int
    username: str
    email: str
    first_name: str
    last_name: str
    role: str
    is_active: bool
    created_at: datetime
    last_login_at: Optional[datetime] = None
    student_id: Optional[int] = None
    professor_id: Optional[int] = None


class AuthResult(BaseModel):
    """Outcome of a login attempt."""
    authenticated: bool
    user: Optional[UserOut] = None
    message: str
    access_token: Optional[str] = None
    expires_at: Optional[datetime] = None


class RegisterResult(BaseModel):
    """Outcome of a registration attempt."""
    success: bool
    user: Optional[UserOut] = None
    message: str
    access_token: Optional[str] = None


class EnrollmentIn(BaseModel):
    """Request to replace a student's enrollments with `course_ids`."""
    student_id: int
    course_ids: List[int]


class EnrollmentResult(BaseModel):
    ok: bool
    reason: Optional[EnrollmentFailure] = None
    message: str
    total_credits: Optional[int] = None


class StudentIn(BaseModel):
    first_name: str = Field(min_length=1, max_length=100)
    last_name: str = Field(min_length=1, max_length=100)
    email: Email


class StudentUpdateIn(StudentIn):
    """Student update; `username`/`new_password` also update the linked account."""
    username: Optional[str] = Field(default=None, min_length=1, max_length=50)
    new_password: Optional[str] = None


class ProfessorIn(BaseModel):
    first_name: str = Field(min_length=1, max_length=100)
    last_name: str = Field(min_length=1, max_length=100)
    email: Email
    department: str = Field(default="", max_length=100)


class CourseIn(BaseModel):
    name: str = Field(min_length=1, max_length=100)
    description: str = Field(default="", max_length=500)
    professor_id: int = Field(gt=0, le=MAX_ID)


class ProfessorSummary(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    first_name: str
    last_name: str
    email: str
    department: str


class CourseOut(BaseModel):
    id: int
    name: str
    description: str
    credits: int
    professor: Optional[ProfessorSummary] = None
    enrolled_students: List[str] = []


class CourseSummary(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    name: str
    description: str
    credits: int


class ProfessorOut(ProfessorSummary):
    courses: List[CourseSummary] = []


class StudentOut(BaseModel):
    id: int
    first_name: str
    last_name: str
    email: str
    student_code: str
    registration_date: datetime
    total_credits: int
    username: Optional[str] = None
    user_id: Optional[int] = None
    courses: List[CourseOut] = []


class ClassmateOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    first_name: str
    last_name: str


class CourseClassmatesOut(BaseModel):
    course_id: int
    course_name: str
    professor_name: str
    classmates: List[ClassmateOut] = []
