"""Business logic services used by HTTP controllers.

This module holds small service classes that coordinate repositories
and the domain rules. Services are intentionally thin: they validate,
apply the rule and persist through repositories, grouping the writes of
each operation in one `UnitOfWork`.
"""

import logging
from datetime import datetime, timedelta, timezone
from passlib.context import CryptContext
import jwt
from typing import Iterable, List, Optional, Sequence, Tuple
from sqlmodel import Session

from . import models, repositories, schemas
from .config import settings
from .database import UnitOfWork
from .errors import (
    ConflictError,
    EnrollmentError,
    EnrollmentFailure,
    NotFoundError,
    RegistrationError,
    ValidationFailure,
)
from .utils.student_codes import generate_student_code

PWD_CTX = CryptContext(schemes=["pbkdf2_sha256"], deprecated="auto")
INVALID_CREDENTIALS = "incorrect username or password"

logger = logging.getLogger("registration.services")


def create_access_token(user: models.User) -> Tuple[str, datetime]:
    """Sign a JWT for `user` and return it with its expiry time."""
    expires_at = datetime.now(timezone.utc) + timedelta(hours=settings.JWT_EXPIRE_HOURS)
    payload = {
        "user_id": user.id,
        "username": user.username,
        "email": user.email,
        "role": user.role,
        "first_name": user.first_name,
        "last_name": user.last_name,
        "iss": settings.JWT_ISSUER,
        "aud": settings.JWT_AUDIENCE,
        "exp": int(expires_at.timestamp()),
    }
    token = jwt.encode(payload, settings.JWT_SECRET, algorithm=settings.JWT_ALGORITHM)
    return token, expires_at


def normalize_role(role: Optional[str]) -> models.Role:
    """Map a requested role name onto `Role` ignoring case; blank means Student."""
    if role is None or not role.strip():
        return models.Role.STUDENT
    wanted = role.strip().lower()
    for candidate in models.Role:
        if candidate.value.lower() == wanted:
            return candidate
    raise ValidationFailure(f"unknown role: {role}")


def public_user(user: models.User) -> schemas.UserOut:
    return schemas.UserOut.model_validate(user)


def course_out(course: models.Course, professor: Optional[models.Professor], enrolled: Iterable[models.Student] = ()) -> schemas.CourseOut:
    return schemas.CourseOut(
        id=course.id,
        name=course.name,
        description=course.description,
        credits=course.credits,
        professor=schemas.ProfessorSummary.model_validate(professor) if professor else None,
        enrolled_students=[f"{s.first_name} {s.last_name}" for s in enrolled],
    )


def _valid_id(value) -> bool:
    return value is not None and 0 < value <= models.MAX_ID


def validate_enrollment_request(student_id: int, course_ids: Sequence[int]):
    """Reject malformed enrollment requests before the enrollment rules run.

    Raises `ValidationFailure` when no course is selected or an id is
    outside `1..MAX_ID`.
    """
    if not _valid_id(student_id):
        raise ValidationFailure("student id must be a positive 64-bit integer")
    if not course_ids:
        raise ValidationFailure("select at least one course")
    if not all(_valid_id(cid) for cid in course_ids):
        raise ValidationFailure("course ids must be positive 64-bit integers")


class AuthService:
    """Account operations: login, registration and password changes."""
    def __init__(self, session: Session):
        self.session = session
        self.user_repo = repositories.UserRepository(session)
        self.student_repo = repositories.StudentRepository(session)
        self.professor_repo = repositories.ProfessorRepository(session)

    def login(self, username: str, password: str) -> schemas.AuthResult:
        """Verify credentials and issue a signed token on success.

        Unknown usernames, inactive accounts and wrong passwords produce
        the same result and message.
        """
        user = self.user_repo.get_active_by_username(username)
        if user is None:
            # keep the timing of unknown users close to a real verification
            PWD_CTX.dummy_verify()
            logger.info("login_failed username=%s", username)
            return schemas.AuthResult(authenticated=False, message=INVALID_CREDENTIALS)
        if not PWD_CTX.verify(password, user.password_hash):
            logger.info("login_failed username=%s", username)
            return schemas.AuthResult(authenticated=False, message=INVALID_CREDENTIALS)
        with UnitOfWork(self.session):
            user.last_login_at = models.utcnow()
            self.session.add(user)
        token, expires_at = create_access_token(user)
        logger.info("login_succeeded user_id=%s", user.id)
        return schemas.AuthResult(
            authenticated=True,
            user=public_user(user),
            message="login successful",
            access_token=token,
            expires_at=expires_at,
        )

    def register(self, username: str, email: str, password: str, first_name: str, last_name: str, role: Optional[str] = None) -> schemas.RegisterResult:
        """Create an account and, for students, its companion `Student` row.

        Business-rule failures (duplicates, blank password, unknown role)
        are returned as `success=False` rather than raised.
        """
        try:
            user = self._create_account(username, email, password, first_name, last_name, role)
        except RegistrationError as exc:
            logger.info("register_rejected username=%s reason=%s", username, exc.message)
            return schemas.RegisterResult(success=False, message=exc.message)
        token, _ = create_access_token(user)
        logger.info("register_succeeded user_id=%s role=%s", user.id, user.role)
        return schemas.RegisterResult(success=True, user=public_user(user), message="user registered", access_token=token)

    def _create_account(self, username, email, password, first_name, last_name, role) -> models.User:
        if not password or not password.strip():
            raise ValidationFailure("password must not be empty")
        normalized = normalize_role(role)
        with UnitOfWork(self.session):
            if self.user_repo.exists(username, email):
                raise ConflictError("username or email already exists")
            user = models.User(
                username=username,
                email=email,
                password_hash=PWD_CTX.hash(password),
                first_name=first_name,
                last_name=last_name,
                role=normalized.value,
            )
            if normalized is models.Role.STUDENT:
                if self.student_repo.email_taken(email):
                    raise ConflictError("a student with that email already exists")
                student = self.student_repo.add(models.Student(
                    first_name=first_name,
                    last_name=last_name,
                    email=email,
                    student_code=generate_student_code(self.student_repo.code_exists, settings.STUDENT_CODE_MAX_ATTEMPTS),
                ))
                user.student_id = student.id
            elif normalized is models.Role.PROFESSOR:
                professor = self.professor_repo.get_by_email(email)
                if professor:
                    user.professor_id = professor.id
            self.user_repo.add(user)
        return user

    def change_password(self, user_id: int, current_password: str, new_password: str) -> bool:
        """Replace the password hash; False when the user, current password or new password is unusable."""
        user = self.user_repo.get(user_id)
        if user is None or not new_password or not new_password.strip():
            return False
        if not PWD_CTX.verify(current_password, user.password_hash):
            logger.info("change_password_rejected user_id=%s", user_id)
            return False
        with UnitOfWork(self.session):
            user.password_hash = PWD_CTX.hash(new_password)
            self.session.add(user)
        logger.info("password_changed user_id=%s", user_id)
        return True

    def get_user(self, user_id: int) -> Optional[schemas.UserOut]:
        """Return the public projection of an active user, or None."""
        user = self.user_repo.get(user_id)
        if user is None or not user.is_active:
            return None
        return public_user(user)

    def ensure_admin_account(self, username: str, email: str, password: str) -> bool:
        """Create the bootstrap admin account unless its username or email is taken.

        Returns True when an account was created.
        """
        if self.user_repo.exists(username, email):
            if not self.user_repo.get_by_username(username):
                logger.warning("admin_account_skipped email=%s already belongs to another user", email)
            return False
        with UnitOfWork(self.session):
            self.user_repo.add(models.User(
                username=username,
                email=email,
                password_hash=PWD_CTX.hash(password),
                first_name="System",
                last_name="Administrator",
                role=models.Role.ADMIN.value,
            ))
        logger.info("admin_account_created username=%s", username)
        return True


class EnrollmentService:
    """Apply the enrollment rules and replace a student's course set."""
    def __init__(self, session: Session):
        self.session = session
        self.student_repo = repositories.StudentRepository(session)
        self.course_repo = repositories.CourseRepository(session)
        self.enrollment_repo = repositories.EnrollmentRepository(session)

    def enroll(self, student_id: int, course_ids: Sequence[int]) -> schemas.EnrollmentResult:
        """Replace the enrollments of `student_id` with `course_ids`.

        The checks run in order: the student exists, at most
        `MAX_COURSES_PER_STUDENT` courses, every course exists, and no
        two courses share a professor. The first failing check is
        reported and nothing is written. On success old links are
        deleted, new ones inserted and `total_credits` recomputed in a
        single transaction.
        """
        course_ids = list(course_ids)
        try:
            with UnitOfWork(self.session):
                total = self._replace_enrollments(student_id, course_ids)
        except EnrollmentError as exc:
            logger.info("enrollment_rejected student_id=%s reason=%s", student_id, exc.reason.value)
            return schemas.EnrollmentResult(ok=False, reason=exc.reason, message=exc.message)
        logger.info("enrollment_replaced student_id=%s courses=%s total_credits=%s", student_id, course_ids, total)
        return schemas.EnrollmentResult(ok=True, message="student enrolled", total_credits=total)

    def _replace_enrollments(self, student_id: int, course_ids: List[int]) -> int:
        student = self.student_repo.get(student_id)
        if student is None:
            raise EnrollmentError(EnrollmentFailure.NOT_FOUND, "student not found")
        if len(course_ids) > models.MAX_COURSES_PER_STUDENT:
            raise EnrollmentError(
                EnrollmentFailure.TOO_MANY_COURSES,
                f"cannot enroll in more than {models.MAX_COURSES_PER_STUDENT} courses",
            )
        found = self.course_repo.get_many(course_ids)
        if any(cid not in found for cid in course_ids):
            raise EnrollmentError(EnrollmentFailure.COURSE_NOT_FOUND, "one or more courses do not exist")
        courses = [found[cid] for cid in course_ids]
        professor_ids = [c.professor_id for c in courses]
        if len(set(professor_ids)) != len(professor_ids):
            raise EnrollmentError(
                EnrollmentFailure.DUPLICATE_PROFESSOR,
                "cannot take two courses with the same professor",
            )
        self.enrollment_repo.replace_for_student(student.id, course_ids)
        student.total_credits = sum(c.credits for c in courses)
        self.session.add(student)
        return student.total_credits


class StudentService:
    """Student catalogue: CRUD, projections and classmates."""
    def __init__(self, session: Session):
        self.session = session
        self.student_repo = repositories.StudentRepository(session)
        self.professor_repo = repositories.ProfessorRepository(session)
        self.course_repo = repositories.CourseRepository(session)
        self.enrollment_repo = repositories.EnrollmentRepository(session)
        self.user_repo = repositories.UserRepository(session)

    def _to_out(self, student: models.Student) -> schemas.StudentOut:
        courses = self.enrollment_repo.list_courses_for_student(student.id)
        professors = self.professor_repo.get_many(c.professor_id for c in courses)
        user = self.user_repo.get_by_student(student.id)
        return schemas.StudentOut(
            id=student.id,
            first_name=student.first_name,
            last_name=student.last_name,
            email=student.email,
            student_code=student.student_code,
            registration_date=student.registration_date,
            total_credits=student.total_credits,
            username=user.username if user else None,
            user_id=user.id if user else None,
            courses=[course_out(c, professors.get(c.professor_id)) for c in courses],
        )

    def _require(self, student_id: int) -> models.Student:
        student = self.student_repo.get(student_id)
        if student is None:
            raise NotFoundError("student not found")
        return student

    def list_students(self) -> List[schemas.StudentOut]:
        return [self._to_out(s) for s in self.student_repo.list()]

    def get_student(self, student_id: int) -> schemas.StudentOut:
        return self._to_out(self._require(student_id))

    def create_student(self, first_name: str, last_name: str, email: str) -> schemas.StudentOut:
        """Create a student with a freshly generated code and no credits."""
        with UnitOfWork(self.session):
            if self.student_repo.email_taken(email):
                raise ConflictError("a student with that email already exists")
            student = self.student_repo.add(models.Student(
                first_name=first_name,
                last_name=last_name,
                email=email,
                student_code=generate_student_code(self.student_repo.code_exists, settings.STUDENT_CODE_MAX_ATTEMPTS),
            ))
        logger.info("student_created student_id=%s", student.id)
        return self._to_out(student)

    def update_student(self, student_id: int, first_name: str, last_name: str, email: str,
                       username: Optional[str] = None, new_password: Optional[str] = None) -> schemas.StudentOut:
        """Update a student and, when requested, its linked account."""
        with UnitOfWork(self.session):
            student = self._require(student_id)
            if self.student_repo.email_taken(email, exclude_id=student_id):
                raise ConflictError("another student already uses that email")
            student.first_name = first_name
            student.last_name = last_name
            student.email = email
            self.session.add(student)
            if username or new_password:
                user = self.user_repo.get_by_student(student_id)
                if user is None:
                    raise ValidationFailure("student has no linked user account")
                if username and username != user.username:
                    if self.user_repo.username_taken(username, exclude_id=user.id):
                        raise ConflictError("username already exists")
                    user.username = username
                if new_password:
                    if not new_password.strip():
                        raise ValidationFailure("password must not be empty")
                    user.password_hash = PWD_CTX.hash(new_password)
                self.session.add(user)
        return self._to_out(student)

    def delete_student(self, student_id: int):
        """Delete a student, its enrollments and its account link."""
        with UnitOfWork(self.session):
            student = self._require(student_id)
            self.enrollment_repo.delete_for_student(student_id)
            user = self.user_repo.get_by_student(student_id)
            if user:
                user.student_id = None
                self.session.add(user)
                self.session.flush()
            self.student_repo.delete(student)
        logger.info("student_deleted student_id=%s", student_id)

    def list_students_by_professor(self, professor_id: int) -> List[schemas.StudentOut]:
        return [self._to_out(s) for s in self.student_repo.list_by_professor(professor_id)]

    def get_classmates(self, student_id: int, course_id: int) -> List[schemas.ClassmateOut]:
        """Other students enrolled in `course_id`; the student must be enrolled too."""
        if not self.enrollment_repo.is_enrolled(student_id, course_id):
            raise NotFoundError("the student is not enrolled in this course")
        others = self.enrollment_repo.list_students_for_course(course_id, exclude_student_id=student_id)
        return [schemas.ClassmateOut.model_validate(s) for s in others]

    def get_all_classmates(self, student_id: int) -> List[schemas.CourseClassmatesOut]:
        self._require(student_id)
        courses = self.enrollment_repo.list_courses_for_student(student_id)
        professors = self.professor_repo.get_many(c.professor_id for c in courses)
        out = []
        for course in courses:
            professor = professors.get(course.professor_id)
            out.append(schemas.CourseClassmatesOut(
                course_id=course.id,
                course_name=course.name,
                professor_name=f"{professor.first_name} {professor.last_name}" if professor else "",
                classmates=self.get_classmates(student_id, course.id),
            ))
        return out


class CourseService:
    """Course catalogue queries and administration."""
    def __init__(self, session: Session):
        self.session = session
        self.course_repo = repositories.CourseRepository(session)
        self.professor_repo = repositories.ProfessorRepository(session)
        self.student_repo = repositories.StudentRepository(session)
        self.enrollment_repo = repositories.EnrollmentRepository(session)

    def _to_out_many(self, courses: List[models.Course]) -> List[schemas.CourseOut]:
        professors = self.professor_repo.get_many(c.professor_id for c in courses)
        return [
            course_out(c, professors.get(c.professor_id), self.enrollment_repo.list_students_for_course(c.id))
            for c in courses
        ]

    def list_courses(self) -> List[schemas.CourseOut]:
        return self._to_out_many(self.course_repo.list())

    def get_course(self, course_id: int) -> schemas.CourseOut:
        course = self.course_repo.get(course_id)
        if course is None:
            raise NotFoundError("course not found")
        return self._to_out_many([course])[0]

    def list_available_courses(self, student_id: int) -> List[schemas.CourseOut]:
        """Courses taught by professors the student does not already have."""
        if self.student_repo.get(student_id) is None:
            return []
        taken = {c.professor_id for c in self.enrollment_repo.list_courses_for_student(student_id)}
        return self._to_out_many(self.course_repo.list_excluding_professors(taken))

    def list_courses_by_professor(self, professor_id: int) -> List[schemas.CourseOut]:
        return self._to_out_many(self.course_repo.list_by_professor(professor_id))

    def create_course(self, name: str, description: str, professor_id: int) -> schemas.CourseOut:
        with UnitOfWork(self.session):
            if self.professor_repo.get(professor_id) is None:
                raise NotFoundError("professor not found")
            course = self.course_repo.add(models.Course(name=name, description=description, professor_id=professor_id))
        logger.info("course_created course_id=%s professor_id=%s", course.id, professor_id)
        return self.get_course(course.id)

    def delete_course(self, course_id: int):
        """Delete a course, drop its enrollments and recompute affected credit totals."""
        with UnitOfWork(self.session):
            course = self.course_repo.get(course_id)
            if course is None:
                raise NotFoundError("course not found")
            affected = self.enrollment_repo.list_student_ids_for_course(course_id)
            self.enrollment_repo.delete_for_course(course_id)
            self.course_repo.delete(course)
            for sid in affected:
                student = self.student_repo.get(sid)
                student.total_credits = sum(c.credits for c in self.enrollment_repo.list_courses_for_student(sid))
                self.session.add(student)
        logger.info("course_deleted course_id=%s affected_students=%d", course_id, len(affected))


class ProfessorService:
    """Professor catalogue queries and administration."""
    def __init__(self, session: Session):
        self.session = session
        self.professor_repo = repositories.ProfessorRepository(session)
        self.course_repo = repositories.CourseRepository(session)

    def _to_out(self, professor: models.Professor) -> schemas.ProfessorOut:
        courses = self.course_repo.list_by_professor(professor.id)
        return schemas.ProfessorOut(
            id=professor.id,
            first_name=professor.first_name,
            last_name=professor.last_name,
            email=professor.email,
            department=professor.department,
            courses=[schemas.CourseSummary.model_validate(c) for c in courses],
        )

    def list_professors(self) -> List[schemas.ProfessorOut]:
        return [self._to_out(p) for p in self.professor_repo.list()]

    def get_professor(self, professor_id: int) -> schemas.ProfessorOut:
        professor = self.professor_repo.get(professor_id)
        if professor is None:
            raise NotFoundError("professor not found")
        return self._to_out(professor)

    def create_professor(self, first_name: str, last_name: str, email: str, department: str = "") -> schemas.ProfessorOut:
        with UnitOfWork(self.session):
            if self.professor_repo.get_by_email(email):
                raise ConflictError("a professor with that email already exists")
            professor = self.professor_repo.add(models.Professor(
                first_name=first_name, last_name=last_name, email=email, department=department
            ))
        logger.info("professor_created professor_id=%s", professor.id)
        return self._to_out(professor)

    def delete_professor(self, professor_id: int):
        """Delete a professor who no longer owns any course."""
        with UnitOfWork(self.session):
            professor = self.professor_repo.get(professor_id)
            if professor is None:
                raise NotFoundError("professor not found")
            if self.course_repo.list_by_professor(professor_id):
                raise ConflictError("professor still owns courses")
            self.professor_repo.delete(professor)
        logger.info("professor_deleted professor_id=%s", professor_id)
