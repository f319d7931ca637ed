"""Repository classes encapsulating database operations.

Each repository is small and focused on a single table (students,
courses, professors, enrollments, users). Repositories stage changes
and flush when an id is needed; committing is left to the caller's
`UnitOfWork` so several repositories can share one transaction.
"""

from typing import Dict, Iterable, List, Optional
from sqlmodel import Session, select
from sqlalchemy import delete, func
from . import models


class StudentRepository:
    """CRUD operations for `Student` rows."""
    def __init__(self, session: Session):
        self.session = session

    def add(self, student: models.Student) -> models.Student:
        """Stage a new student and flush to obtain its id."""
        self.session.add(student)
        self.session.flush()
        return student

    def get(self, student_id: int) -> Optional[models.Student]:
        return self.session.get(models.Student, student_id)

    def list(self) -> List[models.Student]:
        return self.session.exec(select(models.Student).order_by(models.Student.id)).all()

    def get_by_email(self, email: str) -> Optional[models.Student]:
        stmt = select(models.Student).where(models.Student.email == email)
        return self.session.exec(stmt).first()

    def email_taken(self, email: str, exclude_id: Optional[int] = None) -> bool:
        """Return True if another student already uses `email`."""
        stmt = select(models.Student.id).where(models.Student.email == email)
        if exclude_id is not None:
            stmt = stmt.where(models.Student.id != exclude_id)
        return self.session.exec(stmt).first() is not None

    def code_exists(self, code: str) -> bool:
        stmt = select(models.Student.id).where(models.Student.student_code == code)
        return self.session.exec(stmt).first() is not None

    def list_by_professor(self, professor_id: int) -> List[models.Student]:
        """Students enrolled in at least one course taught by `professor_id`."""
        stmt = (
            select(models.Student)
            .join(models.Enrollment, models.Enrollment.student_id == models.Student.id)
            .join(models.Course, models.Course.id == models.Enrollment.course_id)
            .where(models.Course.professor_id == professor_id)
            .distinct()
            .order_by(models.Student.id)
        )
        return self.session.exec(stmt).all()

    def delete(self, student: models.Student):
        self.session.delete(student)
        self.session.flush()


class ProfessorRepository:
    """CRUD operations for `Professor` rows."""
    def __init__(self, session: Session):
        self.session = session

    def add(self, professor: models.Professor) -> models.Professor:
        self.session.add(professor)
        self.session.flush()
        return professor

    def get(self, professor_id: int) -> Optional[models.Professor]:
        return self.session.get(models.Professor, professor_id)

    def list(self) -> List[models.Professor]:
        return self.session.exec(select(models.Professor).order_by(models.Professor.id)).all()

    def get_by_email(self, email: str) -> Optional[models.Professor]:
        stmt = select(models.Professor).where(models.Professor.email == email)
        return self.session.exec(stmt).first()

    def get_many(self, professor_ids: Iterable[int]) -> Dict[int, models.Professor]:
        """Return a `{id: Professor}` map for the requested ids."""
        ids = set(professor_ids)
        if not ids:
            return {}
        stmt = select(models.Professor).where(models.Professor.id.in_(sorted(ids)))
        return {p.id: p for p in self.session.exec(stmt).all()}

    def count(self) -> int:
        return self.session.exec(select(func.count()).select_from(models.Professor)).one()

    def delete(self, professor: models.Professor):
        self.session.delete(professor)
        self.session.flush()


class CourseRepository:
    """CRUD operations for `Course` rows."""
    def __init__(self, session: Session):
        self.session = session

    def add(self, course: models.Course) -> models.Course:
        self.session.add(course)
        self.session.flush()
        return course

    def get(self, course_id: int) -> Optional[models.Course]:
        return self.session.get(models.Course, course_id)

    def list(self) -> List[models.Course]:
        return self.session.exec(select(models.Course).order_by(models.Course.id)).all()

    def get_many(self, course_ids: Iterable[int]) -> Dict[int, models.Course]:
        """Return a `{id: Course}` map; ids that do not exist are absent."""
        ids = set(course_ids)
        if not ids:
            return {}
        stmt = select(models.Course).where(models.Course.id.in_(sorted(ids)))
        return {c.id: c for c in self.session.exec(stmt).all()}

    def list_by_professor(self, professor_id: int) -> List[models.Course]:
        stmt = select(models.Course).where(models.Course.professor_id == professor_id).order_by(models.Course.id)
        return self.session.exec(stmt).all()

    def list_excluding_professors(self, professor_ids: Iterable[int]) -> List[models.Course]:
        """Courses whose professor is not in `professor_ids`."""
        stmt = select(models.Course).order_by(models.Course.id)
        ids = set(professor_ids)
        if ids:
            stmt = stmt.where(models.Course.professor_id.not_in(sorted(ids)))
        return self.session.exec(stmt).all()

    def delete(self, course: models.Course):
        self.session.delete(course)
        self.session.flush()


class EnrollmentRepository:
    """Queries and bulk writes over `Enrollment` links."""
    def __init__(self, session: Session):
        self.session = session

    def list_for_student(self, student_id: int) -> List[models.Enrollment]:
        stmt = select(models.Enrollment).where(models.Enrollment.student_id == student_id).order_by(models.Enrollment.id)
        return self.session.exec(stmt).all()

    def list_courses_for_student(self, student_id: int) -> List[models.Course]:
        """Courses the student is currently enrolled in, in enrollment order."""
        stmt = (
            select(models.Course)
            .join(models.Enrollment, models.Enrollment.course_id == models.Course.id)
            .where(models.Enrollment.student_id == student_id)
            .order_by(models.Enrollment.id)
        )
        return self.session.exec(stmt).all()

    def list_students_for_course(self, course_id: int, exclude_student_id: Optional[int] = None) -> List[models.Student]:
        stmt = (
            select(models.Student)
            .join(models.Enrollment, models.Enrollment.student_id == models.Student.id)
            .where(models.Enrollment.course_id == course_id)
            .order_by(models.Student.id)
        )
        if exclude_student_id is not None:
            stmt = stmt.where(models.Student.id != exclude_student_id)
        return self.session.exec(stmt).all()

    def list_student_ids_for_course(self, course_id: int) -> List[int]:
        stmt = select(models.Enrollment.student_id).where(models.Enrollment.course_id == course_id)
        return list(self.session.exec(stmt).all())

    def is_enrolled(self, student_id: int, course_id: int) -> bool:
        stmt = select(models.Enrollment.id).where(
            models.Enrollment.student_id == student_id,
            models.Enrollment.course_id == course_id
        )
        return self.session.exec(stmt).first() is not None

    def replace_for_student(self, student_id: int, course_ids: List[int]) -> List[models.Enrollment]:
        """Delete every link of `student_id` and stage one new link per course id.

        The delete is flushed before the inserts so re-submitting an
        existing course does not trip the (student, course) constraint.
        """
        self.delete_for_student(student_id)
        now = models.utcnow()
        links = [models.Enrollment(student_id=student_id, course_id=cid, enrollment_date=now) for cid in course_ids]
        self.session.add_all(links)
        self.session.flush()
        return links

    def delete_for_student(self, student_id: int):
        self.session.exec(delete(models.Enrollment).where(models.Enrollment.student_id == student_id))
        self.session.flush()

    def delete_for_course(self, course_id: int):
        self.session.exec(delete(models.Enrollment).where(models.Enrollment.course_id == course_id))
        self.session.flush()


class UserRepository:
    """CRUD operations for `User` objects."""
    def __init__(self, session: Session):
        self.session = session

    def add(self, user: models.User) -> models.User:
        """Stage a new user and flush to obtain its id."""
        self.session.add(user)
        self.session.flush()
        return user

    def get_by_username(self, username: str) -> Optional[models.User]:
        """Return a `User` by username or `None` if not found."""
        stmt = select(models.User).where(models.User.username == username)
        return self.session.exec(stmt).first()

    def get_active_by_username(self, username: str) -> Optional[models.User]:
        stmt = select(models.User).where(models.User.username == username, models.User.is_active == True)  # noqa: E712
        return self.session.exec(stmt).first()

    def get(self, user_id: int) -> Optional[models.User]:
        """Get a `User` by primary key."""
        return self.session.get(models.User, user_id)

    def get_by_student(self, student_id: int) -> Optional[models.User]:
        stmt = select(models.User).where(models.User.student_id == student_id)
        return self.session.exec(stmt).first()

    def exists(self, username: str, email: str) -> bool:
        """Return True if a user already has this username or this email."""
        stmt = select(models.User.id).where((models.User.username == username) | (models.User.email == email))
        return self.session.exec(stmt).first() is not None

    def username_taken(self, username: str, exclude_id: Optional[int] = None) -> bool:
        stmt = select(models.User.id).where(models.User.username == username)
        if exclude_id is not None:
            stmt = stmt.where(models.User.id != exclude_id)
        return self.session.exec(stmt).first() is not None
