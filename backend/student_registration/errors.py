"""Domain error taxonomy.

Services raise these exceptions; operations that return structured
results (enrollment, login, registration) catch them at their boundary.
Everything else propagates to the FastAPI exception handler registered
in `main`, which renders `{"detail": message}` with `status_code`.
"""

from enum import Enum


class RegistrationError(Exception):
    """Base class for expected, user-facing failures."""
    status_code = 400

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class NotFoundError(RegistrationError):
    status_code = 404


class ValidationFailure(RegistrationError):
    status_code = 400


class ConflictError(RegistrationError):
    status_code = 409


class UnauthorizedError(RegistrationError):
    status_code = 401


class ExhaustedRetriesError(RegistrationError):
    """Raised when a bounded retry loop (student code generation) gives up."""
    status_code = 503


class EnrollmentFailure(str, Enum):
    NOT_FOUND = "NotFound"
    TOO_MANY_COURSES = "TooManyCourses"
    COURSE_NOT_FOUND = "CourseNotFound"
    DUPLICATE_PROFESSOR = "DuplicateProfessor"


class EnrollmentError(ValidationFailure):
    """An enrollment request broke one of the enrollment rules."""

    def __init__(self, reason: EnrollmentFailure, message: str):
        super().__init__(message)
        self.reason = reason
        if reason is EnrollmentFailure.NOT_FOUND:
            self.status_code = 404
