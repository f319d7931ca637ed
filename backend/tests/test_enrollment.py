import pytest
from sqlmodel import select

from student_registration import models, services
from student_registration.errors import EnrollmentFailure, ValidationFailure


def _enrolled_course_ids(session, student_id):
    session.expire_all()
    stmt = select(models.Enrollment.course_id).where(models.Enrollment.student_id == student_id)
    return sorted(session.exec(stmt).all())


def _credits(session, student_id):
    session.expire_all()
    return session.get(models.Student, student_id).total_credits


def test_enroll_distinct_professors_sets_courses_and_credits(session, catalog, make_student):
    _, courses = catalog
    student = make_student()
    requested = [courses[0], courses[2], courses[3]]
    result = services.EnrollmentService(session).enroll(student.id, requested)
    assert result.ok is True
    assert result.reason is None
    assert result.total_credits == 9
    assert _enrolled_course_ids(session, student.id) == sorted(requested)
    assert _credits(session, student.id) == 9


def test_enroll_replaces_previous_set(session, catalog, make_student):
    _, courses = catalog
    student = make_student()
    svc = services.EnrollmentService(session)
    assert svc.enroll(student.id, [courses[0], courses[2]]).ok
    result = svc.enroll(student.id, [courses[3]])
    assert result.ok
    assert _enrolled_course_ids(session, student.id) == [courses[3]]
    assert _credits(session, student.id) == 3


def test_unknown_student_is_not_found(session, catalog):
    _, courses = catalog
    result = services.EnrollmentService(session).enroll(9999, [courses[0]])
    assert result.ok is False
    assert result.reason is EnrollmentFailure.NOT_FOUND


def test_more_than_three_courses_leaves_prior_set_unchanged(session, catalog, make_student):
    _, courses = catalog
    student = make_student()
    svc = services.EnrollmentService(session)
    assert svc.enroll(student.id, [courses[0], courses[2]]).ok
    result = svc.enroll(student.id, courses)
    assert result.ok is False
    assert result.reason is EnrollmentFailure.TOO_MANY_COURSES
    assert _enrolled_course_ids(session, student.id) == sorted([courses[0], courses[2]])
    assert _credits(session, student.id) == 6


def test_missing_course_rejects_whole_batch(session, catalog, make_student):
    _, courses = catalog
    student = make_student()
    result = services.EnrollmentService(session).enroll(student.id, [courses[0], 4242])
    assert result.ok is False
    assert result.reason is EnrollmentFailure.COURSE_NOT_FOUND
    assert _enrolled_course_ids(session, student.id) == []
    assert _credits(session, student.id) == 0


def test_same_professor_twice_is_rejected_without_mutation(session, catalog, make_student):
    _, courses = catalog
    student = make_student()
    svc = services.EnrollmentService(session)
    # professors 1, 2 and 3
    first = svc.enroll(student.id, [courses[0], courses[2], courses[3]])
    assert first.ok and first.total_credits == 9
    # professors 1, 1 and 2
    second = svc.enroll(student.id, [courses[0], courses[1], courses[2]])
    assert second.ok is False
    assert second.reason is EnrollmentFailure.DUPLICATE_PROFESSOR
    assert _credits(session, student.id) == 9
    assert _enrolled_course_ids(session, student.id) == sorted([courses[0], courses[2], courses[3]])


def test_repeated_course_id_counts_as_duplicate_professor(session, catalog, make_student):
    _, courses = catalog
    student = make_student()
    result = services.EnrollmentService(session).enroll(student.id, [courses[2], courses[2]])
    assert result.reason is EnrollmentFailure.DUPLICATE_PROFESSOR


def test_resubmitting_same_set_is_idempotent(session, catalog, make_student):
    _, courses = catalog
    student = make_student()
    svc = services.EnrollmentService(session)
    requested = [courses[1], courses[3]]
    assert svc.enroll(student.id, requested).ok
    assert svc.enroll(student.id, requested).ok
    assert _enrolled_course_ids(session, student.id) == sorted(requested)
    assert _credits(session, student.id) == 6


def test_fault_during_write_rolls_back(session, catalog, make_student, monkeypatch):
    _, courses = catalog
    student = make_student()
    svc = services.EnrollmentService(session)
    assert svc.enroll(student.id, [courses[0]]).ok

    original = svc.enrollment_repo.replace_for_student

    def _replace_then_fail(student_id, course_ids):
        original(student_id, course_ids)
        raise RuntimeError("store went away")

    monkeypatch.setattr(svc.enrollment_repo, "replace_for_student", _replace_then_fail)
    with pytest.raises(RuntimeError):
        svc.enroll(student.id, [courses[2], courses[3]])
    assert _enrolled_course_ids(session, student.id) == [courses[0]]
    assert _credits(session, student.id) == 3


@pytest.mark.parametrize("student_id, course_ids", [
    (1, []),
    (0, [1]),
    (-3, [1]),
    (1, [1, 0]),
    (2**63, [1]),
    (1, [1, 2**63]),
])
def test_validate_enrollment_request_rejects_malformed_input(student_id, course_ids):
    with pytest.raises(ValidationFailure):
        services.validate_enrollment_request(student_id, course_ids)


def test_validate_enrollment_request_accepts_well_formed_input():
    # the course limit is an enrollment rule, not request validation
    services.validate_enrollment_request(1, [1, 2, 3, 4])
