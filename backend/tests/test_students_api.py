from student_registration import models


def _create(client, email='juan@test.com', first='Juan', last='Pérez'):
    r = client.post('/api/students', json={'first_name': first, 'last_name': last, 'email': email})
    assert r.status_code == 201
    return r.json()


def test_create_get_and_list_students(client):
    created = _create(client)
    assert created['student_code'].startswith('STU')
    assert created['total_credits'] == 0
    assert created['courses'] == []
    r = client.get(f"/api/students/{created['id']}")
    assert r.status_code == 200
    assert r.json()['email'] == 'juan@test.com'
    assert [s['id'] for s in client.get('/api/students').json()] == [created['id']]


def test_unknown_student_is_404(client):
    r = client.get('/api/students/99999')
    assert r.status_code == 404
    assert 'detail' in r.json()


def test_duplicate_student_email_conflicts(client):
    _create(client)
    r = client.post('/api/students', json={'first_name': 'Other', 'last_name': 'One', 'email': 'juan@test.com'})
    assert r.status_code == 409


def test_invalid_student_payload_is_rejected(client):
    r = client.post('/api/students', json={'first_name': '', 'last_name': 'X', 'email': 'not-an-email'})
    assert r.status_code == 422


def test_update_student_and_linked_account(client):
    reg = client.post('/api/auth/register', json={
        'username': 'maria', 'email': 'maria@test.com', 'password': 'pw',
        'first_name': 'María', 'last_name': 'R',
    }).json()
    sid = reg['user']['student_id']
    r = client.put(f'/api/students/{sid}', json={
        'first_name': 'Maria', 'last_name': 'Rodríguez', 'email': 'maria.r@test.com',
        'username': 'mariar', 'new_password': 'pw2',
    })
    assert r.status_code == 200
    body = r.json()
    assert body['last_name'] == 'Rodríguez'
    assert body['username'] == 'mariar'
    assert body['user_id'] == reg['user']['id']
    assert client.post('/api/auth/login', json={'username': 'mariar', 'password': 'pw2'}).status_code == 200


def test_update_email_clash_conflicts(client):
    a = _create(client, email='a@test.com')
    _create(client, email='b@test.com')
    r = client.put(f"/api/students/{a['id']}", json={'first_name': 'A', 'last_name': 'A', 'email': 'b@test.com'})
    assert r.status_code == 409


def test_delete_student_removes_enrollments(client, session, catalog):
    _, courses = catalog
    student = _create(client)
    assert client.post('/api/students/enroll', json={'student_id': student['id'], 'course_ids': [courses[0]]}).status_code == 200
    assert client.delete(f"/api/students/{student['id']}").status_code == 204
    assert client.get(f"/api/students/{student['id']}").status_code == 404
    assert client.delete(f"/api/students/{student['id']}").status_code == 404
    session.expire_all()
    assert session.get(models.Course, courses[0]) is not None
    assert client.get(f'/api/courses/{courses[0]}').json()['enrolled_students'] == []


def test_enroll_endpoint_success_and_failures(client, catalog):
    _, courses = catalog
    student = _create(client)
    ok = client.post('/api/students/enroll', json={'student_id': student['id'], 'course_ids': [courses[0], courses[2], courses[3]]})
    assert ok.status_code == 200
    assert ok.json()['ok'] is True
    assert ok.json()['total_credits'] == 9

    dup = client.post('/api/students/enroll', json={'student_id': student['id'], 'course_ids': [courses[0], courses[1], courses[2]]})
    assert dup.status_code == 400
    assert dup.json()['reason'] == 'DuplicateProfessor'

    too_many = client.post('/api/students/enroll', json={'student_id': student['id'], 'course_ids': courses})
    assert too_many.status_code == 400
    assert too_many.json()['reason'] == 'TooManyCourses'

    missing = client.post('/api/students/enroll', json={'student_id': 424242, 'course_ids': [courses[0]]})
    assert missing.status_code == 404
    assert missing.json()['reason'] == 'NotFound'

    empty = client.post('/api/students/enroll', json={'student_id': student['id'], 'course_ids': []})
    assert empty.status_code == 400

    detail = client.get(f"/api/students/{student['id']}").json()
    assert detail['total_credits'] == 9
    assert sorted(c['id'] for c in detail['courses']) == sorted([courses[0], courses[2], courses[3]])
    assert all(c['professor'] is not None for c in detail['courses'])


def test_classmates_and_students_by_professor(client, catalog):
    professors, courses = catalog
    a = _create(client, email='a@test.com', first='Ann')
    b = _create(client, email='b@test.com', first='Ben')
    c = _create(client, email='c@test.com', first='Cid')
    client.post('/api/students/enroll', json={'student_id': a['id'], 'course_ids': [courses[0], courses[2]]})
    client.post('/api/students/enroll', json={'student_id': b['id'], 'course_ids': [courses[0]]})
    client.post('/api/students/enroll', json={'student_id': c['id'], 'course_ids': [courses[3]]})

    mates = client.get(f"/api/students/{a['id']}/classmates/{courses[0]}")
    assert mates.status_code == 200
    assert [m['first_name'] for m in mates.json()] == ['Ben']

    not_enrolled = client.get(f"/api/students/{c['id']}/classmates/{courses[0]}")
    assert not_enrolled.status_code == 404

    everything = client.get(f"/api/students/{a['id']}/all-classmates").json()
    assert [group['course_id'] for group in everything] == [courses[0], courses[2]]
    assert everything[0]['professor_name'] == 'Ana García'
    assert everything[1]['classmates'] == []

    by_prof = client.get(f'/api/students/by-professor/{professors[0]}').json()
    assert sorted(s['id'] for s in by_prof) == sorted([a['id'], b['id']])


def test_oversized_ids_are_rejected_without_reaching_the_database(client, catalog):
    _, courses = catalog
    student = _create(client)
    huge = 2**70
    r = client.post('/api/students/enroll', json={'student_id': huge, 'course_ids': [courses[0]]})
    assert r.status_code == 400
    r = client.post('/api/students/enroll', json={'student_id': student['id'], 'course_ids': [courses[0], huge]})
    assert r.status_code == 400
    assert client.get(f'/api/students/{huge}').status_code == 422
    assert client.get(f'/api/courses/{huge}').status_code == 422
    assert client.get(f"/api/students/{student['id']}/classmates/{huge}").status_code == 422
    # the largest representable id is still a normal lookup
    assert client.get(f'/api/students/{2**63 - 1}').status_code == 404


def test_edit_info_matches_student_detail(client):
    created = _create(client)
    r = client.get(f"/api/students/{created['id']}/edit-info")
    assert r.status_code == 200
    assert r.json() == client.get(f"/api/students/{created['id']}").json()
    assert client.get('/api/students/99999/edit-info').status_code == 404


def test_student_email_case_is_preserved(client):
    created = _create(client, email='Juan@Test.COM')
    assert created['email'] == 'Juan@Test.COM'
