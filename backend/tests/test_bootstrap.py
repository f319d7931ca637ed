from sqlmodel import Session, select

from student_registration import bootstrap, models


def test_init_db_seeds_catalog_once(engine, monkeypatch):
    monkeypatch.setattr(bootstrap.settings, 'ADMIN_PASSWORD', '')
    first = bootstrap.init_db(bind=engine, seed=True)
    assert first == {'courses_seeded': 10, 'admin_created': False}
    second = bootstrap.init_db(bind=engine, seed=True)
    assert second['courses_seeded'] == 0
    with Session(engine) as session:
        professors = session.exec(select(models.Professor)).all()
        courses = session.exec(select(models.Course)).all()
    assert len(professors) == 5
    assert len(courses) == 10
    per_professor = {}
    for c in courses:
        per_professor[c.professor_id] = per_professor.get(c.professor_id, 0) + 1
    assert set(per_professor.values()) == {2}


def test_init_db_keeps_existing_rows(engine, monkeypatch):
    monkeypatch.setattr(bootstrap.settings, 'ADMIN_PASSWORD', '')
    with Session(engine) as session:
        session.add(models.Professor(first_name='Solo', last_name='Prof', email='solo@uni.edu'))
        session.commit()
    assert bootstrap.init_db(bind=engine, seed=True)['courses_seeded'] == 0
    with Session(engine) as session:
        assert [p.email for p in session.exec(select(models.Professor)).all()] == ['solo@uni.edu']


def test_init_db_bootstraps_admin_when_configured(engine, monkeypatch):
    monkeypatch.setattr(bootstrap.settings, 'ADMIN_PASSWORD', 'bootstrap-pw')
    monkeypatch.setattr(bootstrap.settings, 'ADMIN_USERNAME', 'boss')
    assert bootstrap.init_db(bind=engine, seed=False)['admin_created'] is True
    assert bootstrap.init_db(bind=engine, seed=False)['admin_created'] is False
    with Session(engine) as session:
        admin = session.exec(select(models.User).where(models.User.username == 'boss')).one()
    assert admin.role == 'Admin'
