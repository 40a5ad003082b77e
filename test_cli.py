from auth_helpers import verify_token
from models import Student, User
from teacher_models import TeacherSubject


def test_issue_token(app, seed):
    result = app.test_cli_runner().invoke(args=['issue-token', '--username', 'maria'])
    assert result.exit_code == 0
    with app.app_context():
        payload = verify_token(result.output.strip())
    assert payload['role'] == 'teacher'


def test_issue_token_unknown_user(app, seed):
    result = app.test_cli_runner().invoke(args=['issue-token', '--username', 'nobody'])
    assert 'not found' in result.output


def test_create_student_in_class(app, db_session, seed):
    result = app.test_cli_runner().invoke(args=[
        'create-user', '--username', 'frank', '--email', 'frank@school.test', '--password', 'pw',
        '--role', 'student', '--first-name', 'Frank', '--last-name', 'Fisher',
        '--class-name', '9A', '--roll-number', '4',
    ])
    assert 'created' in result.output

    db_session.expire_all()
    user = db_session.query(User).filter_by(username='frank').one()
    student = db_session.query(Student).filter_by(user_id=user.id).one()
    assert student.class_id == seed.class_9a.id
    assert student.roll_number == '4'


def test_create_user_rejects_duplicate_username(app, seed):
    result = app.test_cli_runner().invoke(args=[
        'create-user', '--username', 'maria', '--email', 'm@school.test', '--password', 'pw',
        '--role', 'teacher', '--first-name', 'M', '--last-name', 'G',
    ])
    assert 'already exists' in result.output


def test_assign_teacher(app, db_session, seed):
    result = app.test_cli_runner().invoke(args=[
        'assign-teacher', '--employee-id', 'EMP001', '--subject-code', 'PHY', '--class-name', '10A',
    ])
    assert 'now teaches Physics in 10A' in result.output

    db_session.expire_all()
    assert db_session.query(TeacherSubject).filter_by(
        teacher_id=seed.math_teacher.id, subject_id=seed.physics.id, class_id=seed.class_10a.id
    ).count() == 1

    result = app.test_cli_runner().invoke(args=[
        'assign-teacher', '--employee-id', 'EMP001', '--subject-code', 'PHY', '--class-name', '10A',
    ])
    assert 'already assigned' in result.output


def test_show_rankings(app, seed, make_result):
    runner = app.test_cli_runner()
    assert 'No results' in runner.invoke(args=['show-rankings']).output

    make_result(seed.alice, seed.math, 90)
    make_result(seed.bob, seed.math, 80)
    output = runner.invoke(args=['show-rankings', '--top', '1']).output
    assert 'Alice Anderson' in output
    assert 'Bob Brown' not in output
    assert '2 students' in output


def test_setup_db_on_existing_schema(app, seed):
    result = app.test_cli_runner().invoke(args=['setup-db'])
    assert 'completed successfully' in result.output
