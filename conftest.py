import pytest

import db_single
from auth_helpers import generate_token
from config import TestingConfig
from grading_helpers import classify
from main import create_app
from models import Base, User, Class, Student
from teacher_models import Teacher, Subject, ClassSubject, TeacherSubject
from result_models import Result

YEAR = '2024-2025'


class Seed:
    """Handles to the rows every test school starts with"""


def _user(session, username, role, first_name, last_name):
    user = User(
        username=username,
        email=f"{username}@school.test",
        role=role,
        first_name=first_name,
        last_name=last_name,
        is_active=True,
    )
    user.set_password('password123')
    session.add(user)
    session.flush()
    return user


def _student(session, username, first_name, last_name, admission_number, school_class=None, roll_number=None):
    user = _user(session, username, 'student', first_name, last_name)
    student = Student(
        user_id=user.id,
        admission_number=admission_number,
        class_id=school_class.id if school_class else None,
        roll_number=roll_number,
    )
    session.add(student)
    session.flush()
    return student


@pytest.fixture
def app():
    app = create_app(TestingConfig)
    Base.metadata.create_all(db_single.ENGINE)
    yield app
    Base.metadata.drop_all(db_single.ENGINE)
    db_single.ENGINE.dispose()


@pytest.fixture
def db_session(app):
    session = db_single.get_session()
    yield session
    session.close()


@pytest.fixture
def client(app):
    return app.test_client()


@pytest.fixture
def seed(db_session):
    """
    Two classes (9A, 10A) offering Mathematics and Physics.
    Maria teaches Mathematics in 9A; Paul teaches Physics in 9A and 10A.
    Alice, Bob and Carol are in 9A, Dave in 10A, Erin has no class yet.
    """
    s = db_session
    data = Seed()

    data.principal = _user(s, 'principal', 'principal', 'Pat', 'Principal')

    math_user = _user(s, 'maria', 'teacher', 'Maria', 'Gomez')
    physics_user = _user(s, 'paul', 'teacher', 'Paul', 'Newton')
    data.math_teacher = Teacher(user_id=math_user.id, employee_id='EMP001', department='Mathematics')
    data.physics_teacher = Teacher(user_id=physics_user.id, employee_id='EMP002', department='Science')
    s.add_all([data.math_teacher, data.physics_teacher])

    data.class_9a = Class(name='9A', grade_level=9, section='A', academic_year=YEAR)
    data.class_10a = Class(name='10A', grade_level=10, section='A', academic_year=YEAR)
    data.math = Subject(name='Mathematics', code='MATH')
    data.physics = Subject(name='Physics', code='PHY')
    s.add_all([data.class_9a, data.class_10a, data.math, data.physics])
    s.flush()

    for school_class in (data.class_9a, data.class_10a):
        for subject in (data.math, data.physics):
            s.add(ClassSubject(class_id=school_class.id, subject_id=subject.id))

    s.add_all([
        TeacherSubject(teacher_id=data.math_teacher.id, subject_id=data.math.id, class_id=data.class_9a.id),
        TeacherSubject(teacher_id=data.physics_teacher.id, subject_id=data.physics.id, class_id=data.class_9a.id),
        TeacherSubject(teacher_id=data.physics_teacher.id, subject_id=data.physics.id, class_id=data.class_10a.id),
    ])

    data.alice = _student(s, 'alice', 'Alice', 'Anderson', 'ADM001', data.class_9a, '1')
    data.bob = _student(s, 'bob', 'Bob', 'Brown', 'ADM002', data.class_9a, '2')
    data.carol = _student(s, 'carol', 'Carol', 'Clark', 'ADM003', data.class_9a, '3')
    data.dave = _student(s, 'dave', 'Dave', 'Davis', 'ADM004', data.class_10a, '1')
    data.erin = _student(s, 'erin', 'Erin', 'Evans', 'ADM005')

    s.commit()
    return data


@pytest.fixture
def make_result(db_session):
    """Insert a result directly, bypassing the write pipeline"""
    def _make(student, subject, obtained, max_marks=100, exam_type='First Term Exam', academic_year=YEAR, teacher=None):
        result = Result(
            student_id=student.id,
            subject_id=subject.id,
            exam_type=exam_type,
            academic_year=academic_year,
            obtained_marks=obtained,
            max_marks=max_marks,
            grade=classify(obtained, max_marks).value,
            teacher_id=teacher.id if teacher else None,
        )
        db_session.add(result)
        db_session.commit()
        return result
    return _make


@pytest.fixture
def make_student(db_session):
    """Enrol another student after the seed"""
    def _make(username, first_name, last_name, admission_number, school_class=None, roll_number=None):
        student = _student(db_session, username, first_name, last_name, admission_number, school_class, roll_number)
        db_session.commit()
        return student
    return _make


@pytest.fixture
def auth_headers(app):
    def _headers(user):
        with app.app_context():
            token = generate_token(user)
        return {'Authorization': f'Bearer {token}'}
    return _headers
