import pytest

from errors import AuthorizationError, NotFoundError, ValidationError
from result_models import Result
from result_validators import ResultValidator
from result_write_helpers import delete_result, update_result, upsert_result, upsert_results
from scope_helpers import Caller, OwnRecordsOnly, Unrestricted, resolve_scope
from teacher_models import Subject

YEAR = '2024-2025'


def _row(student, subject, obtained, max_marks=100, exam_type='First Term Exam', **extra):
    row = {
        'student_id': student.id,
        'subject_id': subject.id,
        'exam_type': exam_type,
        'academic_year': YEAR,
        'obtained_marks': obtained,
        'max_marks': max_marks,
    }
    row.update(extra)
    return row


def _teacher_scope(db_session, teacher):
    return resolve_scope(db_session, Caller(teacher.user.id, 'teacher'))


def _count(db_session):
    return db_session.query(Result).count()


def test_upsert_inserts_then_updates_by_key(db_session, seed):
    summary = upsert_results(db_session, Unrestricted(), [_row(seed.alice, seed.math, 85)], entered_by=seed.principal.id)
    db_session.commit()
    assert summary.to_dict()['created'] == 1
    assert _count(db_session) == 1

    summary = upsert_results(db_session, Unrestricted(), [_row(seed.alice, seed.math, 95)])
    db_session.commit()
    assert summary.to_dict()['updated'] == 1
    assert summary.count == 1

    result = db_session.query(Result).one()
    assert result.obtained_marks == 95
    assert result.grade == 'A+'


def test_submitted_grade_is_ignored(db_session, seed):
    summary = upsert_result(db_session, Unrestricted(), _row(seed.alice, seed.math, 85, grade='F'))
    db_session.commit()
    assert summary.created[0].grade == 'A'


def test_default_academic_year_is_applied(db_session, seed):
    row = _row(seed.alice, seed.math, 50)
    del row['academic_year']
    summary = upsert_result(db_session, Unrestricted(), row, default_academic_year='2025-2026')
    db_session.commit()
    assert summary.created[0].academic_year == '2025-2026'


def test_marks_at_the_edges(db_session, seed):
    upsert_results(db_session, Unrestricted(), [
        _row(seed.alice, seed.math, 100),
        _row(seed.bob, seed.math, 0),
    ])
    db_session.commit()
    grades = {r.student_id: r.grade for r in db_session.query(Result).all()}
    assert grades == {seed.alice.id: 'A+', seed.bob.id: 'F'}


def test_invalid_row_rejects_the_whole_batch(db_session, seed):
    batch = [
        _row(seed.alice, seed.math, 80),
        _row(seed.bob, seed.math, 120),
        _row(seed.carol, seed.math, 70),
    ]
    with pytest.raises(ValidationError, match=r'Result #2 .*cannot exceed maximum marks'):
        upsert_results(db_session, Unrestricted(), batch)
    db_session.rollback()
    assert _count(db_session) == 0


@pytest.mark.parametrize("field,value", [
    ('max_marks', 0),
    ('obtained_marks', -1),
    ('obtained_marks', 45.5),
    ('obtained_marks', 'ninety'),
    ('exam_type', '   '),
    ('exam_date', 'not-a-date'),
    ('max_marks', 10 ** 20),
    ('obtained_marks', 10 ** 20),
    ('student_id', 10 ** 20),
])
def test_malformed_fields_are_validation_errors(db_session, seed, field, value):
    row = _row(seed.alice, seed.math, 50)
    row[field] = value
    with pytest.raises(ValidationError) as excinfo:
        upsert_results(db_session, Unrestricted(), [row])
    assert excinfo.value.field == field


def test_missing_fields_are_named(db_session, seed):
    row = _row(seed.alice, seed.math, 50)
    del row['max_marks']
    with pytest.raises(ValidationError) as excinfo:
        upsert_results(db_session, Unrestricted(), [row])
    assert excinfo.value.field == 'max_marks'


def test_empty_batch_and_duplicates_are_rejected(db_session, seed):
    with pytest.raises(ValidationError):
        upsert_results(db_session, Unrestricted(), [])
    with pytest.raises(ValidationError, match='duplicates result #1'):
        upsert_results(db_session, Unrestricted(), [_row(seed.alice, seed.math, 50), _row(seed.alice, seed.math, 60)])


def test_teacher_writes_inside_assignment(db_session, seed):
    scope = _teacher_scope(db_session, seed.math_teacher)
    summary = upsert_result(db_session, scope, _row(seed.alice, seed.math, 72, teacher_id=seed.physics_teacher.id))
    db_session.commit()
    assert summary.created[0].teacher_id == seed.math_teacher.id


def test_principal_upsert_keeps_recorded_teacher(db_session, seed, make_result):
    make_result(seed.alice, seed.math, 60, teacher=seed.math_teacher)
    summary = upsert_result(db_session, Unrestricted(), _row(seed.alice, seed.math, 75))
    db_session.commit()
    assert summary.to_dict()['updated'] == 1

    result = db_session.query(Result).one()
    assert result.obtained_marks == 75
    assert result.teacher_id == seed.math_teacher.id


def test_teacher_cannot_write_outside_assignment(db_session, seed):
    scope = _teacher_scope(db_session, seed.math_teacher)
    batch = [_row(seed.alice, seed.math, 70), _row(seed.alice, seed.physics, 70)]
    with pytest.raises(AuthorizationError, match='not assigned'):
        upsert_results(db_session, scope, batch)
    db_session.rollback()
    assert _count(db_session) == 0

    with pytest.raises(AuthorizationError):
        upsert_result(db_session, scope, _row(seed.erin, seed.math, 70))


def test_students_cannot_write(db_session, seed):
    with pytest.raises(AuthorizationError):
        upsert_result(db_session, OwnRecordsOnly(seed.alice.id), _row(seed.alice, seed.math, 100))


def test_unknown_student_and_subject(db_session, seed):
    row = _row(seed.alice, seed.math, 50)
    row['student_id'] = 9999
    with pytest.raises(NotFoundError, match='Student 9999 not found'):
        upsert_result(db_session, Unrestricted(), row)

    row = _row(seed.alice, seed.math, 50)
    row['subject_id'] = 9999
    with pytest.raises(NotFoundError, match='Subject 9999 not found'):
        upsert_result(db_session, Unrestricted(), row)

    with pytest.raises(NotFoundError, match='Teacher not found'):
        upsert_result(db_session, Unrestricted(), _row(seed.alice, seed.math, 50, teacher_id=9999))


def test_subject_must_be_offered_in_class(db_session, seed):
    chemistry = Subject(name='Chemistry', code='CHEM')
    db_session.add(chemistry)
    db_session.commit()
    with pytest.raises(ValidationError, match='not offered in 9A'):
        upsert_result(db_session, Unrestricted(), _row(seed.alice, chemistry, 50))


def test_principal_cannot_record_results_for_unassigned_student(db_session, seed):
    with pytest.raises(ValidationError, match='not assigned to a class'):
        upsert_result(db_session, Unrestricted(), _row(seed.erin, seed.math, 50))


def test_update_merges_and_recomputes_grade(db_session, seed, make_result):
    result = make_result(seed.alice, seed.math, 40, max_marks=50)
    updated = update_result(db_session, Unrestricted(), {'id': result.id, 'obtained_marks': 20, 'grade': 'A+'})
    db_session.commit()
    assert updated.max_marks == 50
    assert updated.obtained_marks == 20
    assert updated.grade == 'C'


def test_update_validation(db_session, seed, make_result):
    result = make_result(seed.alice, seed.math, 40, max_marks=50)
    make_result(seed.alice, seed.math, 45, max_marks=50, exam_type='Final Exam')

    with pytest.raises(ValidationError):
        update_result(db_session, Unrestricted(), {'id': result.id, 'obtained_marks': 60})
    with pytest.raises(ValidationError, match='already exists'):
        update_result(db_session, Unrestricted(), {'id': result.id, 'exam_type': 'Final Exam'})
    with pytest.raises(ValidationError):
        update_result(db_session, Unrestricted(), {'obtained_marks': 10})
    with pytest.raises(NotFoundError):
        update_result(db_session, Unrestricted(), {'id': 9999, 'obtained_marks': 10})


def test_update_outside_teacher_scope_is_not_found(db_session, seed, make_result):
    result = make_result(seed.dave, seed.physics, 60)
    scope = _teacher_scope(db_session, seed.math_teacher)
    with pytest.raises(NotFoundError):
        update_result(db_session, scope, {'id': result.id, 'obtained_marks': 10})

    physics_scope = _teacher_scope(db_session, seed.physics_teacher)
    updated = update_result(db_session, physics_scope, {'id': result.id, 'obtained_marks': 66})
    assert updated.teacher_id == seed.physics_teacher.id


def test_delete_result(db_session, seed, make_result):
    result = make_result(seed.alice, seed.math, 40)
    result_id = result.id

    with pytest.raises(AuthorizationError):
        delete_result(db_session, _teacher_scope(db_session, seed.math_teacher), result_id)

    deleted = delete_result(db_session, Unrestricted(), str(result_id))
    db_session.commit()
    assert deleted['id'] == result_id
    assert _count(db_session) == 0

    with pytest.raises(NotFoundError):
        delete_result(db_session, Unrestricted(), result_id)
    with pytest.raises(ValidationError):
        delete_result(db_session, Unrestricted(), None)


def test_validator_accepts_integral_strings_and_floats():
    assert ResultValidator.validate_integer('42', 'x') == 42
    assert ResultValidator.validate_integer(42.0, 'x') == 42
    with pytest.raises(ValidationError):
        ResultValidator.validate_integer(True, 'x')
