"""
Write pipeline for exam results

Batches are all-or-nothing: every row is validated and authorized before the
first insert or update, and the caller commits once for the whole batch.
Grades are always derived from the submitted marks; a submitted grade is ignored.
"""

import logging
from datetime import datetime

from errors import AuthorizationError, NotFoundError, ValidationError
from grading_helpers import classify
from models import Student
from result_models import Result
from result_validators import ResultValidator
from scope_helpers import AssignedClassSubjects, Unrestricted, require_unrestricted
from teacher_models import ClassSubject, Subject, Teacher

logger = logging.getLogger(__name__)

NOT_ASSIGNED_MESSAGE = 'You are not assigned to teach this subject in this class'


class WriteSummary:
    def __init__(self):
        self.created = []
        self.updated = []

    @property
    def count(self):
        return len(self.created) + len(self.updated)

    def to_dict(self):
        return {
            'count': self.count,
            'created': len(self.created),
            'updated': len(self.updated),
            'ids': [result.id for result in self.created + self.updated],
        }

    def __repr__(self):
        return f"<WriteSummary created={len(self.created)} updated={len(self.updated)}>"


def _require_writer(scope):
    if not scope.can_write:
        raise AuthorizationError('Students cannot enter or modify results')


def _log_ignored_grade(payloads):
    for payload in payloads:
        if isinstance(payload, dict) and payload.get('grade') not in (None, ''):
            logger.debug(f"Ignoring submitted grade {payload.get('grade')!r}; grades are derived from marks")


def upsert_results(session, scope, payloads, entered_by=None, default_academic_year=None) -> WriteSummary:
    """
    Insert or update many results keyed by (student, subject, exam type, year).

    Raises:
        AuthorizationError for students, or a teacher writing outside their assignments
        ValidationError for any malformed row (nothing is written)
        NotFoundError for unknown students, subjects or teachers
    """
    _require_writer(scope)
    _log_ignored_grade(payloads if isinstance(payloads, list) else [])
    rows = ResultValidator.validate_batch(payloads, default_academic_year)

    students = _load_students(session, {row['student_id'] for row in rows})
    _check_subjects(session, {row['subject_id'] for row in rows})
    offerings = _load_offerings(session, {s.class_id for s in students.values() if s.class_id is not None})

    for index, row in enumerate(rows, start=1):
        student = students[row['student_id']]
        label = f"Result #{index} (student {row['student_id']}, subject {row['subject_id']})"

        if isinstance(scope, AssignedClassSubjects):
            if student.class_id is None or not scope.allows(student.class_id, row['subject_id']):
                logger.warning(f"Teacher {scope.teacher_id} denied write: {label}")
                raise AuthorizationError(f"{label}: {NOT_ASSIGNED_MESSAGE}")
            row['teacher_id'] = scope.teacher_id
        elif isinstance(scope, Unrestricted):
            if row['teacher_id'] is not None and not session.get(Teacher, row['teacher_id']):
                raise NotFoundError(f"{label}: Teacher not found")

        if student.class_id is None:
            raise ValidationError(f"{label}: Student is not assigned to a class")
        if (student.class_id, row['subject_id']) not in offerings:
            class_name = student.student_class.name if student.student_class else student.class_id
            raise ValidationError(f"{label}: Subject is not offered in {class_name}")

    summary = WriteSummary()
    for row in rows:
        result, created = _apply(session, row, entered_by)
        (summary.created if created else summary.updated).append(result)

    session.flush()
    logger.info(f"Upserted results: {len(summary.created)} created, {len(summary.updated)} updated")
    return summary


def upsert_result(session, scope, payload, entered_by=None, default_academic_year=None) -> WriteSummary:
    return upsert_results(session, scope, [payload], entered_by, default_academic_year)


def _load_students(session, student_ids):
    students = {
        student.id: student
        for student in session.query(Student).filter(Student.id.in_(student_ids)).all()
    }
    for student_id in sorted(student_ids):
        if student_id not in students:
            raise NotFoundError(f"Student {student_id} not found")
    return students


def _check_subjects(session, subject_ids):
    found = {row.id for row in session.query(Subject.id).filter(Subject.id.in_(subject_ids)).all()}
    for subject_id in sorted(subject_ids):
        if subject_id not in found:
            raise NotFoundError(f"Subject {subject_id} not found")


def _load_offerings(session, class_ids):
    if not class_ids:
        return set()
    rows = session.query(ClassSubject.class_id, ClassSubject.subject_id).filter(
        ClassSubject.class_id.in_(class_ids)
    ).all()
    return {(row.class_id, row.subject_id) for row in rows}


def _apply(session, row, entered_by):
    """Insert or update one validated row; returns (result, created)"""
    grade = classify(row['obtained_marks'], row['max_marks']).value

    result = session.query(Result).filter_by(
        student_id=row['student_id'],
        subject_id=row['subject_id'],
        exam_type=row['exam_type'],
        academic_year=row['academic_year']
    ).first()

    if result:
        # Update existing
        result.obtained_marks = row['obtained_marks']
        result.max_marks = row['max_marks']
        result.grade = grade
        result.exam_date = row['exam_date']
        result.remarks = row['remarks']
        if row['teacher_id'] is not None:
            result.teacher_id = row['teacher_id']
        result.entered_by = entered_by
        result.updated_at = datetime.utcnow()
        return result, False

    # Create new
    result = Result(
        student_id=row['student_id'],
        subject_id=row['subject_id'],
        exam_type=row['exam_type'],
        academic_year=row['academic_year'],
        obtained_marks=row['obtained_marks'],
        max_marks=row['max_marks'],
        grade=grade,
        exam_date=row['exam_date'],
        remarks=row['remarks'],
        teacher_id=row['teacher_id'],
        entered_by=entered_by
    )
    session.add(result)
    return result, True


def update_result(session, scope, payload, entered_by=None) -> Result:
    """
    Update one result by id. Omitted fields keep their stored values.

    Teachers get NotFoundError for results outside their assignments so the
    response never reveals records they cannot see.
    """
    _require_writer(scope)
    if not isinstance(payload, dict):
        raise ValidationError('Request body must be an object')
    _log_ignored_grade([payload])

    if payload.get('id') in (None, ''):
        raise ValidationError('Result ID is required', field='id')
    result_id = ResultValidator.validate_integer(payload['id'], 'id', minimum=1)

    result = session.get(Result, result_id)
    if not result:
        raise NotFoundError('Result not found')

    if isinstance(scope, AssignedClassSubjects):
        if not scope.allows(result.student.class_id, result.subject_id):
            logger.warning(f"Teacher {scope.teacher_id} attempted to update result {result_id} outside assignments")
            raise NotFoundError('Result not found')

    def merged(field):
        value = payload.get(field)
        return getattr(result, field) if value is None or value == '' else value

    obtained, maximum = ResultValidator.validate_marks(merged('obtained_marks'), merged('max_marks'))
    exam_type = ResultValidator.validate_text(merged('exam_type'), 'exam_type', 50)

    if exam_type != result.exam_type:
        clash = session.query(Result.id).filter(
            Result.student_id == result.student_id,
            Result.subject_id == result.subject_id,
            Result.exam_type == exam_type,
            Result.academic_year == result.academic_year,
            Result.id != result.id
        ).first()
        if clash:
            raise ValidationError(
                f"A {exam_type} result already exists for this student and subject", field='exam_type'
            )

    result.exam_type = exam_type
    result.obtained_marks = obtained
    result.max_marks = maximum
    result.grade = classify(obtained, maximum).value
    if payload.get('exam_date') not in (None, ''):
        result.exam_date = ResultValidator.validate_exam_date(payload['exam_date'])
    if payload.get('remarks') is not None:
        result.remarks = ResultValidator.validate_text(payload['remarks'], 'remarks', 2000)
    if isinstance(scope, AssignedClassSubjects):
        result.teacher_id = scope.teacher_id
    result.entered_by = entered_by
    result.updated_at = datetime.utcnow()

    session.flush()
    logger.info(f"Updated result {result.id}")
    return result


def delete_result(session, scope, result_id) -> dict:
    """Delete one result by id. Principal only."""
    require_unrestricted(scope, 'Only principals can delete results')

    if result_id in (None, ''):
        raise ValidationError('Result ID is required', field='id')
    result_id = ResultValidator.validate_integer(result_id, 'id', minimum=1)

    result = session.get(Result, result_id)
    if not result:
        raise NotFoundError('Result not found')

    deleted = result.to_dict()
    session.delete(result)
    session.flush()
    logger.info(f"Deleted result {result_id}")
    return deleted
