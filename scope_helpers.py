"""
Access scopes for exam results

A caller's role and identity resolve to exactly one Scope:
  Unrestricted           - principals
  OwnRecordsOnly         - students, pinned to their own student id
  AssignedClassSubjects  - teachers, limited to their (class, subject) assignments
Every read and write path takes a Scope instead of branching on the role string.
"""

import enum
import logging

from sqlalchemy.exc import IntegrityError

from errors import AuthenticationError, AuthorizationError, NotFoundError, ValidationError
from models import Class, RoleEnum, Student
from teacher_models import Subject, Teacher, TeacherSubject

logger = logging.getLogger(__name__)


class Caller:
    """Verified identity handed over by the session layer"""

    def __init__(self, user_id, role):
        self.id = user_id
        self.role = role

    @classmethod
    def from_user(cls, user):
        if user is None or not getattr(user, 'is_authenticated', False):
            raise AuthenticationError('No token provided')
        return cls(user.id, user.role)

    def __repr__(self):
        return f"<Caller id={self.id} role={self.role}>"


class ScopeKind(enum.Enum):
    UNRESTRICTED = "unrestricted"
    OWN_RECORDS_ONLY = "own_records_only"
    ASSIGNED_CLASS_SUBJECTS = "assigned_class_subjects"


class Scope:
    kind = None
    can_write = False

    def allows(self, class_id, subject_id):
        raise NotImplementedError

    def __eq__(self, other):
        return type(self) is type(other) and self.__dict__ == other.__dict__

    def __hash__(self):
        return hash((self.kind, tuple(sorted(self.__dict__.items(), key=lambda item: item[0]))))


class Unrestricted(Scope):
    kind = ScopeKind.UNRESTRICTED
    can_write = True

    def allows(self, class_id, subject_id):
        return True

    def __repr__(self):
        return "<Unrestricted>"


class OwnRecordsOnly(Scope):
    kind = ScopeKind.OWN_RECORDS_ONLY

    def __init__(self, student_id):
        self.student_id = student_id

    def allows(self, class_id, subject_id):
        # Reads are pinned by student id, not by class/subject
        return True

    def __repr__(self):
        return f"<OwnRecordsOnly student_id={self.student_id}>"


class AssignedClassSubjects(Scope):
    kind = ScopeKind.ASSIGNED_CLASS_SUBJECTS
    can_write = True

    def __init__(self, teacher_id, pairs):
        self.teacher_id = teacher_id
        self.pairs = frozenset(pairs)

    @property
    def class_ids(self):
        return frozenset(class_id for class_id, _ in self.pairs)

    @property
    def subject_ids(self):
        return frozenset(subject_id for _, subject_id in self.pairs)

    def allows(self, class_id, subject_id):
        return (class_id, subject_id) in self.pairs

    def __repr__(self):
        return f"<AssignedClassSubjects teacher_id={self.teacher_id} pairs={sorted(self.pairs)}>"


def resolve_scope(session, caller) -> Scope:
    """
    Resolve the caller's scope.

    Raises:
        AuthenticationError if the caller carries no usable identity
        NotFoundError if a student/teacher caller has no profile row
        AuthorizationError for roles that have no access to results
    """
    if caller is None or caller.id is None or not caller.role:
        raise AuthenticationError('Invalid token')

    role = caller.role
    if role == RoleEnum.PRINCIPAL.value:
        return Unrestricted()

    if role == RoleEnum.STUDENT.value:
        student = session.query(Student).filter_by(user_id=caller.id).first()
        if not student:
            raise NotFoundError('Student not found')
        return OwnRecordsOnly(student.id)

    if role == RoleEnum.TEACHER.value:
        teacher = session.query(Teacher).filter_by(user_id=caller.id).first()
        if not teacher:
            raise NotFoundError('Teacher not found')
        rows = session.query(TeacherSubject.class_id, TeacherSubject.subject_id).filter(
            TeacherSubject.teacher_id == teacher.id
        ).all()
        return AssignedClassSubjects(teacher.id, [(row.class_id, row.subject_id) for row in rows])

    logger.warning(f"Caller {caller.id} has unsupported role '{role}'")
    raise AuthorizationError('Invalid role')


def require_unrestricted(scope, message='Only principals can perform this action'):
    if not isinstance(scope, Unrestricted):
        raise AuthorizationError(message)


# ===== TEACHING ASSIGNMENTS =====

def list_assignments(session, scope, teacher_id=None):
    """Assignments visible to the scope: all of them for principals, own for teachers"""
    query = session.query(TeacherSubject)
    if isinstance(scope, AssignedClassSubjects):
        query = query.filter(TeacherSubject.teacher_id == scope.teacher_id)
    elif isinstance(scope, Unrestricted):
        if teacher_id is not None:
            query = query.filter(TeacherSubject.teacher_id == teacher_id)
    else:
        raise AuthorizationError('Students cannot view teaching assignments')

    return query.order_by(TeacherSubject.class_id, TeacherSubject.subject_id, TeacherSubject.teacher_id).all()


def assign_teacher(session, scope, teacher_id, subject_id, class_id):
    """Grant a teacher rights over one (class, subject) pair. Principal only."""
    require_unrestricted(scope, 'Only principals can make class assignments')

    if not session.get(Teacher, teacher_id):
        raise NotFoundError('Teacher not found')
    if not session.get(Subject, subject_id):
        raise NotFoundError('Subject not found')
    if not session.get(Class, class_id):
        raise NotFoundError('Class not found')

    existing = session.query(TeacherSubject).filter_by(
        teacher_id=teacher_id, subject_id=subject_id, class_id=class_id
    ).first()
    if existing:
        raise ValidationError('Teacher is already assigned to this subject in this class')

    assignment = TeacherSubject(teacher_id=teacher_id, subject_id=subject_id, class_id=class_id)
    session.add(assignment)
    try:
        session.flush()
    except IntegrityError:
        raise ValidationError('Teacher is already assigned to this subject in this class')

    logger.info(f"Assigned teacher {teacher_id} to subject {subject_id} in class {class_id}")
    return assignment


def unassign_teacher(session, scope, assignment_id):
    require_unrestricted(scope, 'Only principals can remove class assignments')

    assignment = session.get(TeacherSubject, assignment_id)
    if not assignment:
        raise NotFoundError('Assignment not found')

    session.delete(assignment)
    session.flush()
    logger.info(f"Removed teaching assignment {assignment_id}")
    return assignment
