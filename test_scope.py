import pytest

from errors import AuthenticationError, AuthorizationError, NotFoundError, ValidationError
from scope_helpers import (
    AssignedClassSubjects, Caller, OwnRecordsOnly, ScopeKind, Unrestricted,
    assign_teacher, list_assignments, resolve_scope, unassign_teacher
)
from models import User


def _caller(user):
    return Caller(user.id, user.role)


def test_principal_is_unrestricted(db_session, seed):
    scope = resolve_scope(db_session, _caller(seed.principal))
    assert scope == Unrestricted()
    assert scope.kind == ScopeKind.UNRESTRICTED
    assert scope.can_write


def test_student_is_pinned_to_own_records(db_session, seed):
    scope = resolve_scope(db_session, _caller(seed.alice.user))
    assert scope == OwnRecordsOnly(seed.alice.id)
    assert not scope.can_write


def test_teacher_scope_lists_assigned_pairs(db_session, seed):
    scope = resolve_scope(db_session, _caller(seed.math_teacher.user))
    assert isinstance(scope, AssignedClassSubjects)
    assert scope.teacher_id == seed.math_teacher.id
    assert scope.pairs == {(seed.class_9a.id, seed.math.id)}
    assert scope.allows(seed.class_9a.id, seed.math.id)
    assert not scope.allows(seed.class_9a.id, seed.physics.id)


def test_teacher_can_hold_several_assignments(db_session, seed):
    scope = resolve_scope(db_session, _caller(seed.physics_teacher.user))
    assert scope.class_ids == {seed.class_9a.id, seed.class_10a.id}
    assert scope.subject_ids == {seed.physics.id}


def test_scope_resolution_is_repeatable(db_session, seed):
    caller = _caller(seed.physics_teacher.user)
    assert resolve_scope(db_session, caller) == resolve_scope(db_session, caller)


def test_missing_profiles_are_not_found(db_session, seed):
    orphan_teacher = User(username='ghost', email='ghost@school.test', role='teacher', password_hash='x')
    orphan_student = User(username='nobody', email='nobody@school.test', role='student', password_hash='x')
    db_session.add_all([orphan_teacher, orphan_student])
    db_session.commit()

    with pytest.raises(NotFoundError, match='Teacher not found'):
        resolve_scope(db_session, _caller(orphan_teacher))
    with pytest.raises(NotFoundError, match='Student not found'):
        resolve_scope(db_session, _caller(orphan_student))


def test_invalid_callers(db_session, seed):
    with pytest.raises(AuthenticationError):
        resolve_scope(db_session, Caller(None, None))
    with pytest.raises(AuthorizationError):
        resolve_scope(db_session, Caller(seed.principal.id, 'janitor'))
    with pytest.raises(AuthenticationError):
        Caller.from_user(None)


def test_list_assignments_by_scope(db_session, seed):
    assert len(list_assignments(db_session, Unrestricted())) == 3
    assert len(list_assignments(db_session, Unrestricted(), teacher_id=seed.physics_teacher.id)) == 2

    teacher_scope = resolve_scope(db_session, _caller(seed.math_teacher.user))
    assert [a.subject_id for a in list_assignments(db_session, teacher_scope)] == [seed.math.id]

    with pytest.raises(AuthorizationError):
        list_assignments(db_session, OwnRecordsOnly(seed.alice.id))


def test_assign_and_unassign_teacher(db_session, seed):
    assignment = assign_teacher(db_session, Unrestricted(), seed.math_teacher.id, seed.math.id, seed.class_10a.id)
    db_session.commit()

    scope = resolve_scope(db_session, _caller(seed.math_teacher.user))
    assert scope.allows(seed.class_10a.id, seed.math.id)

    with pytest.raises(ValidationError):
        assign_teacher(db_session, Unrestricted(), seed.math_teacher.id, seed.math.id, seed.class_10a.id)

    unassign_teacher(db_session, Unrestricted(), assignment.id)
    db_session.commit()
    scope = resolve_scope(db_session, _caller(seed.math_teacher.user))
    assert not scope.allows(seed.class_10a.id, seed.math.id)


def test_only_principals_manage_assignments(db_session, seed):
    teacher_scope = resolve_scope(db_session, _caller(seed.math_teacher.user))
    with pytest.raises(AuthorizationError):
        assign_teacher(db_session, teacher_scope, seed.math_teacher.id, seed.physics.id, seed.class_9a.id)

    with pytest.raises(NotFoundError, match='Teacher not found'):
        assign_teacher(db_session, Unrestricted(), 9999, seed.math.id, seed.class_9a.id)
    with pytest.raises(NotFoundError, match='Assignment not found'):
        unassign_teacher(db_session, Unrestricted(), 9999)
