"""
Result Query Builder
Composes filtered, sorted and paginated result listings under an access scope.

Filters become an ordered list of predicate objects; each one renders to a
SQLAlchemy clause with bound parameters. The only identifier ever chosen from
caller input is the sort column, and that comes from SORT_COLUMNS.
"""

import logging
import math

from sqlalchemy import and_, false, func, or_
from sqlalchemy.orm import contains_eager

from errors import AuthorizationError, ValidationError
from models import Student, User
from result_models import Result
from result_validators import MAX_INT
from scope_helpers import AssignedClassSubjects, OwnRecordsOnly, Unrestricted
from teacher_models import Subject

logger = logging.getLogger(__name__)


SORT_COLUMNS = {
    'student_name': (User.first_name, User.last_name),
    'subject_name': (Subject.name,),
    'marks': (Result.obtained_marks,),
    'grade': (Result.grade,),
    'exam_date': (Result.exam_date,),
    'exam_type': (Result.exam_type,),
}
DEFAULT_SORT = 'exam_date'
DEFAULT_SORT_DIR = 'desc'


def _to_int(value):
    if value is None or value == '':
        return None
    try:
        return int(value)
    except (TypeError, ValueError):
        return None


def _to_id(value, field):
    value = _to_int(value)
    if value is not None and abs(value) > MAX_INT:
        raise ValidationError(f"{field} is out of range", field=field)
    return value


def _to_text(value):
    if value is None:
        return None
    value = str(value).strip()
    return value or None


class ResultFilters:
    """Caller-supplied filters, sort and paging for a result listing"""

    def __init__(self, academic_year, class_id=None, subject_id=None, student_id=None,
                 exam_type=None, search=None, sort_by=None, sort_dir=None,
                 page=1, page_size=20, max_page_size=100):
        self.academic_year = academic_year
        self.class_id = class_id
        self.subject_id = subject_id
        self.student_id = student_id
        self.exam_type = exam_type
        self.search = search

        # Unknown sort keys fall back to the default instead of erroring
        if sort_by not in SORT_COLUMNS:
            sort_by = DEFAULT_SORT
            sort_dir = DEFAULT_SORT_DIR
        self.sort_by = sort_by
        self.sort_dir = 'asc' if str(sort_dir or '').lower() == 'asc' else 'desc'

        self.page_size = min(max(1, page_size or 1), max_page_size)
        # Offset must stay bindable as an INT
        self.page = min(max(1, page or 1), MAX_INT // self.page_size + 1)

    @classmethod
    def from_args(cls, args, default_academic_year, page_size=20, max_page_size=100):
        """Build filters from a request's query arguments"""
        return cls(
            academic_year=_to_text(args.get('academic_year')) or default_academic_year,
            class_id=_to_id(args.get('class_id'), 'class_id'),
            subject_id=_to_id(args.get('subject_id'), 'subject_id'),
            student_id=_to_id(args.get('student_id'), 'student_id'),
            exam_type=_to_text(args.get('exam_type')),
            search=_to_text(args.get('search') or args.get('query')),
            sort_by=_to_text(args.get('sort_by')),
            sort_dir=_to_text(args.get('sort_dir') or args.get('sort_order')),
            page=_to_int(args.get('page')) or 1,
            page_size=_to_int(args.get('page_size') or args.get('limit')) or page_size,
            max_page_size=max_page_size,
        )

    @property
    def offset(self):
        return (self.page - 1) * self.page_size

    def __repr__(self):
        return f"<ResultFilters {self.__dict__}>"


# ===== PREDICATES =====

class Predicate:
    def clause(self):
        raise NotImplementedError


class Equals(Predicate):
    def __init__(self, column, value):
        self.column = column
        self.value = value

    def clause(self):
        return self.column == self.value

    def __repr__(self):
        return f"<Equals {self.column.key}={self.value!r}>"


class PairIn(Predicate):
    """(Student.class_id, Result.subject_id) must be one of the pairs"""

    def __init__(self, pairs):
        self.pairs = sorted(pairs)

    def clause(self):
        if not self.pairs:
            return false()
        return or_(*[
            and_(Student.class_id == class_id, Result.subject_id == subject_id)
            for class_id, subject_id in self.pairs
        ])

    def __repr__(self):
        return f"<PairIn {self.pairs}>"


class TextSearch(Predicate):
    """Case-insensitive substring match on first name, last name, full name or roll number"""

    def __init__(self, term):
        self.term = term.lower()

    def clause(self):
        full_name = User.first_name + ' ' + User.last_name
        columns = (User.first_name, User.last_name, full_name, Student.roll_number)
        return or_(*[
            func.lower(column).contains(self.term, autoescape=True)
            for column in columns
        ])

    def __repr__(self):
        return f"<TextSearch {self.term!r}>"


class ResultQueryBuilder:
    """Ordered predicates plus ordering, rendered onto a base query"""

    def __init__(self):
        self.predicates = []

    def where(self, predicate):
        self.predicates.append(predicate)
        return self

    def apply(self, query):
        for predicate in self.predicates:
            query = query.filter(predicate.clause())
        return query

    @staticmethod
    def order(query, sort_by, sort_dir):
        columns = SORT_COLUMNS.get(sort_by, SORT_COLUMNS[DEFAULT_SORT])
        ordered = [column.asc() if sort_dir == 'asc' else column.desc() for column in columns]
        # Result.id keeps pages stable when the sort column ties
        ordered.append(Result.id.asc() if sort_dir == 'asc' else Result.id.desc())
        return query.order_by(*ordered)


def joined_result_query(session, *entities):
    """Results joined to student, user, subject and (optional) class"""
    return session.query(*entities).select_from(Result).join(
        Result.student
    ).join(
        Student.user
    ).join(
        Result.subject
    ).outerjoin(
        Student.student_class
    )


def base_result_query(session):
    return joined_result_query(session, Result).options(
        contains_eager(Result.student).contains_eager(Student.user),
        contains_eager(Result.student).contains_eager(Student.student_class),
        contains_eager(Result.subject),
    )


def build_scoped_predicates(scope, filters):
    """
    Translate scope plus filters into an ordered predicate list.

    Raises:
        AuthorizationError when a teacher filters on a class or subject
        outside their assignments
    """
    builder = ResultQueryBuilder()
    builder.where(Equals(Result.academic_year, filters.academic_year))

    student_id = filters.student_id
    if isinstance(scope, OwnRecordsOnly):
        # Silently pinned to the caller, whatever was asked for
        student_id = scope.student_id
    elif isinstance(scope, AssignedClassSubjects):
        _check_teacher_filters(scope, filters)
        builder.where(PairIn(scope.pairs))
    elif not isinstance(scope, Unrestricted):
        raise AuthorizationError('Access denied')

    if student_id is not None:
        builder.where(Equals(Result.student_id, student_id))
    if filters.class_id is not None and not isinstance(scope, OwnRecordsOnly):
        builder.where(Equals(Student.class_id, filters.class_id))
    if filters.subject_id is not None:
        builder.where(Equals(Result.subject_id, filters.subject_id))
    if filters.exam_type:
        builder.where(Equals(Result.exam_type, filters.exam_type))
    if filters.search:
        builder.where(TextSearch(filters.search))
    return builder


def _check_teacher_filters(scope, filters):
    class_id = filters.class_id
    subject_id = filters.subject_id

    if class_id is not None and subject_id is not None:
        allowed = scope.allows(class_id, subject_id)
    elif class_id is not None:
        allowed = class_id in scope.class_ids
    elif subject_id is not None:
        allowed = subject_id in scope.subject_ids
    else:
        allowed = True

    if not allowed:
        logger.warning(
            f"Teacher {scope.teacher_id} filtered on class={class_id} subject={subject_id} outside assignments"
        )
        raise AuthorizationError('You are not assigned to teach this subject in this class')


class ResultPage:
    def __init__(self, items, total, page, page_size):
        self.items = items
        self.total = total
        self.page = page
        self.page_size = page_size

    @property
    def total_pages(self):
        return math.ceil(self.total / self.page_size) if self.total else 0

    def to_dict(self):
        return {
            'results': [item.to_dict() for item in self.items],
            'pagination': {
                'page': self.page,
                'pageSize': self.page_size,
                'totalPages': self.total_pages,
                'total': self.total,
            }
        }


def filtered_result_query(session, scope, filters):
    """The scoped, filtered query before ordering and paging"""
    builder = build_scoped_predicates(scope, filters)
    return builder.apply(base_result_query(session))


def query_results(session, scope, filters) -> ResultPage:
    """Filtered, sorted page of results visible to the scope, plus total count"""
    query = filtered_result_query(session, scope, filters)

    total = query.order_by(None).count()
    ordered = ResultQueryBuilder.order(query, filters.sort_by, filters.sort_dir)
    items = ordered.offset(filters.offset).limit(filters.page_size).all()

    logger.debug(f"query_results scope={scope!r} total={total} page={filters.page}")
    return ResultPage(items, total, filters.page, filters.page_size)


# ===== STUDENT SEARCH =====

def search_students(session, term, academic_year=None, limit=50):
    """Students matching a name/roll search, each with their result count"""
    term = _to_text(term)
    if not term:
        return []

    result_join = Result.student_id == Student.id
    if academic_year:
        result_join = and_(result_join, Result.academic_year == academic_year)

    rows = session.query(
        Student, func.count(Result.id).label('total_results')
    ).join(
        Student.user
    ).outerjoin(
        Student.student_class
    ).outerjoin(
        Result, result_join
    ).filter(
        TextSearch(term).clause()
    ).group_by(
        Student.id, User.first_name, User.last_name
    ).order_by(
        User.first_name, User.last_name, Student.id
    ).limit(limit).all()

    students = []
    for student, total_results in rows:
        data = student.to_dict()
        data['total_results'] = total_results
        students.append(data)
    return students
