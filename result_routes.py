"""
Results & Rankings API routes
JSON endpoints under /api, all scoped through scope_helpers.resolve_scope
"""

from functools import wraps
import logging

from flask import Blueprint, current_app, jsonify, request
from flask_login import current_user

from db_single import get_session
from errors import AuthenticationError, AuthorizationError, ValidationError
from ranking_helpers import build_result_stats, compute_rankings
from result_query_helpers import ResultFilters, query_results, search_students
from result_validators import ResultValidator
from result_write_helpers import delete_result, update_result, upsert_results
from scope_helpers import (
    AssignedClassSubjects, Caller, OwnRecordsOnly, assign_teacher, list_assignments,
    require_unrestricted, resolve_scope, unassign_teacher
)
from models import Student

logger = logging.getLogger(__name__)


def require_api_auth(f):
    """Decorator to require a verified bearer token"""
    @wraps(f)
    def decorated_function(*args, **kwargs):
        if not current_user.is_authenticated:
            raise AuthenticationError('No token provided')
        return f(*args, **kwargs)
    return decorated_function


def _json_body(allow_list=False):
    data = request.get_json(silent=True)
    if data is None:
        raise ValidationError('Request body must be JSON')
    if not isinstance(data, dict) and not (allow_list and isinstance(data, list)):
        raise ValidationError('Request body must be an object')
    return data


def _id_arg(name):
    """Optional integer id from the query string"""
    value = request.args.get(name)
    if value in (None, ''):
        return None
    return ResultValidator.validate_integer(value, name, minimum=1)


def _default_year():
    return current_app.config['DEFAULT_ACADEMIC_YEAR']


def create_results_blueprint():
    """Create the blueprint for results, rankings and teaching assignments"""

    results_bp = Blueprint('results', __name__, url_prefix='/api')

    # ==================== RESULTS ====================
    @results_bp.route('/results', methods=['GET'])
    @require_api_auth
    def list_results():
        """Scoped, filtered, paginated results plus role statistics"""
        session_db = get_session()
        try:
            scope = resolve_scope(session_db, Caller.from_user(current_user))
            filters = ResultFilters.from_args(
                request.args,
                _default_year(),
                page_size=current_app.config['RESULTS_PAGE_SIZE'],
                max_page_size=current_app.config['RESULTS_MAX_PAGE_SIZE'],
            )

            page = query_results(session_db, scope, filters)
            response = page.to_dict()
            response['stats'] = build_result_stats(session_db, scope, filters)
            response['academicYear'] = filters.academic_year
            return jsonify(response)
        finally:
            session_db.close()

    @results_bp.route('/results', methods=['POST'])
    @require_api_auth
    def create_results():
        """Upsert one result or a batch: {"results": [...]}"""
        session_db = get_session()
        try:
            scope = resolve_scope(session_db, Caller.from_user(current_user))
            data = _json_body(allow_list=True)
            if isinstance(data, list):
                payloads = data
            elif isinstance(data, dict) and 'results' in data:
                payloads = data['results']
            else:
                payloads = [data]

            summary = upsert_results(
                session_db, scope, payloads,
                entered_by=current_user.id,
                default_academic_year=_default_year()
            )
            session_db.commit()
            return jsonify({
                'success': True,
                'message': f'{summary.count} result(s) saved successfully',
                'data': summary.to_dict()
            })
        except Exception:
            session_db.rollback()
            raise
        finally:
            session_db.close()

    @results_bp.route('/results', methods=['PUT'])
    @require_api_auth
    def edit_result():
        session_db = get_session()
        try:
            scope = resolve_scope(session_db, Caller.from_user(current_user))
            result = update_result(session_db, scope, _json_body(), entered_by=current_user.id)
            session_db.commit()
            return jsonify({
                'success': True,
                'message': 'Result updated successfully',
                'data': result.to_dict()
            })
        except Exception:
            session_db.rollback()
            raise
        finally:
            session_db.close()

    @results_bp.route('/results', methods=['DELETE'])
    @require_api_auth
    def remove_result():
        session_db = get_session()
        try:
            scope = resolve_scope(session_db, Caller.from_user(current_user))
            deleted = delete_result(session_db, scope, request.args.get('id'))
            session_db.commit()
            return jsonify({
                'success': True,
                'message': 'Result deleted successfully',
                'data': {'deleted_result': deleted}
            })
        except Exception:
            session_db.rollback()
            raise
        finally:
            session_db.close()

    @results_bp.route('/results/search', methods=['GET'])
    @require_api_auth
    def search_results():
        """Principal search for students by name or roll number"""
        session_db = get_session()
        try:
            scope = resolve_scope(session_db, Caller.from_user(current_user))
            require_unrestricted(scope, 'Only principals can search student results')

            students = search_students(
                session_db,
                request.args.get('query', ''),
                academic_year=request.args.get('academic_year') or None
            )
            return jsonify({'students': students, 'totalStudents': len(students)})
        finally:
            session_db.close()

    # ==================== RANKINGS ====================
    @results_bp.route('/rankings', methods=['GET'])
    @require_api_auth
    def rankings():
        session_db = get_session()
        try:
            scope = resolve_scope(session_db, Caller.from_user(current_user))
            academic_year = (request.args.get('academic_year') or '').strip() or _default_year()

            table = compute_rankings(session_db, academic_year)
            response = table.to_dict(top_n=current_app.config['RANKINGS_TOP_N'])
            response['academicYear'] = academic_year
            response['summary'] = table.summary()
            response['studentSpecificData'] = None

            if isinstance(scope, OwnRecordsOnly):
                student = session_db.get(Student, scope.student_id)
                response['studentSpecificData'] = table.student_specific_data(student.id, student.class_id)

            return jsonify(response)
        finally:
            session_db.close()

    # ==================== TEACHING ASSIGNMENTS ====================
    @results_bp.route('/teacher/subjects', methods=['GET'])
    @require_api_auth
    def teacher_subjects():
        """The calling teacher's (class, subject) assignments"""
        session_db = get_session()
        try:
            scope = resolve_scope(session_db, Caller.from_user(current_user))
            if not isinstance(scope, AssignedClassSubjects):
                raise AuthorizationError('Only teachers have subject assignments')
            assignments = list_assignments(session_db, scope)
            return jsonify({'subjects': [a.to_dict() for a in assignments]})
        finally:
            session_db.close()

    @results_bp.route('/class-assignments', methods=['GET'])
    @require_api_auth
    def class_assignments():
        session_db = get_session()
        try:
            scope = resolve_scope(session_db, Caller.from_user(current_user))
            require_unrestricted(scope, 'Only principals can access class assignments')
            teacher_id = _id_arg('teacher_id')
            assignments = list_assignments(session_db, scope, teacher_id=teacher_id)
            return jsonify({'assignments': [a.to_dict() for a in assignments]})
        finally:
            session_db.close()

    @results_bp.route('/class-assignments', methods=['POST'])
    @require_api_auth
    def create_class_assignment():
        session_db = get_session()
        try:
            scope = resolve_scope(session_db, Caller.from_user(current_user))
            data = _json_body()
            missing = [f for f in ('teacher_id', 'subject_id', 'class_id') if not data.get(f)]
            if missing:
                raise ValidationError(f"Missing required fields: {', '.join(missing)}", field=missing[0])

            teacher_id, subject_id, class_id = (
                ResultValidator.validate_integer(data[field], field, minimum=1)
                for field in ('teacher_id', 'subject_id', 'class_id')
            )

            assignment = assign_teacher(session_db, scope, teacher_id, subject_id, class_id)
            session_db.commit()
            return jsonify({
                'success': True,
                'message': 'Teacher assigned successfully',
                'data': assignment.to_dict()
            }), 201
        except Exception:
            session_db.rollback()
            raise
        finally:
            session_db.close()

    @results_bp.route('/class-assignments', methods=['DELETE'])
    @require_api_auth
    def delete_class_assignment():
        session_db = get_session()
        try:
            scope = resolve_scope(session_db, Caller.from_user(current_user))
            assignment_id = _id_arg('id')
            if not assignment_id:
                raise ValidationError('Assignment ID is required', field='id')

            unassign_teacher(session_db, scope, assignment_id)
            session_db.commit()
            return jsonify({'success': True, 'message': 'Assignment removed successfully'})
        except Exception:
            session_db.rollback()
            raise
        finally:
            session_db.close()

    return results_bp
