"""
Error taxonomy for the results service
Each error carries the HTTP status and machine-readable code it maps to
"""


class AppError(Exception):
    """Base class for errors that are reported to the caller"""
    status_code = 500
    code = 'INTERNAL_ERROR'
    default_message = 'Internal server error'

    def __init__(self, message=None):
        self.message = message or self.default_message
        super().__init__(self.message)

    def to_dict(self):
        return {
            'success': False,
            'error': self.message,
            'code': self.code
        }


class AuthenticationError(AppError):
    """No credential, or the credential could not be verified"""
    status_code = 401
    code = 'AUTH_ERROR'
    default_message = 'Authentication failed'


class AuthorizationError(AppError):
    """Valid credential but the caller's scope does not cover the request"""
    status_code = 403
    code = 'AUTHORIZATION_ERROR'
    default_message = 'Access denied'


class ValidationError(AppError):
    """Malformed input"""
    status_code = 400
    code = 'VALIDATION_ERROR'
    default_message = 'Validation failed'

    def __init__(self, message=None, field=None):
        self.field = field
        super().__init__(message)

    def to_dict(self):
        data = super().to_dict()
        if self.field:
            data['field'] = self.field
        return data


class NotFoundError(AppError):
    status_code = 404
    code = 'NOT_FOUND_ERROR'
    default_message = 'Resource not found'


class DomainError(AppError, ValueError):
    """Arguments outside the domain of a pure calculation"""
    status_code = 400
    code = 'DOMAIN_ERROR'
    default_message = 'Value out of range'


class DatabaseError(AppError):
    status_code = 500
    code = 'DATABASE_ERROR'
    default_message = 'Database operation failed'

    def to_dict(self):
        # Never leak driver messages
        return {
            'success': False,
            'error': 'Internal server error',
            'code': self.code
        }
