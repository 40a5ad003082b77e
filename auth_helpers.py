"""
Bearer-token identity for API requests
Tokens are signed {id, role} payloads; Flask-Login's request_loader turns them back into users
"""

import logging

from flask import current_app
from itsdangerous import BadSignature, SignatureExpired, URLSafeTimedSerializer

from db_single import get_session
from models import User

logger = logging.getLogger(__name__)

TOKEN_SALT = 'results-auth-token'


def _serializer(secret_key=None):
    return URLSafeTimedSerializer(secret_key or current_app.config['SECRET_KEY'], salt=TOKEN_SALT)


def generate_token(user, secret_key=None):
    """Sign a token carrying the user's id and role"""
    return _serializer(secret_key).dumps({'id': user.id, 'role': user.role})


def verify_token(token, max_age=None, secret_key=None):
    """Return the token payload, or None if it is invalid or expired"""
    if not token:
        return None
    if max_age is None:
        max_age = current_app.config.get('AUTH_TOKEN_MAX_AGE')
    try:
        return _serializer(secret_key).loads(token, max_age=max_age)
    except SignatureExpired:
        logger.info("Rejected expired token")
        return None
    except BadSignature:
        logger.info("Rejected token with bad signature")
        return None


def token_from_request(request):
    """Bearer token from the Authorization header, falling back to the 'token' cookie"""
    header = request.headers.get('Authorization', '')
    if header.startswith('Bearer '):
        return header[len('Bearer '):].strip() or None
    return request.cookies.get('token')


def load_user_from_request(request):
    """Flask-Login request_loader"""
    payload = verify_token(token_from_request(request))
    if not payload or 'id' not in payload:
        return None

    s = get_session()
    try:
        user = s.query(User).filter_by(id=payload['id'], is_active=True).first()
        if user and user.role != payload.get('role'):
            # Role changed since the token was issued
            logger.info(f"Rejected token for user {user.id}: role changed")
            return None
        return user
    finally:
        s.close()
