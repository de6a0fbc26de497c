"""
Bearer-token authentication.

Tokens are HS256 JWTs issued at login. Flask-Login resolves the current user
from the ``Authorization`` header on every request, so views can rely on
``current_user`` the same way session-based views do.
"""
import logging
from datetime import datetime, timedelta, timezone
from functools import wraps

import jwt
from flask import current_app, request
from flask_login import current_user

from api_utils import error_response
from errors import Forbidden
from extensions import db, login_manager
from models import User

logger = logging.getLogger(__name__)

JWT_ALGORITHM = 'HS256'

# Endpoints reachable without a token
PUBLIC_ENDPOINTS = {'auth.login', 'auth.register', 'health', 'static'}


def generate_token(user):
    payload = {
        'user_id': user.id,
        'staff_id': user.staff_id,
        'username': user.username,
        'exp': datetime.now(timezone.utc) + timedelta(hours=current_app.config['JWT_EXPIRES_HOURS']),
    }
    return jwt.encode(payload, current_app.config['JWT_SECRET_KEY'], algorithm=JWT_ALGORITHM)


def decode_token(token):
    return jwt.decode(token, current_app.config['JWT_SECRET_KEY'], algorithms=[JWT_ALGORITHM])


@login_manager.user_loader
def load_user(user_id):
    return db.session.get(User, int(user_id))


@login_manager.request_loader
def load_user_from_request(req):
    header = req.headers.get('Authorization', '')
    if not header.startswith('Bearer '):
        return None
    token = header[7:].strip()
    try:
        data = decode_token(token)
    except jwt.ExpiredSignatureError:
        logger.info('Rejected expired token')
        return None
    except jwt.InvalidTokenError:
        logger.info('Rejected invalid token')
        return None
    return db.session.get(User, data.get('user_id'))


@login_manager.unauthorized_handler
def unauthorized():
    return error_response('Authentication required', 401)


def enforce_authentication():
    """before_request hook: every endpoint outside PUBLIC_ENDPOINTS needs a valid token"""
    if request.method == 'OPTIONS' or request.endpoint is None:
        return None
    if request.endpoint in PUBLIC_ENDPOINTS:
        return None
    if not current_user.is_authenticated:
        return login_manager.unauthorized()
    return None


def role_required(*roles):
    """Restrict a view to users whose staff job title is one of ``roles``
    (or one of ADMIN_ROLES when no roles are given)"""
    def decorator(f):
        @wraps(f)
        def decorated_function(*args, **kwargs):
            allowed = roles or current_app.config['ADMIN_ROLES']
            if current_user.role not in allowed:
                logger.warning('Access denied for %s (role %s) on %s',
                               current_user.username, current_user.role, f.__name__)
                raise Forbidden('You do not have permission to perform this action')
            return f(*args, **kwargs)
        return decorated_function
    return decorator


admin_required = role_required()
