import logging

from flask import Blueprint
from flask_login import current_user

from api_utils import get_or_404, parse_body, success_response
from auth import generate_token
from errors import Unauthorized, ValidationFailed
from extensions import db
from models import Staff, User
from schemas import LoginRequest, RegisterRequest

logger = logging.getLogger(__name__)

auth_bp = Blueprint('auth', __name__, url_prefix='/api/auth')


@auth_bp.route('/register', methods=['POST'])
def register():
    """Create a login account for an existing staff member"""
    data = parse_body(RegisterRequest)
    staff = get_or_404(Staff, data.staff_id, 'staff')
    if staff.user is not None:
        raise ValidationFailed('This staff member already has an account')
    if User.query.filter_by(username=data.username).first():
        raise ValidationFailed('Username already taken')

    user = User(staff_id=staff.id, username=data.username)
    user.set_password(data.password)
    db.session.add(user)
    db.session.commit()

    logger.info('Registered user %s for staff %s', user.username, staff.id)
    return success_response(user.to_dict(), 'Registration successful', 201)


@auth_bp.route('/login', methods=['POST'])
def login():
    """Login user and return JWT token"""
    data = parse_body(LoginRequest)
    user = User.query.filter_by(username=data.username).first()
    if not user or not user.check_password(data.password):
        logger.warning('Invalid credentials for %s', data.username)
        raise Unauthorized('Invalid credentials')

    logger.info('Login successful for %s', user.username)
    return success_response({'token': generate_token(user), 'user': user.to_dict()}, 'Login successful')


@auth_bp.route('/me', methods=['GET'])
def me():
    """Return the logged-in user"""
    return success_response(current_user.to_dict())
