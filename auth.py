"""
Bearer-token authentication.

Tokens are HS256 JWTs carrying {user_id, role, exp}. Flask-Login's request
loader turns a valid token into `current_user`; routes then rely on
`login_required` and `role_required`.
"""

import logging
import re
from datetime import timedelta
from functools import wraps

import jwt
from flask import current_app, jsonify
from flask_login import current_user, login_required
from sqlalchemy import or_

from errors import AccessDeniedError, AuthenticationError, ConflictError, ValidationError, transaction
from extensions import db, login_manager
from ledger import utc_now
from models import Role, User

logger = logging.getLogger(__name__)

JWT_ALGORITHM = 'HS256'
EMAIL_PATTERN = re.compile(r'^[^@\s]+@[^@\s]+\.[^@\s]+$')


def generate_token(user):
    """Create a signed JWT for the user"""
    expires_days = int(current_app.config.get('JWT_EXPIRES_DAYS', 30))
    payload = {
        'user_id': user.id,
        'role': user.role.value,
        'exp': utc_now() + timedelta(days=expires_days),
    }
    return jwt.encode(payload, current_app.config['JWT_SECRET_KEY'], algorithm=JWT_ALGORITHM)


def decode_token(token):
    try:
        return jwt.decode(token, current_app.config['JWT_SECRET_KEY'], algorithms=[JWT_ALGORITHM])
    except jwt.ExpiredSignatureError:
        logger.info("[AUTH] Rejected expired token")
    except jwt.InvalidTokenError:
        logger.info("[AUTH] Rejected invalid token")
    return None


@login_manager.request_loader
def load_user_from_request(request):
    header = request.headers.get('Authorization', '')
    if not header.startswith('Bearer '):
        return None
    payload = decode_token(header[7:].strip())
    if not payload or not payload.get('user_id'):
        return None
    return db.session.get(User, payload['user_id'])


@login_manager.unauthorized_handler
def unauthorized():
    return jsonify({
        'success': False,
        'error': 'Unauthorized',
        'message': 'Authentication required'
    }), 401


def role_required(*roles):
    """Decorator to require an authenticated caller holding one of the roles"""
    allowed = {getattr(role, 'value', role) for role in roles}

    def decorator(f):
        @wraps(f)
        @login_required
        def decorated_function(*args, **kwargs):
            if current_user.role.value not in allowed:
                raise AccessDeniedError(f"Only {' or '.join(sorted(allowed))} users can perform this operation")
            return f(*args, **kwargs)
        return decorated_function
    return decorator


admin_required = role_required(Role.ADMIN)


def _text(data, field, max_length, min_length=1):
    value = str(data.get(field) or '').strip()
    if len(value) < min_length:
        if min_length == 1:
            raise ValidationError(f'{field} is required')
        raise ValidationError(f'{field} must be at least {min_length} characters')
    if len(value) > max_length:
        raise ValidationError(f'{field} must be at most {max_length} characters')
    return value


def build_user(data, role=None):
    """Validate signup-style input into an unsaved User"""
    data = data or {}
    name = _text(data, 'name', 100)
    username = _text(data, 'username', 64, min_length=3)
    email = _text(data, 'email', 120).lower()
    if not EMAIL_PATTERN.match(email):
        raise ValidationError('email must be a valid email address')
    password = data.get('password') or ''
    if len(password) < 6:
        raise ValidationError('password must be at least 6 characters')

    if role is None:
        try:
            role = Role(data.get('role') or Role.ADMIN.value)
        except ValueError:
            raise ValidationError('role must be admin or manager')

    existing = User.query.filter(or_(User.username == username, User.email == email)).first()
    if existing is not None:
        raise ConflictError('Username or email already exists', error='User exists')

    user = User(name=name, username=username, email=email, role=role)
    user.set_password(password)
    return user


def signup(data):
    user = build_user(data)
    with transaction():
        db.session.add(user)
    logger.info("[AUTH] Registered %s user %s", user.role.value, user.username)
    return user, generate_token(user)


def signin(data):
    """Check credentials given as username or email; returns (user, token)"""
    data = data or {}
    login = str(data.get('username') or data.get('email') or '').strip()
    password = data.get('password') or ''
    if not login or not password:
        raise ValidationError('Username or email and password are required')

    user = User.query.filter(or_(User.username == login, User.email == login.lower())).first()
    if user is None or not user.check_password(password):
        logger.info("[AUTH] Failed sign-in for %s", login)
        raise AuthenticationError('Invalid credentials', error='Invalid credentials')

    with transaction():
        user.last_login = utc_now()
    logger.info("[AUTH] Signed in %s", user.username)
    return user, generate_token(user)


def update_profile(user, data):
    """Change the caller's own name and email"""
    data = data or {}
    fields = {}
    if data.get('name'):
        fields['name'] = _text(data, 'name', 100)
    if data.get('email'):
        email = _text(data, 'email', 120).lower()
        if not EMAIL_PATTERN.match(email):
            raise ValidationError('email must be a valid email address')
        if email != user.email:
            if User.query.filter(User.email == email, User.id != user.id).first() is not None:
                raise ConflictError('This email is already registered', error='Email already exists')
        fields['email'] = email

    with transaction():
        for attr, value in fields.items():
            setattr(user, attr, value)
    logger.info("[AUTH] Updated profile of %s (%s)", user.username, ', '.join(sorted(fields)) or '-')
    return user
