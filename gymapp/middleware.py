"""Middleware for authentication and gym context."""
from functools import wraps
from flask import g, request, current_app
from gymapp.database import get_session
from gymapp.exceptions import AuthenticationError
from gymapp.models import User, Gym
from gymapp.services.auth_service import decode_token


def _bearer_token():
    header = request.headers.get('Authorization', '')
    scheme, _, token = header.partition(' ')
    if scheme.lower() != 'bearer' or not token.strip():
        return None
    return token.strip()


def load_identity():
    """
    Load current user, gym and role into g (Flask's per-request global).

    Called before each request. The token only carries ids; user, gym and
    role are re-read from the database so permission changes apply on the
    next request. Sets g.user, g.gym_id and g.role when authenticated,
    otherwise leaves them None and records why in g.auth_error.
    """
    g.user = None
    g.gym_id = None
    g.role = None
    g.auth_error = None

    token = _bearer_token()
    if not token:
        return

    try:
        payload = decode_token(token)
    except AuthenticationError as e:
        g.auth_error = e.message
        return

    db_session = get_session()
    user = db_session.query(User).join(Gym, Gym.id == User.gym_id).filter(
        User.id == payload['user_id'],
        User.gym_id == payload['gym_id'],
        User.active.is_(True),
        User.deleted_at.is_(None),
        Gym.active.is_(True)
    ).first()

    if not user:
        current_app.logger.info(f"Token for unknown or inactive user {payload['user_id']}")
        g.auth_error = 'User not found or inactive'
        return

    g.user = user
    g.user_id = user.id
    g.gym_id = user.gym_id
    g.role = user.role


def require_auth(f):
    """
    Decorator: Require an authenticated user.

    Raises AuthenticationError (401) when no valid token was presented.
    """
    @wraps(f)
    def decorated_function(*args, **kwargs):
        if g.get('user') is None:
            raise AuthenticationError(g.get('auth_error') or 'Not authenticated')
        return f(*args, **kwargs)
    return decorated_function
