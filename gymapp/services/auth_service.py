"""
Authentication service.

Verifies credentials and issues/decodes the bearer tokens carried by every
API request. Tokens only identify the user; role and permissions are read
from the database on each request.
"""
from datetime import datetime, timedelta, timezone
import logging

import jwt
from flask import current_app

from gymapp.exceptions import AuthenticationError
from gymapp.models import User

logger = logging.getLogger(__name__)


def authenticate(session, email, password):
    """
    Return the active user matching the credentials.

    Raises:
        AuthenticationError: unknown email, wrong password or inactive user
    """
    if not email or not password:
        raise AuthenticationError('Email and password are required')

    user = session.query(User).filter(
        User.email == email.strip().lower(),
        User.deleted_at.is_(None)
    ).first()

    if not user or not user.check_password(password):
        logger.info(f"Failed login for {email}")
        raise AuthenticationError('Invalid email or password')
    if not user.active:
        raise AuthenticationError('Account is disabled')
    return user


def issue_token(user):
    """Signed token for ``user``; expires after JWT_EXPIRES_DAYS."""
    now = datetime.now(timezone.utc)
    payload = {
        'user_id': user.id,
        'gym_id': user.gym_id,
        'role_id': user.role_id,
        'iat': now,
        'exp': now + timedelta(days=current_app.config['JWT_EXPIRES_DAYS'])
    }
    return jwt.encode(
        payload,
        current_app.config['JWT_SECRET'],
        algorithm=current_app.config['JWT_ALGORITHM']
    )


def decode_token(token):
    """
    Verify a token and return its payload.

    Raises:
        AuthenticationError: expired, tampered or malformed token
    """
    try:
        payload = jwt.decode(
            token,
            current_app.config['JWT_SECRET'],
            algorithms=[current_app.config['JWT_ALGORITHM']]
        )
    except jwt.ExpiredSignatureError:
        raise AuthenticationError('Token has expired')
    except jwt.InvalidTokenError:
        raise AuthenticationError('Invalid token')

    if not isinstance(payload.get('user_id'), int) or not isinstance(payload.get('gym_id'), int):
        raise AuthenticationError('Invalid token')
    return payload
