"""
User service - gym members and staff.
"""
import logging
import re
from typing import Optional

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import joinedload

from gymapp.exceptions import GymError, ValidationError, ConflictError, NotFoundError
from gymapp.models import User, AuditAction
from gymapp.services.audit_service import log_action
from gymapp.services.role_service import get_role
from gymapp.utils.pagination import paginate

logger = logging.getLogger(__name__)

EMAIL_RE = re.compile(r'^[^@\s]+@[^@\s]+\.[^@\s]+$')
PASSWORD_MIN_LENGTH = 8


def normalize_email(email) -> str:
    if not isinstance(email, str) or not EMAIL_RE.match(email.strip()):
        raise ValidationError('Invalid email')
    return email.strip().lower()


def get_user(session, gym_id: int, user_id: int) -> User:
    user = session.query(User).options(joinedload(User.role)).filter(
        User.id == user_id,
        User.gym_id == gym_id,
        User.deleted_at.is_(None)
    ).first()
    if not user:
        raise NotFoundError('User not found')
    return user


def list_users(session, gym_id: int, role_id: int = None, page: int = 1, limit: int = 20):
    query = session.query(User).options(joinedload(User.role)).filter(
        User.gym_id == gym_id,
        User.deleted_at.is_(None)
    )
    if role_id is not None:
        query = query.filter(User.role_id == role_id)
    query = query.order_by(User.created_at.asc(), User.id.asc())
    return paginate(query, page, limit)


def create_user(
    session,
    gym_id: int,
    email: str,
    password: str,
    role_id: int,
    first_name: str,
    last_name: str = '',
    phone: Optional[str] = None,
    actor_id: int = None
) -> User:
    """
    Create a user in a gym with a live role of that gym.

    Raises:
        ValidationError: bad email, short password or missing first name
        NotFoundError: role not in gym
        ConflictError: email already registered
    """
    email = normalize_email(email)
    if not isinstance(password, str) or len(password) < PASSWORD_MIN_LENGTH:
        raise ValidationError(f'Password must be at least {PASSWORD_MIN_LENGTH} characters')
    if not isinstance(first_name, str) or not first_name.strip():
        raise ValidationError('First name is required')

    try:
        role = get_role(session, gym_id, role_id)

        if session.query(User.id).filter(User.email == email).first():
            raise ConflictError('Email already registered')

        user = User(
            gym_id=gym_id,
            role_id=role.id,
            email=email,
            first_name=first_name.strip(),
            last_name=(last_name or '').strip(),
            phone=phone,
            active=True
        )
        user.set_password(password)
        session.add(user)
        session.flush()

        log_action(
            session, AuditAction.USER_CREATED, gym_id, actor_id,
            resource_type='user', resource_id=user.id,
            details={'email': email, 'role': role.name}
        )
        session.commit()
        logger.info(f"User {email} created in gym {gym_id} as {role.name}")
        return user

    except IntegrityError:
        session.rollback()
        raise ConflictError('Email already registered')
    except GymError:
        session.rollback()
        raise


def assign_role(session, gym_id: int, user_id: int, role_id: int, actor_id: int = None) -> User:
    """
    Point a user at another role of the same gym.

    The role row is locked so it cannot be deleted while being assigned.
    """
    try:
        user = get_user(session, gym_id, user_id)
        role = get_role(session, gym_id, role_id, for_update=True)

        previous = user.role_name
        user.role_id = role.id
        user.role = role
        log_action(
            session, AuditAction.USER_ROLE_CHANGED, gym_id, actor_id,
            resource_type='user', resource_id=user.id,
            details={'from': previous, 'to': role.name}
        )
        session.commit()
        return user

    except GymError:
        session.rollback()
        raise
