"""
Role lifecycle service - Multi-Gym.

Create, update and delete gym roles. System roles (GymOwner, Trainer,
Student, SuperAdmin) may have their permissions changed but are never
renamed or deleted.
"""
import logging
from datetime import datetime, timezone
from typing import Any, Dict, Optional

from sqlalchemy import func
from sqlalchemy.exc import IntegrityError

from gymapp.exceptions import (
    GymError, ValidationError, ConflictError, NotFoundError, InvalidOperationError
)
from gymapp.models import Role, User, AuditAction, SYSTEM_ROLE_NAMES
from gymapp.services.audit_service import log_action
from gymapp.services.permission_service import (
    parse_permission_map, serialize_permission_map, merge_permission_maps
)
from gymapp.services import role_templates
from gymapp.utils.pagination import paginate

logger = logging.getLogger(__name__)

ROLE_NAME_MIN_LENGTH = 2
ROLE_NAME_MAX_LENGTH = 50

# Created for every new gym
DEFAULT_GYM_ROLES = ('GymOwner', 'Trainer', 'Student')


def _validate_name(name: Any) -> str:
    if not isinstance(name, str) or not name.strip():
        raise ValidationError('Role name is required')
    name = name.strip()
    if not ROLE_NAME_MIN_LENGTH <= len(name) <= ROLE_NAME_MAX_LENGTH:
        raise ValidationError(
            f'Role name must be between {ROLE_NAME_MIN_LENGTH} and {ROLE_NAME_MAX_LENGTH} characters'
        )
    return name


def _check_not_reserved(name: str) -> None:
    if name in SYSTEM_ROLE_NAMES:
        raise ValidationError(f"Role name '{name}' is reserved for system roles")


def _live_roles(session, gym_id: int):
    return session.query(Role).filter(
        Role.gym_id == gym_id,
        Role.deleted_at.is_(None)
    )


def _name_taken(session, gym_id: int, name: str, exclude_id: int = None) -> bool:
    query = _live_roles(session, gym_id).filter(Role.name == name)
    if exclude_id is not None:
        query = query.filter(Role.id != exclude_id)
    return session.query(query.exists()).scalar()


def get_role(session, gym_id: int, role_id: int, for_update: bool = False) -> Role:
    """Fetch a live role of this gym or raise NotFoundError."""
    query = _live_roles(session, gym_id).filter(Role.id == role_id)
    if for_update:
        query = query.with_for_update()
    role = query.first()
    if not role:
        raise NotFoundError('Role not found')
    return role


def get_role_by_name(session, gym_id: int, name: str) -> Optional[Role]:
    return _live_roles(session, gym_id).filter(Role.name == name).first()


def count_role_users(session, role_id: int) -> int:
    return session.query(func.count(User.id)).filter(
        User.role_id == role_id,
        User.deleted_at.is_(None)
    ).scalar()


def list_roles(session, gym_id: int, page: int = 1, limit: int = 50):
    """
    List live roles of a gym (oldest first) with their live user counts.

    Returns:
        (list of role dicts, pagination dict)
    """
    user_counts = session.query(
        User.role_id.label('role_id'),
        func.count(User.id).label('user_count')
    ).filter(
        User.gym_id == gym_id,
        User.deleted_at.is_(None)
    ).group_by(User.role_id).subquery()

    query = session.query(Role, func.coalesce(user_counts.c.user_count, 0)).outerjoin(
        user_counts, user_counts.c.role_id == Role.id
    ).filter(
        Role.gym_id == gym_id,
        Role.deleted_at.is_(None)
    ).order_by(Role.created_at.asc(), Role.id.asc())

    rows, pagination = paginate(query, page, limit)
    return [role.to_dict(user_count=count) for role, count in rows], pagination


def _add_role(session, gym_id: int, name: str, parsed, actor_id: int = None, system: bool = False) -> Role:
    """Insert a role and its audit entry without committing."""
    if _name_taken(session, gym_id, name):
        raise ConflictError('Role with this name already exists in your gym')
    if not system:
        _check_not_reserved(name)

    role = Role(
        gym_id=gym_id,
        name=name,
        permissions=serialize_permission_map(parsed)
    )
    session.add(role)
    session.flush()

    log_action(
        session, AuditAction.ROLE_CREATED, gym_id, actor_id,
        resource_type='role', resource_id=role.id,
        details={'name': name}
    )
    return role


def create_role(
    session,
    gym_id: int,
    name: str,
    permissions: Optional[Dict[str, Any]] = None,
    actor_id: int = None
) -> Role:
    """
    Create a role in a gym.

    Raises:
        ValidationError: empty/over-long or reserved name, malformed permissions
        ConflictError: a live role with the same name exists in the gym
    """
    name = _validate_name(name)
    parsed = parse_permission_map(permissions)

    try:
        role = _add_role(session, gym_id, name, parsed, actor_id)
        session.commit()
        logger.info(f"Role '{name}' created in gym {gym_id}")
        return role

    except IntegrityError:
        # Concurrent insert won the partial unique index
        session.rollback()
        raise ConflictError('Role with this name already exists in your gym')
    except GymError:
        session.rollback()
        raise
    except Exception:
        session.rollback()
        logger.exception(f"Error creating role '{name}' in gym {gym_id}")
        raise


def update_role(
    session,
    gym_id: int,
    role_id: int,
    name: Optional[str] = None,
    permissions: Optional[Dict[str, Any]] = None,
    actor_id: int = None
) -> Role:
    """
    Rename a role and/or patch its permissions.

    Permission patches are merged per resource: resources in the patch get
    their flags overlaid, other resources keep their grants.

    Raises:
        NotFoundError: role not in gym
        InvalidOperationError: renaming a system role
        ConflictError: new name already used in the gym
        ValidationError: malformed or reserved name, malformed permissions
    """
    new_name = _validate_name(name) if name is not None else None
    patch = parse_permission_map(permissions) if permissions is not None else None

    try:
        role = get_role(session, gym_id, role_id, for_update=True)
        changes = {}

        if new_name is not None and new_name != role.name:
            if role.is_system_role:
                raise InvalidOperationError('Cannot rename system roles')
            if _name_taken(session, gym_id, new_name, exclude_id=role.id):
                raise ConflictError('Role with this name already exists')
            _check_not_reserved(new_name)
            changes['name'] = {'from': role.name, 'to': new_name}
            role.name = new_name

        if patch:
            current = parse_permission_map(role.permissions or {})
            role.permissions = serialize_permission_map(merge_permission_maps(current, patch))
            changes['permissions'] = sorted(resource.value for resource in patch)

        if changes:
            log_action(
                session, AuditAction.ROLE_UPDATED, gym_id, actor_id,
                resource_type='role', resource_id=role.id, details=changes
            )
        session.commit()
        return role

    except IntegrityError:
        session.rollback()
        raise ConflictError('Role with this name already exists')
    except GymError:
        session.rollback()
        raise
    except Exception:
        session.rollback()
        logger.exception(f"Error updating role {role_id} in gym {gym_id}")
        raise


def delete_role(session, gym_id: int, role_id: int, actor_id: int = None) -> None:
    """
    Soft delete a custom role that no live user references.

    The role row is locked so a concurrent assignment cannot slip in
    between the user count and the delete.

    Raises:
        NotFoundError, InvalidOperationError
    """
    try:
        role = get_role(session, gym_id, role_id, for_update=True)

        if role.is_system_role:
            raise InvalidOperationError('Cannot delete system roles')

        users_count = count_role_users(session, role.id)
        if users_count > 0:
            raise InvalidOperationError(
                f'Cannot delete role. It is assigned to {users_count} user(s). '
                f'Please reassign users first.'
            )

        role.deleted_at = datetime.now(timezone.utc)
        log_action(
            session, AuditAction.ROLE_DELETED, gym_id, actor_id,
            resource_type='role', resource_id=role.id, details={'name': role.name}
        )
        session.commit()
        logger.info(f"Role {role_id} deleted in gym {gym_id}")

    except GymError:
        session.rollback()
        raise
    except Exception:
        session.rollback()
        logger.exception(f"Error deleting role {role_id} in gym {gym_id}")
        raise


def list_templates():
    return role_templates.list_templates()


def create_from_template(
    session,
    gym_id: int,
    template_name: str,
    custom_name: Optional[str] = None,
    actor_id: int = None
) -> Role:
    """
    Instantiate a named template as a new role (named ``custom_name`` or
    the template name).

    Raises:
        NotFoundError: unknown template
        ValidationError: resulting name is a reserved system role name
        ConflictError: resulting name already used
    """
    template = role_templates.get_template(template_name)
    if not template:
        raise NotFoundError(f"Role template '{template_name}' not found")

    name = custom_name if custom_name and str(custom_name).strip() else template_name
    return create_role(session, gym_id, name, template['permissions'], actor_id=actor_id)


def seed_system_roles(session, gym_id: int) -> Dict[str, Role]:
    """
    Create the default roles for a gym in one transaction; existing ones are
    left as they are. Also commits anything the caller added beforehand
    (e.g. the new gym row).
    """
    roles = {}
    try:
        for name in DEFAULT_GYM_ROLES:
            role = get_role_by_name(session, gym_id, name)
            if role is None:
                template = role_templates.get_template(name)
                role = _add_role(
                    session, gym_id, name, parse_permission_map(template['permissions']),
                    system=True
                )
            roles[name] = role
        session.commit()
        return roles

    except IntegrityError:
        session.rollback()
        raise ConflictError('System roles are being created concurrently, please retry')
    except GymError:
        session.rollback()
        raise
    except Exception:
        session.rollback()
        logger.exception(f"Error seeding system roles for gym {gym_id}")
        raise
