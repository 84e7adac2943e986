"""
Permission store and authorization check.

A role's permissions are persisted as a JSON document::

    {"orders": {"read": true, "create": true}, "products": {"read": true}}

Writes go through ``parse_permission_map`` which validates the document
against the closed resource vocabulary, so a typo in a resource name is
rejected when the role is saved. Reads go through ``is_allowed`` which never
raises and denies anything it cannot positively confirm (fail-closed).
"""
import enum
import logging
import re
from dataclasses import dataclass, field
from typing import Any, Dict, Mapping, Optional, Tuple, Union

from gymapp.exceptions import AuthorizationError, ValidationError

logger = logging.getLogger(__name__)


class Resource(str, enum.Enum):
    """Resource vocabulary shared by stored permission maps and every call site."""
    USERS = 'users'
    ROLES = 'roles'
    GYMS = 'gyms'
    TRAINERS = 'trainers'
    STUDENTS = 'students'
    PROGRAMS = 'programs'
    EXERCISES = 'exercises'
    WORKOUTS = 'workouts'
    EQUIPMENT = 'equipment'
    PRODUCTS = 'products'
    PRODUCT_CATEGORIES = 'product_categories'
    ORDERS = 'orders'
    TRAINER_MATCHES = 'trainer_matches'


class Action(str, enum.Enum):
    """CRUD actions. Resource entries may also carry custom boolean flags."""
    CREATE = 'create'
    READ = 'read'
    UPDATE = 'update'
    DELETE = 'delete'


_FLAG_NAME_RE = re.compile(r'^[A-Za-z][A-Za-z0-9_]{0,49}$')


@dataclass(frozen=True)
class PermissionFlags:
    """Flags explicitly set on one resource. Anything not set denies."""
    flags: Mapping[str, bool] = field(default_factory=dict)

    def allows(self, action: Union[Action, str]) -> bool:
        key = action.value if isinstance(action, Action) else action
        return self.flags.get(key) is True

    def merged_with(self, patch: 'PermissionFlags') -> 'PermissionFlags':
        """Flags in ``patch`` override, the rest are kept."""
        return PermissionFlags({**self.flags, **patch.flags})


PermissionMap = Dict[Resource, PermissionFlags]


# =====================================================
# PARSING (strict, used on write)
# =====================================================

def parse_resource(name: Any) -> Resource:
    """Resolve a resource identifier or raise ValidationError."""
    if isinstance(name, Resource):
        return name
    try:
        return Resource(name)
    except ValueError:
        raise ValidationError(f"Unknown permission resource: '{name}'")


def parse_permission_map(raw: Any) -> PermissionMap:
    """
    Validate a raw permission document and return the typed map.

    Raises:
        ValidationError: if the document is not a mapping of known resources
            to mappings of flag name -> bool.
    """
    if raw is None:
        return {}
    if not isinstance(raw, Mapping):
        raise ValidationError('Permissions must be an object')

    parsed: PermissionMap = {}
    for resource_name, entry in raw.items():
        resource = parse_resource(resource_name)
        if not isinstance(entry, Mapping):
            raise ValidationError(f"Permissions for '{resource.value}' must be an object")

        flags = {}
        for flag_name, value in entry.items():
            if not isinstance(flag_name, str) or not _FLAG_NAME_RE.match(flag_name):
                raise ValidationError(f"Invalid permission flag '{flag_name}' on '{resource.value}'")
            # bool only; 1/"true" are rejected so storage never holds truthy non-bools
            if not isinstance(value, bool):
                raise ValidationError(
                    f"Permission '{resource.value}.{flag_name}' must be true or false"
                )
            flags[flag_name] = value
        parsed[resource] = PermissionFlags(flags)
    return parsed


def serialize_permission_map(permissions: PermissionMap) -> Dict[str, Dict[str, bool]]:
    """Typed map back to the JSON document stored on Role.permissions."""
    return {
        resource.value: dict(flags.flags)
        for resource, flags in permissions.items()
    }


def merge_permission_maps(base: PermissionMap, patch: PermissionMap) -> PermissionMap:
    """
    Per-resource shallow merge.

    Resources present in ``patch`` have their flags overlaid on ``base``;
    resources absent from ``patch`` are kept untouched.
    """
    merged = dict(base)
    for resource, flags in patch.items():
        current = merged.get(resource)
        merged[resource] = current.merged_with(flags) if current else flags
    return merged


def parse_permission_key(key: str) -> Tuple[Resource, Action]:
    """
    Parse 'resource.action' (e.g. 'orders.read') used by route decorators.

    Raises ValueError so a typo at a call site fails at import time.
    """
    resource_name, sep, action_name = key.partition('.')
    if not sep:
        raise ValueError(f'Invalid permission format "{key}". Use "resource.action"')
    try:
        return Resource(resource_name), Action(action_name)
    except ValueError:
        raise ValueError(f'Unknown permission "{key}"')


# =====================================================
# AUTHORIZATION (lenient, used on every request)
# =====================================================

def is_allowed(
    permissions: Any,
    resource: Union[Resource, str],
    action: Union[Action, str],
    is_own_record: Optional[bool] = None
) -> bool:
    """
    Answer "may this permission document perform ``action`` on ``resource``?".

    Pure function. Missing resources, missing flags, non-True values and
    malformed documents all deny. When ``is_own_record`` is given, the
    ownership check is layered after the base permission: the base grants
    "can attempt", ownership grants "can execute on this record".
    """
    if not isinstance(permissions, Mapping):
        return False

    resource_key = resource.value if isinstance(resource, Resource) else resource
    action_key = action.value if isinstance(action, Action) else action
    if not isinstance(resource_key, str) or not isinstance(action_key, str):
        return False

    entry = permissions.get(resource_key)
    if not isinstance(entry, Mapping):
        return False
    if entry.get(action_key) is not True:
        return False

    if is_own_record is not None and is_own_record is not True:
        return False
    return True


def authorize(role, resource, action, is_own_record: Optional[bool] = None) -> None:
    """
    Raise AuthorizationError unless ``role`` may perform ``action`` on ``resource``.

    The message never says whether the target record exists.
    """
    if role is None or getattr(role, 'deleted_at', None) is not None:
        logger.info("Authorization denied: no active role")
        raise AuthorizationError()

    if not is_allowed(role.permissions, resource, action, is_own_record):
        resource_key = resource.value if isinstance(resource, Resource) else resource
        action_key = action.value if isinstance(action, Action) else action
        logger.info(f"Authorization denied: role {role.id} {action_key} {resource_key}")
        raise AuthorizationError(f"You don't have permission to {action_key} {resource_key}")
