"""
Unit tests for built-in role templates.
"""

import pytest

from gymapp.models import SYSTEM_ROLE_NAMES
from gymapp.services import role_templates
from gymapp.services.permission_service import parse_permission_map, is_allowed


@pytest.mark.parametrize('name', sorted(role_templates.ROLE_TEMPLATES))
def test_templates_use_known_vocabulary(name):
    """Every template must pass the same validation as user-supplied roles."""
    parse_permission_map(role_templates.ROLE_TEMPLATES[name]['permissions'])


def test_default_gym_roles_have_templates():
    for name in SYSTEM_ROLE_NAMES - {'SuperAdmin'}:
        assert role_templates.get_template(name) is not None


def test_get_template_returns_copy():
    template = role_templates.get_template('Student')
    template['permissions']['orders']['update'] = True

    assert role_templates.get_template('Student')['permissions']['orders'].get('update') is None


def test_unknown_template():
    assert role_templates.get_template('Janitor') is None


def test_student_can_order_but_not_manage_orders():
    perms = role_templates.get_template('Student')['permissions']
    assert is_allowed(perms, 'orders', 'create')
    assert is_allowed(perms, 'orders', 'delete')
    assert not is_allowed(perms, 'orders', 'update')
    assert not is_allowed(perms, 'roles', 'read')


def test_list_templates_includes_names():
    names = [t['name'] for t in role_templates.list_templates()]
    assert names == list(role_templates.ROLE_TEMPLATES)
