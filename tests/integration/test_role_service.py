"""
Integration tests for the role lifecycle service.
"""

import pytest

from gymapp.exceptions import (
    ValidationError, ConflictError, NotFoundError, InvalidOperationError, AuthorizationError
)
from gymapp.models import Role, AuditLog, AuditAction
from gymapp.services import role_service
from gymapp.services.permission_service import authorize, Resource, Action
from gymapp.services.user_service import create_user


class TestCreateRole:

    def test_create_custom_role(self, session, gym1, roles1, owner):
        role = role_service.create_role(
            session, gym1.id, 'Nutritionist', {'students': {'read': True}}, actor_id=owner.id
        )

        assert role.id is not None
        assert role.permissions == {'students': {'read': True}}
        assert role.is_system_role is False

        audit = session.query(AuditLog).filter_by(resource_type='role', resource_id=role.id).one()
        assert audit.action == AuditAction.ROLE_CREATED
        assert audit.user_id == owner.id

    def test_duplicate_name_in_same_gym_conflicts(self, session, gym1, roles1):
        role_service.create_role(session, gym1.id, 'Nutritionist', {})
        with pytest.raises(ConflictError):
            role_service.create_role(session, gym1.id, 'Nutritionist', {})

    def test_same_name_allowed_in_other_gym(self, session, gym1, gym2):
        first = role_service.create_role(session, gym1.id, 'Nutritionist', {})
        second = role_service.create_role(session, gym2.id, 'Nutritionist', {})
        assert first.id != second.id

    def test_name_is_case_sensitive(self, session, gym1):
        role_service.create_role(session, gym1.id, 'Coach', {})
        role_service.create_role(session, gym1.id, 'coach', {})

    @pytest.mark.parametrize('name', ['', '   ', None, 'x' * 51])
    def test_invalid_name(self, session, gym1, name):
        with pytest.raises(ValidationError):
            role_service.create_role(session, gym1.id, name, {})

    def test_unknown_resource_rejected_on_write(self, session, gym1):
        with pytest.raises(ValidationError):
            role_service.create_role(session, gym1.id, 'Typo', {'studnets': {'read': True}})
        assert session.query(Role).filter_by(name='Typo').count() == 0

    def test_name_reusable_after_delete(self, session, gym1):
        role = role_service.create_role(session, gym1.id, 'Temp', {})
        role_service.delete_role(session, gym1.id, role.id)
        again = role_service.create_role(session, gym1.id, 'Temp', {})
        assert again.id != role.id


class TestUpdateRole:

    def test_permissions_patch_is_merged_per_resource(self, session, gym1):
        role = role_service.create_role(session, gym1.id, 'Front Desk', {
            'students': {'read': True, 'create': True},
            'products': {'read': True},
        })

        updated = role_service.update_role(
            session, gym1.id, role.id, permissions={'students': {'create': False, 'update': True}}
        )

        assert updated.permissions == {
            'students': {'read': True, 'create': False, 'update': True},
            'products': {'read': True},
        }
        session.expire_all()
        assert session.get(Role, role.id).permissions['students']['update'] is True

    def test_rename_custom_role(self, session, gym1):
        role = role_service.create_role(session, gym1.id, 'Coach', {})
        updated = role_service.update_role(session, gym1.id, role.id, name='Head Coach')
        assert updated.name == 'Head Coach'

    def test_cannot_rename_system_role(self, session, gym1, roles1):
        with pytest.raises(InvalidOperationError):
            role_service.update_role(session, gym1.id, roles1['Trainer'].id, name='Coach')

    def test_system_role_permissions_can_change(self, session, gym1, roles1):
        updated = role_service.update_role(
            session, gym1.id, roles1['Trainer'].id, permissions={'products': {'update': True}}
        )
        assert updated.permissions['products'] == {'read': True, 'update': True}

    def test_rename_to_existing_name_conflicts(self, session, gym1, roles1):
        role = role_service.create_role(session, gym1.id, 'Coach', {})
        with pytest.raises(ConflictError):
            role_service.update_role(session, gym1.id, role.id, name='Student')

    def test_role_of_other_gym_not_found(self, session, gym1, roles2):
        with pytest.raises(NotFoundError):
            role_service.update_role(session, gym1.id, roles2['Trainer'].id, permissions={})


class TestDeleteRole:

    def test_cannot_delete_system_role(self, session, gym1, roles1):
        with pytest.raises(InvalidOperationError):
            role_service.delete_role(session, gym1.id, roles1['Student'].id)

    def test_cannot_delete_role_in_use(self, session, gym1, roles1):
        role = role_service.create_role(session, gym1.id, 'Coach', {})
        create_user(session, gym1.id, 'coach@irontemple.test', 'password123', role.id, 'Carla')

        with pytest.raises(InvalidOperationError):
            role_service.delete_role(session, gym1.id, role.id)

    def test_deleted_role_is_hidden_and_denies(self, session, gym1, roles1):
        role = role_service.create_role(session, gym1.id, 'Coach', {'students': {'read': True}})
        role_service.delete_role(session, gym1.id, role.id)

        with pytest.raises(NotFoundError):
            role_service.get_role(session, gym1.id, role.id)
        with pytest.raises(AuthorizationError):
            authorize(session.get(Role, role.id), Resource.STUDENTS, Action.READ)


class TestTemplates:

    def test_create_from_template_uses_template_name(self, session, gym1):
        role = role_service.create_from_template(session, gym1.id, 'Receptionist')
        assert role.name == 'Receptionist'
        assert role.permissions['students']['create'] is True

    def test_create_from_template_with_custom_name(self, session, gym1):
        role = role_service.create_from_template(session, gym1.id, 'Assistant Trainer', 'Junior Coach')
        assert role.name == 'Junior Coach'

    def test_unknown_template(self, session, gym1):
        with pytest.raises(NotFoundError):
            role_service.create_from_template(session, gym1.id, 'Janitor')

    def test_template_name_collision(self, session, gym1, roles1):
        with pytest.raises(ConflictError):
            role_service.create_from_template(session, gym1.id, 'Trainer')

    def test_seed_is_idempotent(self, session, gym1, roles1):
        again = role_service.seed_system_roles(session, gym1.id)
        assert {name: r.id for name, r in again.items()} == {name: r.id for name, r in roles1.items()}


def test_list_roles_counts_live_users(session, gym1, roles1, owner, student, other_student):
    roles, pagination = role_service.list_roles(session, gym1.id)

    counts = {r['name']: r['user_count'] for r in roles}
    assert counts == {'GymOwner': 1, 'Trainer': 0, 'Student': 2}
    assert pagination['total'] == 3


class TestReservedNames:

    def test_cannot_create_superadmin(self, session, gym1, roles1):
        with pytest.raises(ValidationError):
            role_service.create_role(session, gym1.id, 'SuperAdmin', {'roles': {'read': True}})

    def test_cannot_rename_to_superadmin(self, session, gym1):
        role = role_service.create_role(session, gym1.id, 'Coach', {})
        with pytest.raises(ValidationError):
            role_service.update_role(session, gym1.id, role.id, name='SuperAdmin')

        session.expire_all()
        assert role_service.get_role(session, gym1.id, role.id).name == 'Coach'

    def test_system_template_needs_custom_name_before_seeding(self, session, gym1):
        with pytest.raises(ValidationError):
            role_service.create_from_template(session, gym1.id, 'GymOwner')

        role = role_service.create_from_template(session, gym1.id, 'GymOwner', 'Co-Owner')
        assert role.is_system_role is False


class TestConcurrentCreation:

    def test_duplicate_insert_reported_as_conflict(self, session, gym1, monkeypatch):
        role_service.create_role(session, gym1.id, 'Coach', {})
        monkeypatch.setattr(role_service, '_name_taken', lambda *args, **kwargs: False)

        with pytest.raises(ConflictError):
            role_service.create_role(session, gym1.id, 'Coach', {})

        # Session was rolled back and is usable again
        assert session.query(Role).filter_by(gym_id=gym1.id, name='Coach').count() == 1
        assert role_service.create_role(session, gym1.id, 'Head Coach', {}).id is not None


def test_seed_is_all_or_nothing(session, gym2, monkeypatch):
    add_role = role_service._add_role

    def failing_add_role(session, gym_id, name, *args, **kwargs):
        if name == 'Student':
            raise RuntimeError('database went away')
        return add_role(session, gym_id, name, *args, **kwargs)

    monkeypatch.setattr(role_service, '_add_role', failing_add_role)

    with pytest.raises(RuntimeError):
        role_service.seed_system_roles(session, gym2.id)

    assert session.query(Role).filter_by(gym_id=gym2.id).count() == 0
    assert session.query(AuditLog).filter_by(gym_id=gym2.id).count() == 0
