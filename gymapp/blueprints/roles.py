"""
Roles blueprint.

Gym-scoped role management: custom roles, permission patches and
instantiation from built-in templates.
"""
from flask import Blueprint, g, request

from gymapp.database import get_session
from gymapp.decorators.permissions import require_permission
from gymapp.services import role_service
from gymapp.utils.pagination import parse_page_args
from gymapp.utils.responses import success_response, get_json_body

roles_bp = Blueprint('roles', __name__, url_prefix='/api/roles')


@roles_bp.route('', methods=['GET'])
@require_permission('roles.read')
def list_roles():
    page, limit = parse_page_args(request.args.get('page'), request.args.get('limit'), default_limit=50)
    roles, pagination = role_service.list_roles(get_session(), g.gym_id, page, limit)
    return success_response(roles, 'Roles retrieved successfully', pagination=pagination)


@roles_bp.route('/templates', methods=['GET'])
@require_permission('roles.read')
def list_templates():
    return success_response(role_service.list_templates(), 'Role templates retrieved successfully')


@roles_bp.route('', methods=['POST'])
@require_permission('roles.create')
def create_role():
    data = get_json_body()
    role = role_service.create_role(
        get_session(), g.gym_id,
        data.get('name'), data.get('permissions') or {},
        actor_id=g.user.id
    )
    return success_response(role.to_dict(user_count=0), 'Role created successfully', 201)


@roles_bp.route('/from-template', methods=['POST'])
@require_permission('roles.create')
def create_from_template():
    data = get_json_body()
    role = role_service.create_from_template(
        get_session(), g.gym_id,
        data.get('template_name'), data.get('custom_name'),
        actor_id=g.user.id
    )
    return success_response(role.to_dict(user_count=0), 'Role created from template successfully', 201)


@roles_bp.route('/<int:role_id>', methods=['GET'])
@require_permission('roles.read')
def get_role(role_id):
    session = get_session()
    role = role_service.get_role(session, g.gym_id, role_id)
    return success_response(
        role.to_dict(user_count=role_service.count_role_users(session, role.id)),
        'Role retrieved successfully'
    )


@roles_bp.route('/<int:role_id>', methods=['PUT'])
@require_permission('roles.update')
def update_role(role_id):
    data = get_json_body()
    role = role_service.update_role(
        get_session(), g.gym_id, role_id,
        name=data.get('name'), permissions=data.get('permissions'),
        actor_id=g.user.id
    )
    return success_response(role.to_dict(), 'Role updated successfully')


@roles_bp.route('/<int:role_id>', methods=['DELETE'])
@require_permission('roles.delete')
def delete_role(role_id):
    role_service.delete_role(get_session(), g.gym_id, role_id, actor_id=g.user.id)
    return success_response(None, 'Role deleted successfully')
