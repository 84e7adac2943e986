"""
User management blueprint.

Lets users with the users.* permissions list, create and re-role members
of their own gym.
"""
from flask import Blueprint, g, request

from gymapp.database import get_session
from gymapp.decorators.permissions import require_permission
from gymapp.services import user_service
from gymapp.utils.pagination import parse_page_args
from gymapp.utils.responses import success_response, get_json_body

users_bp = Blueprint('users', __name__, url_prefix='/api/users')


@users_bp.route('', methods=['GET'])
@require_permission('users.read')
def list_users():
    page, limit = parse_page_args(request.args.get('page'), request.args.get('limit'))
    users, pagination = user_service.list_users(
        get_session(), g.gym_id,
        role_id=request.args.get('role_id', type=int),
        page=page, limit=limit
    )
    return success_response(
        [user.to_dict() for user in users], 'Users retrieved successfully', pagination=pagination
    )


@users_bp.route('', methods=['POST'])
@require_permission('users.create')
def create_user():
    data = get_json_body()
    user = user_service.create_user(
        get_session(), g.gym_id,
        email=data.get('email'),
        password=data.get('password'),
        role_id=data.get('role_id'),
        first_name=data.get('first_name'),
        last_name=data.get('last_name', ''),
        phone=data.get('phone'),
        actor_id=g.user.id
    )
    return success_response(user.to_dict(), 'User created successfully', 201)


@users_bp.route('/<int:user_id>/role', methods=['PUT'])
@require_permission('users.update')
def assign_role(user_id):
    data = get_json_body()
    user = user_service.assign_role(
        get_session(), g.gym_id, user_id, data.get('role_id'), actor_id=g.user.id
    )
    return success_response(user.to_dict(), 'User role updated successfully')
