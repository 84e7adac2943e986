"""Authentication blueprint - token login and current identity."""
from flask import Blueprint, g

from gymapp.database import get_session
from gymapp.middleware import require_auth
from gymapp.services.auth_service import authenticate, issue_token
from gymapp.utils.responses import success_response, get_json_body

auth_bp = Blueprint('auth', __name__, url_prefix='/api/auth')


@auth_bp.route('/login', methods=['POST'])
def login():
    """Exchange email/password for a bearer token."""
    data = get_json_body()
    user = authenticate(get_session(), data.get('email'), data.get('password'))
    return success_response({
        'token': issue_token(user),
        'user': user.to_dict(),
    }, 'Login successful')


@auth_bp.route('/me', methods=['GET'])
@require_auth
def me():
    user = g.user
    return success_response({
        'user': user.to_dict(),
        'gym': user.gym.to_dict(),
        'permissions': g.role.permissions if g.role else {},
    })
