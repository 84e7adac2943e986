"""
Trainer-student matches blueprint.
"""
from flask import Blueprint, g, request

from gymapp.database import get_session
from gymapp.decorators.permissions import require_permission
from gymapp.exceptions import AuthorizationError, ValidationError
from gymapp.middleware import require_auth
from gymapp.models import TRAINER_ROLE, STUDENT_ROLE
from gymapp.services import match_service
from gymapp.services.permission_service import Resource, Action, is_allowed, authorize
from gymapp.utils.pagination import parse_page_args
from gymapp.utils.responses import success_response, get_json_body

trainer_matches_bp = Blueprint('trainer_matches', __name__, url_prefix='/api/trainer-matches')


def _require_pairing_access(user_id):
    """
    Trainers and students may only look at their own pairings; other roles
    need trainer_matches.read.
    """
    if g.user.id == user_id:
        return
    role = g.role
    if role is None or role.name in (TRAINER_ROLE, STUDENT_ROLE):
        raise AuthorizationError()
    if not is_allowed(role.permissions, Resource.TRAINER_MATCHES, Action.READ):
        raise AuthorizationError()


def _authorize_match(match, action):
    """Trainers and students may only act on matches they take part in."""
    if g.role.name in (TRAINER_ROLE, STUDENT_ROLE):
        authorize(
            g.role, Resource.TRAINER_MATCHES, action,
            is_own_record=g.user.id in (match.trainer_id, match.student_id)
        )


def _required_int(data, key):
    value = data.get(key)
    if isinstance(value, bool) or not isinstance(value, int):
        raise ValidationError(f'{key} is required and must be an integer')
    return value


@trainer_matches_bp.route('', methods=['GET'])
@require_permission('trainer_matches.read')
def list_matches():
    page, limit = parse_page_args(request.args.get('page'), request.args.get('limit'))
    trainer_id = request.args.get('trainer_id', type=int)
    if g.role.name == TRAINER_ROLE:
        # Trainers only see their own students
        trainer_id = g.user.id

    matches, pagination = match_service.list_matches(
        get_session(), g.gym_id,
        trainer_id=trainer_id,
        student_id=request.args.get('student_id', type=int),
        status=request.args.get('status'),
        page=page, limit=limit
    )
    return success_response(
        [m.to_dict() for m in matches], 'Matches retrieved successfully', pagination=pagination
    )


@trainer_matches_bp.route('', methods=['POST'])
@require_permission('trainer_matches.create')
def create_match():
    data = get_json_body()
    match = match_service.create_match(
        get_session(), g.gym_id,
        _required_int(data, 'trainer_id'),
        _required_int(data, 'student_id'),
        actor_id=g.user.id
    )
    return success_response(match.to_dict(), 'Trainer-student match created successfully', 201)


@trainer_matches_bp.route('/<int:match_id>', methods=['GET'])
@require_permission('trainer_matches.read')
def get_match(match_id):
    match = match_service.get_match(get_session(), g.gym_id, match_id)
    _authorize_match(match, Action.READ)
    return success_response(match.to_dict(), 'Match retrieved successfully')


@trainer_matches_bp.route('/<int:match_id>/status', methods=['PATCH'])
@require_permission('trainer_matches.update')
def update_match_status(match_id):
    data = get_json_body()
    if not data.get('status'):
        raise ValidationError('Status is required')
    db_session = get_session()
    _authorize_match(match_service.get_match(db_session, g.gym_id, match_id), Action.UPDATE)
    match = match_service.update_status(
        db_session, g.gym_id, match_id, data['status'], actor_id=g.user.id
    )
    return success_response(match.to_dict(), 'Match status updated successfully')


@trainer_matches_bp.route('/<int:match_id>', methods=['DELETE'])
@require_permission('trainer_matches.delete')
def end_match(match_id):
    db_session = get_session()
    _authorize_match(match_service.get_match(db_session, g.gym_id, match_id), Action.DELETE)
    match_service.end_match(db_session, g.gym_id, match_id, actor_id=g.user.id)
    return success_response(None, 'Match ended successfully')


@trainer_matches_bp.route('/trainer/<int:trainer_id>/students', methods=['GET'])
@require_auth
def get_trainer_students(trainer_id):
    _require_pairing_access(trainer_id)
    matches = match_service.get_trainer_students(
        get_session(), g.gym_id, trainer_id, status=request.args.get('status')
    )
    return success_response([m.to_dict() for m in matches], 'Students retrieved successfully')


@trainer_matches_bp.route('/student/<int:student_id>/trainer', methods=['GET'])
@require_auth
def get_student_trainer(student_id):
    _require_pairing_access(student_id)
    match = match_service.get_student_trainer(get_session(), g.gym_id, student_id)
    if match is None:
        return success_response(None, 'No trainer assigned')
    return success_response(match.to_dict(), 'Trainer retrieved successfully')
