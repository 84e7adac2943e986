"""
Orders blueprint - shop orders placed by gym members.
"""
from flask import Blueprint, g, request

from gymapp.blueprints.metrics import orders_rejected_insufficient_stock_total
from gymapp.database import get_session
from gymapp.decorators.permissions import require_permission
from gymapp.exceptions import AuthorizationError, InsufficientStockError, ValidationError
from gymapp.models import STUDENT_ROLE
from gymapp.services import order_service
from gymapp.utils.pagination import parse_page_args
from gymapp.utils.responses import success_response, get_json_body

orders_bp = Blueprint('orders', __name__, url_prefix='/api/orders')


@orders_bp.route('', methods=['GET'])
@require_permission('orders.read')
def list_orders():
    page, limit = parse_page_args(request.args.get('page'), request.args.get('limit'))
    orders, pagination = order_service.list_orders(
        get_session(), g.gym_id,
        viewer=g.user,
        status=request.args.get('status'),
        user_id=request.args.get('user_id', type=int),
        page=page, limit=limit
    )
    return success_response(
        [o.to_dict() for o in orders], 'Orders retrieved successfully', pagination=pagination
    )


@orders_bp.route('/stats', methods=['GET'])
@require_permission('orders.read')
def order_stats():
    stats = order_service.get_order_stats(get_session(), g.gym_id, viewer=g.user)
    return success_response(stats, 'Order statistics retrieved successfully')


@orders_bp.route('', methods=['POST'])
@require_permission('orders.create')
def create_order():
    data = get_json_body()

    # Staff may order on behalf of a member; students only for themselves
    buyer_id = data.get('user_id') or g.user.id
    if buyer_id != g.user.id and g.role.name == STUDENT_ROLE:
        raise AuthorizationError('Students can only create orders for themselves')

    notes = data.get('notes')
    if notes is not None and not isinstance(notes, str):
        raise ValidationError('Notes must be a string')

    try:
        order = order_service.create_order(
            get_session(), g.gym_id, buyer_id, data.get('items'),
            notes=notes, actor_id=g.user.id
        )
    except InsufficientStockError:
        orders_rejected_insufficient_stock_total.inc()
        raise
    return success_response(order.to_dict(), 'Order created successfully', 201)


@orders_bp.route('/<int:order_id>', methods=['GET'])
@require_permission('orders.read')
def get_order(order_id):
    order = order_service.get_order(get_session(), g.gym_id, order_id, viewer=g.user)
    return success_response(order.to_dict(), 'Order retrieved successfully')


@orders_bp.route('/<int:order_id>/status', methods=['PATCH'])
@require_permission('orders.update')
def update_order_status(order_id):
    data = get_json_body()
    if not data.get('status'):
        raise ValidationError('Status is required')
    order = order_service.update_status(
        get_session(), g.gym_id, order_id, data['status'], actor_id=g.user.id, viewer=g.user
    )
    return success_response(order.to_dict(), 'Order status updated successfully')


@orders_bp.route('/<int:order_id>', methods=['DELETE'])
@require_permission('orders.delete')
def cancel_order(order_id):
    order = order_service.cancel_own_order(get_session(), g.gym_id, order_id, g.user.id)
    return success_response(order.to_dict(), 'Order cancelled successfully')
