"""
Order service with transactional logic - Multi-Gym.

Handles order placement, status transitions and stock restoration. Stock is
the only hot shared counter: product rows are locked FOR UPDATE in id order
for the whole transaction that checks and changes them.
"""
import logging
from collections import OrderedDict
from datetime import datetime, timezone
from decimal import Decimal
from typing import Any, Dict, Iterable, List, Optional

from sqlalchemy import func
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import joinedload, selectinload

from gymapp.exceptions import (
    GymError, BusinessLogicError, ValidationError, NotFoundError, ConflictError,
    InsufficientStockError, InvalidTransitionError
)
from gymapp.models import (
    User, Product, Order, OrderItem, OrderStatus, ORDER_TRANSITIONS,
    STUDENT_ROLE, TRAINER_ROLE, AuditAction
)
from gymapp.services.audit_service import log_action
from gymapp.services.match_service import get_trainer_student_ids
from gymapp.utils.pagination import paginate

logger = logging.getLogger(__name__)

ORDER_NUMBER_PREFIX = 'ORD'
NOTES_MAX_LENGTH = 500


def parse_order_status(value) -> OrderStatus:
    """Resolve a status string or raise ValidationError."""
    try:
        return OrderStatus(value)
    except ValueError:
        raise ValidationError(
            f"Status must be one of: {', '.join(s.value for s in OrderStatus)}"
        )


def _normalize_items(items: Any) -> 'OrderedDict[int, int]':
    """
    Validate raw order lines and aggregate quantities per product.

    Returns:
        {product_id: total_quantity} in first-seen order
    """
    if not isinstance(items, list) or not items:
        raise ValidationError('Order must contain at least one item')

    aggregated = OrderedDict()
    for line in items:
        if not isinstance(line, dict):
            raise ValidationError('Each item must be an object with product_id and quantity')
        product_id = line.get('product_id')
        quantity = line.get('quantity')
        if isinstance(product_id, bool) or not isinstance(product_id, int):
            raise ValidationError('Each item requires an integer product_id')
        if isinstance(quantity, bool) or not isinstance(quantity, int) or quantity <= 0:
            raise ValidationError('Quantity must be a positive integer')
        aggregated[product_id] = aggregated.get(product_id, 0) + quantity
    return aggregated


def _lock_products(session, gym_id: int, product_ids: Iterable[int]) -> Dict[int, Product]:
    """Lock live product rows FOR UPDATE, always in id order."""
    product_ids = sorted(set(product_ids))
    if not product_ids:
        return {}
    products = session.query(Product).filter(
        Product.id.in_(product_ids),
        Product.gym_id == gym_id,
        Product.deleted_at.is_(None)
    ).order_by(Product.id).with_for_update().all()
    return {p.id: p for p in products}


def _generate_order_number(session, gym_id: int) -> str:
    """Next ORD-YYYYMMDD-NNNNN for today in this gym."""
    date_prefix = datetime.now(timezone.utc).strftime('%Y%m%d')
    prefix = f'{ORDER_NUMBER_PREFIX}-{date_prefix}-'

    last_number = session.query(func.max(Order.order_number)).filter(
        Order.gym_id == gym_id,
        Order.order_number.like(f'{prefix}%')
    ).scalar()

    sequence = 1
    if last_number:
        sequence = int(last_number.rsplit('-', 1)[1]) + 1
    return f'{prefix}{sequence:05d}'


def _scoped_orders(session, gym_id: int, viewer: Optional[User] = None):
    """
    Orders the viewer may see: students their own, trainers their own and
    their actively matched students', everyone else the whole gym.
    """
    query = session.query(Order).filter(Order.gym_id == gym_id)
    if viewer is None:
        return query

    role_name = viewer.role_name
    if role_name == STUDENT_ROLE:
        query = query.filter(Order.user_id == viewer.id)
    elif role_name == TRAINER_ROLE:
        visible_ids = get_trainer_student_ids(session, gym_id, viewer.id) + [viewer.id]
        query = query.filter(Order.user_id.in_(visible_ids))
    return query


# =====================================================
# ORDER PLACEMENT
# =====================================================

def create_order(
    session,
    gym_id: int,
    buyer_id: int,
    items: List[Dict[str, Any]],
    notes: Optional[str] = None,
    actor_id: int = None
) -> Order:
    """
    Place an order and reserve its stock in one transaction.

    Args:
        items: [{'product_id': int, 'quantity': int}, ...]; repeated
            products are merged into one line

    Raises:
        ValidationError: empty order or malformed lines
        NotFoundError: buyer or a product is not in the gym
        BusinessLogicError: a product is deactivated
        InsufficientStockError: any line exceeds stock; nothing is written
    """
    quantities = _normalize_items(items)
    if notes is not None and len(notes) > NOTES_MAX_LENGTH:
        raise ValidationError(f'Notes must be at most {NOTES_MAX_LENGTH} characters')

    try:
        buyer = session.query(User).filter(
            User.id == buyer_id,
            User.gym_id == gym_id,
            User.deleted_at.is_(None)
        ).first()
        if not buyer:
            raise NotFoundError('User not found')

        # 1. Lock every product involved before reading stock
        products = _lock_products(session, gym_id, quantities.keys())
        if len(products) != len(quantities):
            raise NotFoundError('One or more products not found')

        # 2. Validate all lines before writing anything
        for product_id, quantity in quantities.items():
            product = products[product_id]
            if not product.is_active:
                raise BusinessLogicError(f'Product "{product.name}" is not available')
            if product.stock_quantity < quantity:
                raise InsufficientStockError(product.name, quantity, product.stock_quantity)

        # 3. Create order with price snapshot
        order = Order(
            gym_id=gym_id,
            user_id=buyer.id,
            order_number=_generate_order_number(session, gym_id),
            status=OrderStatus.PENDING_APPROVAL,
            total_amount=Decimal('0.00'),
            notes=notes
        )
        total = Decimal('0.00')
        for product_id, quantity in quantities.items():
            product = products[product_id]
            unit_price = Decimal(product.price)
            line_total = (unit_price * quantity).quantize(Decimal('0.01'))
            order.items.append(OrderItem(
                product_id=product.id,
                quantity=quantity,
                unit_price=unit_price,
                line_total=line_total
            ))
            # 4. Reserve stock
            product.stock_quantity -= quantity
            total += line_total

        order.total_amount = total.quantize(Decimal('0.01'))
        session.add(order)
        session.flush()

        log_action(
            session, AuditAction.ORDER_CREATED, gym_id, actor_id or buyer.id,
            resource_type='order', resource_id=order.id,
            details={'order_number': order.order_number, 'total': str(order.total_amount)}
        )
        session.commit()
        logger.info(f"Order {order.order_number} created in gym {gym_id}")
        return order

    except IntegrityError:
        # Order number taken by a concurrent order, or the stock CHECK fired
        session.rollback()
        logger.warning(f"Integrity error creating order in gym {gym_id}", exc_info=True)
        raise ConflictError('Order could not be placed, please retry')
    except GymError:
        session.rollback()
        raise
    except Exception:
        session.rollback()
        logger.exception(f"Error creating order in gym {gym_id}")
        raise


# =====================================================
# STATUS TRANSITIONS
# =====================================================

def _restore_stock(session, order: Order) -> None:
    """Give every item's quantity back to its product (rows locked in id order)."""
    products = _lock_products(session, order.gym_id, (item.product_id for item in order.items))
    for item in order.items:
        product = products.get(item.product_id)
        if product is None:
            # Product soft-deleted since the order; lock it anyway by id
            product = session.query(Product).filter(
                Product.id == item.product_id
            ).with_for_update().one()
        product.stock_quantity += item.quantity


def _get_order_for_update(
    session,
    gym_id: int,
    order_id: int,
    buyer_id: int = None,
    viewer: Optional[User] = None
) -> Order:
    """Lock an order the viewer may see; anything outside that scope is NotFound."""
    query = _scoped_orders(session, gym_id, viewer).options(
        selectinload(Order.items)
    ).filter(Order.id == order_id)
    if buyer_id is not None:
        query = query.filter(Order.user_id == buyer_id)
    order = query.with_for_update().first()
    if not order:
        raise NotFoundError('Order not found')
    return order


def _apply_transition(session, order: Order, target: OrderStatus, actor_id: int = None) -> None:
    current = order.status
    if target not in ORDER_TRANSITIONS[current]:
        raise InvalidTransitionError(current.value, target.value)

    if target == OrderStatus.CANCELLED:
        _restore_stock(session, order)
        order.cancelled_at = datetime.now(timezone.utc)
        action = AuditAction.ORDER_CANCELLED
    else:
        action = AuditAction.ORDER_STATUS_CHANGED

    order.status = target
    log_action(
        session, action, order.gym_id, actor_id,
        resource_type='order', resource_id=order.id,
        details={'from': current.value, 'to': target.value}
    )


def update_status(
    session,
    gym_id: int,
    order_id: int,
    new_status: str,
    actor_id: int = None,
    viewer: Optional[User] = None
) -> Order:
    """
    Move an order along pending_approval -> prepared -> completed, or cancel it
    from any non-terminal status (restoring stock).

    Raises:
        ValidationError: unknown status
        NotFoundError: order not in gym or not visible to ``viewer``
        InvalidTransitionError: transition not allowed
    """
    target = parse_order_status(new_status)

    try:
        order = _get_order_for_update(session, gym_id, order_id, viewer=viewer)
        _apply_transition(session, order, target, actor_id)
        session.commit()
        logger.info(f"Order {order.order_number} moved to {target.value}")
        return order

    except GymError:
        session.rollback()
        raise
    except Exception:
        session.rollback()
        logger.exception(f"Error updating order {order_id} in gym {gym_id}")
        raise


def cancel_own_order(session, gym_id: int, order_id: int, requester_id: int) -> Order:
    """
    Buyer-initiated cancellation; only while pending approval.

    Raises:
        NotFoundError: order missing or not placed by the requester
        InvalidTransitionError: order already past pending_approval
    """
    try:
        order = _get_order_for_update(session, gym_id, order_id, buyer_id=requester_id)
        if order.status != OrderStatus.PENDING_APPROVAL:
            raise InvalidTransitionError(order.status.value, OrderStatus.CANCELLED.value)

        _apply_transition(session, order, OrderStatus.CANCELLED, requester_id)
        session.commit()
        logger.info(f"Order {order.order_number} cancelled by buyer {requester_id}")
        return order

    except GymError:
        session.rollback()
        raise
    except Exception:
        session.rollback()
        logger.exception(f"Error cancelling order {order_id} in gym {gym_id}")
        raise


# =====================================================
# QUERIES
# =====================================================

def get_order(session, gym_id: int, order_id: int, viewer: Optional[User] = None) -> Order:
    """Fetch an order visible to ``viewer`` or raise NotFoundError."""
    order = _scoped_orders(session, gym_id, viewer).options(
        joinedload(Order.user),
        selectinload(Order.items).joinedload(OrderItem.product)
    ).filter(Order.id == order_id).first()
    if not order:
        raise NotFoundError('Order not found')
    return order


def list_orders(
    session,
    gym_id: int,
    viewer: Optional[User] = None,
    status: str = None,
    user_id: int = None,
    page: int = 1,
    limit: int = 20
):
    """List orders visible to ``viewer``, newest first."""
    query = _scoped_orders(session, gym_id, viewer).options(
        joinedload(Order.user),
        selectinload(Order.items).joinedload(OrderItem.product)
    )
    if status:
        query = query.filter(Order.status == parse_order_status(status))
    if user_id is not None:
        query = query.filter(Order.user_id == user_id)

    query = query.order_by(Order.created_at.desc(), Order.id.desc())
    return paginate(query, page, limit)


def get_order_stats(session, gym_id: int, viewer: Optional[User] = None) -> Dict[str, Any]:
    """Order counts by status and revenue of completed orders."""
    scoped = _scoped_orders(session, gym_id, viewer).subquery()

    counts = dict(
        session.query(scoped.c.status, func.count(scoped.c.id))
        .group_by(scoped.c.status)
        .all()
    )
    revenue = session.query(func.coalesce(func.sum(scoped.c.total_amount), 0)).filter(
        scoped.c.status == OrderStatus.COMPLETED
    ).scalar()

    by_status = {status.value: counts.get(status, 0) for status in OrderStatus}

    return {
        'total_orders': sum(by_status.values()),
        'by_status': by_status,
        'total_revenue': str(Decimal(str(revenue)).quantize(Decimal('0.01'))),
    }
