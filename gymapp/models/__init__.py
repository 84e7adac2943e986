"""Models package - exports all SQLAlchemy models."""
# Tenancy and identity
from gymapp.models.gym import Gym
from gymapp.models.role import Role, SYSTEM_ROLE_NAMES, TRAINER_ROLE, STUDENT_ROLE, OWNER_ROLE
from gymapp.models.user import User

# Coaching
from gymapp.models.trainer_match import TrainerMatch, MatchStatus, CURRENT_MATCH_STATUSES

# Shop
from gymapp.models.product_category import ProductCategory
from gymapp.models.product import Product
from gymapp.models.order import Order, OrderStatus, ORDER_TRANSITIONS, TERMINAL_ORDER_STATUSES
from gymapp.models.order_item import OrderItem

# Audit
from gymapp.models.audit_log import AuditLog, AuditAction

__all__ = [
    'Gym', 'Role', 'SYSTEM_ROLE_NAMES', 'TRAINER_ROLE', 'STUDENT_ROLE', 'OWNER_ROLE', 'User',
    'TrainerMatch', 'MatchStatus', 'CURRENT_MATCH_STATUSES',
    'ProductCategory', 'Product', 'Order', 'OrderStatus', 'ORDER_TRANSITIONS',
    'TERMINAL_ORDER_STATUSES', 'OrderItem',
    'AuditLog', 'AuditAction',
]
