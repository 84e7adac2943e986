"""
Audit Log model for tracking critical actions in the system.
"""
from sqlalchemy import Column, String, Text, DateTime, ForeignKey, Enum as SQLEnum
from sqlalchemy.orm import relationship
from datetime import datetime, timezone
import enum

from gymapp.database import Base, BigIntId


class AuditAction(enum.Enum):
    """Enumeration of auditable actions."""
    # Roles
    ROLE_CREATED = "ROLE_CREATED"
    ROLE_UPDATED = "ROLE_UPDATED"
    ROLE_DELETED = "ROLE_DELETED"

    # Users
    USER_CREATED = "USER_CREATED"
    USER_ROLE_CHANGED = "USER_ROLE_CHANGED"

    # Trainer matches
    MATCH_CREATED = "MATCH_CREATED"
    MATCH_STATUS_CHANGED = "MATCH_STATUS_CHANGED"
    MATCH_ENDED = "MATCH_ENDED"

    # Orders
    ORDER_CREATED = "ORDER_CREATED"
    ORDER_STATUS_CHANGED = "ORDER_STATUS_CHANGED"
    ORDER_CANCELLED = "ORDER_CANCELLED"


def _utcnow():
    return datetime.now(timezone.utc)


class AuditLog(Base):
    """
    Audit log for tracking user actions.
    Multi-tenant: filtered by gym_id.
    """
    __tablename__ = 'audit_log'

    id = Column(BigIntId, primary_key=True, autoincrement=True)
    gym_id = Column(BigIntId, ForeignKey('gym.id'), nullable=False, index=True)
    user_id = Column(BigIntId, ForeignKey('gym_user.id'), nullable=True)
    action = Column(SQLEnum(AuditAction, name='audit_action'), nullable=False, index=True)
    resource_type = Column(String(50))  # e.g., 'role', 'trainer_match', 'order'
    resource_id = Column(BigIntId)
    details = Column(Text)  # JSON with additional details
    ip_address = Column(String(45))  # IPv4 or IPv6
    user_agent = Column(String(255))
    created_at = Column(DateTime(timezone=True), default=_utcnow, nullable=False, index=True)

    # Relationships
    user = relationship('User')

    def __repr__(self):
        return f"<AuditLog {self.action.value} by user {self.user_id} at {self.created_at}>"
