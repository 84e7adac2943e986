"""Order model."""
import enum
from sqlalchemy import Column, String, Numeric, DateTime, Enum, ForeignKey, UniqueConstraint
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func
from gymapp.database import Base, BigIntId


class OrderStatus(str, enum.Enum):
    """Order status enum."""
    PENDING_APPROVAL = 'pending_approval'
    PREPARED = 'prepared'
    COMPLETED = 'completed'
    CANCELLED = 'cancelled'


# Allowed status transitions; completed and cancelled are terminal
ORDER_TRANSITIONS = {
    OrderStatus.PENDING_APPROVAL: frozenset({OrderStatus.PREPARED, OrderStatus.CANCELLED}),
    OrderStatus.PREPARED: frozenset({OrderStatus.COMPLETED, OrderStatus.CANCELLED}),
    OrderStatus.COMPLETED: frozenset(),
    OrderStatus.CANCELLED: frozenset(),
}

TERMINAL_ORDER_STATUSES = frozenset({OrderStatus.COMPLETED, OrderStatus.CANCELLED})


class Order(Base):
    """Shop order placed by a gym user."""

    __tablename__ = 'gym_order'
    __table_args__ = (
        UniqueConstraint('gym_id', 'order_number', name='uq_order_gym_number'),
    )

    id = Column(BigIntId, primary_key=True, autoincrement=True)
    gym_id = Column(BigIntId, ForeignKey('gym.id'), nullable=False, index=True)
    user_id = Column(BigIntId, ForeignKey('gym_user.id'), nullable=False, index=True)
    order_number = Column(String(32), nullable=False)
    status = Column(
        Enum(OrderStatus, name='order_status', values_callable=lambda e: [m.value for m in e]),
        nullable=False,
        default=OrderStatus.PENDING_APPROVAL
    )
    total_amount = Column(Numeric(10, 2), nullable=False)
    notes = Column(String(500), nullable=True)
    created_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now())
    updated_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now(), onupdate=func.now())
    cancelled_at = Column(DateTime(timezone=True), nullable=True)

    # Relationships
    user = relationship('User')
    items = relationship(
        'OrderItem', back_populates='order',
        cascade='all, delete-orphan', order_by='OrderItem.id'
    )

    def __repr__(self):
        return f"<Order(id={self.id}, number='{self.order_number}', status={self.status.value})>"

    def to_dict(self):
        return {
            'id': self.id,
            'gym_id': self.gym_id,
            'user_id': self.user_id,
            'order_number': self.order_number,
            'status': self.status.value,
            'total_amount': str(self.total_amount),
            'notes': self.notes,
            'user': self.user.to_summary() if self.user else None,
            'items': [item.to_dict() for item in self.items],
            'created_at': self.created_at.isoformat() if self.created_at else None,
            'cancelled_at': self.cancelled_at.isoformat() if self.cancelled_at else None,
        }
