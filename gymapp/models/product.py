"""Product model."""
from sqlalchemy import Column, Integer, String, Text, Boolean, Numeric, DateTime, ForeignKey, CheckConstraint
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func
from gymapp.database import Base, BigIntId


class Product(Base):
    """Product sold in the gym shop."""

    __tablename__ = 'product'
    __table_args__ = (
        CheckConstraint('stock_quantity >= 0', name='ck_product_stock_non_negative'),
    )

    id = Column(BigIntId, primary_key=True, autoincrement=True)
    gym_id = Column(BigIntId, ForeignKey('gym.id'), nullable=False, index=True)
    category_id = Column(BigIntId, ForeignKey('product_category.id'), nullable=False)
    name = Column(String(200), nullable=False)
    description = Column(Text, nullable=True)
    image_url = Column(String(255), nullable=True)
    price = Column(Numeric(10, 2), nullable=False)
    # Only hot shared counter; mutated inside the order transaction under a row lock
    stock_quantity = Column(Integer, nullable=False, default=0)
    is_active = Column(Boolean, nullable=False, default=True)
    created_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now())
    updated_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now(), onupdate=func.now())
    deleted_at = Column(DateTime(timezone=True), nullable=True)

    # Relationships
    category = relationship('ProductCategory', back_populates='products')

    def __repr__(self):
        return f"<Product(id={self.id}, name='{self.name}', stock={self.stock_quantity})>"

    def to_dict(self):
        return {
            'id': self.id,
            'gym_id': self.gym_id,
            'category_id': self.category_id,
            'category': self.category.name if self.category else None,
            'name': self.name,
            'description': self.description,
            'image_url': self.image_url,
            'price': str(self.price),
            'stock_quantity': self.stock_quantity,
            'is_active': self.is_active,
        }
