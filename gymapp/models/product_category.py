"""Product Category model."""
from sqlalchemy import Column, String, DateTime, ForeignKey, Index, text
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func
from gymapp.database import Base, BigIntId


class ProductCategory(Base):
    """Product Category."""

    __tablename__ = 'product_category'
    __table_args__ = (
        Index(
            'uq_product_category_gym_name_live', 'gym_id', 'name',
            unique=True,
            postgresql_where=text('deleted_at IS NULL'),
            sqlite_where=text('deleted_at IS NULL')
        ),
    )

    id = Column(BigIntId, primary_key=True, autoincrement=True)
    gym_id = Column(BigIntId, ForeignKey('gym.id'), nullable=False, index=True)
    name = Column(String(100), nullable=False)
    image_url = Column(String(255), nullable=True)
    created_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now())
    deleted_at = Column(DateTime(timezone=True), nullable=True)

    # Relationships
    products = relationship('Product', back_populates='category')

    def __repr__(self):
        return f"<ProductCategory(id={self.id}, name='{self.name}')>"

    def to_dict(self):
        return {
            'id': self.id,
            'gym_id': self.gym_id,
            'name': self.name,
            'image_url': self.image_url,
        }
