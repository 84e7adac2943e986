"""Gym model - the tenant boundary every other record is scoped to."""
from sqlalchemy import Column, String, Boolean, DateTime
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func
from gymapp.database import Base, BigIntId


class Gym(Base):
    """Gym model - each gym/organization using the platform."""

    __tablename__ = 'gym'

    id = Column(BigIntId, primary_key=True, autoincrement=True)
    slug = Column(String(80), nullable=False, unique=True)  # URL-safe identifier
    name = Column(String(200), nullable=False)
    active = Column(Boolean, nullable=False, default=True)
    created_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now())
    updated_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now(), onupdate=func.now())

    # Relationships
    roles = relationship('Role', back_populates='gym')
    users = relationship('User', back_populates='gym')

    def __repr__(self):
        return f"<Gym(id={self.id}, slug='{self.slug}', name='{self.name}')>"

    def to_dict(self):
        return {
            'id': self.id,
            'slug': self.slug,
            'name': self.name,
            'active': self.active,
        }
