"""Role model - a gym-scoped bundle of resource/action permissions."""
from sqlalchemy import Column, String, DateTime, ForeignKey, JSON, Index, text
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func
from gymapp.database import Base, BigIntId


# Built-in roles every gym is seeded with; they can be re-permissioned but
# never renamed or deleted.
SYSTEM_ROLE_NAMES = frozenset({'SuperAdmin', 'GymOwner', 'Trainer', 'Student'})

TRAINER_ROLE = 'Trainer'
STUDENT_ROLE = 'Student'
OWNER_ROLE = 'GymOwner'


class Role(Base):
    """Role model."""

    __tablename__ = 'role'
    __table_args__ = (
        # (gym_id, name) is unique among live roles; soft-deleted names can be reused
        Index(
            'uq_role_gym_name_live', 'gym_id', 'name',
            unique=True,
            postgresql_where=text('deleted_at IS NULL'),
            sqlite_where=text('deleted_at IS NULL')
        ),
    )

    id = Column(BigIntId, primary_key=True, autoincrement=True)
    gym_id = Column(BigIntId, ForeignKey('gym.id'), nullable=False, index=True)
    name = Column(String(50), nullable=False)
    # {resource: {create: bool, read: bool, update: bool, delete: bool, ...}}
    permissions = Column(JSON().with_variant(JSONB(), 'postgresql'), nullable=False, default=dict)
    created_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now())
    updated_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now(), onupdate=func.now())
    deleted_at = Column(DateTime(timezone=True), nullable=True)

    # Relationships
    gym = relationship('Gym', back_populates='roles')
    users = relationship('User', back_populates='role')

    def __repr__(self):
        return f"<Role(id={self.id}, gym_id={self.gym_id}, name='{self.name}')>"

    @property
    def is_system_role(self):
        """System roles cannot be renamed or deleted."""
        return self.name in SYSTEM_ROLE_NAMES

    def to_dict(self, user_count=None):
        data = {
            'id': self.id,
            'gym_id': self.gym_id,
            'name': self.name,
            'permissions': self.permissions or {},
            'is_system_role': self.is_system_role,
            'created_at': self.created_at.isoformat() if self.created_at else None,
            'updated_at': self.updated_at.isoformat() if self.updated_at else None,
        }
        if user_count is not None:
            data['user_count'] = user_count
        return data
