"""TrainerMatch model - pairing of one trainer with one student."""
import enum
from sqlalchemy import Column, String, DateTime, ForeignKey, Index, text
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func
from gymapp.database import Base, BigIntId


class MatchStatus(str, enum.Enum):
    """Match lifecycle: active <-> pending, then ended (terminal)."""
    ACTIVE = 'active'
    PENDING = 'pending'
    ENDED = 'ended'


CURRENT_MATCH_STATUSES = (MatchStatus.ACTIVE.value, MatchStatus.PENDING.value)


class TrainerMatch(Base):
    """Trainer-student match. Ended matches are kept for history."""

    __tablename__ = 'trainer_match'
    __table_args__ = (
        # At most one non-ended match per (trainer, student)
        Index(
            'uq_trainer_match_current', 'trainer_id', 'student_id',
            unique=True,
            postgresql_where=text("status <> 'ended'"),
            sqlite_where=text("status <> 'ended'")
        ),
    )

    id = Column(BigIntId, primary_key=True, autoincrement=True)
    gym_id = Column(BigIntId, ForeignKey('gym.id'), nullable=False, index=True)
    trainer_id = Column(BigIntId, ForeignKey('gym_user.id'), nullable=False, index=True)
    student_id = Column(BigIntId, ForeignKey('gym_user.id'), nullable=False, index=True)
    status = Column(String(20), nullable=False, default=MatchStatus.ACTIVE.value)
    created_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now())
    updated_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now(), onupdate=func.now())
    ended_at = Column(DateTime(timezone=True), nullable=True)
    ended_by_id = Column(BigIntId, ForeignKey('gym_user.id'), nullable=True)

    # Relationships
    trainer = relationship('User', foreign_keys=[trainer_id])
    student = relationship('User', foreign_keys=[student_id])

    @property
    def is_current(self):
        return self.status != MatchStatus.ENDED.value

    def __repr__(self):
        return (
            f"<TrainerMatch(id={self.id}, trainer_id={self.trainer_id}, "
            f"student_id={self.student_id}, status='{self.status}')>"
        )

    def to_dict(self):
        return {
            'id': self.id,
            'gym_id': self.gym_id,
            'trainer_id': self.trainer_id,
            'student_id': self.student_id,
            'status': self.status,
            'trainer': self.trainer.to_summary() if self.trainer else None,
            'student': self.student.to_summary() if self.student else None,
            'created_at': self.created_at.isoformat() if self.created_at else None,
            'ended_at': self.ended_at.isoformat() if self.ended_at else None,
        }
