"""
Trainer-student match service - Multi-Gym.

A match pairs one Trainer with one Student of the same gym. Lifecycle:
active <-> pending, then ended (terminal). Ended matches stay in the table
for history; at most one non-ended match per (trainer, student) pair is
enforced by a partial unique index.
"""
import logging
from datetime import datetime, timezone
from typing import List, Optional

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import joinedload

from gymapp.exceptions import (
    GymError, ValidationError, ConflictError, NotFoundError, InvalidTransitionError
)
from gymapp.models import (
    User, TrainerMatch, MatchStatus, CURRENT_MATCH_STATUSES,
    TRAINER_ROLE, STUDENT_ROLE, AuditAction
)
from gymapp.services.audit_service import log_action
from gymapp.utils.pagination import paginate

logger = logging.getLogger(__name__)

# Statuses reachable through update_status; ending goes through end_match
SETTABLE_STATUSES = frozenset(CURRENT_MATCH_STATUSES)


def _parse_status(value) -> MatchStatus:
    try:
        return MatchStatus(value)
    except ValueError:
        raise ValidationError(
            f"Invalid status '{value}'. Must be one of: "
            f"{', '.join(s.value for s in MatchStatus)}"
        )


def _get_gym_user(session, gym_id: int, user_id: int, label: str) -> User:
    user = session.query(User).options(joinedload(User.role)).filter(
        User.id == user_id,
        User.gym_id == gym_id,
        User.deleted_at.is_(None)
    ).first()
    if not user:
        raise NotFoundError(f'{label} not found')
    return user


def _current_matches(session, gym_id: int):
    return session.query(TrainerMatch).options(
        joinedload(TrainerMatch.trainer),
        joinedload(TrainerMatch.student)
    ).filter(
        TrainerMatch.gym_id == gym_id,
        TrainerMatch.status.in_(CURRENT_MATCH_STATUSES)
    )


def _pair_has_current_match(session, trainer_id: int, student_id: int) -> bool:
    return session.query(TrainerMatch.id).filter(
        TrainerMatch.trainer_id == trainer_id,
        TrainerMatch.student_id == student_id,
        TrainerMatch.status.in_(CURRENT_MATCH_STATUSES)
    ).first() is not None


def get_match(session, gym_id: int, match_id: int, for_update: bool = False) -> TrainerMatch:
    """Fetch a non-ended match of this gym or raise NotFoundError."""
    query = _current_matches(session, gym_id).filter(TrainerMatch.id == match_id)
    if for_update:
        query = query.with_for_update(of=TrainerMatch).populate_existing()
    match = query.first()
    if not match:
        raise NotFoundError('Match not found')
    return match


def create_match(
    session,
    gym_id: int,
    trainer_id: int,
    student_id: int,
    actor_id: int = None
) -> TrainerMatch:
    """
    Pair a trainer with a student.

    Raises:
        ValidationError: same user twice, or users don't hold the
            Trainer/Student roles (e.g. ids swapped)
        NotFoundError: either user is not in the gym
        ConflictError: the pair already has a non-ended match
    """
    if trainer_id == student_id:
        raise ValidationError('Trainer and student must be different users')

    try:
        trainer = _get_gym_user(session, gym_id, trainer_id, 'Trainer')
        student = _get_gym_user(session, gym_id, student_id, 'Student')

        if trainer.role_name != TRAINER_ROLE:
            raise ValidationError('Selected user is not a trainer')
        if student.role_name != STUDENT_ROLE:
            raise ValidationError('Selected user is not a student')

        if _pair_has_current_match(session, trainer_id, student_id):
            raise ConflictError('This student is already matched with this trainer')

        match = TrainerMatch(
            gym_id=gym_id,
            trainer_id=trainer_id,
            student_id=student_id,
            status=MatchStatus.ACTIVE.value
        )
        session.add(match)
        session.flush()

        log_action(
            session, AuditAction.MATCH_CREATED, gym_id, actor_id,
            resource_type='trainer_match', resource_id=match.id,
            details={'trainer_id': trainer_id, 'student_id': student_id}
        )
        session.commit()
        logger.info(f"Trainer {trainer_id} matched with student {student_id} in gym {gym_id}")
        return match

    except IntegrityError:
        # Lost the race against another insert for the same pair
        session.rollback()
        raise ConflictError('This student is already matched with this trainer')
    except GymError:
        session.rollback()
        raise
    except Exception:
        session.rollback()
        logger.exception(f"Error creating match {trainer_id}/{student_id} in gym {gym_id}")
        raise


def update_status(
    session,
    gym_id: int,
    match_id: int,
    new_status: str,
    actor_id: int = None
) -> TrainerMatch:
    """
    Move a current match between active and pending.

    Raises:
        ValidationError: unknown status
        InvalidTransitionError: target is 'ended' (use end_match)
        NotFoundError: match missing, in another gym, or already ended
    """
    target = _parse_status(new_status)

    try:
        match = get_match(session, gym_id, match_id, for_update=True)

        if target.value not in SETTABLE_STATUSES:
            raise InvalidTransitionError(match.status, target.value, entity='match')

        previous = match.status
        if previous != target.value:
            match.status = target.value
            log_action(
                session, AuditAction.MATCH_STATUS_CHANGED, gym_id, actor_id,
                resource_type='trainer_match', resource_id=match.id,
                details={'from': previous, 'to': target.value}
            )
        session.commit()
        return match

    except GymError:
        session.rollback()
        raise
    except Exception:
        session.rollback()
        logger.exception(f"Error updating match {match_id} in gym {gym_id}")
        raise


def end_match(session, gym_id: int, match_id: int, actor_id: int = None) -> TrainerMatch:
    """
    End a match. The row is kept with status 'ended'.

    Raises:
        NotFoundError: match missing or already ended
    """
    try:
        match = get_match(session, gym_id, match_id, for_update=True)

        match.status = MatchStatus.ENDED.value
        match.ended_at = datetime.now(timezone.utc)
        match.ended_by_id = actor_id

        log_action(
            session, AuditAction.MATCH_ENDED, gym_id, actor_id,
            resource_type='trainer_match', resource_id=match.id,
            details={'trainer_id': match.trainer_id, 'student_id': match.student_id}
        )
        session.commit()
        logger.info(f"Match {match_id} ended in gym {gym_id}")
        return match

    except GymError:
        session.rollback()
        raise
    except Exception:
        session.rollback()
        logger.exception(f"Error ending match {match_id} in gym {gym_id}")
        raise


def list_matches(
    session,
    gym_id: int,
    trainer_id: int = None,
    student_id: int = None,
    status: str = None,
    page: int = 1,
    limit: int = 20
):
    """
    List matches of a gym, newest first.

    Without a status filter only current (non-ended) matches are returned;
    status='ended' lists the history.
    """
    query = session.query(TrainerMatch).options(
        joinedload(TrainerMatch.trainer),
        joinedload(TrainerMatch.student)
    ).filter(TrainerMatch.gym_id == gym_id)

    if status:
        query = query.filter(TrainerMatch.status == _parse_status(status).value)
    else:
        query = query.filter(TrainerMatch.status.in_(CURRENT_MATCH_STATUSES))

    if trainer_id is not None:
        query = query.filter(TrainerMatch.trainer_id == trainer_id)
    if student_id is not None:
        query = query.filter(TrainerMatch.student_id == student_id)

    query = query.order_by(TrainerMatch.created_at.desc(), TrainerMatch.id.desc())
    return paginate(query, page, limit)


def get_trainer_students(
    session,
    gym_id: int,
    trainer_id: int,
    status: str = None
) -> List[TrainerMatch]:
    """Current matches of a trainer, optionally narrowed to active or pending."""
    query = _current_matches(session, gym_id).filter(TrainerMatch.trainer_id == trainer_id)
    if status:
        target = _parse_status(status)
        if target.value not in SETTABLE_STATUSES:
            raise ValidationError("Status filter must be 'active' or 'pending'")
        query = query.filter(TrainerMatch.status == target.value)
    return query.order_by(TrainerMatch.created_at.desc(), TrainerMatch.id.desc()).all()


def get_student_trainer(session, gym_id: int, student_id: int) -> Optional[TrainerMatch]:
    """The student's active match, or None."""
    return _current_matches(session, gym_id).filter(
        TrainerMatch.student_id == student_id,
        TrainerMatch.status == MatchStatus.ACTIVE.value
    ).order_by(TrainerMatch.created_at.desc()).first()


def get_trainer_student_ids(session, gym_id: int, trainer_id: int) -> List[int]:
    """Ids of students with an active match to this trainer."""
    rows = session.query(TrainerMatch.student_id).filter(
        TrainerMatch.gym_id == gym_id,
        TrainerMatch.trainer_id == trainer_id,
        TrainerMatch.status == MatchStatus.ACTIVE.value
    ).all()
    return [row.student_id for row in rows]
