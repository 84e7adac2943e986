"""
Integration tests for trainer-student matches.
"""

import pytest

from gymapp.exceptions import ValidationError, ConflictError, NotFoundError, InvalidTransitionError
from gymapp.models import TrainerMatch, MatchStatus, AuditLog, AuditAction
from gymapp.services import match_service
from gymapp.services.user_service import create_user


@pytest.fixture
def match(session, gym1, trainer, student, owner):
    return match_service.create_match(session, gym1.id, trainer.id, student.id, actor_id=owner.id)


class TestCreateMatch:

    def test_new_match_is_active(self, match, trainer, student):
        assert match.status == MatchStatus.ACTIVE.value
        assert match.trainer_id == trainer.id
        assert match.student_id == student.id

    def test_duplicate_current_match_conflicts(self, session, gym1, trainer, student, match):
        with pytest.raises(ConflictError):
            match_service.create_match(session, gym1.id, trainer.id, student.id)

    def test_pending_match_also_blocks_duplicates(self, session, gym1, trainer, student, match):
        match_service.update_status(session, gym1.id, match.id, 'pending')
        with pytest.raises(ConflictError):
            match_service.create_match(session, gym1.id, trainer.id, student.id)

    def test_concurrent_duplicate_reported_as_conflict(self, session, gym1, trainer, student,
                                                        match, monkeypatch):
        """A racing insert that passed the existence check still hits the unique index."""
        monkeypatch.setattr(match_service, '_pair_has_current_match', lambda *args: False)

        with pytest.raises(ConflictError):
            match_service.create_match(session, gym1.id, trainer.id, student.id)

        assert session.query(TrainerMatch).filter_by(student_id=student.id).count() == 1
        assert match_service.get_trainer_students(session, gym1.id, trainer.id)[0].id == match.id

    def test_swapped_ids_rejected(self, session, gym1, trainer, student):
        with pytest.raises(ValidationError):
            match_service.create_match(session, gym1.id, student.id, trainer.id)

    def test_same_user_twice_rejected(self, session, gym1, trainer):
        with pytest.raises(ValidationError):
            match_service.create_match(session, gym1.id, trainer.id, trainer.id)

    def test_user_of_other_gym_not_found(self, session, gym1, trainer, student2):
        with pytest.raises(NotFoundError):
            match_service.create_match(session, gym1.id, trainer.id, student2.id)

    def test_one_trainer_many_students(self, session, gym1, trainer, student, other_student):
        match_service.create_match(session, gym1.id, trainer.id, student.id)
        match_service.create_match(session, gym1.id, trainer.id, other_student.id)
        assert len(match_service.get_trainer_students(session, gym1.id, trainer.id)) == 2

    def test_student_with_two_trainers(self, session, gym1, roles1, trainer, student):
        second = create_user(session, gym1.id, 'trainer2@irontemple.test', 'password123',
                             roles1['Trainer'].id, 'Tamara')
        match_service.create_match(session, gym1.id, trainer.id, student.id)
        match_service.create_match(session, gym1.id, second.id, student.id)
        assert session.query(TrainerMatch).filter_by(student_id=student.id).count() == 2


class TestUpdateStatus:

    def test_active_to_pending_and_back(self, session, gym1, match):
        assert match_service.update_status(session, gym1.id, match.id, 'pending').status == 'pending'
        assert match_service.update_status(session, gym1.id, match.id, 'active').status == 'active'

    def test_cannot_end_through_status_update(self, session, gym1, match):
        with pytest.raises(InvalidTransitionError):
            match_service.update_status(session, gym1.id, match.id, 'ended')

    def test_unknown_status(self, session, gym1, match):
        with pytest.raises(ValidationError):
            match_service.update_status(session, gym1.id, match.id, 'paused')

    def test_ended_match_cannot_be_updated(self, session, gym1, match):
        match_service.end_match(session, gym1.id, match.id)
        with pytest.raises(NotFoundError):
            match_service.update_status(session, gym1.id, match.id, 'active')


class TestEndMatch:

    def test_end_match_keeps_history(self, session, gym1, owner, trainer, student, match):
        match_id = match.id
        match_service.end_match(session, gym1.id, match_id, actor_id=owner.id)

        ended = session.get(TrainerMatch, match_id)
        assert ended.status == MatchStatus.ENDED.value
        assert ended.ended_at is not None
        assert ended.ended_by_id == owner.id

        with pytest.raises(NotFoundError):
            match_service.get_match(session, gym1.id, match_id)
        assert match_service.get_trainer_students(session, gym1.id, trainer.id) == []
        assert match_service.get_student_trainer(session, gym1.id, student.id) is None

        history, _ = match_service.list_matches(session, gym1.id, status='ended')
        assert [m.id for m in history] == [match_id]

        audit = session.query(AuditLog).filter_by(action=AuditAction.MATCH_ENDED).one()
        assert audit.resource_id == match_id

    def test_end_twice_not_found(self, session, gym1, match):
        match_service.end_match(session, gym1.id, match.id)
        with pytest.raises(NotFoundError):
            match_service.end_match(session, gym1.id, match.id)

    def test_rematch_after_end(self, session, gym1, trainer, student, match):
        match_service.end_match(session, gym1.id, match.id)
        again = match_service.create_match(session, gym1.id, trainer.id, student.id)
        assert again.id != match.id
        assert again.status == 'active'


class TestQueries:

    def test_student_trainer_ignores_pending(self, session, gym1, student, match):
        assert match_service.get_student_trainer(session, gym1.id, student.id).id == match.id
        match_service.update_status(session, gym1.id, match.id, 'pending')
        assert match_service.get_student_trainer(session, gym1.id, student.id) is None

    def test_trainer_student_ids_only_active(self, session, gym1, trainer, student, other_student):
        first = match_service.create_match(session, gym1.id, trainer.id, student.id)
        match_service.create_match(session, gym1.id, trainer.id, other_student.id)
        match_service.update_status(session, gym1.id, first.id, 'pending')

        assert match_service.get_trainer_student_ids(session, gym1.id, trainer.id) == [other_student.id]

    def test_trainer_students_filtered_by_status(self, session, gym1, trainer, match):
        assert match_service.get_trainer_students(session, gym1.id, trainer.id, status='pending') == []
        assert len(match_service.get_trainer_students(session, gym1.id, trainer.id, status='active')) == 1

    def test_list_matches_scoped_to_gym(self, session, gym1, gym2, match):
        items, pagination = match_service.list_matches(session, gym2.id)
        assert items == []
        assert pagination['total'] == 0

        items, _ = match_service.list_matches(session, gym1.id)
        assert [m.id for m in items] == [match.id]
