"""
Unit tests for SQLAlchemy models.
"""

import pytest
from decimal import Decimal
from sqlalchemy.exc import IntegrityError

from gymapp.models import (
    Gym, Role, Product, OrderStatus, ORDER_TRANSITIONS, TERMINAL_ORDER_STATUSES,
    TrainerMatch, MatchStatus
)


class TestGymModel:

    def test_create_gym(self, session):
        gym = Gym(slug='test-gym', name='Test Gym', active=True)
        session.add(gym)
        session.commit()

        assert gym.id is not None
        assert gym.to_dict()['slug'] == 'test-gym'

    def test_gym_slug_unique(self, session, gym1):
        session.add(Gym(slug=gym1.slug, name='Duplicate Gym'))
        with pytest.raises(IntegrityError):
            session.commit()


class TestRoleModel:

    def test_system_role_flag(self, roles1):
        assert roles1['GymOwner'].is_system_role is True
        assert Role(name='Nutritionist').is_system_role is False

    def test_live_name_unique_per_gym(self, session, gym1, roles1):
        session.add(Role(gym_id=gym1.id, name='Trainer', permissions={}))
        with pytest.raises(IntegrityError):
            session.commit()


class TestUserModel:

    def test_password_hashing(self, owner):
        assert owner.password_hash != 'password123'
        assert owner.check_password('password123') is True
        assert owner.check_password('wrong') is False

    def test_to_dict_has_no_password(self, owner):
        data = owner.to_dict()
        assert 'password_hash' not in data
        assert data['role'] == 'GymOwner'


class TestProductModel:

    def test_stock_cannot_go_negative(self, session, product):
        product.stock_quantity = -1
        with pytest.raises(IntegrityError):
            session.commit()

    def test_price_serialized_as_string(self, product):
        assert product.to_dict()['price'] == '25.50'
        assert product.price == Decimal('25.50')


class TestTrainerMatchModel:

    def test_one_current_match_per_pair(self, session, gym1, trainer, student):
        session.add(TrainerMatch(gym_id=gym1.id, trainer_id=trainer.id, student_id=student.id,
                                 status=MatchStatus.ACTIVE.value))
        session.commit()

        session.add(TrainerMatch(gym_id=gym1.id, trainer_id=trainer.id, student_id=student.id,
                                 status=MatchStatus.PENDING.value))
        with pytest.raises(IntegrityError):
            session.commit()

    def test_ended_matches_do_not_block(self, session, gym1, trainer, student):
        for _ in range(2):
            session.add(TrainerMatch(gym_id=gym1.id, trainer_id=trainer.id, student_id=student.id,
                                     status=MatchStatus.ENDED.value))
        session.add(TrainerMatch(gym_id=gym1.id, trainer_id=trainer.id, student_id=student.id,
                                 status=MatchStatus.ACTIVE.value))
        session.commit()


class TestOrderTransitions:

    def test_terminal_statuses_have_no_exits(self):
        for status in TERMINAL_ORDER_STATUSES:
            assert ORDER_TRANSITIONS[status] == frozenset()

    def test_every_status_has_an_entry(self):
        assert set(ORDER_TRANSITIONS) == set(OrderStatus)

    def test_cannot_skip_preparation(self):
        assert OrderStatus.COMPLETED not in ORDER_TRANSITIONS[OrderStatus.PENDING_APPROVAL]
