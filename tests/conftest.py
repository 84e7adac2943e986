import pytest
from decimal import Decimal

from config import TestConfig
from gymapp import create_app
from gymapp.database import get_session, create_all, drop_all
from gymapp.models import Gym, Product, ProductCategory
from gymapp.services.auth_service import issue_token
from gymapp.services.role_service import seed_system_roles
from gymapp.services.user_service import create_user


@pytest.fixture(scope='function')
def app():
    """Create application instance backed by a fresh in-memory database."""
    app = create_app(TestConfig)
    with app.app_context():
        create_all()
        yield app
        get_session().remove()
        drop_all()


@pytest.fixture(scope='function')
def client(app):
    """Create test client."""
    return app.test_client()


@pytest.fixture(scope='function')
def session(app):
    """Database session for testing."""
    session = get_session()
    yield session
    session.rollback()


@pytest.fixture(scope='function')
def gym1(session):
    """Create first test gym."""
    gym = Gym(slug='iron-temple', name='Iron Temple', active=True)
    session.add(gym)
    session.commit()
    return gym


@pytest.fixture(scope='function')
def gym2(session):
    """Create second test gym for isolation tests."""
    gym = Gym(slug='flex-house', name='Flex House', active=True)
    session.add(gym)
    session.commit()
    return gym


@pytest.fixture(scope='function')
def roles1(session, gym1):
    """System roles of gym1 keyed by name."""
    return seed_system_roles(session, gym1.id)


@pytest.fixture(scope='function')
def roles2(session, gym2):
    return seed_system_roles(session, gym2.id)


def _make_user(session, gym, role, email, first_name):
    return create_user(
        session, gym.id,
        email=email,
        password='password123',
        role_id=role.id,
        first_name=first_name,
        last_name='Test'
    )


@pytest.fixture(scope='function')
def owner(session, gym1, roles1):
    return _make_user(session, gym1, roles1['GymOwner'], 'owner@irontemple.test', 'Olivia')


@pytest.fixture(scope='function')
def trainer(session, gym1, roles1):
    return _make_user(session, gym1, roles1['Trainer'], 'trainer@irontemple.test', 'Tomas')


@pytest.fixture(scope='function')
def other_trainer(session, gym1, roles1):
    return _make_user(session, gym1, roles1['Trainer'], 'trainer2@irontemple.test', 'Teresa')


@pytest.fixture(scope='function')
def student(session, gym1, roles1):
    return _make_user(session, gym1, roles1['Student'], 'student@irontemple.test', 'Sofia')


@pytest.fixture(scope='function')
def other_student(session, gym1, roles1):
    return _make_user(session, gym1, roles1['Student'], 'student2@irontemple.test', 'Santiago')


@pytest.fixture(scope='function')
def owner2(session, gym2, roles2):
    return _make_user(session, gym2, roles2['GymOwner'], 'owner@flexhouse.test', 'Oscar')


@pytest.fixture(scope='function')
def student2(session, gym2, roles2):
    return _make_user(session, gym2, roles2['Student'], 'student@flexhouse.test', 'Sara')


@pytest.fixture(scope='function')
def category(session, gym1):
    category = ProductCategory(gym_id=gym1.id, name='Supplements')
    session.add(category)
    session.commit()
    return category


@pytest.fixture(scope='function')
def product(session, gym1, category):
    """Product with 5 units in stock."""
    product = Product(
        gym_id=gym1.id,
        category_id=category.id,
        name='Whey Protein',
        price=Decimal('25.50'),
        stock_quantity=5,
        is_active=True
    )
    session.add(product)
    session.commit()
    return product


@pytest.fixture(scope='function')
def second_product(session, gym1, category):
    """Product with 10 units in stock."""
    product = Product(
        gym_id=gym1.id,
        category_id=category.id,
        name='Shaker Bottle',
        price=Decimal('8.00'),
        stock_quantity=10,
        is_active=True
    )
    session.add(product)
    session.commit()
    return product


@pytest.fixture(scope='function')
def product_gym2(session, gym2):
    category = ProductCategory(gym_id=gym2.id, name='Supplements')
    session.add(category)
    session.flush()

    product = Product(
        gym_id=gym2.id,
        category_id=category.id,
        name='Creatine',
        price=Decimal('30.00'),
        stock_quantity=20,
        is_active=True
    )
    session.add(product)
    session.commit()
    return product


def _headers(user):
    return {'Authorization': f'Bearer {issue_token(user)}'}


@pytest.fixture(scope='function')
def owner_headers(owner):
    return _headers(owner)


@pytest.fixture(scope='function')
def trainer_headers(trainer):
    return _headers(trainer)


@pytest.fixture(scope='function')
def student_headers(student):
    return _headers(student)


@pytest.fixture(scope='function')
def make_headers(app):
    """Build bearer headers for an arbitrary user."""
    return _headers
