import pytest

from config import TestingConfig
from quotedesk import create_app
from quotedesk.database import get_session, create_all, drop_all
from quotedesk.models import User, UserRole, UserStatus, Client
from quotedesk.services import quote_service

# 10 x 100 + 5 x 200, 5% off, two 9% taxes, 50 shipping -> 2292.00
SAMPLE_QUOTE = {
    'items': [
        {'description': 'Consulting hours', 'quantity': 10, 'unit_price': 100},
        {'description': 'Design package', 'quantity': 5, 'unit_price': 200},
    ],
    'discount': {'type': 'percent', 'value': 5},
    'tax_rates': [{'name': 'CGST', 'rate': 9}, {'name': 'SGST', 'rate': 9}],
    'shipping': 50,
}


@pytest.fixture(scope='function')
def app(tmp_path):
    """Create application instance backed by a throwaway SQLite file."""
    class Config(TestingConfig):
        SQLALCHEMY_DATABASE_URI = f"sqlite:///{tmp_path / 'quotedesk-test.db'}"

    app = create_app(Config)
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
    """Thread-local database session used by the services."""
    session = get_session()
    yield session
    session.rollback()


def _make_user(session, email, role, name=None):
    user = User(email=email, name=name or email.split('@')[0], role=role, status=UserStatus.ACTIVE)
    user.set_password('password123')
    session.add(user)
    session.commit()
    return user


@pytest.fixture
def admin(session):
    return _make_user(session, 'admin@test.com', UserRole.ADMIN)


@pytest.fixture
def manager(session):
    return _make_user(session, 'manager@test.com', UserRole.MANAGER)


@pytest.fixture
def user(session):
    """Regular user; owns the `customer` and `quote` fixtures."""
    return _make_user(session, 'user@test.com', UserRole.USER)


@pytest.fixture
def other_user(session):
    return _make_user(session, 'other@test.com', UserRole.USER)


@pytest.fixture
def viewer(session):
    return _make_user(session, 'viewer@test.com', UserRole.VIEWER)


@pytest.fixture
def customer(session, user):
    customer = Client(
        name='Acme Traders',
        email='billing@acme.test',
        billing_address='12 MG Road, Bengaluru',
        created_by=user.id,
    )
    session.add(customer)
    session.commit()
    return customer


@pytest.fixture
def quote(session, user, customer):
    """Draft quote worth 2292.00."""
    return quote_service.create_quote(session, dict(SAMPLE_QUOTE, client_id=customer.id), user)


@pytest.fixture
def approved_quote(session, quote, user, manager):
    quote_service.change_quote_status(session, quote.id, 'send', user)
    return quote_service.change_quote_status(session, quote.id, 'approve', manager)


@pytest.fixture
def login(client):
    """Attach a user to the test client's session cookie."""
    def _login(user_id):
        with client.session_transaction() as sess:
            sess['user_id'] = user_id
    return _login
