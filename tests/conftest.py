import pytest

from lexledger import create_app
from lexledger.config import TestingConfig
from lexledger.models import Case, Client, ClientUser, User, db

STAFF_EMAIL = 'attorney@lawfirm.com'
STAFF_PASSWORD = 'secret123'
PORTAL_EMAIL = 'portal@example.com'
PORTAL_PASSWORD = 'client123'


@pytest.fixture
def app():
    """A fresh app backed by its own in-memory database."""
    app = create_app(TestingConfig)
    with app.app_context():
        db.create_all()
        user = User(email=STAFF_EMAIL, first_name='Ada', last_name='Counsel', role='attorney')
        user.set_password(STAFF_PASSWORD)
        db.session.add(user)
        db.session.commit()
    yield app
    with app.app_context():
        db.session.remove()
        db.drop_all()


@pytest.fixture
def ctx(app):
    """App context for tests that call the services directly."""
    with app.app_context():
        yield
        db.session.remove()


@pytest.fixture
def staff_id(ctx):
    return User.query.filter_by(email=STAFF_EMAIL).one().id


@pytest.fixture
def client(app):
    return app.test_client()


@pytest.fixture
def auth_client(app):
    client = app.test_client()
    response = client.post('/api/auth/login', json={'email': STAFF_EMAIL, 'password': STAFF_PASSWORD})
    assert response.status_code == 200
    return client


class Factory:
    """Creates rows directly in the database and hands back their ids."""

    def __init__(self, app):
        self.app = app

    def client(self, first_name='Alice', last_name='Walker', **fields):
        with self.app.app_context():
            row = Client(first_name=first_name, last_name=last_name, **fields)
            db.session.add(row)
            db.session.commit()
            return row.id

    def case(self, client_id, title='Walker v. Northwind', **fields):
        with self.app.app_context():
            row = Case(client_id=client_id, title=title, **fields)
            db.session.add(row)
            db.session.commit()
            return row.id

    def portal_user(self, client_id, email=PORTAL_EMAIL, password=PORTAL_PASSWORD, **fields):
        with self.app.app_context():
            row = ClientUser(client_id=client_id, email=email, **fields)
            row.set_password(password)
            db.session.add(row)
            db.session.commit()
            return row.id


@pytest.fixture
def factory(app):
    return Factory(app)
