"""
Pytest configuration and fixtures.
Ensures tests use an isolated test database, not the production database.
"""

import itertools
import os
import pytest
import tempfile
from datetime import datetime

from flask import g

# Set test database path BEFORE importing app
# This ensures all tests use an isolated database
TEST_DB_PATH = os.path.join(tempfile.gettempdir(), 'tourdesk_test.db')
os.environ['DATABASE_PATH'] = TEST_DB_PATH

# Engine tests run against a fixed clock: 07:00 local, before the first slot
TEST_DATE = '2030-01-15'
FIXED_NOW = datetime(2030, 1, 15, 7, 0)

# HTTP tests run against the real clock, so they reserve on a far-future date
FUTURE_DATE = '2099-06-01'

TEST_PASSWORD = 'secret123'


@pytest.fixture(scope='session', autouse=True)
def setup_test_environment():
    """Set up test environment before any tests run."""
    # Ensure test database path is set
    os.environ['DATABASE_PATH'] = TEST_DB_PATH
    os.environ['FLASK_ENV'] = 'test'

    yield

    # Cleanup: remove test database after all tests
    for path in (TEST_DB_PATH, TEST_DB_PATH + '-wal', TEST_DB_PATH + '-shm'):
        if os.path.exists(path):
            try:
                os.remove(path)
            except PermissionError:
                pass  # Windows may have file locked


@pytest.fixture
def app():
    """Create test application with isolated database."""
    from app import create_app
    from database import init_db

    # Ensure test database path
    os.environ['DATABASE_PATH'] = TEST_DB_PATH

    app = create_app('test')
    app.config['TESTING'] = True
    app.config['WTF_CSRF_ENABLED'] = False
    app.config['DATABASE_PATH'] = TEST_DB_PATH

    @app.before_request
    def load_user_per_request():
        # Requests share the fixture's app context, so drop the cached login
        g.pop('_login_user', None)

    with app.app_context():
        init_db()
        yield app


@pytest.fixture
def client(app):
    """Create test client."""
    return app.test_client()


@pytest.fixture
def authenticated_client(app, client):
    """Create test client logged in as the seeded master admin."""
    with app.app_context():
        client.post('/login', data={
            'username': 'admin',
            'password': 'admin123'
        })
    return client


@pytest.fixture
def make_user(app):
    """Factory for users. Returns the new user's ID."""
    from models.user import create_user

    def _make(username, approval_status='approved', role='user'):
        return create_user(
            username=username,
            email=f'{username}@example.com',
            password=TEST_PASSWORD,
            full_name=username.title(),
            role=role,
            approval_status=approval_status
        )

    return _make


@pytest.fixture
def make_facility(app):
    """Factory for facilities. Returns the new facility's ID."""
    from models.facility import create_facility

    counter = itertools.count(1)

    def _make(category='Standard', status='Available', **overrides):
        n = next(counter)
        data = {
            'category': category,
            'car_unit': f'Test Van {n}',
            'plate_number': f'TST {1000 + n}',
            'capacity': 4,
            'pickup_location': 'NAIA Terminal 1',
            'driver_name': f'Driver {n}',
            'driver_number': f'0917000{n:04d}',
            'description': '',
            'status': status,
        }
        data.update(overrides)
        return create_facility(data)

    return _make


@pytest.fixture
def ctx_for():
    """Build a SessionContext for a user ID."""
    from models.user import SessionContext

    def _ctx(user_id, role='user'):
        return SessionContext(user_id, role)

    return _ctx


@pytest.fixture
def login(app):
    """Log a test client in as the given user and return the client."""

    def _login(username, password=TEST_PASSWORD):
        client = app.test_client()
        response = client.post('/login', json={'username': username, 'password': password})
        assert response.status_code == 200, response.get_json()
        return client

    return _login


@pytest.fixture
def user_client(make_user, login):
    """Client logged in as an approved end user named 'traveler'."""
    make_user('traveler')
    return login('traveler')
