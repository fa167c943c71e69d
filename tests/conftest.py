"""Shared pytest fixtures for all test suites."""

import os

# Must be set before any application module is imported: database.py and
# auth.py read them at import time.
os.environ['DATABASE_URL'] = 'sqlite://'
os.environ['JWT_SECRET_KEY'] = 'test-secret-key-not-for-production'
os.environ['ANTHROPIC_API_KEY'] = 'sk-ant-test'
os.environ['REDIS_URL'] = ''
os.environ['APP_ENV'] = 'test'

import pytest  # noqa: E402
from fastapi.testclient import TestClient  # noqa: E402

import auth  # noqa: E402
import edits  # noqa: E402
import generator  # noqa: E402
from database import SessionLocal, engine  # noqa: E402
from models import db as metadata_base  # noqa: E402

XHR = {'X-Requested-With': 'XMLHttpRequest'}

PRAGUE_ITINERARY = {
    'routeName': 'Old Town Architecture Walk',
    'totalDistance': '3.2 km',
    'estimatedTime': '2 hours',
    'difficulty': 'Easy',
    'overview': 'A gentle loop through the Gothic and Baroque heart of Prague.',
    'stops': [
        {'number': 1, 'name': 'Old Town Square', 'description': 'The historic centre.',
         'duration': '20 minutes', 'walkToNext': '3 minutes',
         'address': 'Staroměstské nám., 110 00 Praha 1', 'latitude': 50.0875, 'longitude': 14.4213},
        {'number': 2, 'name': 'Astronomical Clock', 'description': 'Medieval clock from 1410.',
         'duration': '15 minutes', 'walkToNext': '8 minutes',
         'address': 'Staroměstské nám. 1', 'latitude': 50.0870, 'longitude': 14.4208},
        {'number': 3, 'name': 'Charles Bridge', 'description': 'Gothic stone bridge.',
         'duration': '25 minutes', 'walkToNext': '10 minutes',
         'address': 'Karlův most, 110 00 Praha 1', 'latitude': 50.0865, 'longitude': 14.4114},
        {'number': 4, 'name': 'St. Nicholas Church', 'description': 'Baroque landmark.',
         'duration': '20 minutes', 'walkToNext': '12 minutes',
         'address': 'Malostranské nám., 118 00 Praha 1', 'latitude': 50.0880, 'longitude': 14.4034},
        {'number': 5, 'name': 'Prague Castle', 'description': 'Largest ancient castle complex.',
         'duration': '40 minutes',
         'address': 'Hradčany, 119 08 Praha 1', 'latitude': 50.0909, 'longitude': 14.4005},
    ],
    'tips': ['Wear comfortable shoes', 'Arrive early to avoid crowds', 'Carry some cash'],
}

PRAGUE_REQUEST = {
    'city': 'Prague',
    'interests': 'architecture, history',
    'fitness': 'easy',
    'duration': 2,
}


@pytest.fixture(autouse=True)
def fresh_state():
    """Empty schema and cleared per-process stores for every test."""
    metadata_base.metadata.drop_all(engine)
    metadata_base.metadata.create_all(engine)
    edits._sessions.clear()
    edits._saving.clear()
    generator._in_flight.clear()
    auth._login_attempts.clear()
    yield
    edits._sessions.clear()
    edits._saving.clear()
    generator._in_flight.clear()


@pytest.fixture(autouse=True)
def fast_bcrypt(monkeypatch):
    monkeypatch.setattr(auth, 'BCRYPT_ROUNDS', 4)


@pytest.fixture
def db_session():
    session = SessionLocal()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture
def app_client():
    from app import app
    return TestClient(app)


def signup(client, email='walker@example.com', password='correct-horse', full_name='Walker'):
    resp = client.post('/auth/signup', headers=XHR,
                       json={'email': email, 'password': password, 'full_name': full_name})
    assert resp.status_code == 201, resp.text
    return resp.json()['user']


@pytest.fixture
def client(app_client):
    """A TestClient already signed in as walker@example.com."""
    signup(app_client)
    return app_client


@pytest.fixture
def make_user(db_session):
    from models import User

    def _make(email='owner@example.com'):
        user = User(email=email, password_hash='x', is_active=True)
        db_session.add(user)
        db_session.commit()
        return user
    return _make
