"""Shared fixtures: an app on in-memory SQLite and a fake generation lock."""

import pytest

from app import create_app
from app.config import TestConfig
from db.extensions import db as _db
from models.company import Company
from models.gig import Gig
from models.rep import Rep


class FakeLockClient:
    """Stands in for the Redis client: ``SET NX EX``, ``GET`` and ``DELETE`` only."""

    def __init__(self):
        self.keys = {}

    def set(self, key, value, nx=False, ex=None):
        if nx and key in self.keys:
            return None
        self.keys[key] = value
        return True

    def get(self, key):
        return self.keys.get(key)

    def delete(self, key):
        return 1 if self.keys.pop(key, None) is not None else 0

    def ping(self):
        return True


@pytest.fixture
def lock_client(monkeypatch):
    fake = FakeLockClient()
    monkeypatch.setattr('services.slot_generator.redis_client', fake)
    return fake


@pytest.fixture
def app(lock_client):
    app = create_app(TestConfig)
    with app.app_context():
        _db.create_all()
        yield app
        _db.session.remove()
        _db.drop_all()


@pytest.fixture
def client(app):
    return app.test_client()


@pytest.fixture
def db(app):
    return _db


@pytest.fixture
def acme(db):
    company = Company(id='acme', name='Acme')
    db.session.add(company)
    db.session.add(Gig(id='gig-support', company_id='acme', name='Support Line', color='#3B82F6'))
    db.session.add(Gig(id='gig-sales', company_id='acme', name='Outbound Sales'))
    db.session.commit()
    return company


@pytest.fixture
def reps(db):
    alice = Rep(id='rep-alice', name='Alice', email='alice@example.com',
                specialties=['support'], preferred_start_hour=9, preferred_end_hour=12)
    bob = Rep(id='rep-bob', name='Bob', email='bob@example.com', specialties=['sales'])
    db.session.add_all([alice, bob])
    db.session.commit()
    return alice, bob


@pytest.fixture
def generate_slots(client, acme):
    """POST /api/slots/generate with a two-day, two-hour window by default."""
    def _generate(**overrides):
        payload = {
            'gigId': 'gig-support',
            'startDate': '2024-01-01',
            'endDate': '2024-01-02',
            'startHour': 9,
            'endHour': 11,
            'slotDuration': 1,
            'capacity': 2,
        }
        payload.update(overrides)
        return client.post('/api/slots/generate', json=payload)
    return _generate
