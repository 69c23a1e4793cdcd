"""Shared test fixtures."""
from datetime import datetime, timezone

import pytest
from unittest.mock import patch, MagicMock
from sqlalchemy import create_engine
from sqlalchemy.pool import StaticPool

import siteops
from siteops.database import Base, SessionLocal
from siteops.services import circuit_breaker


class FakeRedis:
    """Minimal in-memory Redis fake for circuit breaker state."""

    def __init__(self):
        self.get_store = {}
        self.hash_store = {}

    def get(self, key):
        return self.get_store.get(key)

    def set(self, key, value):
        self.get_store[key] = str(value)

    def incr(self, key):
        val = int(self.get_store.get(key, 0)) + 1
        self.get_store[key] = str(val)
        return val

    def delete(self, *keys):
        for k in keys:
            self.get_store.pop(k, None)
            self.hash_store.pop(k, None)

    def hset(self, key, field, value):
        self.hash_store.setdefault(key, {})[field] = str(value)

    def hincrby(self, key, field, amount):
        h = self.hash_store.setdefault(key, {})
        h[field] = str(int(h.get(field, 0)) + amount)

    def hgetall(self, key):
        return dict(self.hash_store.get(key, {}))

    def pipeline(self):
        return FakePipeline(self)


class FakePipeline:
    """Fake Redis pipeline that buffers ops until execute()."""

    def __init__(self, redis):
        self._redis = redis
        self._ops = []

    def __getattr__(self, name):
        def queue(*args):
            self._ops.append((name, args))
            return self
        return queue

    def execute(self):
        for name, args in self._ops:
            getattr(self._redis, name)(*args)
        self._ops = []


@pytest.fixture
def db_engine():
    """In-memory SQLite engine shared by every session in the test."""
    engine = create_engine(
        'sqlite://',
        connect_args={'check_same_thread': False},
        poolclass=StaticPool,
    )
    import importlib
    for module in siteops.MODEL_MODULES:
        importlib.import_module(module)
    Base.metadata.create_all(engine)
    yield engine
    Base.metadata.drop_all(engine)
    engine.dispose()


@pytest.fixture(autouse=True)
def bind_sessions(db_engine):
    """Point SessionLocal (and so every get_session() call) at the test engine."""
    original = SessionLocal.kw.get('bind')
    SessionLocal.configure(bind=db_engine)
    yield
    SessionLocal.configure(bind=original)


@pytest.fixture
def db_session(bind_sessions):
    """Session for arranging and inspecting rows.

    Production code opens its own sessions on the same connection, so
    fixtures commit, and tests call expire_all() before asserting.
    """
    session = SessionLocal()
    yield session
    session.close()


@pytest.fixture
def fake_redis():
    return FakeRedis()


@pytest.fixture(autouse=True)
def breakers(fake_redis):
    """Fresh circuit breakers backed by the fake Redis."""
    circuit_breaker._registry.clear()
    with patch('siteops.extensions.redis_client', fake_redis):
        yield circuit_breaker.init_breakers(fake_redis)
    circuit_breaker._registry.clear()


@pytest.fixture
def app(breakers, fake_redis):
    """Flask test app."""
    with patch('siteops.extensions.redis_client', fake_redis):
        app = siteops.create_app()
    app.config['TESTING'] = True
    yield app


@pytest.fixture
def client(app):
    """Flask test client."""
    with app.test_client() as c:
        yield c


@pytest.fixture
def resend_ok():
    """Resend configured and accepting every message."""
    from siteops.services.email_client import EmailResult
    with patch('siteops.services.email_client.RESEND_API_KEY', 're_test'), \
         patch('siteops.services.email_client.send_email',
               return_value=EmailResult(success=True, message_id='msg_123', status_code=200)) as mock_send:
        yield mock_send


def _mock_response(status_code=200, json_data=None, text=''):
    resp = MagicMock()
    resp.status_code = status_code
    resp.ok = 200 <= status_code < 400
    resp.text = text
    if json_data is None:
        resp.json.side_effect = ValueError('No JSON')
    else:
        resp.json.return_value = json_data
    return resp


@pytest.fixture
def mock_response():
    """Factory for requests.Response-like mocks."""
    return _mock_response


# ── Row factories ────────────────────────────────────────────────────────────

@pytest.fixture
def make_lead(db_session):
    from siteops.models.lead import Lead

    def _make(**overrides):
        defaults = dict(
            first_name='Ada',
            last_name='Lovelace',
            email='ada@example.com',
            company_name='Analytical Engines',
            website_url='https://example.com',
            status='new',
        )
        defaults.update(overrides)
        lead = Lead(**defaults)
        db_session.add(lead)
        db_session.commit()
        return lead
    return _make


@pytest.fixture
def make_audit(db_session):
    from siteops.models.site_audit import SiteAudit

    def _make(lead, **overrides):
        defaults = dict(
            lead_id=lead.id,
            url=lead.website_url or 'https://example.com',
            performance=45,
            accessibility=88,
            seo=91,
            best_practices=83,
            lcp=4.2,
            cls=0.12,
            inp=310,
            is_latest=True,
            audit_run_at=datetime.now(timezone.utc),
        )
        defaults.update(overrides)
        audit = SiteAudit(**defaults)
        db_session.add(audit)
        db_session.commit()
        return audit
    return _make


@pytest.fixture
def make_site(db_session):
    from siteops.models.monitored_site import MonitoredSite
    counter = {'n': 0}

    def _make(**overrides):
        counter['n'] += 1
        defaults = dict(
            site_key=f'site-{counter["n"]}',
            site_name='Acme Bakery',
            primary_domain='acmebakery.com',
            status='active',
            subscription_tier='care',
            client_email='owner@acmebakery.com',
            internal_email='ops@donewellco.com',
        )
        defaults.update(overrides)
        site = MonitoredSite(**defaults)
        db_session.add(site)
        db_session.commit()
        return site
    return _make


@pytest.fixture
def make_incident(db_session):
    from siteops.models.incident import Incident

    def _make(site, **overrides):
        defaults = dict(
            site_id=site.id,
            severity='sev-1',
            status='open',
            title='SEV-1: Site Unreachable',
            description='Acme Bakery is not responding to requests.',
            trigger_check_type='uptime',
            trigger_event_ids=[],
            opened_at=datetime.now(timezone.utc),
        )
        defaults.update(overrides)
        incident = Incident(**defaults)
        db_session.add(incident)
        db_session.commit()
        return incident
    return _make
