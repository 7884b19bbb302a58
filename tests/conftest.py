import pytest
from fastapi.testclient import TestClient
from sqlalchemy.orm import sessionmaker

from kisaan_auth.core.db import Base, build_engine
from kisaan_auth.core.deps import get_db, get_session_store, get_sms_gateway, get_token_issuer
from kisaan_auth.core.security import TokenIssuer
from kisaan_auth.domains.identity.store import InMemorySessionStore
from kisaan_auth.domains.users import models as _user_models  # noqa: F401
from kisaan_auth.main import app
from kisaan_auth.utils.sms import CONSOLE, FAST2SMS, DegradedFallback, Delivered


class FakeGateway:
    """Records sends instead of calling Fast2SMS."""

    def __init__(self, degraded: bool = False):
        self.degraded = degraded
        self.sent: list[tuple[str, str]] = []
        self.configured = not degraded
        self.fallback_enabled = True

    def send(self, phone: str, otp: str):
        self.sent.append((phone, otp))
        if self.degraded:
            return DegradedFallback(provider=CONSOLE, cause="not configured")
        return Delivered(provider=FAST2SMS, request_id=f"req-{len(self.sent)}")

    @property
    def last_code(self) -> str:
        return self.sent[-1][1]


@pytest.fixture
def db_sessionmaker():
    engine = build_engine("sqlite+pysqlite:///:memory:")
    Base.metadata.create_all(bind=engine)
    factory = sessionmaker(bind=engine, autoflush=False, expire_on_commit=False)
    yield factory
    engine.dispose()


@pytest.fixture
def db(db_sessionmaker):
    session = db_sessionmaker()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture
def store():
    return InMemorySessionStore()


@pytest.fixture
def gateway():
    return FakeGateway()


@pytest.fixture
def issuer():
    return TokenIssuer(secret="test-secret", issuer="kisaanmela", audience="kisaanmela-app", ttl_seconds=7 * 24 * 3600)


@pytest.fixture
def client(db_sessionmaker, store, gateway, issuer):
    def _get_db():
        session = db_sessionmaker()
        try:
            yield session
        finally:
            session.close()

    app.dependency_overrides[get_db] = _get_db
    app.dependency_overrides[get_session_store] = lambda: store
    app.dependency_overrides[get_sms_gateway] = lambda: gateway
    app.dependency_overrides[get_token_issuer] = lambda: issuer
    try:
        yield TestClient(app)
    finally:
        app.dependency_overrides.clear()
