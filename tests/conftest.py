"""
tests/conftest.py — Shared Test Fixtures
=========================================
"""

from __future__ import annotations

import os

# ---------------------------------------------------------------------------
# JWT_SECRET must be set before guildhall.api.deps is imported; the module
# validates it at load time.
# ---------------------------------------------------------------------------
_TEST_JWT_SECRET = "test-secret-for-pytest-only-" + "x" * 40  # > 32 chars
os.environ.setdefault("JWT_SECRET", _TEST_JWT_SECRET)

import pytest  # noqa: E402
from sqlalchemy import Engine, create_engine  # noqa: E402

# ---------------------------------------------------------------------------
# SQLite has no JSONB; render it as TEXT so create_all works in memory.
# ---------------------------------------------------------------------------
from sqlalchemy.dialects.postgresql import JSONB as PG_JSONB  # noqa: E402
from sqlalchemy.orm import Session  # noqa: E402

from guildhall.database.models import Base, Member, Role  # noqa: E402
from guildhall.services import member_service  # noqa: E402

_jsonb_sqlite_registered = False


def _register_jsonb_sqlite_compat():
    """Register SQLite compilation for PG JSONB type (idempotent)."""
    global _jsonb_sqlite_registered
    if _jsonb_sqlite_registered:
        return
    from sqlalchemy.ext.compiler import compiles

    @compiles(PG_JSONB, "sqlite")
    def _compile_jsonb_as_text(type_, compiler, **kw):
        return "TEXT"

    _jsonb_sqlite_registered = True


_register_jsonb_sqlite_compat()


@pytest.fixture(autouse=True)
def _fast_bcrypt(monkeypatch):
    """Minimum bcrypt cost so signup-heavy tests stay quick."""
    monkeypatch.setattr(member_service, "BCRYPT_ROUNDS", 4)


@pytest.fixture
def db_engine() -> Engine:
    """In-memory SQLite engine with every Guildhall table.

    StaticPool keeps one shared connection so worker threads (``run_db``,
    the rate limiter) see the same in-memory database.
    """
    from sqlalchemy.pool import StaticPool

    engine = create_engine(
        "sqlite://",
        echo=False,
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(engine)
    return engine


@pytest.fixture
def db_session(db_engine: Engine):
    """Provide a session that rolls back after each test."""
    with Session(db_engine) as session:
        yield session
        session.rollback()


# ---------------------------------------------------------------------------
# Members & tokens
# ---------------------------------------------------------------------------
def make_member(engine: Engine, username: str = "alice", *, role: str | None = None) -> Member:
    """Sign up a member (password ``"password123"``), optionally with a role."""
    member = member_service.signup(
        engine, email=f"{username}@example.com", password="password123", username=username
    )
    if role is not None:
        with Session(engine) as session:
            session.get(Member, member.id).role = role
            session.commit()
        member.role = role
    return member


def make_token(member: Member) -> str:
    from guildhall.api.deps import issue_token

    return issue_token(member, ttl_hours=1)


def auth(token: str) -> dict[str, str]:
    return {"Authorization": f"Bearer {token}"}


@pytest.fixture
def member(db_engine):
    return make_member(db_engine, "alice")


@pytest.fixture
def admin(db_engine):
    return make_member(db_engine, "root_admin", role=Role.ADMIN.value)


@pytest.fixture
def client(db_engine):
    """TestClient bound to the in-memory engine.

    The lifespan hook is not run; the rate limiter is configured here.
    """
    from fastapi.testclient import TestClient

    from guildhall.api.deps import get_config, get_engine
    from guildhall.api.main import app
    from guildhall.api.rate_limit import configure_rate_limiter
    from guildhall.config import GuildhallConfig

    cfg = GuildhallConfig()
    app.dependency_overrides[get_engine] = lambda: db_engine
    app.dependency_overrides[get_config] = lambda: cfg
    configure_rate_limiter(
        engine=db_engine,
        max_requests=cfg.post_rate_limit,
        window_seconds=cfg.post_rate_window_seconds,
    )
    yield TestClient(app, raise_server_exceptions=False)
    app.dependency_overrides.clear()
