"""Shared test fixtures.

Service and API tests run against a throwaway SQLite file per test. The
schema is built from the ORM metadata, and Redis is left uninitialized so
publishing and rate limiting are skipped.
"""

from __future__ import annotations

import os
from collections.abc import AsyncGenerator, Callable
from datetime import datetime, timedelta, timezone

import jwt
import pytest
import pytest_asyncio
from cryptography.hazmat.primitives import serialization
from cryptography.hazmat.primitives.asymmetric import rsa
from httpx import ASGITransport, AsyncClient
from sqlalchemy import event
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession

from curio.config import get_settings
from curio.database import close_db, get_engine, get_session, init_db
from curio.db.base import Base
from curio.db.models import Account


def _enable_sqlite_savepoints(engine: AsyncEngine) -> None:
    """Let SQLAlchemy own BEGIN so SAVEPOINT rollbacks behave as on PostgreSQL."""

    @event.listens_for(engine.sync_engine, "connect")
    def _connect(dbapi_connection, _record):  # noqa: ANN001
        dbapi_connection.isolation_level = None

    @event.listens_for(engine.sync_engine, "begin")
    def _begin(conn):  # noqa: ANN001
        conn.exec_driver_sql("BEGIN")


async def _init_test_db(tmp_path) -> None:  # noqa: ANN001
    await init_db(f"sqlite+aiosqlite:///{tmp_path / 'curio.db'}")
    engine = get_engine()
    _enable_sqlite_savepoints(engine)
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)


@pytest.fixture(scope="session")
def jwt_private_key(tmp_path_factory: pytest.TempPathFactory) -> bytes:
    """Generate an RSA key pair for the test session and point settings at the public half."""
    key = rsa.generate_private_key(public_exponent=65537, key_size=2048)
    private_pem = key.private_bytes(
        encoding=serialization.Encoding.PEM,
        format=serialization.PrivateFormat.PKCS8,
        encryption_algorithm=serialization.NoEncryption(),
    )
    public_pem = key.public_key().public_bytes(
        encoding=serialization.Encoding.PEM,
        format=serialization.PublicFormat.SubjectPublicKeyInfo,
    )
    key_dir = tmp_path_factory.mktemp("curio_test_keys")
    public_path = key_dir / "jwt_public.pem"
    public_path.write_bytes(public_pem)

    os.environ["CURIO_JWT_PUBLIC_KEY_PATH"] = str(public_path)
    get_settings.cache_clear()
    from curio.auth.jwt import reset_keys
    reset_keys()
    return private_pem


@pytest.fixture
def make_token(jwt_private_key: bytes) -> Callable[..., str]:
    """Factory for access tokens as the external auth service would issue them."""

    def _make(sub: str, name: str | None = None, expires_in: int = 900, **claims: object) -> str:
        settings = get_settings()
        now = datetime.now(timezone.utc)
        payload: dict[str, object] = {
            "sub": sub,
            "iss": settings.jwt_issuer,
            "iat": now,
            "exp": now + timedelta(seconds=expires_in),
            "type": "access",
            **claims,
        }
        if name is not None:
            payload["name"] = name
        return jwt.encode(payload, jwt_private_key, algorithm=settings.jwt_algorithm)

    return _make


@pytest_asyncio.fixture
async def db_session(tmp_path) -> AsyncGenerator[AsyncSession, None]:  # noqa: ANN001
    """A session on a fresh schema."""
    await _init_test_db(tmp_path)
    async for session in get_session():
        yield session
        break
    await close_db()


@pytest_asyncio.fixture
async def client(tmp_path, jwt_private_key) -> AsyncGenerator[AsyncClient, None]:  # noqa: ANN001
    """Async HTTP client against the app, with a fresh schema."""
    from curio.main import create_app

    app = create_app()
    await _init_test_db(tmp_path)

    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac

    await close_db()


@pytest.fixture
def auth_headers(make_token: Callable[..., str]) -> Callable[..., dict[str, str]]:
    """Authorization headers for an account id."""

    def _headers(sub: str, name: str | None = None) -> dict[str, str]:
        return {"Authorization": f"Bearer {make_token(sub, name)}"}

    return _headers


@pytest.fixture
def new_account(db_session: AsyncSession) -> Callable[..., object]:
    """Factory inserting account rows as first authentication would."""
    from curio.rewards.award_service import get_or_create_account

    async def _create(account_id: str, display_name: str | None = None) -> Account:
        account = await get_or_create_account(db_session, account_id, display_name)
        await db_session.commit()
        return account

    return _create
