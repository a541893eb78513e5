"""Shared test fixtures."""

from __future__ import annotations

import os
import tempfile
from collections.abc import AsyncGenerator
from datetime import datetime, timezone
from typing import Any

import pytest
import pytest_asyncio
from cryptography.hazmat.primitives import serialization
from cryptography.hazmat.primitives.asymmetric import rsa
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession

from copet.auth.jwt import create_access_token, reset_keys
from copet.config import get_settings
from copet.database import close_db, get_engine, get_session, init_db
from copet.db.base import Base
from copet.db.models import Couple, Pet, User
from copet.dependencies import get_optional_redis
from copet.main import create_app
from copet.simulation.personality import DEFAULT_TRAITS

USER_A = 1001
USER_B = 1002
OUTSIDER = 2001

_keys_dir: str | None = None


def _ensure_test_keys() -> None:
    """Generate an RSA key pair once per run and point settings at it."""
    global _keys_dir  # noqa: PLW0603
    if _keys_dir is None:
        _keys_dir = tempfile.mkdtemp(prefix="copet_test_keys_")
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
        with open(os.path.join(_keys_dir, "jwt_private.pem"), "wb") as f:
            f.write(private_pem)
        with open(os.path.join(_keys_dir, "jwt_public.pem"), "wb") as f:
            f.write(public_pem)

    os.environ["COPET_JWT_PRIVATE_KEY_PATH"] = os.path.join(_keys_dir, "jwt_private.pem")
    os.environ["COPET_JWT_PUBLIC_KEY_PATH"] = os.path.join(_keys_dir, "jwt_public.pem")
    get_settings.cache_clear()
    reset_keys()


def auth_headers(user_id: int) -> dict[str, str]:
    _ensure_test_keys()
    return {"Authorization": f"Bearer {create_access_token(user_id)}"}


class FakePipeline:
    def __init__(self, redis: FakeRedis) -> None:
        self._redis = redis
        self._ops: list[tuple[str, tuple[Any, ...]]] = []

    def incr(self, key: str) -> FakePipeline:
        self._ops.append(("incr", (key,)))
        return self

    def expire(self, key: str, seconds: int) -> FakePipeline:
        self._ops.append(("expire", (key, seconds)))
        return self

    async def execute(self) -> list[Any]:
        results = []
        for name, args in self._ops:
            results.append(await getattr(self._redis, name)(*args))
        self._ops = []
        return results


class FakeRedis:
    """In-memory stand-in for the few redis.asyncio calls the service makes."""

    def __init__(self) -> None:
        self.store: dict[str, int] = {}
        self.ttls: dict[str, int] = {}
        self.published: list[tuple[str, str]] = []
        self.fail_publish = False

    async def incr(self, key: str) -> int:
        self.store[key] = self.store.get(key, 0) + 1
        return self.store[key]

    async def expire(self, key: str, seconds: int) -> bool:
        self.ttls[key] = seconds
        return True

    async def ttl(self, key: str) -> int:
        return self.ttls.get(key, -2)

    async def publish(self, channel: str, message: str) -> int:
        if self.fail_publish:
            raise ConnectionError("redis unavailable")
        self.published.append((channel, message))
        return 1

    async def ping(self) -> bool:
        return True

    def pipeline(self) -> FakePipeline:
        return FakePipeline(self)


@pytest.fixture
def fake_redis() -> FakeRedis:
    return FakeRedis()


@pytest_asyncio.fixture
async def db_session(tmp_path) -> AsyncGenerator[AsyncSession, None]:
    """Fresh SQLite database with the full schema, one session."""
    await init_db(f"sqlite+aiosqlite:///{tmp_path / 'copet.db'}")
    async with get_engine().begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    async for session in get_session():
        yield session
        break
    await close_db()


@pytest_asyncio.fixture
async def second_session(db_session: AsyncSession) -> AsyncGenerator[AsyncSession, None]:
    """Another session on the same database, for race scenarios."""
    async for session in get_session():
        yield session
        break


@pytest_asyncio.fixture
async def client(
    db_session: AsyncSession,
    fake_redis: FakeRedis,
    monkeypatch: pytest.MonkeyPatch,
) -> AsyncGenerator[AsyncClient, None]:
    """HTTP client against the app, sharing the test database and fake Redis."""
    _ensure_test_keys()
    monkeypatch.setattr("copet.pets.rate_limit.get_redis", lambda: fake_redis)

    app = create_app()
    app.dependency_overrides[get_optional_redis] = lambda: fake_redis

    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac


async def make_couple_with_pet(
    db: AsyncSession,
    user_a: int = USER_A,
    user_b: int = USER_B,
    created_at: datetime | None = None,
    **pet_fields: Any,
) -> Pet:
    """Insert a couple and its pet directly."""
    created_at = created_at or datetime(2026, 3, 2, 9, 0, tzinfo=timezone.utc)
    for uid in (user_a, user_b):
        if await db.get(User, uid) is None:
            db.add(User(id=uid))
    couple = Couple(user1_id=min(user_a, user_b), user2_id=max(user_a, user_b), created_at=created_at)
    db.add(couple)
    await db.flush()

    fields: dict[str, Any] = {
        "name": "Mochi",
        "species": "cat",
        "color": "orange",
        "stage": "egg",
        "hunger": 100,
        "happiness": 100,
        "energy": 100,
        "cleanliness": 100,
        "personality": dict(DEFAULT_TRAITS),
        "action_counts": {},
        "action_timestamps": {},
        "last_care_at": created_at,
        "created_at": created_at,
        "updated_at": created_at,
    }
    fields.update(pet_fields)
    pet = Pet(couple_id=couple.id, **fields)
    db.add(pet)
    await db.commit()
    return pet


@pytest_asyncio.fixture
async def pet(db_session: AsyncSession) -> Pet:
    return await make_couple_with_pet(db_session)
