"""Shared test fixtures for the Keep Me Posted test suite.

Provides mock database sessions, Redis clients (with an in-memory pub/sub)
and HTTP client patching so tests run without Postgres, Redis or network.
"""

from __future__ import annotations

import asyncio
import uuid
from contextlib import asynccontextmanager
from datetime import datetime, timezone
from unittest.mock import AsyncMock, MagicMock, patch

import pytest

from keepposted.models.owntracks_credential import OwnTracksCredential
from keepposted.models.saved_place import SavedPlace
from keepposted.models.user_location import UserLocation
from keepposted.models.user_profile import UserProfile


# ---------------------------------------------------------------------------
# Database mocks
# ---------------------------------------------------------------------------


@pytest.fixture
def mock_db_session():
    """Mock async SQLAlchemy session.

    Supports the common patterns used in the stores:
        session.execute(stmt) -> result
        session.add(obj)
        session.merge(obj)
        session.commit()
    """
    session = AsyncMock()
    session.add = MagicMock()
    # Default: execute returns a result with no rows
    session.execute = AsyncMock(return_value=make_result())
    return session


@pytest.fixture
def mock_session_factory(mock_db_session):
    """Mock async session factory compatible with ``async with factory() as session:``."""

    @asynccontextmanager
    async def _session_ctx():
        yield mock_db_session

    factory = MagicMock(side_effect=lambda: _session_ctx())
    return factory


def make_result(*, one=None, rows=None):
    """A result object answering scalar_one_or_none() and scalars().all()."""
    result = MagicMock()
    result.scalar_one_or_none.return_value = one
    result.scalars.return_value.all.return_value = rows or []
    return result


# ---------------------------------------------------------------------------
# Redis mock
# ---------------------------------------------------------------------------


class FakePubSub:
    """In-memory stand-in for ``redis.asyncio.client.PubSub``."""

    def __init__(self):
        self.queue: asyncio.Queue = asyncio.Queue()
        self.channels: set[str] = set()
        self.closed = False

    async def subscribe(self, *channels):
        self.channels.update(channels)

    async def unsubscribe(self, *channels):
        self.channels.difference_update(channels)

    async def aclose(self):
        self.closed = True

    async def listen(self):
        yield {"type": "subscribe", "channel": next(iter(self.channels), None), "data": 1}
        while True:
            yield await self.queue.get()

    def push(self, data="changed"):
        self.queue.put_nowait({"type": "message", "data": data})


@pytest.fixture
def fake_pubsub():
    return FakePubSub()


@pytest.fixture
def mock_redis(fake_pubsub):
    """Mock async Redis client; publish() is delivered to ``fake_pubsub``."""
    redis = AsyncMock()
    redis.pubsub = MagicMock(return_value=fake_pubsub)
    redis.publish = AsyncMock(side_effect=lambda channel, data: fake_pubsub.push(data))
    return redis


# ---------------------------------------------------------------------------
# HTTP mock
# ---------------------------------------------------------------------------


def make_response(status_code=200, json_data=None, text=""):
    resp = MagicMock()
    resp.status_code = status_code
    resp.json.return_value = json_data
    resp.text = text
    resp.raise_for_status = MagicMock()
    return resp


def patch_httpx(target: str, *, get=None, post=None):
    """Patch ``<target>.httpx.AsyncClient`` with a client returning canned responses.

    ``get``/``post`` are passed as the side_effect/return_value of the
    matching method: a response, a list of responses, or an exception.
    """
    patcher = patch(f"{target}.httpx.AsyncClient")
    mock_client_cls = patcher.start()
    mock_client = AsyncMock()
    for name, value in (("get", get), ("post", post)):
        method = getattr(mock_client, name)
        if isinstance(value, (list, Exception)):
            method.side_effect = value
        elif value is not None:
            method.return_value = value
    mock_client.__aenter__ = AsyncMock(return_value=mock_client)
    mock_client.__aexit__ = AsyncMock(return_value=False)
    mock_client_cls.return_value = mock_client
    return patcher, mock_client


# ---------------------------------------------------------------------------
# Model factories
# ---------------------------------------------------------------------------


@pytest.fixture
def sample_user_id():
    """Return a stable identity-provider uid for the test user."""
    return "uid_" + uuid.uuid4().hex[:20]


@pytest.fixture
def make_profile():
    def _make(
        uid: str = "uid_ada",
        email: str = "ada@example.com",
        full_name: str | None = "Ada Lovelace",
        location_name: str | None = None,
        location_lat: float | None = None,
        location_lng: float | None = None,
    ) -> UserProfile:
        return UserProfile(
            uid=uid,
            email=email,
            full_name=full_name,
            location_name=location_name,
            location_lat=location_lat,
            location_lng=location_lng,
            date_created=datetime.now(timezone.utc),
        )

    return _make


@pytest.fixture
def make_saved_place():
    def _make(
        user_id: str = "uid_ada",
        name: str = "Cafe",
        address: str | None = "Rue de Rivoli, Paris",
        latitude: float = 48.8566,
        longitude: float = 2.3522,
        date_added: datetime | None = None,
    ) -> SavedPlace:
        return SavedPlace(
            id=uuid.uuid4(),
            user_id=user_id,
            name=name,
            address=address,
            latitude=latitude,
            longitude=longitude,
            date_added=date_added or datetime.now(timezone.utc),
        )

    return _make


@pytest.fixture
def make_user_location():
    def _make(
        user_id: str = "uid_ada",
        latitude: float = 48.8566,
        longitude: float = 2.3522,
        updated_at: datetime | None = None,
    ) -> UserLocation:
        now = datetime.now(timezone.utc)
        return UserLocation(
            user_id=user_id,
            latitude=latitude,
            longitude=longitude,
            source="owntracks",
            updated_at=updated_at or now,
            created_at=now,
        )

    return _make


@pytest.fixture
def make_credential():
    def _make(
        user_id: str = "uid_ada",
        is_active: bool = True,
        last_seen_at: datetime | None = None,
        password_hash: str = "",
    ) -> OwnTracksCredential:
        return OwnTracksCredential(
            id=uuid.uuid4(),
            user_id=user_id,
            username="kmp_test",
            password_hash=password_hash,
            is_active=is_active,
            last_seen_at=last_seen_at,
            created_at=datetime.now(timezone.utc),
        )

    return _make


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


async def settle(rounds: int = 5) -> None:
    """Let spawned tasks run a few scheduling rounds."""
    for _ in range(rounds):
        await asyncio.sleep(0)
