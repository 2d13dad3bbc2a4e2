"""Device location — permission flow and one-shot location fixes.

``request_current_location`` never returns a coordinate. A fix, when one
arrives, lands in ``current_coordinate``; a denied permission or a failed
fix simply never fills it. Callers that need the value wait a bounded
time with ``wait_for_coordinate`` and treat ``None`` as "no location".
"""

from __future__ import annotations

import asyncio
import enum
from abc import ABC, abstractmethod
from collections.abc import Callable
from datetime import datetime, timezone

import structlog
from sqlalchemy import select
from sqlalchemy.ext.asyncio import async_sessionmaker

from keepposted.location.owntracks import PairingCredentials, generate_pairing_credentials
from keepposted.models.owntracks_credential import OwnTracksCredential
from keepposted.models.user_location import UserLocation
from keepposted.redis import device_paired_channel
from keepposted.schemas.geo import Coordinate

logger = structlog.get_logger()


class AuthorizationStatus(str, enum.Enum):
    NOT_DETERMINED = "not_determined"
    DENIED = "denied"
    AUTHORIZED = "authorized"


class LocationUnavailable(Exception):
    """No usable fix could be produced for a location request."""


AuthorizationCallback = Callable[[AuthorizationStatus], None]


class LocationSource(ABC):
    """Where device fixes and location permission come from."""

    @abstractmethod
    async def authorization_status(self, user_id: str) -> AuthorizationStatus:
        ...

    @abstractmethod
    async def request_authorization(
        self, user_id: str, on_change: AuthorizationCallback
    ) -> PairingCredentials | None:
        """Ask for permission. The outcome is reported through ``on_change``."""
        ...

    @abstractmethod
    async def request_location(self, user_id: str) -> Coordinate:
        """Return one fix or raise ``LocationUnavailable``."""
        ...


class OwnTracksLocationSource(LocationSource):
    """Location from the user's phone running OwnTracks in HTTP mode.

    Permission maps onto device pairing: no credentials, or credentials the
    phone never used, is "not determined"; only revoked credentials is
    "denied"; an active credential the phone has checked in with is
    "authorized".
    """

    def __init__(
        self,
        session_factory: async_sessionmaker,
        redis_client,
        endpoint_url: str,
        max_age_seconds: int = 600,
    ):
        self.session_factory = session_factory
        self.redis_client = redis_client
        self.endpoint_url = endpoint_url
        self.max_age_seconds = max_age_seconds
        # user_id -> task waiting for that user's device to check in
        self._watchers: dict[str, asyncio.Task] = {}

    async def authorization_status(self, user_id: str) -> AuthorizationStatus:
        async with self.session_factory() as session:
            result = await session.execute(
                select(OwnTracksCredential).where(OwnTracksCredential.user_id == user_id)
            )
            creds = result.scalars().all()

        active = [c for c in creds if c.is_active]
        if active:
            if any(c.last_seen_at is not None for c in active):
                return AuthorizationStatus.AUTHORIZED
            return AuthorizationStatus.NOT_DETERMINED
        if creds:
            return AuthorizationStatus.DENIED
        return AuthorizationStatus.NOT_DETERMINED

    async def request_authorization(
        self, user_id: str, on_change: AuthorizationCallback
    ) -> PairingCredentials:
        channel = device_paired_channel(user_id)
        pubsub = self.redis_client.pubsub()
        await pubsub.subscribe(channel)

        try:
            async with self.session_factory() as session:
                creds = await generate_pairing_credentials(session, user_id, self.endpoint_url)
        except Exception:
            await pubsub.unsubscribe(channel)
            await pubsub.aclose()
            raise

        # Fresh credentials replace the old ones, so only one watcher per user
        previous = self._watchers.pop(user_id, None)
        if previous is not None:
            previous.cancel()
        task = asyncio.create_task(self._wait_for_pairing(pubsub, user_id, on_change))
        self._watchers[user_id] = task
        task.add_done_callback(lambda t: self._forget_watcher(user_id, t))
        return creds

    def _forget_watcher(self, user_id: str, task: asyncio.Task) -> None:
        if self._watchers.get(user_id) is task:
            del self._watchers[user_id]

    async def _wait_for_pairing(self, pubsub, user_id: str, on_change) -> None:
        channel = device_paired_channel(user_id)
        try:
            async for message in pubsub.listen():
                if message["type"] != "message":
                    continue
                logger.info("owntracks_device_paired", user_id=user_id)
                on_change(AuthorizationStatus.AUTHORIZED)
                return
        except asyncio.CancelledError:
            pass
        finally:
            await pubsub.unsubscribe(channel)
            await pubsub.aclose()

    async def request_location(self, user_id: str) -> Coordinate:
        async with self.session_factory() as session:
            result = await session.execute(
                select(UserLocation).where(UserLocation.user_id == user_id)
            )
            loc = result.scalar_one_or_none()

        if loc is None:
            raise LocationUnavailable("No location reported by the device yet")

        age_s = (datetime.now(timezone.utc) - loc.updated_at).total_seconds()
        if age_s > self.max_age_seconds:
            raise LocationUnavailable(f"Last fix is {round(age_s)}s old")

        return Coordinate(loc.latitude, loc.longitude)

    async def close(self) -> None:
        tasks = list(self._watchers.values())
        for task in tasks:
            task.cancel()
        if tasks:
            await asyncio.gather(*tasks, return_exceptions=True)


class DeviceLocation:
    """One-shot "where am I" for a single user."""

    def __init__(self, source: LocationSource, user_id: str):
        self.source = source
        self.user_id = user_id
        self.authorization_status = AuthorizationStatus.NOT_DETERMINED
        self.current_coordinate: Coordinate | None = None
        self.pairing: PairingCredentials | None = None
        self._fix_ready = asyncio.Event()
        self._fix_task: asyncio.Task | None = None

    async def request_current_location(self) -> None:
        self._fix_ready.clear()
        try:
            status = await self.source.authorization_status(self.user_id)
        except Exception as e:
            logger.warning("device_authorization_check_failed", user_id=self.user_id, error=str(e))
            return
        self.authorization_status = status

        if status is AuthorizationStatus.NOT_DETERMINED:
            if self.pairing is not None:
                # Already asked; the outcome arrives through on_authorization_changed
                logger.info("device_authorization_pending", user_id=self.user_id)
                return
            try:
                self.pairing = await self.source.request_authorization(
                    self.user_id, self.on_authorization_changed
                )
            except Exception as e:
                logger.warning("device_authorization_request_failed", user_id=self.user_id, error=str(e))
        elif status is AuthorizationStatus.AUTHORIZED:
            self._request_fix()
        else:
            logger.info("device_location_denied", user_id=self.user_id)

    def on_authorization_changed(self, status: AuthorizationStatus) -> None:
        self.authorization_status = status
        if status is AuthorizationStatus.AUTHORIZED:
            self._request_fix()

    def _request_fix(self) -> None:
        self._fix_task = asyncio.create_task(self._fix())

    async def _fix(self) -> None:
        try:
            coordinate = await self.source.request_location(self.user_id)
        except Exception as e:
            logger.warning("device_location_error", user_id=self.user_id, error=str(e))
            return
        self.current_coordinate = coordinate
        self._fix_ready.set()

    async def wait_for_coordinate(self, timeout: float) -> Coordinate | None:
        try:
            await asyncio.wait_for(self._fix_ready.wait(), timeout)
        except asyncio.TimeoutError:
            return None
        return self.current_coordinate
