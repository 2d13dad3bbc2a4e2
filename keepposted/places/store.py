"""Saved places — per-user map pins with a live, newest-first list.

The list is push-updated: every committed write publishes on the user's
``saved_places:{uid}`` channel and each subscriber re-reads the
collection. ``create`` does not wait for the write; the pin shows up once
the change notification comes back through the subscription.
"""

from __future__ import annotations

import asyncio
import uuid
from collections.abc import AsyncIterator
from datetime import datetime, timezone

import structlog
from sqlalchemy import select
from sqlalchemy.ext.asyncio import async_sessionmaker

from keepposted.background import BackgroundTasks
from keepposted.location import geocoding
from keepposted.models.saved_place import SavedPlace
from keepposted.redis import saved_places_channel
from keepposted.schemas.documents import SavedPlaceDocument
from keepposted.schemas.geo import Coordinate

logger = structlog.get_logger()


class SavedPlaces:
    """Saved-place list for the map screen."""

    def __init__(self, session_factory: async_sessionmaker, redis_client):
        self.session_factory = session_factory
        self.redis_client = redis_client
        self.user_id: str | None = None
        self.places: list[SavedPlaceDocument] = []
        self._subscription: asyncio.Task | None = None
        self._observers: set[asyncio.Queue] = set()
        self._writes = BackgroundTasks()

    def initialize(self, user_id: str | None) -> None:
        """Bind to a user and start the live subscription."""
        if not user_id:
            return
        if user_id == self.user_id and self._subscription is not None:
            return
        self._release()
        self.user_id = user_id
        self._publish([])
        self.subscribe()

    def subscribe(self) -> asyncio.Task | None:
        if self.user_id is None:
            return None
        if self._subscription is None or self._subscription.done():
            self._subscription = asyncio.create_task(self._listen(self.user_id))
        return self._subscription

    def _release(self) -> None:
        if self._subscription is not None:
            self._subscription.cancel()
            self._subscription = None

    async def close(self) -> None:
        task = self._subscription
        self._release()
        if task is not None:
            await asyncio.gather(task, return_exceptions=True)
        await self._writes.drain()

    # --- Reads ---

    async def fetch(self, user_id: str) -> list[SavedPlaceDocument]:
        async with self.session_factory() as session:
            result = await session.execute(
                select(SavedPlace)
                .where(SavedPlace.user_id == user_id)
                .order_by(SavedPlace.date_added.desc())
            )
            return [p.to_document() for p in result.scalars().all()]

    async def _refresh(self, user_id: str) -> None:
        places = await self.fetch(user_id)
        # A rebind may have happened while the query ran
        if user_id == self.user_id:
            self._publish(places)

    async def _listen(self, user_id: str) -> None:
        channel = saved_places_channel(user_id)
        pubsub = self.redis_client.pubsub()
        await pubsub.subscribe(channel)
        logger.info("saved_places_subscribed", user_id=user_id)
        try:
            await self._refresh(user_id)
            async for message in pubsub.listen():
                if message["type"] != "message":
                    continue
                await self._refresh(user_id)
        except asyncio.CancelledError:
            pass
        except Exception as e:
            logger.warning("saved_places_subscription_failed", user_id=user_id, error=str(e))
        finally:
            await pubsub.unsubscribe(channel)
            await pubsub.aclose()
            logger.info("saved_places_unsubscribed", user_id=user_id)

    def _publish(self, places: list[SavedPlaceDocument]) -> None:
        self.places = list(places)
        for queue in self._observers:
            queue.put_nowait(self.places)

    async def updates(self) -> AsyncIterator[list[SavedPlaceDocument]]:
        """Yield the list now and after every change."""
        queue: asyncio.Queue = asyncio.Queue()
        self._observers.add(queue)
        try:
            yield self.places
            while True:
                yield await queue.get()
        finally:
            self._observers.discard(queue)

    # --- Writes ---

    def create(
        self, name: str, address: str | None, coordinate: Coordinate
    ) -> asyncio.Task | None:
        """Add a pin in the background. Returns the write task, or None if unbound."""
        if self.user_id is None:
            logger.warning("saved_place_create_without_user")
            return None

        place = SavedPlace(
            id=uuid.uuid4(),
            user_id=self.user_id,
            name=name,
            address=address,
            latitude=coordinate.latitude,
            longitude=coordinate.longitude,
            date_added=datetime.now(timezone.utc),
        )
        return self._writes.spawn(
            self._insert(place), "saved_place_create", user_id=self.user_id
        )

    async def _insert(self, place: SavedPlace) -> SavedPlaceDocument:
        async with self.session_factory() as session:
            session.add(place)
            await session.commit()

        await self.redis_client.publish(saved_places_channel(place.user_id), str(place.id))
        logger.info("saved_place_created", user_id=place.user_id, place_id=str(place.id))
        return place.to_document()

    async def pin_center(self, name: str, center: Coordinate) -> asyncio.Task | None:
        """Pin the map center, using its reverse-geocoded address."""
        place = await geocoding.reverse_geocode(center)
        return self.create(name, geocoding.pin_address(place), center)
