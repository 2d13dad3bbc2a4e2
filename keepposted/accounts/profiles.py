"""Profile store: reads and writes of ``users/{uid}`` documents."""

from __future__ import annotations

import structlog
from sqlalchemy import select
from sqlalchemy.ext.asyncio import async_sessionmaker

from keepposted.models.user_profile import UserProfile
from keepposted.schemas.documents import UserProfileDocument
from keepposted.schemas.geo import Coordinate

logger = structlog.get_logger()


class ProfileNotFound(LookupError):
    pass


class ProfileStore:
    def __init__(self, session_factory: async_sessionmaker):
        self.session_factory = session_factory

    async def get(self, uid: str) -> UserProfileDocument | None:
        async with self.session_factory() as session:
            result = await session.execute(select(UserProfile).where(UserProfile.uid == uid))
            profile = result.scalar_one_or_none()
            return profile.to_document() if profile else None

    async def exists(self, uid: str) -> bool:
        async with self.session_factory() as session:
            result = await session.execute(
                select(UserProfile.uid).where(UserProfile.uid == uid)
            )
            return result.scalar_one_or_none() is not None

    async def put(self, doc: UserProfileDocument) -> None:
        """Write the whole document, replacing any existing one.

        A document without a home location keeps the one already stored.
        """
        profile = UserProfile.from_document(doc)
        async with self.session_factory() as session:
            if doc.location_name is None:
                result = await session.execute(select(UserProfile).where(UserProfile.uid == doc.uid))
                existing = result.scalar_one_or_none()
                if existing is not None and existing.location_name is not None:
                    profile.set_home(existing.location_name, existing.home_coordinate)
            await session.merge(profile)
            await session.commit()
        logger.info("profile_written", user_id=doc.uid)

    async def create_if_missing(self, doc: UserProfileDocument) -> bool:
        """Check-then-create. Two first sign-ins racing both write; last one wins."""
        if await self.exists(doc.uid):
            return False
        await self.put(doc)
        return True

    async def update_home(self, uid: str, name: str, coordinate: Coordinate | None) -> None:
        async with self.session_factory() as session:
            result = await session.execute(select(UserProfile).where(UserProfile.uid == uid))
            profile = result.scalar_one_or_none()
            if profile is None:
                raise ProfileNotFound(f"No profile document for {uid}")
            profile.set_home(name, coordinate)
            await session.commit()
        logger.info("profile_home_updated", user_id=uid)
