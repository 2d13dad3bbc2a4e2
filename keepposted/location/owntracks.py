"""OwnTracks protocol handling: device pairing and incoming location fixes."""

from __future__ import annotations

import secrets
import string
from dataclasses import dataclass
from datetime import datetime, timezone

import bcrypt
import structlog
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from keepposted.models.owntracks_credential import OwnTracksCredential
from keepposted.models.user_location import UserLocation
from keepposted.redis import device_paired_channel

logger = structlog.get_logger()


@dataclass
class PairingCredentials:
    """HTTP-mode login the user types into the OwnTracks app."""

    username: str
    password: str
    endpoint_url: str

    @property
    def setup_instructions(self) -> str:
        return (
            "Install OwnTracks from the Play Store (Android) or App Store (iOS), "
            "then configure:\n"
            "1. Open Settings → Connection\n"
            "2. Mode: HTTP\n"
            f"3. URL: {self.endpoint_url}\n"
            f"4. Username: {self.username}\n"
            f"5. Password: {self.password}"
        )


@dataclass
class CheckIn:
    """Result of authenticating a device request."""

    user_id: str
    first_check_in: bool


async def generate_pairing_credentials(
    session: AsyncSession,
    user_id: str,
    endpoint_url: str,
) -> PairingCredentials:
    """Create fresh OwnTracks credentials, deactivating any active ones."""
    suffix = "".join(
        secrets.choice(string.ascii_lowercase + string.digits) for _ in range(4)
    )
    username = f"kmp_{suffix}"
    password = "".join(
        secrets.choice(string.ascii_letters + string.digits) for _ in range(12)
    )
    password_hash = bcrypt.hashpw(
        password.encode("utf-8"), bcrypt.gensalt()
    ).decode("utf-8")

    result = await session.execute(
        select(OwnTracksCredential).where(
            OwnTracksCredential.user_id == user_id,
            OwnTracksCredential.is_active == True,  # noqa: E712
        )
    )
    existing = result.scalar_one_or_none()
    if existing:
        existing.is_active = False
        await session.flush()

    session.add(
        OwnTracksCredential(
            user_id=user_id,
            username=username,
            password_hash=password_hash,
        )
    )
    await session.commit()
    logger.info("owntracks_pairing_generated", user_id=user_id, username=username)

    return PairingCredentials(
        username=username, password=password, endpoint_url=endpoint_url
    )


async def authenticate_owntracks(
    session: AsyncSession,
    username: str,
    password: str,
) -> CheckIn | None:
    """Verify OwnTracks credentials and record the check-in."""
    result = await session.execute(
        select(OwnTracksCredential).where(
            OwnTracksCredential.username == username,
            OwnTracksCredential.is_active == True,  # noqa: E712
        )
    )
    cred = result.scalar_one_or_none()
    if cred is None:
        return None

    if not bcrypt.checkpw(password.encode("utf-8"), cred.password_hash.encode("utf-8")):
        return None

    first_check_in = cred.last_seen_at is None
    cred.last_seen_at = datetime.now(timezone.utc)
    await session.commit()

    return CheckIn(user_id=str(cred.user_id), first_check_in=first_check_in)


async def upsert_user_location(
    session: AsyncSession,
    user_id: str,
    payload: dict,
) -> UserLocation:
    """Insert or update the user's latest location from an OwnTracks payload."""
    now = datetime.now(timezone.utc)

    result = await session.execute(
        select(UserLocation).where(UserLocation.user_id == user_id)
    )
    loc = result.scalar_one_or_none()

    if loc is None:
        loc = UserLocation(
            user_id=user_id,
            latitude=payload["lat"],
            longitude=payload["lon"],
            accuracy_m=payload.get("acc"),
            source="owntracks",
            updated_at=now,
            created_at=now,
        )
        session.add(loc)
    else:
        loc.latitude = payload["lat"]
        loc.longitude = payload["lon"]
        loc.accuracy_m = payload.get("acc")
        loc.source = "owntracks"
        loc.updated_at = now

    await session.commit()
    return loc


async def announce_pairing(redis_client, user_id: str) -> None:
    """Tell waiting location requests that the device is now authorized."""
    await redis_client.publish(device_paired_channel(user_id), "authorized")


async def handle_owntracks_publish(
    session: AsyncSession,
    user_id: str,
    payload: dict,
) -> list[dict]:
    """Process an OwnTracks POST and return response commands."""
    msg_type = payload.get("_type")

    if msg_type == "location":
        if "lat" not in payload or "lon" not in payload:
            logger.warning("owntracks_location_missing_coordinates", user_id=user_id)
            return []
        await upsert_user_location(session, user_id, payload)
        logger.info("owntracks_location_stored", user_id=user_id)
    else:
        logger.debug("owntracks_message_ignored", user_id=user_id, type=msg_type)

    # OwnTracks expects a JSON array; this service never sends commands back
    return []
