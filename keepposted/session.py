"""Per-user session state.

One ``SessionState`` is created by whoever drives the app and handed to
every component that reads or writes the signed-in user, the home
location or the activity log. It is only mutated from the event loop.
"""

from __future__ import annotations

import uuid
from dataclasses import dataclass, field
from datetime import datetime, timezone

from keepposted.config import get_settings
from keepposted.schemas.geo import Coordinate


@dataclass
class SignedInUser:
    """Identity returned by the identity provider."""

    uid: str
    email: str | None = None
    id_token: str | None = None
    display_name: str | None = None


@dataclass
class ActivityEntry:
    """A session-only line on the home screen's recent activity list."""

    title: str
    timestamp: datetime = field(default_factory=lambda: datetime.now(timezone.utc))
    id: uuid.UUID = field(default_factory=uuid.uuid4)

    def time_ago(self, now: datetime | None = None) -> str:
        now = now or datetime.now(timezone.utc)
        seconds = max(0, int((now - self.timestamp).total_seconds()))
        if seconds < 60:
            return "Just now"
        if seconds < 3600:
            return f"{seconds // 60}m ago"
        if seconds < 86400:
            return f"{seconds // 3600}h ago"
        return f"{seconds // 86400}d ago"


class SessionState:
    """Signed-in identity plus the profile fields derived from it."""

    def __init__(self, default_location_name: str | None = None) -> None:
        self.default_location_name = (
            default_location_name or get_settings().default_location_name
        )
        self.user: SignedInUser | None = None
        self.full_name: str = ""
        self.location_display_name: str = self.default_location_name
        self.home_coordinate: Coordinate | None = None
        self.activities: list[ActivityEntry] = []

    @property
    def is_signed_in(self) -> bool:
        return self.user is not None

    @property
    def user_id(self) -> str | None:
        return self.user.uid if self.user else None

    @property
    def email(self) -> str | None:
        return self.user.email if self.user else None

    @property
    def sender_name(self) -> str:
        """Name printed in a postcard's "from" line."""
        return self.full_name or self.email or "Me"

    @property
    def profile_name(self) -> str:
        return self.full_name or self.email or "Traveler"

    def bind(self, user: SignedInUser) -> None:
        """Attach ``user``; switching to a different uid drops the old user's state."""
        if self.user is not None and self.user.uid != user.uid:
            self.clear()
        self.user = user
        if user.display_name and not self.full_name:
            self.full_name = user.display_name

    def set_home(self, name: str, coordinate: Coordinate | None) -> None:
        self.location_display_name = name
        self.home_coordinate = coordinate

    def add_activity(self, title: str) -> ActivityEntry:
        entry = ActivityEntry(title=title)
        self.activities.insert(0, entry)
        return entry

    def clear(self) -> None:
        """Forget the signed-in user and everything derived from it."""
        self.user = None
        self.full_name = ""
        self.location_display_name = self.default_location_name
        self.home_coordinate = None
        self.activities.clear()
