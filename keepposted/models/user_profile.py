"""User profile model — one row per identity, the ``users/{uid}`` document."""

from __future__ import annotations

from datetime import datetime, timezone

from sqlalchemy import DateTime, Float, String
from sqlalchemy.orm import Mapped, mapped_column

from keepposted.models.base import Base
from keepposted.schemas.documents import UserProfileDocument
from keepposted.schemas.geo import Coordinate


class UserProfile(Base):
    __tablename__ = "users"

    # External auth identifier, not generated here
    uid: Mapped[str] = mapped_column(String, primary_key=True)
    email: Mapped[str] = mapped_column(String, nullable=False)
    full_name: Mapped[str | None] = mapped_column(String, default=None)
    location_name: Mapped[str | None] = mapped_column(String, default=None)
    location_lat: Mapped[float | None] = mapped_column(Float, default=None)
    location_lng: Mapped[float | None] = mapped_column(Float, default=None)
    date_created: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=lambda: datetime.now(timezone.utc)
    )

    @property
    def home_coordinate(self) -> Coordinate | None:
        if self.location_lat is None or self.location_lng is None:
            return None
        return Coordinate(self.location_lat, self.location_lng)

    def set_home(self, name: str, coordinate: Coordinate | None) -> None:
        """Update the home location; lat/lng are always written as a pair."""
        self.location_name = name
        if coordinate is None:
            self.location_lat = None
            self.location_lng = None
        else:
            self.location_lat = coordinate.latitude
            self.location_lng = coordinate.longitude

    def to_document(self) -> UserProfileDocument:
        return UserProfileDocument(
            uid=self.uid,
            email=self.email,
            full_name=self.full_name,
            date_created=self.date_created,
            location_name=self.location_name,
            location_lat=self.location_lat,
            location_lng=self.location_lng,
        )

    @classmethod
    def from_document(cls, doc: UserProfileDocument) -> UserProfile:
        return cls(
            uid=doc.uid,
            email=doc.email,
            full_name=doc.full_name,
            date_created=doc.date_created,
            location_name=doc.location_name,
            location_lat=doc.location_lat,
            location_lng=doc.location_lng,
        )
