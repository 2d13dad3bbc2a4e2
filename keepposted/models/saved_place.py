"""Saved place model: map pins, the ``users/{uid}/saved_places`` collection."""

from __future__ import annotations

import uuid
from datetime import datetime, timezone

from sqlalchemy import DateTime, Float, ForeignKey, String
from sqlalchemy.orm import Mapped, mapped_column

from keepposted.models.base import Base
from keepposted.schemas.documents import SavedPlaceDocument
from keepposted.schemas.geo import Coordinate


class SavedPlace(Base):
    __tablename__ = "saved_places"

    id: Mapped[uuid.UUID] = mapped_column(primary_key=True, default=uuid.uuid4)
    user_id: Mapped[str] = mapped_column(ForeignKey("users.uid"), index=True)
    name: Mapped[str] = mapped_column(String, nullable=False)
    address: Mapped[str | None] = mapped_column(String, default=None)
    latitude: Mapped[float] = mapped_column(Float, nullable=False)
    longitude: Mapped[float] = mapped_column(Float, nullable=False)
    date_added: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=lambda: datetime.now(timezone.utc)
    )

    @property
    def coordinate(self) -> Coordinate:
        return Coordinate(self.latitude, self.longitude)

    def to_document(self) -> SavedPlaceDocument:
        return SavedPlaceDocument(
            id=str(self.id) if self.id else None,
            name=self.name,
            address=self.address,
            latitude=self.latitude,
            longitude=self.longitude,
            date_added=self.date_added,
        )
