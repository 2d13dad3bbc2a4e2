"""Wire shapes of the two persisted document types.

Field names are camelCase on the wire so that any client sharing the
backing store reads and writes the same documents:

- ``users/{uid}``: uid, email, fullName, dateCreated, locationName,
  locationLat, locationLng
- ``users/{uid}/saved_places/{placeId}``: name, address, latitude,
  longitude, dateAdded

Absent values are omitted rather than written as null.
"""

from __future__ import annotations

from datetime import datetime, timezone

from pydantic import BaseModel, ConfigDict, Field, model_validator


def _now() -> datetime:
    return datetime.now(timezone.utc)


class UserProfileDocument(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    uid: str
    email: str
    full_name: str | None = Field(default=None, alias="fullName")
    date_created: datetime = Field(default_factory=_now, alias="dateCreated")
    location_name: str | None = Field(default=None, alias="locationName")
    location_lat: float | None = Field(default=None, alias="locationLat")
    location_lng: float | None = Field(default=None, alias="locationLng")

    @model_validator(mode="after")
    def _home_coordinate_is_a_pair(self) -> UserProfileDocument:
        if (self.location_lat is None) != (self.location_lng is None):
            raise ValueError("locationLat and locationLng must be set together")
        return self

    def to_wire(self) -> dict:
        return self.model_dump(by_alias=True, exclude_none=True, mode="json")


class SavedPlaceDocument(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    # Document id, assigned by the store; never part of the document body
    id: str | None = Field(default=None, exclude=True)
    name: str
    address: str | None = None
    latitude: float
    longitude: float
    date_added: datetime = Field(default_factory=_now, alias="dateAdded")

    def to_wire(self) -> dict:
        return self.model_dump(by_alias=True, exclude_none=True, mode="json")
