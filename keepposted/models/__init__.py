"""SQLAlchemy models."""

from keepposted.models.base import Base
from keepposted.models.owntracks_credential import OwnTracksCredential
from keepposted.models.saved_place import SavedPlace
from keepposted.models.user_location import UserLocation
from keepposted.models.user_profile import UserProfile

__all__ = [
    "Base",
    "OwnTracksCredential",
    "SavedPlace",
    "UserLocation",
    "UserProfile",
]
