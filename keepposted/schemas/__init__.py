"""Pydantic schemas and value types."""

from keepposted.schemas.accounts import AuthResult
from keepposted.schemas.common import HealthResponse
from keepposted.schemas.documents import SavedPlaceDocument, UserProfileDocument
from keepposted.schemas.geo import Coordinate, PlaceSuggestion, Region

__all__ = [
    "AuthResult",
    "Coordinate",
    "HealthResponse",
    "PlaceSuggestion",
    "Region",
    "SavedPlaceDocument",
    "UserProfileDocument",
]
