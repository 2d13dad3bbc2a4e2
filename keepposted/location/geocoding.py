"""Geocoding — place search, autocomplete and reverse lookups via Nominatim."""

from __future__ import annotations

from dataclasses import dataclass

import httpx
import structlog

from keepposted.config import get_settings
from keepposted.schemas.geo import Coordinate, PlaceSuggestion

logger = structlog.get_logger()

CURRENT_LOCATION_LABEL = "Current Location"
UNKNOWN_ADDRESS = "Unknown Address"
PINNED_LOCATION = "Pinned Location"

_CITY_KEYS = ("city", "town", "village", "municipality")


@dataclass
class PlaceResult:
    """A geocoding candidate."""

    name: str
    lat: float
    lng: float
    address: str | None = None

    @property
    def coordinate(self) -> Coordinate:
        return Coordinate(self.lat, self.lng)


@dataclass
class ReversePlace:
    """The parts of a reverse-geocoded address the app cares about."""

    street: str | None = None
    city: str | None = None
    state: str | None = None
    display_name: str | None = None


async def _nominatim_get(url: str, params: dict) -> object:
    settings = get_settings()
    headers = {"User-Agent": settings.geocoder_user_agent}
    async with httpx.AsyncClient(timeout=settings.http_timeout_seconds) as client:
        resp = await client.get(url, params=params, headers=headers)
        resp.raise_for_status()
        return resp.json()


def _split_display_name(item: dict) -> tuple[str, str]:
    display = item.get("display_name") or ""
    parts = [p.strip() for p in display.split(",") if p.strip()]
    title = item.get("name") or (parts[0] if parts else "")
    rest = parts[1:] if parts and parts[0] == title else parts
    return title, ", ".join(rest)


async def search_places(query: str, limit: int | None = None) -> list[PlaceResult]:
    """Geocode a free-text query, best match first."""
    params: dict[str, str | int] = {
        "q": query,
        "format": "jsonv2",
        "limit": limit or get_settings().search_result_limit,
        "addressdetails": 1,
    }
    data = await _nominatim_get(get_settings().nominatim_search_url, params)

    results: list[PlaceResult] = []
    for item in data or []:
        title, _ = _split_display_name(item)
        results.append(
            PlaceResult(
                name=title or query,
                lat=float(item["lat"]),
                lng=float(item["lon"]),
                address=item.get("display_name"),
            )
        )
    return results


async def complete(query: str, limit: int | None = None) -> list[PlaceSuggestion]:
    """Autocomplete suggestions (title + subtitle) for a partial query."""
    params: dict[str, str | int] = {
        "q": query,
        "format": "jsonv2",
        "limit": limit or get_settings().search_result_limit,
    }
    data = await _nominatim_get(get_settings().nominatim_search_url, params)

    suggestions: list[PlaceSuggestion] = []
    for item in data or []:
        title, subtitle = _split_display_name(item)
        if title:
            suggestions.append(PlaceSuggestion(title=title, subtitle=subtitle))
    return suggestions


async def reverse_geocode(coordinate: Coordinate) -> ReversePlace | None:
    """Reverse geocode a coordinate. Returns None on failure or no match."""
    params = {
        "lat": coordinate.latitude,
        "lon": coordinate.longitude,
        "format": "jsonv2",
        "addressdetails": 1,
    }
    try:
        data = await _nominatim_get(get_settings().nominatim_reverse_url, params)
    except Exception:
        logger.warning(
            "reverse_geocode_failed",
            lat=coordinate.latitude,
            lng=coordinate.longitude,
        )
        return None

    if not isinstance(data, dict) or "error" in data:
        return None

    address = data.get("address") or {}
    city = next((address[k] for k in _CITY_KEYS if address.get(k)), None)
    return ReversePlace(
        street=address.get("road"),
        city=city,
        state=address.get("state"),
        display_name=data.get("display_name"),
    )


def place_label(place: ReversePlace | None) -> str:
    """Home-location label: "City, State", or a fixed fallback."""
    if place is None or not place.city:
        return CURRENT_LOCATION_LABEL
    if not place.state:
        return place.city
    return f"{place.city}, {place.state}"


def pin_address(place: ReversePlace | None) -> str:
    """Address line stored with a map pin."""
    if place is None:
        return PINNED_LOCATION
    city = place.city or ""
    if place.street:
        return f"{place.street}, {city}" if city else place.street
    if city:
        return f"{city}, {place.state}" if place.state else city
    return UNKNOWN_ADDRESS


class ReverseGeocoder:
    """Reverse geocoding for one caller, one request at a time.

    A second ``label_for`` while one is pending returns None without
    issuing a request.
    """

    def __init__(self) -> None:
        self.in_flight = False

    async def lookup(self, coordinate: Coordinate) -> tuple[bool, ReversePlace | None]:
        """Returns (issued, place); issued is False when the call was skipped."""
        if self.in_flight:
            logger.debug("reverse_geocode_skipped_in_flight")
            return False, None
        self.in_flight = True
        try:
            return True, await reverse_geocode(coordinate)
        finally:
            self.in_flight = False

    async def label_for(self, coordinate: Coordinate) -> str | None:
        issued, place = await self.lookup(coordinate)
        if not issued:
            return None
        return place_label(place)

    async def address_for(self, coordinate: Coordinate) -> str | None:
        issued, place = await self.lookup(coordinate)
        if not issued:
            return None
        return pin_address(place)
