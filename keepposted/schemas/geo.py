"""Geographic value types shared by search, geocoding and saved places."""

from __future__ import annotations

from dataclasses import dataclass

# Span used when a picked suggestion is centered on the map
DEFAULT_SPAN_DEG = 0.03


@dataclass(frozen=True)
class Coordinate:
    """A latitude/longitude pair in decimal degrees."""

    latitude: float
    longitude: float


@dataclass(frozen=True)
class Region:
    """A map viewport: a center and a span in degrees."""

    center: Coordinate
    latitude_delta: float = DEFAULT_SPAN_DEG
    longitude_delta: float = DEFAULT_SPAN_DEG


@dataclass(frozen=True)
class PlaceSuggestion:
    """An autocomplete result for a free-text location query."""

    title: str
    subtitle: str = ""

    @property
    def query_text(self) -> str:
        return f"{self.title} {self.subtitle}".strip()
