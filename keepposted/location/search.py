"""Location search — autocomplete suggestions and suggestion selection.

Every keystroke calls ``search``. Only the newest query may publish
suggestions: an older completion is cancelled, and if its response is
already past the await point it is dropped by the generation check.
"""

from __future__ import annotations

import asyncio
from collections.abc import AsyncIterator

import structlog

from keepposted.location import geocoding
from keepposted.schemas.geo import Coordinate, PlaceSuggestion, Region

logger = structlog.get_logger()


class LocationSearch:
    """Search state for one screen: query, suggestions and the picked point."""

    def __init__(self) -> None:
        self.query: str = ""
        self.suggestions: list[PlaceSuggestion] = []
        self.selected_coordinate: Coordinate | None = None
        self._generation = 0
        self._in_flight: asyncio.Task | None = None
        self._observers: set[asyncio.Queue] = set()

    # --- Suggestions ---

    def search(self, query_text: str) -> asyncio.Task | None:
        """Start (or supersede) an autocomplete query.

        Returns the completion task, or None when the query is blank.
        """
        self._generation += 1
        generation = self._generation
        self._cancel_in_flight()

        trimmed = query_text.strip()
        self.query = trimmed
        if not trimmed:
            self._publish([])
            return None

        self._in_flight = asyncio.create_task(self._complete(generation, trimmed))
        return self._in_flight

    async def _complete(self, generation: int, query: str) -> list[PlaceSuggestion]:
        try:
            results = await geocoding.complete(query)
        except Exception as e:
            logger.warning("location_search_failed", query=query, error=str(e))
            return self.suggestions

        if generation != self._generation:
            logger.debug("location_search_stale_response", query=query)
            return self.suggestions

        self._publish(results)
        return results

    def _cancel_in_flight(self) -> None:
        if self._in_flight is not None and not self._in_flight.done():
            self._in_flight.cancel()
        self._in_flight = None

    def clear_suggestions(self) -> None:
        """Hide the list (after a pick) without touching the query."""
        self._publish([])

    def _publish(self, suggestions: list[PlaceSuggestion]) -> None:
        self.suggestions = list(suggestions)
        for queue in self._observers:
            queue.put_nowait(self.suggestions)

    async def updates(self) -> AsyncIterator[list[PlaceSuggestion]]:
        """Yield the suggestion list now and after every change."""
        queue: asyncio.Queue = asyncio.Queue()
        self._observers.add(queue)
        try:
            yield self.suggestions
            while True:
                yield await queue.get()
        finally:
            self._observers.discard(queue)

    # --- Selection ---

    async def select_location(self, suggestion: PlaceSuggestion) -> Region | None:
        """Resolve a suggestion to its first match and center a region on it."""
        try:
            results = await geocoding.search_places(suggestion.query_text, limit=1)
        except Exception as e:
            logger.warning(
                "location_select_failed", query=suggestion.query_text, error=str(e)
            )
            return None

        if not results:
            return None

        coordinate = results[0].coordinate
        self.selected_coordinate = coordinate
        return Region(center=coordinate)

    def use_coordinate(self, coordinate: Coordinate) -> None:
        """Make a device fix the point the confirm action will use."""
        self.selected_coordinate = coordinate

    def confirm(self, fallback: Coordinate) -> Coordinate:
        return self.selected_coordinate or fallback

    @staticmethod
    def query_text_for(suggestion: PlaceSuggestion) -> str:
        return suggestion.query_text
