"""Tests for autocomplete search and suggestion selection."""

from __future__ import annotations

import asyncio
from unittest.mock import AsyncMock, patch

import pytest

from keepposted.location.geocoding import PlaceResult
from keepposted.location.search import LocationSearch
from keepposted.schemas.geo import Coordinate, PlaceSuggestion, Region

GEOCODING = "keepposted.location.search.geocoding"

PARIS = PlaceSuggestion("Paris", "France")


class TestSearch:
    @pytest.mark.asyncio
    async def test_blank_query_clears_without_provider_call(self):
        searcher = LocationSearch()
        searcher.suggestions = [PARIS]

        with patch(f"{GEOCODING}.complete", new_callable=AsyncMock) as mock_complete:
            task = searcher.search("   ")

        assert task is None
        assert searcher.suggestions == []
        mock_complete.assert_not_called()

    @pytest.mark.asyncio
    async def test_publishes_suggestions(self):
        searcher = LocationSearch()

        with patch(
            f"{GEOCODING}.complete", new_callable=AsyncMock, return_value=[PARIS]
        ) as mock_complete:
            results = await searcher.search(" Paris ")

        assert results == [PARIS]
        assert searcher.suggestions == [PARIS]
        assert searcher.query == "Paris"
        mock_complete.assert_awaited_once_with("Paris")

    @pytest.mark.asyncio
    async def test_last_query_wins(self):
        """An older response arriving after a newer query must not be published."""
        gates = {"Pa": asyncio.Event(), "Par": asyncio.Event()}

        async def fake_complete(query):
            await gates[query].wait()
            return [PlaceSuggestion(f"{query}-result")]

        searcher = LocationSearch()
        with patch(f"{GEOCODING}.complete", side_effect=fake_complete):
            older = searcher.search("Pa")
            await asyncio.sleep(0)
            newer = searcher.search("Par")
            await asyncio.sleep(0)

            gates["Par"].set()
            await newer
            gates["Pa"].set()
            await asyncio.gather(older, return_exceptions=True)

        assert older.cancelled()
        assert searcher.suggestions == [PlaceSuggestion("Par-result")]

    @pytest.mark.asyncio
    async def test_stale_response_past_cancellation_is_dropped(self):
        searcher = LocationSearch()
        searcher._generation = 5

        with patch(
            f"{GEOCODING}.complete",
            new_callable=AsyncMock,
            return_value=[PlaceSuggestion("old")],
        ):
            await searcher._complete(4, "old")

        assert searcher.suggestions == []

    @pytest.mark.asyncio
    async def test_provider_error_keeps_previous_suggestions(self):
        searcher = LocationSearch()
        searcher.suggestions = [PARIS]

        with patch(
            f"{GEOCODING}.complete",
            new_callable=AsyncMock,
            side_effect=RuntimeError("provider down"),
        ):
            await searcher.search("Berlin")

        assert searcher.suggestions == [PARIS]

    @pytest.mark.asyncio
    async def test_updates_yield_snapshot_then_changes(self):
        searcher = LocationSearch()
        stream = searcher.updates()

        assert await stream.__anext__() == []

        with patch(f"{GEOCODING}.complete", new_callable=AsyncMock, return_value=[PARIS]):
            await searcher.search("Paris")

        assert await asyncio.wait_for(stream.__anext__(), 1) == [PARIS]
        await stream.aclose()
        assert searcher._observers == set()


class TestSelectLocation:
    @pytest.mark.asyncio
    async def test_centers_on_first_result(self):
        results = [
            PlaceResult(name="Paris", lat=48.8566, lng=2.3522),
            PlaceResult(name="Paris", lat=33.6609, lng=-95.5555),
        ]
        searcher = LocationSearch()

        with patch(
            f"{GEOCODING}.search_places", new_callable=AsyncMock, return_value=results
        ) as mock_search:
            region = await searcher.select_location(PARIS)

        assert region == Region(center=Coordinate(48.8566, 2.3522))
        assert region.latitude_delta == 0.03
        assert region.longitude_delta == 0.03
        assert searcher.selected_coordinate == Coordinate(48.8566, 2.3522)
        mock_search.assert_awaited_once_with("Paris France", limit=1)

    @pytest.mark.asyncio
    async def test_no_results_leaves_selection_untouched(self):
        searcher = LocationSearch()
        searcher.selected_coordinate = Coordinate(1.0, 2.0)

        with patch(f"{GEOCODING}.search_places", new_callable=AsyncMock, return_value=[]):
            region = await searcher.select_location(PARIS)

        assert region is None
        assert searcher.selected_coordinate == Coordinate(1.0, 2.0)

    @pytest.mark.asyncio
    async def test_provider_error_returns_none(self):
        searcher = LocationSearch()

        with patch(
            f"{GEOCODING}.search_places",
            new_callable=AsyncMock,
            side_effect=RuntimeError("boom"),
        ):
            region = await searcher.select_location(PARIS)

        assert region is None
        assert searcher.selected_coordinate is None

    def test_confirm_prefers_selection(self):
        searcher = LocationSearch()
        fallback = Coordinate(34.0522, -118.2437)

        assert searcher.confirm(fallback) == fallback
        searcher.use_coordinate(Coordinate(1.0, 2.0))
        assert searcher.confirm(fallback) == Coordinate(1.0, 2.0)

    def test_query_text_for(self):
        assert LocationSearch.query_text_for(PARIS) == "Paris France"
