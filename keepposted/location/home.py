"""Home location setup for new accounts.

Combines a search box, the device fix and reverse geocoding into one
confirmed home location, saved through the account service.
"""

from __future__ import annotations

import structlog

from keepposted.accounts.service import AccountService
from keepposted.location.device import DeviceLocation
from keepposted.location.geocoding import ReverseGeocoder
from keepposted.location.search import LocationSearch
from keepposted.schemas.geo import Coordinate, PlaceSuggestion, Region

logger = structlog.get_logger()

# Map shown before the user picks anything (Los Angeles)
INITIAL_REGION = Region(center=Coordinate(34.0522, -118.2437), latitude_delta=0.05, longitude_delta=0.05)


class HomeLocationSetup:
    def __init__(
        self,
        accounts: AccountService,
        search: LocationSearch | None = None,
        device: DeviceLocation | None = None,
        geocoder: ReverseGeocoder | None = None,
        region: Region = INITIAL_REGION,
    ):
        self.accounts = accounts
        self.search = search or LocationSearch()
        self.device = device
        self.geocoder = geocoder or ReverseGeocoder()
        self.region = region

    async def pick(self, suggestion: PlaceSuggestion) -> Region | None:
        """Center on a suggestion and put its text back in the search box."""
        region = await self.search.select_location(suggestion)
        if region is not None:
            self.region = region
        self.search.query = LocationSearch.query_text_for(suggestion)
        self.search.clear_suggestions()
        return region

    async def use_current_location(self, timeout: float = 10.0) -> Coordinate | None:
        if self.device is None:
            return None
        await self.device.request_current_location()
        coordinate = await self.device.wait_for_coordinate(timeout)
        if coordinate is None:
            logger.info("home_device_location_unavailable")
            return None
        self.region = Region(
            center=coordinate,
            latitude_delta=self.region.latitude_delta,
            longitude_delta=self.region.longitude_delta,
        )
        self.search.use_coordinate(coordinate)
        return coordinate

    async def confirm(self) -> str | None:
        """Label the chosen point and save it as home.

        Returns the saved label, or None if a lookup was already running.
        """
        coordinate = self.search.confirm(self.region.center)
        label = await self.geocoder.label_for(coordinate)
        if label is None:
            return None
        self.accounts.save_location(label, coordinate)
        return label
