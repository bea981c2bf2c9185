"""
Place name -> (longitude, latitude) lookups, restricted to the HCMC bounding box.

MapboxGeocoder keeps a process-wide cache keyed by the lowercased
"location|region" query. Known districts resolve from a built-in table
without any network call.
"""
import asyncio
import logging
from typing import Iterable, Protocol
from urllib.parse import quote

import httpx

from .settings import settings

logger = logging.getLogger(__name__)

Coordinates = tuple[float, float]

MAPBOX_GEOCODE_URL = "https://api.mapbox.com/geocoding/v5/mapbox.places/{query}.json"

# (lng, lat) of district centres, used before asking Mapbox
DISTRICT_COORDINATES: dict[str, Coordinates] = {
    "Quận 1": (106.6953, 10.7769),
    "Quận 3": (106.6844, 10.7834),
    "Quận 4": (106.7015, 10.7574),
    "Quận 5": (106.6631, 10.7548),
    "Quận 6": (106.6350, 10.7482),
    "Quận 7": (106.7361, 10.7343),
    "Quận 8": (106.6283, 10.7220),
    "Quận 10": (106.6626, 10.7731),
    "Quận 11": (106.6503, 10.7659),
    "Quận 12": (106.6542, 10.8671),
    "Bình Thạnh": (106.7113, 10.8115),
    "Gò Vấp": (106.6547, 10.8387),
    "Phú Nhuận": (106.6808, 10.7999),
    "Tân Bình": (106.6478, 10.8024),
    "Tân Phú": (106.6279, 10.7909),
    "Thủ Đức": (106.7614, 10.8579),
    "Bình Tân": (106.5892, 10.7657),
    "Củ Chi": (106.4930, 10.9739),
    "Hóc Môn": (106.5856, 10.8866),
    "Bình Chánh": (106.5422, 10.6836),
    "Nhà Bè": (106.7004, 10.6625),
    "Cần Giờ": (106.9549, 10.4113),
}
# Abbreviations share the coordinates of the full name
DISTRICT_COORDINATES.update({
    f"Q{n}": DISTRICT_COORDINATES[f"Quận {n}"] for n in (1, 3, 4, 5, 6, 7, 8, 10, 11, 12)
})


class GeocodeResolver(Protocol):
    async def resolve(self, location: str, region_hint: str) -> Coordinates | None:
        ...


def district_coordinates(name: str) -> Coordinates | None:
    return DISTRICT_COORDINATES.get(name.strip())


class MapboxGeocoder:
    def __init__(
        self,
        access_token: str | None = None,
        bbox: tuple[float, float, float, float] | None = None,
        timeout: float | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        self.access_token = access_token if access_token is not None else settings.mapbox_access_token
        self.bbox = bbox or settings.geocode_bbox
        self.timeout = timeout or settings.geocode_timeout_seconds
        self._transport = transport
        self._cache: dict[str, Coordinates | None] = {}

    def within_bounds(self, lng: float, lat: float) -> bool:
        min_lng, min_lat, max_lng, max_lat = self.bbox
        return min_lng <= lng <= max_lng and min_lat <= lat <= max_lat

    def clear_cache(self) -> None:
        self._cache.clear()

    async def resolve(self, location: str, region_hint: str = settings.geocode_city) -> Coordinates | None:
        key = f"{location}|{region_hint}".lower()
        if key in self._cache:
            return self._cache[key]

        coords = district_coordinates(location)
        if coords is None:
            coords = await self._lookup(location, region_hint)

        self._cache[key] = coords
        return coords

    async def resolve_many(
        self, locations: Iterable[str], region_hint: str = settings.geocode_city, delay: float = 0.1
    ) -> dict[str, Coordinates | None]:
        """Resolve sequentially, spacing requests to stay under the free-tier rate limit."""
        results = {}
        for location in locations:
            results[location] = await self.resolve(location, region_hint)
            await asyncio.sleep(delay)
        return results

    async def _lookup(self, location: str, region_hint: str) -> Coordinates | None:
        if not self.access_token:
            logger.debug(f"No Mapbox token configured, cannot geocode '{location}'")
            return None

        url = MAPBOX_GEOCODE_URL.format(query=quote(f"{location}, {region_hint}, Vietnam"))
        params = {
            "access_token": self.access_token,
            "bbox": ",".join(str(v) for v in self.bbox),
            "limit": 1,
            "types": "address,poi,locality,neighborhood",
        }
        try:
            async with httpx.AsyncClient(timeout=self.timeout, transport=self._transport) as client:
                r = await client.get(url, params=params)
                r.raise_for_status()
                data = r.json()
        except (httpx.HTTPError, ValueError) as e:
            logger.warning(f"Geocoding failed for '{location}': {e}")
            return None

        features = data.get("features") or []
        if not features:
            return None
        try:
            lng, lat = features[0]["center"][:2]
            lng, lat = float(lng), float(lat)
        except (KeyError, TypeError, ValueError):
            logger.debug(f"Malformed geocoding response for '{location}'")
            return None

        if not self.within_bounds(lng, lat):
            logger.debug(f"Geocode result for '{location}' outside bbox: {lng},{lat}")
            return None
        return (lng, lat)
