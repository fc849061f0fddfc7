"""Address geocodability check.

Passes when a geocoder resolves the resource's full address to a
coordinate pair. The geocoder is injected; ``NominatimGeocoder`` talks to
any Nominatim-compatible ``/search`` endpoint over httpx.
"""

import time
from typing import Awaitable, Callable, Optional

import httpx

from directory_verifier.checks.base_check import CheckStrategy
from directory_verifier.config.logging import get_logger
from directory_verifier.data_management.schemas import CheckResult, Resource

ADDRESS_CHECK_NAME = "address_geocodable"

Coordinates = tuple[float, float]
Geocoder = Callable[[str], Awaitable[Optional[Coordinates]]]


class NominatimGeocoder:
    """
    Minimal async client for a Nominatim-compatible search endpoint.

    Attributes:
        base_url: Endpoint root, e.g. https://nominatim.openstreetmap.org
        timeout: Request timeout in seconds
        user_agent: Identifying user agent (required by public Nominatim)
    """

    def __init__(
        self,
        base_url: str,
        timeout: float = 10.0,
        user_agent: str = "directory-verifier/0.1",
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> None:
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self.user_agent = user_agent
        self._transport = transport
        self.logger = get_logger("geocoder.nominatim")

    async def __call__(self, query: str) -> Optional[Coordinates]:
        """
        Geocode a free-form address.

        Returns:
            (latitude, longitude) of the best match, or None if nothing matched

        Raises:
            httpx.HTTPError: On transport failures or non-2xx responses
        """
        async with httpx.AsyncClient(
            timeout=httpx.Timeout(self.timeout),
            headers={"User-Agent": self.user_agent},
            transport=self._transport,
        ) as client:
            response = await client.get(
                f"{self.base_url}/search",
                params={"q": query, "format": "json", "limit": 1},
            )
            response.raise_for_status()
            results = response.json()

        if not results:
            self.logger.debug("No geocoding match", query=query)
            return None
        best = results[0]
        return float(best["lat"]), float(best["lon"])


class AddressGeocodabilityCheck(CheckStrategy):
    """Checks that a resource's street address can be geocoded."""

    name = ADDRESS_CHECK_NAME

    def __init__(self, geocoder: Geocoder) -> None:
        """
        Initialize address check.

        Args:
            geocoder: Async callable mapping an address to coordinates or None
        """
        super().__init__()
        self.geocoder = geocoder

    def applies_to(self, resource: Resource) -> bool:
        return bool(resource.address)

    async def _execute(self, resource: Resource) -> CheckResult:
        query = resource.full_address or ""
        start = time.monotonic()
        try:
            coords = await self.geocoder(query)
        except httpx.TimeoutException:
            return CheckResult.failure(
                error="Geocoder timeout",
                latency_ms=int((time.monotonic() - start) * 1000),
                query=query,
            )
        except httpx.HTTPStatusError as e:
            return CheckResult.failure(
                error=f"Geocoder HTTP error {e.response.status_code}",
                latency_ms=int((time.monotonic() - start) * 1000),
                status_code=e.response.status_code,
                query=query,
            )
        except httpx.HTTPError as e:
            return CheckResult.failure(
                error=f"Geocoder request failed: {e}",
                latency_ms=int((time.monotonic() - start) * 1000),
                query=query,
            )

        latency_ms = int((time.monotonic() - start) * 1000)
        if coords is None:
            return CheckResult.failure(
                error="Address could not be geocoded",
                latency_ms=latency_ms,
                query=query,
            )

        lat, lng = coords
        return CheckResult(
            passed=True,
            latency_ms=latency_ms,
            details={"query": query, "coords": {"lat": lat, "lng": lng}},
        )
