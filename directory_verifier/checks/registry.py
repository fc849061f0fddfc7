"""Check registry for name-based lookup of check strategies."""

from typing import Iterator, Optional

from directory_verifier.checks.address_check import AddressGeocodabilityCheck, NominatimGeocoder
from directory_verifier.checks.base_check import CheckStrategy
from directory_verifier.checks.browser import BrowserLauncher
from directory_verifier.checks.phone_check import PhoneValidityCheck
from directory_verifier.checks.url_check import UrlReachabilityCheck
from directory_verifier.config.logging import get_logger
from directory_verifier.config.settings import Settings, settings as default_settings
from directory_verifier.data_management.schemas import Resource


class CheckRegistry:
    """
    Ordered table of check strategies keyed by name.

    Registration order is execution order. Adding a check type means
    registering one more strategy; the verification agent never branches
    on check names.
    """

    def __init__(self) -> None:
        self._checks: dict[str, CheckStrategy] = {}
        self.logger = get_logger("CheckRegistry")

    def register(self, check: CheckStrategy) -> None:
        """
        Add a strategy.

        Raises:
            ValueError: If a strategy with the same name is already registered
        """
        if check.name in self._checks:
            raise ValueError(f"Check already registered: {check.name}")
        self._checks[check.name] = check
        self.logger.debug("Check registered", check=check.name)

    def unregister(self, name: str) -> Optional[CheckStrategy]:
        """Remove a strategy by name, returning it (None if absent)."""
        return self._checks.pop(name, None)

    def get(self, name: str) -> Optional[CheckStrategy]:
        return self._checks.get(name)

    def names(self) -> list[str]:
        return list(self._checks)

    def applicable(self, resource: Resource) -> list[CheckStrategy]:
        """Strategies that apply to the resource, in registration order."""
        return [check for check in self._checks.values() if check.applies_to(resource)]

    def __iter__(self) -> Iterator[CheckStrategy]:
        return iter(self._checks.values())

    def __len__(self) -> int:
        return len(self._checks)

    def __contains__(self, name: object) -> bool:
        return name in self._checks


def default_registry(
    config: Optional[Settings] = None,
    launch_browser: Optional[BrowserLauncher] = None,
) -> CheckRegistry:
    """
    Build the standard check set from settings.

    URL reachability and phone validity are always registered. Address
    geocodability is registered only when ``geocoder_url`` is configured.

    Args:
        config: Settings to read (defaults to the process-wide settings)
        launch_browser: Optional browser factory for the URL check
    """
    config = config or default_settings
    registry = CheckRegistry()
    registry.register(
        UrlReachabilityCheck(
            timeout_seconds=config.browser_timeout_seconds,
            user_agent=config.browser_user_agent,
            launch_browser=launch_browser,
            headless=config.browser_headless,
        )
    )
    registry.register(PhoneValidityCheck())
    if config.geocoder_url:
        geocoder = NominatimGeocoder(
            base_url=config.geocoder_url,
            timeout=config.geocoder_timeout_seconds,
        )
        registry.register(AddressGeocodabilityCheck(geocoder))
    return registry
