"""Pluggable data-quality checks."""

from directory_verifier.checks.address_check import (
    ADDRESS_CHECK_NAME,
    AddressGeocodabilityCheck,
    NominatimGeocoder,
)
from directory_verifier.checks.base_check import CheckStrategy
from directory_verifier.checks.phone_check import PHONE_CHECK_NAME, PhoneValidityCheck
from directory_verifier.checks.registry import CheckRegistry, default_registry
from directory_verifier.checks.url_check import URL_CHECK_NAME, UrlReachabilityCheck

__all__ = [
    "ADDRESS_CHECK_NAME",
    "PHONE_CHECK_NAME",
    "URL_CHECK_NAME",
    "AddressGeocodabilityCheck",
    "CheckRegistry",
    "CheckStrategy",
    "NominatimGeocoder",
    "PhoneValidityCheck",
    "UrlReachabilityCheck",
    "default_registry",
]
