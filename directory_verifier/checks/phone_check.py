"""US phone number validity check."""

import re

from directory_verifier.checks.base_check import CheckStrategy
from directory_verifier.data_management.schemas import CheckResult, Resource

PHONE_CHECK_NAME = "phone_valid"

_NON_DIGITS = re.compile(r"\D")


def normalize_us_phone(phone: str) -> str | None:
    """
    Normalize a US phone number to ``(XXX) XXX-XXXX``.

    Accepts 10 digits, or 11 digits with a leading country code 1, in any
    punctuation.

    Returns:
        Formatted number, or None when the digits do not form a US number
    """
    digits = _NON_DIGITS.sub("", phone)
    if len(digits) == 11 and digits.startswith("1"):
        digits = digits[1:]
    if len(digits) != 10:
        return None
    return f"({digits[:3]}) {digits[3:6]}-{digits[6:]}"


class PhoneValidityCheck(CheckStrategy):
    """Checks that a resource's phone number is a well-formed US number."""

    name = PHONE_CHECK_NAME

    def applies_to(self, resource: Resource) -> bool:
        return bool(resource.phone)

    async def _execute(self, resource: Resource) -> CheckResult:
        normalized = normalize_us_phone(resource.phone or "")
        if normalized is None:
            return CheckResult.failure(
                error=f"Not a valid US phone number: {resource.phone!r}",
                format="invalid",
            )
        return CheckResult(
            passed=True,
            details={"format": "US", "normalized": normalized},
        )
