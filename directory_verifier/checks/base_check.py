"""Base class for all check strategies."""

import time
from abc import ABC, abstractmethod

from directory_verifier.config.logging import get_logger
from directory_verifier.data_management.schemas import CheckResult, Resource


class CheckStrategy(ABC):
    """
    Abstract base class for a pluggable data-quality check.

    A strategy declares which resources it applies to and produces a
    CheckResult for one resource. ``run`` is the check boundary: it never
    raises. Network errors, timeouts, malformed input and unexpected
    exceptions all come back as ``passed=False`` with a diagnostic, so the
    verification agent can aggregate results without special cases.

    Subclasses set ``name`` and implement ``applies_to`` and ``_execute``.
    """

    name: str = ""

    def __init__(self) -> None:
        if not self.name:
            raise TypeError(f"{type(self).__name__} must define a check name")
        self.logger = get_logger(f"check.{self.name}")

    @abstractmethod
    def applies_to(self, resource: Resource) -> bool:
        """
        Whether the resource has the field(s) this check probes.

        A resource with no applicable field is not checked at all, which
        is different from a failed check.
        """

    @abstractmethod
    async def _execute(self, resource: Resource) -> CheckResult:
        """Perform the check. May raise; run() converts errors to failures."""

    async def run(self, resource: Resource) -> CheckResult:
        """
        Execute the check without ever raising past this boundary.

        Args:
            resource: Resource to check

        Returns:
            CheckResult, failed with ``error`` when anything went wrong
        """
        start = time.monotonic()
        try:
            return await self._execute(resource)
        except Exception as e:
            latency_ms = int((time.monotonic() - start) * 1000)
            self.logger.error(
                f"Check raised unexpectedly: {type(e).__name__}",
                resource_id=resource.id,
                error=str(e),
            )
            return CheckResult.failure(
                error=f"Unexpected {type(e).__name__}: {e}",
                latency_ms=latency_ms,
            )

    def __repr__(self) -> str:
        return f"{type(self).__name__}(name={self.name!r})"
