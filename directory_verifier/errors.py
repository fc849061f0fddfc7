"""Exception hierarchy for the verification pipeline.

Check-level failures are never raised; they are captured as failed
CheckResults. The exceptions below cover the remaining failure classes:
persistence failures, fatal store setup failures, and rejected human
corrections.
"""

from typing import Optional


class VerifierError(Exception):
    """Base class for all directory verifier errors."""


class StoreUnavailableError(VerifierError):
    """The data store could not be reached or initialised at all."""


class PersistenceError(VerifierError):
    """A write for a single resource failed; the resource stays due."""


class ResourceNotFoundError(VerifierError):
    """No resource exists with the requested identifier."""

    def __init__(self, resource_id: str) -> None:
        super().__init__(f"Resource not found: {resource_id}")
        self.resource_id = resource_id


class ConcurrentUpdateError(PersistenceError):
    """The resource row changed since it was read (version mismatch)."""

    def __init__(
        self,
        resource_id: str,
        expected_version: int,
        actual_version: Optional[int] = None,
    ) -> None:
        detail = f"expected version {expected_version}"
        if actual_version is not None:
            detail += f", found {actual_version}"
        super().__init__(f"Concurrent update on resource {resource_id} ({detail})")
        self.resource_id = resource_id
        self.expected_version = expected_version
        self.actual_version = actual_version


class CorrectionRejectedError(VerifierError):
    """A human correction was refused and nothing was persisted."""


class MissingVerificationSourceError(CorrectionRejectedError):
    """A correction arrived without a verification_source citation."""

    def __init__(self, resource_id: str) -> None:
        super().__init__(
            "verification_source is required: cite the URL or search query "
            f"used to verify resource {resource_id}"
        )
        self.resource_id = resource_id
