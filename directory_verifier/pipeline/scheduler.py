"""Due-set selection for the periodic batch."""

from datetime import datetime, timezone
from typing import Any, Optional

import structlog

from directory_verifier.data_management.resource_store import ResourceStore


class DueSetSelector:
    """
    Picks the resources a batch should verify.

    Never-checked resources (``next_verification_at`` NULL) come first,
    then the most overdue. A resource whose next check lies in the future
    is never selected. Rows come back unvalidated; the batch validates
    each one inside its per-resource error boundary.
    """

    def __init__(self, resource_store: ResourceStore) -> None:
        self.resource_store = resource_store
        self._logger = structlog.get_logger().bind(component="DueSetSelector")

    async def select_due(
        self, limit: int, now: Optional[datetime] = None
    ) -> list[dict[str, Any]]:
        """
        Select up to ``limit`` due active resources as column records.

        Args:
            limit: Batch size bound
            now: Reference time (defaults to current UTC time)
        """
        now = now or datetime.now(timezone.utc)
        due = await self.resource_store.select_due_records(limit=limit, now=now)
        self._logger.info("due_set_selected", limit=limit, selected=len(due))
        return due
