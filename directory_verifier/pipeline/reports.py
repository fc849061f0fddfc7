"""Admin reports built from the audit log."""

from datetime import datetime
from typing import Iterable, Optional

from pydantic import BaseModel, Field

from directory_verifier.data_management.schemas import ConflictKind, VerificationRun


class IpBlockGroup(BaseModel):
    """IP-block incidents for one URL, newest incident first."""

    url: Optional[str]
    resource_ids: list[str] = Field(default_factory=list)
    incidents: int = 0
    last_detected_at: Optional[datetime] = None
    last_error: Optional[str] = None
    last_status_code: Optional[int] = None


def group_ip_blocks(runs: Iterable[VerificationRun]) -> list[IpBlockGroup]:
    """
    Group IP-block runs by the blocked URL.

    Args:
        runs: Runs, newest first (as returned by VerificationRunStore)

    Returns:
        Groups sorted by incident count, most affected URL first
    """
    groups: dict[Optional[str], IpBlockGroup] = {}
    for run in runs:
        for conflict in run.conflicts_found:
            if conflict.kind != ConflictKind.IP_BLOCK:
                continue
            group = groups.get(conflict.url)
            if group is None:
                group = groups[conflict.url] = IpBlockGroup(url=conflict.url)
            group.incidents += 1
            if run.resource_id not in group.resource_ids:
                group.resource_ids.append(run.resource_id)
            if group.last_detected_at is None or conflict.detected_at > group.last_detected_at:
                group.last_detected_at = conflict.detected_at
                group.last_error = conflict.error
                group.last_status_code = conflict.status_code

    return sorted(groups.values(), key=lambda g: g.incidents, reverse=True)
