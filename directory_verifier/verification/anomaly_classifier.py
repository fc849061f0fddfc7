"""Anomaly classification for completed checks.

Separates "the listing is broken" from "the listing is alive but refuses
automated probes". A URL check that still gets 403 Forbidden under full
browser rendering is the signature of strong bot protection or an IP
block on the checker, not necessarily a dead website.

The classifier only annotates. It never changes whether a check passed;
the failed check still drives the decision, and the anomaly is recorded
separately in ``conflicts_found`` for the admin report.

Usage:
    from directory_verifier.verification.anomaly_classifier import AnomalyClassifier

    report = AnomalyClassifier().classify(resource, checks)
    if report.ip_block_detected:
        ...
"""

from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Optional

import structlog

from directory_verifier.checks.url_check import URL_CHECK_NAME
from directory_verifier.data_management.schemas import (
    CheckResult,
    Conflict,
    ConflictKind,
    Resource,
)

IP_BLOCK_STATUS = 403
IP_BLOCK_ERROR = "Strong bot protection - 403 Forbidden even under full browser rendering"


@dataclass
class AnomalyReport:
    """Anomalies detected across one run's checks."""

    conflicts: list[Conflict] = field(default_factory=list)

    @property
    def ip_block_detected(self) -> bool:
        return any(c.kind == ConflictKind.IP_BLOCK for c in self.conflicts)

    @property
    def ip_block(self) -> Optional[Conflict]:
        """The IP-block conflict, if any."""
        for conflict in self.conflicts:
            if conflict.kind == ConflictKind.IP_BLOCK:
                return conflict
        return None


class AnomalyClassifier:
    """Detects checker-side anomalies in a set of check results."""

    def __init__(self, url_check_name: str = URL_CHECK_NAME) -> None:
        """
        Initialize AnomalyClassifier.

        Args:
            url_check_name: Registry name of the browser-rendered URL check
        """
        self.url_check_name = url_check_name
        self._logger = structlog.get_logger().bind(component="AnomalyClassifier")

    def classify(
        self,
        resource: Resource,
        checks: dict[str, CheckResult],
        detected_at: Optional[datetime] = None,
    ) -> AnomalyReport:
        """
        Annotate a run's checks with anomaly diagnostics.

        Args:
            resource: Resource the checks ran against
            checks: Check name to result, as produced by the agent
            detected_at: Timestamp for the diagnostic (defaults to now)

        Returns:
            AnomalyReport, empty when nothing unusual was seen
        """
        report = AnomalyReport()
        url_result = checks.get(self.url_check_name)
        if url_result is None or url_result.passed:
            return report
        if url_result.status_code != IP_BLOCK_STATUS:
            return report

        conflict = Conflict(
            kind=ConflictKind.IP_BLOCK,
            check_name=self.url_check_name,
            url=resource.website,
            status_code=url_result.status_code,
            error=IP_BLOCK_ERROR,
            detected_at=detected_at or datetime.now(timezone.utc),
        )
        report.conflicts.append(conflict)
        self._logger.warning(
            "ip_block_detected",
            resource_id=resource.id,
            url=resource.website,
            status_code=url_result.status_code,
        )
        return report
