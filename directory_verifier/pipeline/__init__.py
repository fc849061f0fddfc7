"""Batch and triggered verification pipelines."""

from directory_verifier.pipeline.reports import IpBlockGroup, group_ip_blocks
from directory_verifier.pipeline.scheduler import DueSetSelector
from directory_verifier.pipeline.verification_pipeline import (
    BatchSummary,
    IpBlockEntry,
    ResourceOutcome,
    TriggeredResult,
    VerificationPipeline,
)

__all__ = [
    "BatchSummary",
    "DueSetSelector",
    "IpBlockEntry",
    "IpBlockGroup",
    "ResourceOutcome",
    "TriggeredResult",
    "VerificationPipeline",
    "group_ip_blocks",
]
