"""Data management package for the directory verifier.

Provides the relational store and adapters for:
- Resources - directory listings and their verification state
- Verification runs - the append-only audit log

Storage adapters:
- ResourceStore: due-set selection, review candidates, versioned updates
- VerificationRunStore: insert-only audit logger
"""

from directory_verifier.data_management.database import Database
from directory_verifier.data_management.resource_store import ResourceStore
from directory_verifier.data_management.verification_run_store import VerificationRunStore

__all__ = [
    "Database",
    "ResourceStore",
    "VerificationRunStore",
]
