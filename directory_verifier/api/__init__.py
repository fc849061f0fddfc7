"""HTTP interface for triggered verification and human review."""

from directory_verifier.api.server import create_app

__all__ = ["create_app"]
