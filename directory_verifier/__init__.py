"""Automated data-quality verification for a resource directory."""

__version__ = "0.1.0"
