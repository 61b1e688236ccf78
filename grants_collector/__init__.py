"""Grants.gov daily extract collector."""

__version__ = "1.0.0"
