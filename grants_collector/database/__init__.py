"""Storage access for opportunities, contacts and the change log."""

from .client import SupabaseClient

__all__ = ["SupabaseClient"]
