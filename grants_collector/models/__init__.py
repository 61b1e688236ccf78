"""Shared Pydantic models for the extract collector."""

from .opportunity import (
    Opportunity,
    OpportunityChange,
    OpportunityContact,
    RawRecord,
    TITLE_MAX_LENGTH,
    UNTITLED,
)
from .collection_report import CollectionReport, CollectionStatus, RecentChange

__all__ = [
    "Opportunity",
    "OpportunityChange",
    "OpportunityContact",
    "RawRecord",
    "TITLE_MAX_LENGTH",
    "UNTITLED",
    "CollectionReport",
    "CollectionStatus",
    "RecentChange",
]
