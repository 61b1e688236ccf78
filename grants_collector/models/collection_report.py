"""CollectionReport - outcome of one extract collection run."""

from datetime import datetime
from typing import List, Optional
from pydantic import BaseModel, Field


class CollectionReport(BaseModel):
    """Aggregated outcome of a run, rendered verbatim by the caller.

    ``success`` is true only when no error was recorded anywhere in the run.
    """

    processed: int = Field(default=0, description="Records reconciled successfully")
    errors: List[str] = Field(default_factory=list, description="Human-readable error messages, in order")
    created: int = Field(default=0, description="Opportunities inserted")
    updated: int = Field(default=0, description="Opportunities overwritten")
    skipped: int = Field(default=0, description="Records that failed to reconcile")
    extract_date: Optional[str] = Field(None, description="YYYYMMDD of the extract used")

    @property
    def success(self) -> bool:
        return not self.errors

    def add_error(self, message: str) -> None:
        self.errors.append(message)


class RecentChange(BaseModel):
    """A change entry joined with its opportunity's title and agency."""

    type: str
    date: datetime
    source: Optional[str] = None
    title: Optional[str] = None
    agency: Optional[str] = None


class CollectionStatus(BaseModel):
    """Aggregate counts and the latest change entries for status reporting."""

    total_opportunities: int = 0
    recent_changes: List[RecentChange] = Field(default_factory=list)

    @property
    def last_updated(self) -> Optional[datetime]:
        return self.recent_changes[0].date if self.recent_changes else None
