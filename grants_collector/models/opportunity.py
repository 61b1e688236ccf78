"""Opportunity, OpportunityContact and OpportunityChange - persisted grant records."""

from datetime import datetime, timezone
from typing import Dict, List, Optional
from pydantic import BaseModel, Field


TITLE_MAX_LENGTH = 255
UNTITLED = "Untitled"

# Field name -> every text value the extract carried for it
RawRecord = Dict[str, List[str]]


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class Opportunity(BaseModel):
    """Normalized grant opportunity from the daily Grants.gov extract.

    ``opportunity_id`` is the upstream identifier; at most one stored row
    exists per value. Every field is written on each sync, so a field the
    extract no longer carries is stored as null.
    """

    # Identity
    opportunity_id: str = Field(..., description="Stable identifier assigned by Grants.gov")
    opportunity_number: Optional[str] = Field(None, description="Funding opportunity number")
    title: str = Field(UNTITLED, max_length=TITLE_MAX_LENGTH, description="Opportunity title")
    description: Optional[str] = Field(None, description="Synopsis text")

    # Agency
    agency_code: Optional[str] = Field(None, description="Issuing agency code")
    agency_name: Optional[str] = Field(None, description="Issuing agency name")

    # Timeline
    post_date: Optional[datetime] = Field(None, description="Publication date")
    close_date: Optional[datetime] = Field(None, description="Application close date")
    archive_date: Optional[datetime] = Field(None, description="Archive date")
    last_updated_date: Optional[datetime] = Field(None, description="Last update at the source")

    # Funding (whole currency units)
    estimated_total_funding: Optional[int] = Field(None, description="Estimated total program funding")
    award_ceiling: Optional[int] = Field(None, description="Maximum single award")
    award_floor: Optional[int] = Field(None, description="Minimum single award")
    expected_number_of_awards: Optional[int] = Field(None, description="Expected number of awards")
    cost_sharing_required: Optional[bool] = Field(None, description="Cost sharing or matching required")

    # Classification
    opportunity_category: Optional[str] = Field(None, description="D, M, C, E or O")
    funding_instrument_type: Optional[str] = Field(None, description="G, CA, PC or O")
    category_of_funding_activity: Optional[str] = Field(None, description="Activity code, e.g. HL, ED")
    category_explanation: Optional[str] = Field(None, description="Explanation for the 'other' category")
    cfda_numbers: List[str] = Field(default_factory=list, description="Assistance listing numbers")

    # Eligibility
    eligible_applicants: Optional[str] = Field(None, description="Eligible applicant code")
    additional_eligibility_info: Optional[str] = Field(None, description="Free-text eligibility notes")

    # Lifecycle
    version: Optional[str] = Field(None, description="Source document version")
    status: str = Field(default="active", description="Record status")

    @property
    def is_active(self) -> bool:
        """An opportunity without a close date, or closing in the future, is active."""
        if self.close_date is None:
            return True
        close_date = self.close_date
        if close_date.tzinfo is None:
            close_date = close_date.replace(tzinfo=timezone.utc)
        return close_date > _utcnow()

    def to_row(self) -> dict:
        """Column values for a full-field insert or overwrite."""
        return self.model_dump(mode="json")


class OpportunityContact(BaseModel):
    """Grantor contact for an opportunity. Replaced wholesale on every sync."""

    contact_name: Optional[str] = None
    contact_email: Optional[str] = None
    contact_phone: Optional[str] = None
    contact_text: Optional[str] = Field(None, description="Free-text contact note")
    contact_url: Optional[str] = Field(None, description="Additional information URL")

    def to_row(self, opportunity_pk: str) -> dict:
        row = self.model_dump(mode="json")
        row["opportunity_pk"] = opportunity_pk
        return row


class OpportunityChange(BaseModel):
    """Append-only audit entry for one create or update of an opportunity."""

    change_type: str = Field(..., description="new, modified, or a source-defined type")
    change_date: datetime = Field(default_factory=_utcnow)
    source: str = Field(default="xml_extract", description="Mechanism that produced the change")
    details: Optional[str] = None

    def to_row(self, opportunity_pk: str) -> dict:
        row = self.model_dump(mode="json")
        row["opportunity_pk"] = opportunity_pk
        return row
