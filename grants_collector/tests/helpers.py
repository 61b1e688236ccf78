"""Shared builders and test doubles for collector tests."""

import gzip
import itertools
from datetime import date
from typing import Dict, List, Optional, Set
from xml.sax.saxutils import escape

from grants_collector.adapters import Extract
from grants_collector.models import Opportunity, OpportunityChange, OpportunityContact

EXTRACT_BASE_URL = "https://extract.test/extract"
TODAY = date(2024, 8, 15)


# ---------------------------------------------------------------------------
# XML builders
# ---------------------------------------------------------------------------

def opportunity_xml(opportunity_id: Optional[str], tag: str = "OpportunityDetail", **fields) -> str:
    """One opportunity element. List values become repeated elements."""
    parts = []
    if opportunity_id is not None:
        parts.append(f"<OpportunityID>{escape(opportunity_id)}</OpportunityID>")
    for name, value in fields.items():
        values = value if isinstance(value, list) else [value]
        for item in values:
            parts.append(f"<{name}>{escape(str(item))}</{name}>")
    return f"<{tag}>{''.join(parts)}</{tag}>"


def extract_document(*details: str, root: str = "Opportunities") -> str:
    return f'<?xml version="1.0" encoding="UTF-8"?>\n<{root}>{"".join(details)}</{root}>'


def gzip_text(text: str) -> bytes:
    return gzip.compress(text.encode("utf-8"))


SAMPLE_EXTRACT = """<?xml version="1.0" encoding="UTF-8"?>
<Grants xmlns="http://apply.grants.gov/system/OpportunityDetail-V1.0">
  <OpportunitySynopsisDetail_1_0>
    <OpportunityID>262148</OpportunityID>
    <OpportunityTitle>Community Services Block Grant Training and Technical Assistance</OpportunityTitle>
    <OpportunityNumber>HHS-2024-ACF-OCS-ET-0001</OpportunityNumber>
    <OpportunityCategory>D</OpportunityCategory>
    <FundingInstrumentType>CA</FundingInstrumentType>
    <CategoryOfFundingActivity>IS</CategoryOfFundingActivity>
    <CFDANumbers>93.569</CFDANumbers>
    <CFDANumbers>93.570</CFDANumbers>
    <EligibleApplicants>25</EligibleApplicants>
    <AdditionalInformationOnEligibility>Nonprofits with 501(c)(3) status</AdditionalInformationOnEligibility>
    <AgencyCode>HHS-ACF-OCS</AgencyCode>
    <AgencyName>Administration for Children and Families - OCS</AgencyName>
    <PostDate>07012024</PostDate>
    <CloseDate>09032024</CloseDate>
    <LastUpdatedDate>07022024</LastUpdatedDate>
    <AwardCeiling>$1,500,000.00</AwardCeiling>
    <AwardFloor>250000</AwardFloor>
    <EstimatedTotalProgramFunding>3,000,000</EstimatedTotalProgramFunding>
    <ExpectedNumberOfAwards>2</ExpectedNumberOfAwards>
    <Description>Training and technical assistance for CSBG eligible entities.</Description>
    <Version>Synopsis 2</Version>
    <CostSharingOrMatchingRequirement>No</CostSharingOrMatchingRequirement>
    <ArchiveDate>10032024</ArchiveDate>
    <GrantorContactEmail>ocs@acf.hhs.gov</GrantorContactEmail>
    <GrantorContactEmailDescription>OCS grants mailbox</GrantorContactEmailDescription>
    <GrantorContactText>Office of Community Services</GrantorContactText>
  </OpportunitySynopsisDetail_1_0>
  <OpportunitySynopsisDetail_1_0>
    <OpportunityID>350011</OpportunityID>
    <OpportunityTitle>Cyberinfrastructure for Sustained Scientific Innovation</OpportunityTitle>
    <OpportunityNumber>NSF-24-530</OpportunityNumber>
    <AgencyCode>NSF</AgencyCode>
    <AgencyName>U.S. National Science Foundation</AgencyName>
    <PostDate>06152024</PostDate>
    <CloseDate></CloseDate>
    <CostSharingOrMatchingRequirement>Yes</CostSharingOrMatchingRequirement>
    <Version>Synopsis 1</Version>
  </OpportunitySynopsisDetail_1_0>
  <OpportunitySynopsisDetail_1_0>
    <OpportunityTitle>Record without an identifier</OpportunityTitle>
  </OpportunitySynopsisDetail_1_0>
</Grants>
"""


# ---------------------------------------------------------------------------
# Test doubles
# ---------------------------------------------------------------------------

class FakeDB:
    """In-memory replacement for SupabaseClient, enforcing the unique external id."""

    def __init__(self):
        self.opportunities: Dict[str, dict] = {}
        self.contacts: List[dict] = []
        self.changes: List[dict] = []
        self.fail_on: Set[str] = set()
        self._ids = itertools.count(1)

    def find_opportunity(self, opportunity_id: str) -> Optional[dict]:
        for row in self.opportunities.values():
            if row["opportunity_id"] == opportunity_id:
                return dict(row)
        return None

    def insert_opportunity(self, opportunity: Opportunity) -> dict:
        self._maybe_fail(opportunity)
        if self.find_opportunity(opportunity.opportunity_id) is not None:
            raise RuntimeError(f"duplicate key value violates unique constraint ({opportunity.opportunity_id})")
        pk = f"pk-{next(self._ids)}"
        row = opportunity.to_row()
        row["id"] = pk
        self.opportunities[pk] = row
        return dict(row)

    def update_opportunity(self, pk: str, opportunity: Opportunity) -> dict:
        self._maybe_fail(opportunity)
        row = opportunity.to_row()
        row["id"] = pk
        self.opportunities[pk] = row
        return dict(row)

    def delete_contacts(self, pk: str) -> None:
        self.contacts = [c for c in self.contacts if c["opportunity_pk"] != pk]

    def insert_contact(self, pk: str, contact: OpportunityContact) -> dict:
        row = contact.to_row(pk)
        self.contacts.append(row)
        return row

    def insert_change(self, pk: str, change: OpportunityChange) -> dict:
        row = change.to_row(pk)
        self.changes.append(row)
        return row

    # helpers for assertions

    def rows_for(self, opportunity_id: str) -> List[dict]:
        return [r for r in self.opportunities.values() if r["opportunity_id"] == opportunity_id]

    def contacts_for(self, pk: str) -> List[dict]:
        return [c for c in self.contacts if c["opportunity_pk"] == pk]

    def changes_for(self, pk: str) -> List[dict]:
        return [c for c in self.changes if c["opportunity_pk"] == pk]

    @property
    def write_count(self) -> int:
        return len(self.opportunities) + len(self.contacts) + len(self.changes)

    def _maybe_fail(self, opportunity: Opportunity) -> None:
        if opportunity.opportunity_id in self.fail_on:
            raise RuntimeError(f"connection reset while writing {opportunity.opportunity_id}")


class StaticFetcher:
    """Fetcher double that serves one prepared extract, or raises."""

    def __init__(self, xml_text: Optional[str] = None, content: Optional[bytes] = None,
                 error: Optional[Exception] = None):
        self.content = content if content is not None else gzip_text(xml_text or "")
        self.error = error
        self.calls = 0

    async def fetch_latest(self, extract_date=None) -> Extract:
        self.calls += 1
        if self.error is not None:
            raise self.error
        return Extract(extract_date="20240815", url=f"{EXTRACT_BASE_URL}/20240815-v2.xml.gz",
                       content=self.content)
