"""Normalize raw extract records into typed Opportunity values.

Every function here is total: malformed input yields None, never an
exception, so one bad field cannot cost the whole record.
"""

import logging
import re
from datetime import datetime, timezone
from decimal import Decimal, InvalidOperation
from typing import List, Optional

from ..models import Opportunity, OpportunityContact, RawRecord, TITLE_MAX_LENGTH, UNTITLED

logger = logging.getLogger(__name__)

_CURRENCY_CHARS = re.compile(r"[,$]")
_DECIMAL_PREFIX = re.compile(r"\s*([-+]?(?:\d+(?:\.\d*)?|\.\d+)(?:[eE][-+]?\d+)?)")
_INTEGER_PREFIX = re.compile(r"\s*([-+]?\d+)")

BIGINT_MAX = 2**63 - 1
INTEGER_MAX = 2**31 - 1

# Native extract format (MMDDYYYY) first, then what else turns up in the feed
DATE_FORMATS = (
    "%m%d%Y",
    "%m/%d/%Y",
    "%Y-%m-%d",
    "%b %d, %Y",
    "%B %d, %Y",
    "%a, %d %b %Y %H:%M:%S %Z",
)


def first_value(record: RawRecord, field: str) -> Optional[str]:
    """First non-empty value of a field, or None."""
    values = record.get(field) or []
    if not values or not values[0]:
        return None
    return values[0]


def all_values(record: RawRecord, field: str) -> List[str]:
    return [value for value in record.get(field) or [] if value]


def parse_date(value: Optional[str]) -> Optional[datetime]:
    """Parse a date/datetime string; None if empty or not a real calendar date."""
    if not value:
        return None
    text = value.strip()
    for fmt in DATE_FORMATS:
        try:
            return datetime.strptime(text, fmt)
        except (ValueError, TypeError):
            continue
    try:
        parsed = datetime.fromisoformat(text.replace("Z", "+00:00"))
    except (ValueError, TypeError):
        logger.debug(f"Could not parse date: {value!r}")
        return None
    # Stored in timestamp columns without zone: keep everything naive UTC
    if parsed.tzinfo is not None:
        parsed = parsed.astimezone(timezone.utc).replace(tzinfo=None)
    return parsed


def parse_big_int(value: Optional[str]) -> Optional[int]:
    """Currency amount in whole units: '$1,500,000.00' -> 1500000.

    Amounts that are not finite or do not fit a signed 64-bit column are None.
    """
    if not value:
        return None
    match = _DECIMAL_PREFIX.match(_CURRENCY_CHARS.sub("", value))
    if not match:
        return None
    try:
        amount = Decimal(match.group(1))
    except (InvalidOperation, ValueError):
        return None
    if not amount.is_finite():
        return None
    # adjusted() is the exponent of the leading digit; reject before expanding
    if amount and amount.adjusted() > len(str(BIGINT_MAX)):
        return None
    # int() on a Decimal truncates toward zero
    result = int(amount)
    if abs(result) > BIGINT_MAX:
        return None
    return result


def parse_int(value: Optional[str]) -> Optional[int]:
    """Leading integer after stripping ',' and '$': '12.7' -> 12.

    Values outside a signed 32-bit column are None.
    """
    if not value:
        return None
    match = _INTEGER_PREFIX.match(_CURRENCY_CHARS.sub("", value))
    if not match:
        return None
    sign, digits = match.group(1)[:1], match.group(1).lstrip("+-").lstrip("0")
    if len(digits) > len(str(INTEGER_MAX)):
        return None
    result = int(digits or "0")
    if sign == "-":
        result = -result
    if abs(result) > INTEGER_MAX:
        return None
    return result


def parse_bool(value: Optional[str]) -> Optional[bool]:
    if not value:
        return None
    return value.strip().lower() in ("yes", "true")


def normalize_title(value: Optional[str]) -> str:
    if not value:
        return UNTITLED
    return value[:TITLE_MAX_LENGTH]


def normalize_record(record: RawRecord) -> Opportunity:
    """Build an Opportunity from a raw record carrying an OpportunityID."""
    return Opportunity(
        opportunity_id=first_value(record, "OpportunityID") or "",
        opportunity_number=first_value(record, "OpportunityNumber"),
        title=normalize_title(first_value(record, "OpportunityTitle")),
        description=first_value(record, "Description"),
        agency_code=first_value(record, "AgencyCode"),
        agency_name=first_value(record, "AgencyName"),
        post_date=parse_date(first_value(record, "PostDate")),
        close_date=parse_date(first_value(record, "CloseDate")),
        archive_date=parse_date(first_value(record, "ArchiveDate")),
        last_updated_date=parse_date(first_value(record, "LastUpdatedDate")),
        estimated_total_funding=parse_big_int(first_value(record, "EstimatedTotalProgramFunding")),
        award_ceiling=parse_big_int(first_value(record, "AwardCeiling")),
        award_floor=parse_big_int(first_value(record, "AwardFloor")),
        expected_number_of_awards=parse_int(first_value(record, "ExpectedNumberOfAwards")),
        cost_sharing_required=parse_bool(first_value(record, "CostSharingOrMatchingRequirement")),
        opportunity_category=first_value(record, "OpportunityCategory"),
        funding_instrument_type=first_value(record, "FundingInstrumentType"),
        category_of_funding_activity=first_value(record, "CategoryOfFundingActivity"),
        category_explanation=first_value(record, "CategoryExplanation"),
        cfda_numbers=all_values(record, "CFDANumbers"),
        eligible_applicants=first_value(record, "EligibleApplicants"),
        additional_eligibility_info=first_value(record, "AdditionalInformationOnEligibility"),
        version=first_value(record, "Version"),
        status="active",
    )


def extract_contact(record: RawRecord) -> Optional[OpportunityContact]:
    """Grantor contact, only when the record has an email or a contact note.

    The extract carries no contact name or phone number.
    """
    email = first_value(record, "GrantorContactEmail")
    text = first_value(record, "GrantorContactText")
    if not email and not text:
        return None
    return OpportunityContact(
        contact_email=email,
        contact_text=text or first_value(record, "GrantorContactEmailDescription"),
        contact_url=first_value(record, "AdditionalInformationURL"),
    )
