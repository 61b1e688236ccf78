"""Source adapter for the Grants.gov XML extract."""

from .grants_gov_extract import (
    Extract,
    GrantsGovExtractFetcher,
    decompress_extract,
    format_extract_date,
)

__all__ = ["Extract", "GrantsGovExtractFetcher", "decompress_extract", "format_extract_date"]
