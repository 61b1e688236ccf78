"""Extract XML parsing and field normalization."""

from .normalizer import (
    extract_contact,
    first_value,
    normalize_record,
    normalize_title,
    parse_big_int,
    parse_bool,
    parse_date,
    parse_int,
)
from .xml_parser import EXTRACTION_STRATEGIES, ID_FIELD, parse_extract

__all__ = [
    "EXTRACTION_STRATEGIES",
    "ID_FIELD",
    "extract_contact",
    "first_value",
    "normalize_record",
    "normalize_title",
    "parse_big_int",
    "parse_bool",
    "parse_date",
    "parse_extract",
    "parse_int",
]
