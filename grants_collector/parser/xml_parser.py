"""Parse extract XML into raw opportunity records.

The extract has shipped with more than one document shape over time. Each
shape is handled by one extraction strategy; strategies are tried in order
against the parsed tree and the first one that finds records wins.
"""

import logging
import xml.etree.ElementTree as ET
from typing import Callable, List, Sequence

from ..errors import ParseFailure
from ..models import RawRecord

logger = logging.getLogger(__name__)

ID_FIELD = "OpportunityID"

# Element names a single opportunity appears under (v1 and v2 extracts)
OPPORTUNITY_TAGS = frozenset({
    "OpportunityDetail",
    "OpportunitySynopsisDetail_1_0",
    "OpportunityForecastDetail_1_0",
})
WRAPPER_TAGS = frozenset({"Opportunities", "Grants"})

Strategy = Callable[[ET.Element], List[ET.Element]]


def local_name(tag) -> str:
    """Tag without its ``{namespace}`` prefix."""
    if not isinstance(tag, str):
        return ""
    return tag.rsplit("}", 1)[-1]


def _wrapped_details(root: ET.Element) -> List[ET.Element]:
    """<Opportunities><OpportunityDetail/>...</Opportunities>"""
    if local_name(root.tag) not in WRAPPER_TAGS:
        return []
    return [child for child in root if local_name(child.tag) in OPPORTUNITY_TAGS]


def _single_detail(root: ET.Element) -> List[ET.Element]:
    """The document is one bare <OpportunityDetail/>."""
    if local_name(root.tag) in OPPORTUNITY_TAGS:
        return [root]
    return []


def _grants_list(root: ET.Element) -> List[ET.Element]:
    """<grants><grant/>...</grants>"""
    if local_name(root.tag) != "grants":
        return []
    return [child for child in root if local_name(child.tag) == "grant"]


EXTRACTION_STRATEGIES: Sequence[Strategy] = (
    _wrapped_details,
    _single_detail,
    _grants_list,
)


def element_to_record(element: ET.Element) -> RawRecord:
    """Map each child element name to the list of its (stripped) text values."""
    record: RawRecord = {}
    for child in element:
        name = local_name(child.tag)
        if not name:
            continue
        text = "".join(child.itertext()).strip()
        record.setdefault(name, []).append(text)
    return record


def has_usable_id(record: RawRecord) -> bool:
    values = record.get(ID_FIELD)
    return bool(values and values[0])


def parse_extract(xml_text: str) -> List[RawRecord]:
    """Parse extract XML into raw records, in document order.

    Records without an OpportunityID are dropped.

    Raises:
        ParseFailure: the text is not well-formed XML.
    """
    try:
        root = ET.fromstring(xml_text)
    except ET.ParseError as e:
        raise ParseFailure(f"XML parsing failed: {e}") from e

    elements: List[ET.Element] = []
    for strategy in EXTRACTION_STRATEGIES:
        elements = strategy(root)
        if elements:
            logger.debug(f"Matched document shape via {strategy.__name__}")
            break
    else:
        logger.warning(f"No opportunity records found under root element <{local_name(root.tag)}>")

    records = [element_to_record(element) for element in elements]
    usable = [record for record in records if has_usable_id(record)]
    if len(usable) != len(records):
        logger.debug(f"Dropped {len(records) - len(usable)} record(s) without {ID_FIELD}")
    return usable
