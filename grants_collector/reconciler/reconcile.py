"""Create-or-update reconciliation of extract records against stored opportunities."""

import logging

from ..errors import RecordReconciliationError
from ..models import OpportunityChange, RawRecord
from ..parser import ID_FIELD, extract_contact, first_value, normalize_record

logger = logging.getLogger(__name__)

CHANGE_SOURCE = "xml_extract"
CREATED = "created"
UPDATED = "updated"


class Reconciler:
    """Writes one extract record: opportunity row, one change entry, contact set.

    Keyed on the upstream OpportunityID: an unknown id is inserted, a known id
    has every column overwritten. There is no conflict detection; the extract
    is authoritative and the last completed write for a record wins.
    """

    def __init__(self, db):
        """Initialize reconciler.

        Args:
            db: Storage client (see database.SupabaseClient)
        """
        self.db = db

    def reconcile(self, record: RawRecord) -> str:
        """Persist a raw record.

        Returns:
            CREATED or UPDATED.

        Raises:
            RecordReconciliationError: any normalization or storage failure for this record.
        """
        opportunity_id = first_value(record, ID_FIELD)
        try:
            opportunity = normalize_record(record)
            existing = self.db.find_opportunity(opportunity_id)
            if existing is None:
                row = self.db.insert_opportunity(opportunity)
                change = OpportunityChange(
                    change_type="new",
                    source=CHANGE_SOURCE,
                    details="Created from daily XML extract",
                )
                outcome = CREATED
            else:
                row = self.db.update_opportunity(existing["id"], opportunity)
                change = OpportunityChange(
                    change_type="modified",
                    source=CHANGE_SOURCE,
                    details="Updated from daily XML extract",
                )
                outcome = UPDATED

            pk = row.get("id") or existing["id"]
            self.db.insert_change(pk, change)
            self._sync_contacts(pk, record)
        except Exception as e:
            raise RecordReconciliationError(opportunity_id, e) from e

        logger.debug(f"Reconciled {opportunity_id}: {outcome}")
        return outcome

    def _sync_contacts(self, pk: str, record: RawRecord) -> None:
        """Replace the contact set: delete everything, insert at most one."""
        self.db.delete_contacts(pk)
        contact = extract_contact(record)
        if contact is not None:
            self.db.insert_contact(pk, contact)
