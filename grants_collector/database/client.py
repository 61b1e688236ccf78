"""Supabase database client for the extract collector."""

import logging
import os
from datetime import datetime, timedelta, timezone
from typing import Any, Dict, List, Optional

from supabase import Client, create_client

from ..models import CollectionStatus, Opportunity, OpportunityChange, OpportunityContact, RecentChange

logger = logging.getLogger(__name__)

OPPORTUNITIES = "opportunities"
CONTACTS = "opportunity_contacts"
CHANGES = "opportunity_changes"


class SupabaseClient:
    """Client for the opportunities, opportunity_contacts and opportunity_changes tables."""

    def __init__(
        self,
        url: Optional[str] = None,
        key: Optional[str] = None,
    ) -> None:
        """Initialize Supabase client from explicit args or env vars.

        Args:
            url: Supabase project URL (falls back to SUPABASE_URL env var).
            key: Supabase service key (falls back to SUPABASE_KEY env var).
        """
        self._url = url or os.environ["SUPABASE_URL"]
        self._key = key or os.environ["SUPABASE_KEY"]
        self._client: Client = create_client(self._url, self._key)

    # ------------------------------------------------------------------
    # Opportunities
    # ------------------------------------------------------------------

    def find_opportunity(self, opportunity_id: str) -> Optional[Dict[str, Any]]:
        """Return the stored row for an external opportunity id, or None."""
        response = (
            self._client.table(OPPORTUNITIES)
            .select("id, opportunity_id")
            .eq("opportunity_id", opportunity_id)
            .limit(1)
            .execute()
        )
        return response.data[0] if response.data else None

    def insert_opportunity(self, opportunity: Opportunity) -> Dict[str, Any]:
        """Insert a new opportunity row.

        Returns:
            The inserted row (including its internal ``id``).
        """
        response = (
            self._client.table(OPPORTUNITIES)
            .insert(opportunity.to_row())
            .execute()
        )
        logger.debug("Inserted opportunity %s", opportunity.opportunity_id)
        return response.data[0]

    def update_opportunity(self, pk: str, opportunity: Opportunity) -> Dict[str, Any]:
        """Overwrite every column of an existing opportunity row."""
        response = (
            self._client.table(OPPORTUNITIES)
            .update(opportunity.to_row())
            .eq("id", pk)
            .execute()
        )
        logger.debug("Updated opportunity %s", opportunity.opportunity_id)
        return response.data[0] if response.data else {"id": pk}

    # ------------------------------------------------------------------
    # Contacts and changes
    # ------------------------------------------------------------------

    def delete_contacts(self, pk: str) -> None:
        self._client.table(CONTACTS).delete().eq("opportunity_pk", pk).execute()

    def insert_contact(self, pk: str, contact: OpportunityContact) -> Dict[str, Any]:
        response = self._client.table(CONTACTS).insert(contact.to_row(pk)).execute()
        return response.data[0] if response.data else {}

    def insert_change(self, pk: str, change: OpportunityChange) -> Dict[str, Any]:
        response = self._client.table(CHANGES).insert(change.to_row(pk)).execute()
        return response.data[0] if response.data else {}

    # ------------------------------------------------------------------
    # Read side
    # ------------------------------------------------------------------

    def count_opportunities(self) -> int:
        response = (
            self._client.table(OPPORTUNITIES)
            .select("id", count="exact")
            .limit(1)
            .execute()
        )
        return response.count if response.count is not None else len(response.data)

    def get_recent_changes(self, hours: int = 24, limit: int = 10) -> List[RecentChange]:
        """Change entries from the last ``hours``, newest first, with title and agency.

        Args:
            hours: Look-back window.
            limit: Maximum number of entries.
        """
        since = (datetime.now(timezone.utc) - timedelta(hours=hours)).isoformat()
        response = (
            self._client.table(CHANGES)
            .select("change_type, change_date, source, opportunities(title, agency_name)")
            .gte("change_date", since)
            .order("change_date", desc=True)
            .limit(limit)
            .execute()
        )
        changes = []
        for row in response.data or []:
            opportunity = row.get("opportunities") or {}
            changes.append(
                RecentChange(
                    type=row["change_type"],
                    date=row["change_date"],
                    source=row.get("source"),
                    title=opportunity.get("title"),
                    agency=opportunity.get("agency_name"),
                )
            )
        return changes

    def get_collection_status(self) -> CollectionStatus:
        return CollectionStatus(
            total_opportunities=self.count_opportunities(),
            recent_changes=self.get_recent_changes(),
        )

    def close(self) -> None:
        """Release the underlying PostgREST HTTP session."""
        self._client.postgrest.session.close()
        logger.info("Closed Supabase session")
