"""
Lookup of previously imported, not yet published records.

Re-sending a document before it is published updates the existing draft
instead of creating a duplicate. Published records are never touched; the
next import creates a fresh draft.
"""

import logging

from docbridge_common.exceptions import StorageError
from docbridge_common.models import DRAFT_LIKE_STATUSES
from docbridge_common.result import ErrorKind, Ok, Result, err
from docbridge_common.storage import ContentStore

logger = logging.getLogger(__name__)


class DraftLookup:
    """Find the oldest draft-like record for a source document."""

    def __init__(self, content_store: ContentStore):
        self.content_store = content_store

    def find_existing_draft(self, project_id: str, document_id: str) -> int:
        """
        Returns:
            The record id, or 0 when no draft exists

        Raises:
            StorageError: If the index cannot be queried
        """
        records = self.content_store.find_by_source(
            project_id, document_id, statuses=DRAFT_LIKE_STATUSES
        )
        record = next(iter(records), None)
        return record.record_id if record else 0

    def lookup(self, project_id: str, document_id: str) -> Result[int]:
        """
        Returns:
            Ok(record_id), Ok(0) when there is no draft, or Err(PERSISTENCE)
        """
        try:
            return Ok(self.find_existing_draft(project_id, document_id))
        except StorageError as e:
            logger.error(f"Draft lookup failed for {project_id}/{document_id}: {e}")
            return err(
                ErrorKind.PERSISTENCE,
                "lookup_failed",
                "Unable to look up existing drafts",
            )
