"""
Document import pipeline.

fetch metadata -> fetch content -> extract body -> create or update record
-> media pass -> DOCUMENT_IMPORTED

Steps up to and including persistence are fail-fast: the first Err is
returned unchanged. The media pass runs after the record is saved and can
only reduce how many images end up local; it never fails the import.
"""

import logging
import time
from collections.abc import Callable

from docbridge_common.drafts import DraftLookup
from docbridge_common.events import DocumentImported, EventBus
from docbridge_common.exceptions import StorageError
from docbridge_common.formatting import HtmlBodyExtractor, sanitize_text_field
from docbridge_common.logging_utils import log_summary
from docbridge_common.media import MediaRewriter
from docbridge_common.models import ImportOutcome
from docbridge_common.result import Err, ErrorKind, Ok, Result, err
from docbridge_common.source_api import SourceApiClient
from docbridge_common.storage import ContentStore

logger = logging.getLogger(__name__)


class ImportPipeline:
    """
    Create-or-update import of one source document.

    Usage:
        pipeline = ImportPipeline(fetcher, content_store, media_rewriter=rewriter)
        result = pipeline.import_document("project-1", "document-1", "user-123")
    """

    def __init__(
        self,
        fetcher: SourceApiClient,
        content_store: ContentStore,
        extractor: HtmlBodyExtractor | None = None,
        media_rewriter: MediaRewriter | None = None,
        event_bus: EventBus | None = None,
        draft_lookup: DraftLookup | None = None,
    ):
        self.fetcher = fetcher
        self.content_store = content_store
        self.extractor = extractor or HtmlBodyExtractor()
        self.media_rewriter = media_rewriter
        self.event_bus = event_bus
        self.draft_lookup = draft_lookup or DraftLookup(content_store)

    def create_from_document(
        self,
        project_id: str,
        document_id: str,
        author_id: str,
        should_abort: Callable[[], bool] | None = None,
    ) -> Result[int]:
        """Import a document as a new draft. Returns the new record id."""
        result = self._run(project_id, document_id, author_id=author_id, should_abort=should_abort)
        if isinstance(result, Err):
            return result
        return Ok(result.value.record_id)

    def update_from_document(
        self,
        project_id: str,
        document_id: str,
        record_id: int,
        should_abort: Callable[[], bool] | None = None,
    ) -> Result[int]:
        """Refresh an existing record's body from the document. Returns record_id."""
        result = self._run(project_id, document_id, record_id=record_id, should_abort=should_abort)
        if isinstance(result, Err):
            return result
        return Ok(result.value.record_id)

    def import_document(
        self,
        project_id: str,
        document_id: str,
        author_id: str,
        should_abort: Callable[[], bool] | None = None,
    ) -> Result[ImportOutcome]:
        """Update the existing draft for the document, or create one."""
        existing = self.draft_lookup.lookup(project_id, document_id)
        if isinstance(existing, Err):
            return existing

        if existing.value:
            return self._run(
                project_id, document_id, record_id=existing.value, should_abort=should_abort
            )
        return self._run(project_id, document_id, author_id=author_id, should_abort=should_abort)

    def _run(
        self,
        project_id: str,
        document_id: str,
        author_id: str = "",
        record_id: int = 0,
        should_abort: Callable[[], bool] | None = None,
    ) -> Result[ImportOutcome]:
        start_time = time.time()
        result = self._import(project_id, document_id, author_id, record_id, should_abort)

        summary = log_summary(
            "import_document",
            success=isinstance(result, Ok),
            duration_ms=(time.time() - start_time) * 1000,
            error=result.error.code if isinstance(result, Err) else None,
            project_id=project_id,
            document_id=document_id,
            record_id=result.value.record_id if isinstance(result, Ok) else record_id,
        )
        logger.info(f"Import summary: {summary}")
        return result

    def _import(
        self,
        project_id: str,
        document_id: str,
        author_id: str,
        record_id: int,
        should_abort: Callable[[], bool] | None,
    ) -> Result[ImportOutcome]:
        metadata = self.fetcher.get_document(project_id, document_id)
        if isinstance(metadata, Err):
            return metadata

        title = sanitize_text_field(metadata.value.title)

        content = self.fetcher.get_document_content(project_id, document_id)
        if isinstance(content, Err):
            return content

        body = self.extractor.extract(content.value)
        if isinstance(body, Err):
            return body

        created = not record_id
        try:
            if created:
                record = self.content_store.create(
                    title=title,
                    body_html=body.value,
                    author_id=author_id,
                    source_project_id=project_id,
                    source_document_id=document_id,
                )
                record_id = record.record_id
            else:
                self.content_store.update_body(record_id, body.value)
        except StorageError as e:
            logger.error(f"Failed to persist {project_id}/{document_id}: {e}")
            return err(
                ErrorKind.PERSISTENCE,
                "create_failed" if created else "update_failed",
                "Unable to save the imported document",
                record_id=record_id,
            )

        images_replaced = self._media_pass(record_id, should_abort)

        if self.event_bus is not None:
            self.event_bus.publish(
                DocumentImported(
                    record_id=record_id,
                    project_id=project_id,
                    document_id=document_id,
                    created=created,
                    images_replaced=images_replaced,
                )
            )

        return Ok(ImportOutcome(record_id=record_id, created=created, images_replaced=images_replaced))

    def _media_pass(self, record_id: int, should_abort: Callable[[], bool] | None) -> int:
        if self.media_rewriter is None:
            return 0

        try:
            result = self.media_rewriter.rewrite_record(record_id, should_abort=should_abort)
        except Exception as e:
            logger.warning(f"Media pass failed for record {record_id}: {e}", exc_info=True)
            return 0

        if result.warnings:
            logger.warning(
                f"Media pass for record {record_id} finished with "
                f"{len(result.warnings)} warning(s): {[w.url for w in result.warnings]}"
            )
        return result.replaced_count
