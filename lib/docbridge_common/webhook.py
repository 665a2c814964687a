"""
Inbound webhook handling.

validate -> resolve credential -> dispatch (create or update) -> respond

The handler is transport-agnostic: it takes the decoded request fields and
the request Origin and returns a WebhookResponse that the Lambda entry point
serializes.
"""

import logging
from collections.abc import Callable
from dataclasses import dataclass, field
from typing import Any

from docbridge_common import constants
from docbridge_common.credentials import TokenStore
from docbridge_common.drafts import DraftLookup
from docbridge_common.formatting import sanitize_text_field
from docbridge_common.pipeline import ImportPipeline
from docbridge_common.result import Err, ErrorKind, FieldError, Ok, PipelineError, Result, err

logger = logging.getLogger(__name__)

REQUIRED_FIELDS = ("identifier", "project", "document")

HTTP_STATUS_BY_KIND = {
    ErrorKind.VALIDATION: 400,
    ErrorKind.CREDENTIAL: 401,
    ErrorKind.UPSTREAM_FETCH: 502,
    ErrorKind.PERSISTENCE: 500,
    ErrorKind.EXTRACTION: 422,
}


def build_edit_url(admin_url: str, record_id: int) -> str:
    """Edit link for a record in the CMS admin."""
    return f"{admin_url.rstrip('/')}/post.php?post={int(record_id)}&action=edit"


def error_body(error: PipelineError, status_code: int) -> dict[str, Any]:
    """Public error payload; never includes detail or token material."""
    body: dict[str, Any] = {
        "code": error.code,
        "message": error.message,
        "data": {"status": status_code},
    }
    if error.errors:
        body["errors"] = [e.to_dict() for e in error.errors]
    return body


@dataclass
class WebhookResponse:
    """Outcome of one webhook call plus the CORS headers to send with it."""

    result: Result[dict[str, Any]]
    headers: dict[str, str] = field(default_factory=dict)

    @property
    def status_code(self) -> int:
        if isinstance(self.result, Ok):
            return 200
        return HTTP_STATUS_BY_KIND.get(self.result.error.kind, 500)

    @property
    def body(self) -> dict[str, Any]:
        if isinstance(self.result, Ok):
            return self.result.value
        return error_body(self.result.error, self.status_code)


class WebhookHandler:
    """
    Handles "document ready" callbacks from the source service.

    Usage:
        handler = WebhookHandler(token_store, draft_lookup, pipeline_factory)
        response = handler.handle({"identifier": "u1", "project": "p1", "document": "d1"})
    """

    def __init__(
        self,
        token_store: TokenStore,
        draft_lookup: DraftLookup,
        pipeline_factory: Callable[[str], ImportPipeline],
        admin_url: str = constants.DEFAULT_ADMIN_URL,
        allowed_origins: tuple[str, ...] = constants.DEFAULT_ALLOWED_ORIGINS,
    ):
        """
        Args:
            token_store: Resolves the identity's bearer token
            draft_lookup: Decides between create and update
            pipeline_factory: Builds an ImportPipeline bound to a token
            admin_url: CMS admin base URL for edit links
            allowed_origins: CORS allow-list; the first entry is the fallback
        """
        self.token_store = token_store
        self.draft_lookup = draft_lookup
        self.pipeline_factory = pipeline_factory
        self.admin_url = admin_url
        self.allowed_origins = tuple(allowed_origins)

    def handle(
        self,
        payload: dict[str, Any],
        origin: str | None = None,
        should_abort: Callable[[], bool] | None = None,
    ) -> WebhookResponse:
        return WebhookResponse(
            result=self.process(payload, should_abort),
            headers=self.cors_headers(origin),
        )

    def process(
        self,
        payload: dict[str, Any],
        should_abort: Callable[[], bool] | None = None,
    ) -> Result[dict[str, Any]]:
        request = self.validate(payload)
        if isinstance(request, Err):
            return request
        identifier, project_id, document_id = request.value

        token = self.resolve_credential(identifier)
        if isinstance(token, Err):
            return token

        record_id = self.dispatch(identifier, project_id, document_id, token.value, should_abort)
        if isinstance(record_id, Err):
            logger.warning(
                f"Import of {project_id}/{document_id} failed: "
                f"{record_id.error.code} {record_id.error.detail}"
            )
            return record_id

        return Ok(
            {
                "project": project_id,
                "document": document_id,
                "post_id": record_id.value,
                "edit_url": build_edit_url(self.admin_url, record_id.value),
            }
        )

    def validate(self, payload: dict[str, Any]) -> Result[tuple[str, str, str]]:
        """
        Require identifier, project and document; report every failing field.

        Numbers are read as their string form. Absent or blank values are
        missing; booleans and containers are invalid.
        """
        values = []
        errors = []

        for name in REQUIRED_FIELDS:
            value = payload.get(name) if isinstance(payload, dict) else None

            if isinstance(value, bool) or not isinstance(value, (str, int, float, type(None))):
                errors.append(
                    FieldError(
                        field=name,
                        code="invalid_field",
                        message=f"The {name} parameter must be a string or number",
                    )
                )
                values.append("")
                continue

            value = sanitize_text_field(str(value)) if value is not None else ""
            if not value:
                errors.append(
                    FieldError(
                        field=name,
                        code="missing_field",
                        message=f"The {name} parameter is required",
                    )
                )
            values.append(value)

        if errors:
            fields = ", ".join(e.field for e in errors)
            return err(
                ErrorKind.VALIDATION,
                "invalid_request",
                f"Missing or invalid parameters: {fields}",
                errors=tuple(errors),
            )

        return Ok(tuple(values))

    def resolve_credential(self, identifier: str) -> Result[str]:
        token = self.token_store.get(identifier)
        if isinstance(token, Err):
            logger.warning(f"Credential lookup for {identifier} failed: {token.error.code}")
        elif token.value:
            return token

        return err(
            ErrorKind.CREDENTIAL,
            "missing_credentials",
            "No credentials are stored for this identifier",
        )

    def dispatch(
        self,
        identifier: str,
        project_id: str,
        document_id: str,
        token: str,
        should_abort: Callable[[], bool] | None = None,
    ) -> Result[int]:
        existing = self.draft_lookup.lookup(project_id, document_id)
        if isinstance(existing, Err):
            return existing

        pipeline = self.pipeline_factory(token)

        if existing.value:
            logger.info(f"Updating draft {existing.value} from {project_id}/{document_id}")
            return pipeline.update_from_document(
                project_id, document_id, existing.value, should_abort=should_abort
            )

        logger.info(f"Creating draft from {project_id}/{document_id} for {identifier}")
        return pipeline.create_from_document(
            project_id, document_id, identifier, should_abort=should_abort
        )

    def cors_headers(self, origin: str | None) -> dict[str, str]:
        """Echo the request Origin when allowed, else the first allowed origin."""
        allowed = origin if origin and origin in self.allowed_origins else None
        if allowed is None:
            allowed = self.allowed_origins[0] if self.allowed_origins else "null"

        return {
            "Access-Control-Allow-Origin": allowed,
            "Access-Control-Allow-Methods": "POST,OPTIONS",
            "Access-Control-Allow-Headers": "Content-Type,Authorization",
            "Vary": "Origin",
        }
