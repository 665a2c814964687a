"""
Source service REST client.

Fetches document metadata and the rendered HTML content for one
(project, document) pair. Every request carries the caller's bearer token
and a timeout; there are no in-process retries; a failed delivery is
reported to the source service, which redelivers the webhook.
"""

import json
import logging
from typing import Any

import httpx

from docbridge_common import constants
from docbridge_common.exceptions import SourceApiError
from docbridge_common.models import Document
from docbridge_common.result import Err, ErrorKind, Ok, Result, err

logger = logging.getLogger(__name__)


class SourceApiClient:
    """Read-only client for the source service API (DocumentFetcher)."""

    USER_AGENT = "DocBridge/1.0"

    # Upstream statuses worth a redelivery
    RETRYABLE_STATUS_CODES = {429, 500, 502, 503, 504}

    def __init__(
        self,
        token: str,
        base_url: str = constants.SOURCE_API_BASE,
        timeout: float = constants.SOURCE_API_TIMEOUT,
        transport: httpx.BaseTransport | None = None,
    ):
        """
        Initialize the client.

        Args:
            token: Bearer token resolved for the requesting identity
            base_url: API base URL (no trailing slash)
            timeout: Request timeout in seconds
            transport: Optional httpx transport (tests use MockTransport)
        """
        self.token = token
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self.transport = transport

    def get_document(self, project_id: str, document_id: str) -> Result[Document]:
        """
        Fetch document metadata.

        Returns:
            Ok(Document) without rendered_html, or Err(UPSTREAM_FETCH/CREDENTIAL)
        """
        result = self._get_json(f"/projects/{project_id}/documents/{document_id}")
        if isinstance(result, Err):
            return result

        return Ok(Document.from_api(project_id, document_id, result.value))

    def get_document_content(self, project_id: str, document_id: str) -> Result[str]:
        """
        Fetch the rendered HTML for a document.

        Returns:
            Ok(full HTML document), or Err(UPSTREAM_FETCH/CREDENTIAL)
        """
        return self._get_text(f"/projects/{project_id}/documents/{document_id}/content")

    def _get_json(self, path: str) -> Result[dict[str, Any]]:
        result = self._get_text(path)
        if isinstance(result, Err):
            return result

        url = f"{self.base_url}{path}"
        try:
            data = json.loads(result.value)
        except json.JSONDecodeError:
            data = None

        if not isinstance(data, dict) or not data:
            logger.warning(f"Invalid JSON returned from {url}")
            return err(
                ErrorKind.UPSTREAM_FETCH,
                "invalid_json",
                "The source service returned an invalid JSON response",
                url=url,
            )

        return Ok(data)

    def _get_text(self, path: str) -> Result[str]:
        if not self.token:
            return err(
                ErrorKind.CREDENTIAL,
                "missing_credentials",
                "No credentials are available for the source service",
            )

        url = f"{self.base_url}{path}"
        try:
            return Ok(self._request(url))
        except SourceApiError as e:
            logger.warning(str(e))
            return err(
                ErrorKind.UPSTREAM_FETCH,
                "upstream_error",
                "Unable to retrieve the document from the source service",
                retryable=e.retryable,
                url=url,
                status_code=e.status_code,
            )

    def _request(self, url: str) -> str:
        """
        Perform one GET request.

        Raises:
            SourceApiError: On transport failure, timeout or non-2xx status
        """
        headers = {
            "Authorization": f"Bearer={self.token}",
            "Accept": "application/json, text/html",
            "User-Agent": self.USER_AGENT,
        }

        try:
            with httpx.Client(
                timeout=self.timeout,
                transport=self.transport,
                follow_redirects=True,
            ) as client:
                response = client.get(url, headers=headers)
                response.raise_for_status()
                return response.text
        except httpx.HTTPStatusError as e:
            status = e.response.status_code
            raise SourceApiError(
                url,
                f"HTTP {status}",
                status_code=status,
                retryable=status in self.RETRYABLE_STATUS_CODES,
            ) from e
        except httpx.TimeoutException as e:
            raise SourceApiError(url, f"Timeout: {e}", retryable=True) from e
        except httpx.RequestError as e:
            raise SourceApiError(url, f"Request error: {e}") from e
