"""
Document Webhook Lambda

Receives "document ready" callbacks from the source service through API
Gateway (proxy integration), imports the document as a draft content record,
and answers with the record id and its edit link.

Input event (API Gateway proxy):
{
    "httpMethod": "POST",
    "headers": {"Content-Type": "application/json", "Origin": "https://app.airstory.co"},
    "body": "{\"identifier\": \"user-123\", \"project\": \"p-1\", \"document\": \"d-1\"}",
    "isBase64Encoded": false
}

Output body (200):
{
    "project": "p-1",
    "document": "d-1",
    "post_id": 42,
    "edit_url": "https://cms.example.com/wp-admin/post.php?post=42&action=edit"
}
"""

import base64
import binascii
import json
import logging
import os
from urllib.parse import parse_qs

from docbridge_common import constants
from docbridge_common.config import ConfigurationManager, ImportSettings
from docbridge_common.credentials import TokenStore
from docbridge_common.drafts import DraftLookup
from docbridge_common.events import DocumentImported, EventBus, EventType
from docbridge_common.formatting import HtmlBodyExtractor
from docbridge_common.logging_utils import safe_log_event
from docbridge_common.media import AssetSideloader, MediaRewriter
from docbridge_common.originals import OriginalAssetResolver
from docbridge_common.pipeline import ImportPipeline
from docbridge_common.result import ErrorKind, err
from docbridge_common.source_api import SourceApiClient
from docbridge_common.storage import AssetStore, ContentStore
from docbridge_common.webhook import WebhookHandler, WebhookResponse

logger = logging.getLogger()
logger.setLevel(os.environ.get("LOG_LEVEL", "INFO"))

REQUIRED_ENV_VARS = (
    "CONTENT_TABLE",
    "ASSETS_TABLE",
    "MEDIA_BUCKET",
    "CREDENTIALS_TABLE",
    "CREDENTIALS_KMS_KEY_ID",
)

# Module-level clients (lazy init, reused across warm invocations)
_stores = None
_config_manager = None


def lambda_handler(event, context):
    """
    Main Lambda handler - validates the callback and runs the import.
    """
    for name in REQUIRED_ENV_VARS:
        if not os.environ.get(name):
            raise ValueError(f"{name} environment variable required")

    logger.info(f"Webhook event: {safe_log_event(event)}")

    headers = {k.lower(): v for k, v in (event.get("headers") or {}).items()}
    origin = headers.get("origin")
    method = event.get("httpMethod") or event.get("requestContext", {}).get("http", {}).get(
        "method", "POST"
    )

    try:
        handler = build_handler(load_settings())

        if method.upper() == "OPTIONS":
            return _response(204, None, handler.cors_headers(origin))

        try:
            payload = parse_payload(event, headers.get("content-type", ""))
        except ValueError as e:
            logger.warning(f"Rejecting undecodable request body: {e}")
            response = WebhookResponse(
                result=err(
                    ErrorKind.VALIDATION,
                    "invalid_json",
                    "The request body could not be decoded",
                ),
                headers=handler.cors_headers(origin),
            )
        else:
            response = handler.handle(payload, origin=origin, should_abort=deadline_check(context))

        return _response(response.status_code, response.body, response.headers)

    except Exception as e:
        logger.error(f"Unexpected webhook failure: {e}", exc_info=True)
        return _response(
            500,
            {
                "code": "internal_error",
                "message": "An unexpected error occurred",
                "data": {"status": 500},
            },
            {"Vary": "Origin"},
        )


def get_stores():
    """Lazy initialization of the content, asset and token stores."""
    global _stores
    if _stores is None:
        _stores = (
            ContentStore(os.environ["CONTENT_TABLE"]),
            AssetStore(os.environ["ASSETS_TABLE"], os.environ["MEDIA_BUCKET"]),
            TokenStore(os.environ["CREDENTIALS_TABLE"], os.environ["CREDENTIALS_KMS_KEY_ID"]),
        )
    return _stores


def get_config_manager():
    """Lazy initialization of ConfigurationManager (None without a configuration table)."""
    global _config_manager
    if _config_manager is None and os.environ.get("CONFIGURATION_TABLE_NAME"):
        _config_manager = ConfigurationManager()
    return _config_manager


def load_settings() -> ImportSettings:
    """Settings from env vars, plus the configuration table when one is configured."""
    return ImportSettings.load(get_config_manager())


def build_handler(settings: ImportSettings) -> WebhookHandler:
    """Wire the settings-dependent collaborators around the cached stores."""
    content_store, asset_store, token_store = get_stores()

    bus = EventBus()
    bus.subscribe(EventType.DOCUMENT_IMPORTED, _log_imported)

    sideloader = AssetSideloader(
        asset_store,
        event_bus=bus,
        content_store=content_store,
        timeout=settings.media_download_timeout,
    )
    OriginalAssetResolver(sideloader, settings.image_host_families).register(bus)

    rewriter = MediaRewriter(sideloader, settings.sideload_domains, content_store=content_store)
    extractor = HtmlBodyExtractor(strip_wrapper=settings.strip_wrapping_div)
    draft_lookup = DraftLookup(content_store)

    def pipeline_factory(token: str) -> ImportPipeline:
        fetcher = SourceApiClient(
            token,
            base_url=settings.source_api_base,
            timeout=settings.source_api_timeout,
        )
        return ImportPipeline(
            fetcher,
            content_store,
            extractor=extractor,
            media_rewriter=rewriter,
            event_bus=bus,
            draft_lookup=draft_lookup,
        )

    return WebhookHandler(
        token_store,
        draft_lookup,
        pipeline_factory,
        admin_url=settings.admin_url,
        allowed_origins=settings.allowed_origins,
    )


def parse_payload(event: dict, content_type: str) -> dict:
    """
    Decode the request body into a field dict.

    Query string parameters are accepted too; body fields take precedence.

    Raises:
        ValueError: If the body cannot be decoded
    """
    body = event.get("body") or ""

    if event.get("isBase64Encoded") and body:
        try:
            body = base64.b64decode(body).decode("utf-8")
        except (binascii.Error, UnicodeDecodeError) as e:
            raise ValueError(f"Invalid base64 body: {e}") from e

    payload = dict(event.get("queryStringParameters") or {})

    if "application/x-www-form-urlencoded" in content_type.lower():
        form = parse_qs(body, keep_blank_values=True)
        payload.update({k: v[0] for k, v in form.items()})
        return payload

    if body.strip():
        data = json.loads(body)
        if not isinstance(data, dict):
            raise ValueError("JSON body must be an object")
        payload.update(data)

    return payload


def deadline_check(context):
    """Abort predicate for the media pass based on remaining Lambda time."""
    if context is None or not hasattr(context, "get_remaining_time_in_millis"):
        return None

    def should_abort() -> bool:
        return context.get_remaining_time_in_millis() < constants.MEDIA_PASS_SAFETY_MARGIN_MS

    return should_abort


def _log_imported(event: DocumentImported) -> None:
    action = "Created" if event.created else "Updated"
    logger.info(
        f"{action} record {event.record_id} from {event.project_id}/{event.document_id} "
        f"({event.images_replaced} images sideloaded)"
    )


def _response(status_code: int, body: dict | None, headers: dict) -> dict:
    """Create API Gateway proxy response."""
    return {
        "statusCode": status_code,
        "headers": {"Content-Type": "application/json", **headers},
        "body": json.dumps(body) if body is not None else "",
    }
