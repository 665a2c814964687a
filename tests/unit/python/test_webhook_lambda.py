"""Unit tests for the webhook Lambda handler."""

import base64
import importlib.util
import json
import sys
from pathlib import Path
from unittest.mock import MagicMock, patch
from urllib.parse import urlencode

import pytest

from docbridge_common.credentials import TokenStore
from docbridge_common.models import Document
from docbridge_common.storage import ContentStore
from docbridge_common.result import Ok
from tests.fixtures.document_samples import RENDERED_DOCUMENT, RENDERED_DOCUMENT_BODY


def _load_webhook_module():
    """Load webhook module using importlib (avoids 'lambda' keyword issue)."""
    module_path = Path(__file__).parent.parent.parent.parent / "src/lambda/webhook/index.py"
    spec = importlib.util.spec_from_file_location("webhook_index", module_path)
    module = importlib.util.module_from_spec(spec)
    sys.modules["webhook_index"] = module
    spec.loader.exec_module(module)
    return module


def _event(body, method="POST", content_type="application/json", origin=None, b64=False):
    headers = {"Content-Type": content_type}
    if origin:
        headers["Origin"] = origin
    if b64:
        body = base64.b64encode(body.encode()).decode()
    return {
        "httpMethod": method,
        "headers": headers,
        "body": body,
        "isBase64Encoded": b64,
    }


PAYLOAD = {"identifier": "user-1", "project": "proj-1", "document": "doc-1"}


@pytest.fixture
def _mock_env(monkeypatch, content_table, assets_table, credentials_table, media_bucket, kms_key_id):
    """Environment and moto resources for a full handler run."""
    monkeypatch.setenv("CONTENT_TABLE", "test-content")
    monkeypatch.setenv("ASSETS_TABLE", "test-assets")
    monkeypatch.setenv("MEDIA_BUCKET", media_bucket)
    monkeypatch.setenv("CREDENTIALS_TABLE", "test-credentials")
    monkeypatch.setenv("CREDENTIALS_KMS_KEY_ID", kms_key_id)
    monkeypatch.setenv("CMS_ADMIN_URL", "https://cms.example/wp-admin")
    monkeypatch.delenv("CONFIGURATION_TABLE_NAME", raising=False)
    monkeypatch.setenv("LOG_LEVEL", "INFO")

    TokenStore("test-credentials", kms_key_id).set("user-1", "secret-token")


@pytest.fixture
def module(_mock_env):
    module = _load_webhook_module()
    fetcher = MagicMock()
    fetcher.get_document.return_value = Ok(Document("proj-1", "doc-1", title="My document"))
    fetcher.get_document_content.return_value = Ok(RENDERED_DOCUMENT)

    with patch.object(module, "SourceApiClient", return_value=fetcher) as client_cls:
        module.mock_client_cls = client_cls
        yield module


class TestWebhookLambda:
    """Tests for lambda_handler."""

    def test_missing_env(self, monkeypatch):
        for name in ("CONTENT_TABLE", "ASSETS_TABLE", "MEDIA_BUCKET"):
            monkeypatch.delenv(name, raising=False)

        module = _load_webhook_module()

        with pytest.raises(ValueError, match="CONTENT_TABLE"):
            module.lambda_handler(_event(json.dumps(PAYLOAD)), None)

    def test_creates_record(self, module, content_table):
        response = module.lambda_handler(_event(json.dumps(PAYLOAD)), None)

        assert response["statusCode"] == 200
        body = json.loads(response["body"])
        assert body == {
            "project": "proj-1",
            "document": "doc-1",
            "post_id": 1,
            "edit_url": "https://cms.example/wp-admin/post.php?post=1&action=edit",
        }
        item = content_table.get_item(Key={"record_id": 1})["Item"]
        assert item["body_html"] == RENDERED_DOCUMENT_BODY
        assert item["author_id"] == "user-1"
        module.mock_client_cls.assert_called_once()
        assert module.mock_client_cls.call_args.args[0] == "secret-token"

    def test_second_delivery_updates_same_record(self, module):
        first = module.lambda_handler(_event(json.dumps(PAYLOAD)), None)
        second = module.lambda_handler(_event(json.dumps(PAYLOAD)), None)

        assert json.loads(first["body"])["post_id"] == json.loads(second["body"])["post_id"]

    def test_form_encoded_body(self, module):
        event = _event(urlencode(PAYLOAD), content_type="application/x-www-form-urlencoded")

        response = module.lambda_handler(event, None)

        assert response["statusCode"] == 200

    def test_base64_body(self, module):
        response = module.lambda_handler(_event(json.dumps(PAYLOAD), b64=True), None)

        assert response["statusCode"] == 200

    def test_invalid_json(self, module):
        response = module.lambda_handler(_event("{not json"), None)

        assert response["statusCode"] == 400
        assert json.loads(response["body"])["code"] == "invalid_json"

    def test_missing_identifier(self, module):
        payload = {"project": "proj-1", "document": "doc-1"}

        response = module.lambda_handler(_event(json.dumps(payload)), None)

        assert response["statusCode"] == 400
        body = json.loads(response["body"])
        assert [e["field"] for e in body["errors"]] == ["identifier"]
        assert body["data"] == {"status": 400}

    def test_unknown_identity(self, module):
        payload = dict(PAYLOAD, identifier="someone-else")

        response = module.lambda_handler(_event(json.dumps(payload)), None)

        assert response["statusCode"] == 401
        assert json.loads(response["body"])["code"] == "missing_credentials"
        module.mock_client_cls.assert_not_called()

    def test_options_preflight(self, module):
        response = module.lambda_handler(
            _event("", method="OPTIONS", origin="https://app.airstory.co"), None
        )

        assert response["statusCode"] == 204
        assert response["body"] == ""
        assert response["headers"]["Access-Control-Allow-Origin"] == "https://app.airstory.co"

    def test_cors_never_wildcard(self, module):
        response = module.lambda_handler(
            _event(json.dumps(PAYLOAD), origin="https://evil.example"), None
        )

        assert response["headers"]["Access-Control-Allow-Origin"] == "https://app.airstory.co"
        assert response["headers"]["Vary"] == "Origin"

    def test_unexpected_error(self, module):
        with patch.object(module, "build_handler", side_effect=RuntimeError("boom")):
            response = module.lambda_handler(_event(json.dumps(PAYLOAD)), None)

        assert response["statusCode"] == 500
        body = json.loads(response["body"])
        assert body["code"] == "internal_error"
        assert "boom" not in response["body"]

    def test_configuration_table_overrides_origins(self, module, configuration_table, monkeypatch):
        configuration_table.put_item(
            Item={"Configuration": "Custom", "webhook_allowed_origins": ["https://other.example"]}
        )
        monkeypatch.setenv("CONFIGURATION_TABLE_NAME", "test-configuration")

        response = module.lambda_handler(_event(json.dumps(PAYLOAD)), None)

        assert response["headers"]["Access-Control-Allow-Origin"] == "https://other.example"

    def test_stores_reused_across_invocations(self, module):
        with patch.object(module, "ContentStore", wraps=ContentStore) as content_store_cls:
            first = module.lambda_handler(_event(json.dumps(PAYLOAD)), None)
            second = module.lambda_handler(_event(json.dumps(PAYLOAD)), None)

        assert first["statusCode"] == second["statusCode"] == 200
        content_store_cls.assert_called_once()

    def test_numeric_identifier_in_json(self, module, kms_key_id):
        TokenStore("test-credentials", kms_key_id).set("42", "secret-token")
        payload = {"identifier": 42, "project": "proj-1", "document": "doc-1"}

        response = module.lambda_handler(_event(json.dumps(payload)), None)

        assert response["statusCode"] == 200


class TestHelpers:
    """Tests for request parsing and the media deadline."""

    def test_query_string_fields(self, module):
        event = {"queryStringParameters": {"identifier": "user-1"}, "body": None}

        assert module.parse_payload(event, "") == {"identifier": "user-1"}

    def test_body_must_be_object(self, module):
        with pytest.raises(ValueError, match="object"):
            module.parse_payload({"body": "[1, 2]"}, "application/json")

    def test_deadline_check(self, module):
        context = MagicMock()
        context.get_remaining_time_in_millis.return_value = 5000
        assert module.deadline_check(context)() is True

        context.get_remaining_time_in_millis.return_value = 60000
        assert module.deadline_check(context)() is False

        assert module.deadline_check(None) is None
