"""
Storage for content records and sideloaded assets.

Content records live in a DynamoDB table keyed by a numeric record_id.
Ids come from an atomic counter item stored in the same table under the
reserved key record_id=0, so every real record id is >= 1.

Content table schema:
{
    "record_id": 42,                       # Partition key (number)
    "source_key": "project#document",      # SourceDocumentIndex hash key
    "created_at": "2026-01-15T...",        # SourceDocumentIndex range key
    "status": "draft",
    "title": "...",
    "body_html": "...",
    ...
}

Assets are stored as S3 objects under media/<record_id>/<asset_id>/<filename>
with one DynamoDB row per asset.
"""

import logging
import os
from collections.abc import Iterator
from datetime import UTC, datetime

import boto3
from boto3.dynamodb.conditions import Attr, Key
from boto3.exceptions import S3UploadFailedError
from botocore.exceptions import ClientError

from docbridge_common import constants
from docbridge_common.exceptions import StorageError
from docbridge_common.models import (
    ContentRecord,
    ContentStatus,
    StoredAsset,
    _to_int,
    source_key,
)

logger = logging.getLogger(__name__)


class ContentStore:
    """
    DynamoDB-backed content record storage.

    Usage:
        store = ContentStore("content-table")
        record = store.create(title="Hello", body_html="<p>Hi</p>", ...)
        store.update_body(record.record_id, "<p>Updated</p>")
    """

    def __init__(self, table_name: str | None = None):
        table_name = table_name or os.environ.get("CONTENT_TABLE")
        if not table_name:
            raise ValueError("CONTENT_TABLE environment variable required")

        self.table = boto3.resource("dynamodb").Table(table_name)
        self.table_name = table_name

    def next_record_id(self) -> int:
        """
        Atomically allocate the next record id.

        Raises:
            StorageError: If the counter cannot be incremented
        """
        try:
            response = self.table.update_item(
                Key={"record_id": constants.RECORD_COUNTER_KEY},
                UpdateExpression="ADD next_id :one",
                ExpressionAttributeValues={":one": 1},
                ReturnValues="UPDATED_NEW",
            )
        except ClientError as e:
            raise StorageError(f"Failed to allocate record id: {e}") from e

        return _to_int(response["Attributes"]["next_id"])

    def create(
        self,
        *,
        title: str,
        body_html: str,
        author_id: str,
        source_project_id: str,
        source_document_id: str,
        status: ContentStatus = ContentStatus.DRAFT,
    ) -> ContentRecord:
        """
        Persist a new content record.

        Raises:
            StorageError: If the write fails
        """
        now = datetime.now(UTC)
        record = ContentRecord(
            record_id=self.next_record_id(),
            title=title,
            body_html=body_html,
            author_id=author_id,
            source_project_id=source_project_id,
            source_document_id=source_document_id,
            status=status,
            created_at=now,
            updated_at=now,
        )

        try:
            self.table.put_item(
                Item=record.to_dict(),
                ConditionExpression="attribute_not_exists(record_id)",
            )
        except ClientError as e:
            raise StorageError(f"Failed to create record {record.record_id}: {e}") from e

        logger.info(
            f"Created record {record.record_id} for "
            f"{source_key(source_project_id, source_document_id)}"
        )
        return record

    def get(self, record_id: int) -> ContentRecord | None:
        """
        Load a record by id.

        Raises:
            StorageError: If the read fails
        """
        if record_id == constants.RECORD_COUNTER_KEY:
            return None

        try:
            response = self.table.get_item(Key={"record_id": record_id})
        except ClientError as e:
            raise StorageError(f"Failed to read record {record_id}: {e}") from e

        item = response.get("Item")
        return ContentRecord.from_dict(item) if item else None

    def update_body(self, record_id: int, body_html: str) -> None:
        """
        Replace a record's body and bump updated_at.

        Title, author and source attributes are never touched.

        Raises:
            StorageError: If the record does not exist or the write fails
        """
        try:
            self.table.update_item(
                Key={"record_id": record_id},
                UpdateExpression="SET body_html = :body, updated_at = :ts",
                ConditionExpression="attribute_exists(record_id)",
                ExpressionAttributeValues={
                    ":body": body_html,
                    ":ts": datetime.now(UTC).isoformat(),
                },
            )
        except ClientError as e:
            error_code = e.response.get("Error", {}).get("Code", "")
            if error_code == "ConditionalCheckFailedException":
                raise StorageError(f"Record {record_id} does not exist") from e
            raise StorageError(f"Failed to update record {record_id}: {e}") from e

    def find_by_source(
        self,
        project_id: str,
        document_id: str,
        statuses: tuple[ContentStatus, ...] | None = None,
    ) -> Iterator[ContentRecord]:
        """
        Yield records imported from a source document, oldest first.

        Follows LastEvaluatedKey until the index is exhausted, since the
        status filter is applied after each page is read.

        Raises:
            StorageError: If a query fails
        """
        query_kwargs = {
            "IndexName": constants.SOURCE_DOCUMENT_INDEX,
            "KeyConditionExpression": Key("source_key").eq(source_key(project_id, document_id)),
            "ScanIndexForward": True,
        }
        if statuses:
            query_kwargs["FilterExpression"] = Attr("status").is_in([s.value for s in statuses])

        while True:
            try:
                response = self.table.query(**query_kwargs)
            except ClientError as e:
                raise StorageError(
                    f"Failed to query records for {source_key(project_id, document_id)}: {e}"
                ) from e

            for item in response.get("Items", []):
                yield ContentRecord.from_dict(item)

            last_key = response.get("LastEvaluatedKey")
            if not last_key:
                return
            query_kwargs["ExclusiveStartKey"] = last_key


class AssetStore:
    """S3 objects plus DynamoDB rows for sideloaded media."""

    def __init__(
        self,
        table_name: str | None = None,
        bucket: str | None = None,
        media_base_url: str | None = None,
    ):
        """
        Args:
            table_name: Assets table. Defaults to ASSETS_TABLE env var.
            bucket: Media bucket. Defaults to MEDIA_BUCKET env var.
            media_base_url: Public base URL for stored media. Defaults to
                MEDIA_BASE_URL env var, then the bucket's S3 endpoint.
        """
        table_name = table_name or os.environ.get("ASSETS_TABLE")
        bucket = bucket or os.environ.get("MEDIA_BUCKET")

        if not table_name:
            raise ValueError("ASSETS_TABLE environment variable required")
        if not bucket:
            raise ValueError("MEDIA_BUCKET environment variable required")

        self.table = boto3.resource("dynamodb").Table(table_name)
        self.s3 = boto3.client("s3")
        self.bucket = bucket

        base_url = media_base_url or os.environ.get("MEDIA_BASE_URL")
        self.media_base_url = (base_url or f"https://{bucket}.s3.amazonaws.com").rstrip("/")

    @staticmethod
    def build_key(record_id: int, asset_id: str, filename: str) -> str:
        return f"{constants.MEDIA_KEY_PREFIX}/{record_id}/{asset_id}/{filename}"

    def public_url(self, key: str) -> str:
        return f"{self.media_base_url}/{key}"

    def upload_file(self, path: str, key: str, content_type: str) -> None:
        """
        Upload a local file to the media bucket.

        Raises:
            StorageError: If the upload fails
        """
        try:
            self.s3.upload_file(
                path,
                self.bucket,
                key,
                ExtraArgs={"ContentType": content_type},
            )
        except (ClientError, S3UploadFailedError) as e:
            raise StorageError(f"Failed to upload s3://{self.bucket}/{key}: {e}") from e

    def create_asset(self, asset: StoredAsset) -> StoredAsset:
        """
        Write the asset row.

        Raises:
            StorageError: If the write fails
        """
        try:
            self.table.put_item(Item=asset.to_dict())
        except ClientError as e:
            raise StorageError(f"Failed to store asset {asset.asset_id}: {e}") from e

        logger.debug(f"Stored asset {asset.asset_id} for record {asset.record_id}")
        return asset

    def get_asset(self, asset_id: str) -> StoredAsset | None:
        """
        Load an asset row.

        Raises:
            StorageError: If the read fails
        """
        try:
            response = self.table.get_item(Key={"asset_id": asset_id})
        except ClientError as e:
            raise StorageError(f"Failed to read asset {asset_id}: {e}") from e

        item = response.get("Item")
        return StoredAsset.from_dict(item) if item else None
