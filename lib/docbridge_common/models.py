"""
Core data models for DocBridge.

These models represent a document as it moves through the import pipeline:
source document -> content record -> sideloaded assets
"""

from dataclasses import dataclass, field
from datetime import UTC, datetime
from decimal import Decimal
from enum import Enum
from typing import Any


class ContentStatus(str, Enum):
    """Content record statuses, mirroring the CMS post statuses."""

    DRAFT = "draft"
    PENDING = "pending"
    PRIVATE = "private"
    PUBLISH = "publish"


# Everything not yet published is eligible for re-import updates
DRAFT_LIKE_STATUSES = (ContentStatus.DRAFT, ContentStatus.PENDING, ContentStatus.PRIVATE)


def source_key(project_id: str, document_id: str) -> str:
    """Composite key used by the source document index."""
    return f"{project_id}#{document_id}"


def _to_int(value: Any) -> int:
    """DynamoDB returns numbers as Decimal."""
    if isinstance(value, Decimal):
        return int(value)
    return int(value or 0)


@dataclass
class Document:
    """
    A document exported by the source service.

    Attributes:
        project_id: Source project identifier
        document_id: Source document identifier
        title: Document title from the metadata endpoint
        rendered_html: Full rendered HTML document, including the shell
    """

    project_id: str
    document_id: str
    title: str = ""
    rendered_html: str = ""

    @classmethod
    def from_api(cls, project_id: str, document_id: str, data: dict[str, Any]) -> "Document":
        """Create Document from the metadata endpoint response."""
        return cls(
            project_id=project_id,
            document_id=document_id,
            title=str(data.get("title") or ""),
        )


@dataclass
class ContentRecord:
    """
    Locally persisted representation of an imported document.

    Attributes:
        record_id: Storage-assigned identifier (always >= 1)
        title: Plain-text title, set on creation only
        body_html: Body fragment, refreshed on every import
        status: One of ContentStatus
        author_id: Identity that created the record
        source_project_id: Set-once source project identifier
        source_document_id: Set-once source document identifier
        created_at: Creation timestamp
        updated_at: Last body update timestamp
    """

    record_id: int
    title: str
    body_html: str
    author_id: str
    source_project_id: str
    source_document_id: str
    status: ContentStatus = ContentStatus.DRAFT
    created_at: datetime = field(default_factory=lambda: datetime.now(UTC))
    updated_at: datetime = field(default_factory=lambda: datetime.now(UTC))

    @property
    def is_published(self) -> bool:
        return self.status == ContentStatus.PUBLISH

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for DynamoDB storage."""
        return {
            "record_id": self.record_id,
            "title": self.title,
            "body_html": self.body_html,
            "status": self.status.value,
            "author_id": self.author_id,
            "source_project_id": self.source_project_id,
            "source_document_id": self.source_document_id,
            "source_key": source_key(self.source_project_id, self.source_document_id),
            "created_at": self.created_at.isoformat(),
            "updated_at": self.updated_at.isoformat(),
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "ContentRecord":
        """Create ContentRecord from DynamoDB record."""
        created_at = data.get("created_at")
        updated_at = data.get("updated_at")

        return cls(
            record_id=_to_int(data["record_id"]),
            title=data.get("title", ""),
            body_html=data.get("body_html", ""),
            status=ContentStatus(data.get("status", "draft")),
            author_id=str(data.get("author_id", "")),
            source_project_id=data.get("source_project_id", ""),
            source_document_id=data.get("source_document_id", ""),
            created_at=datetime.fromisoformat(created_at) if created_at else datetime.now(UTC),
            updated_at=datetime.fromisoformat(updated_at) if updated_at else datetime.now(UTC),
        )


@dataclass
class AssetReference:
    """
    Mapping of one remote image URL to its local copy during a single pass.

    Not persisted; only used to avoid downloading the same URL twice.
    """

    remote_url: str
    local_url: str
    alt_text: str = ""
    origin_metadata: dict[str, str] = field(default_factory=dict)


@dataclass
class StoredAsset:
    """
    A sideloaded media file attached to a content record.

    Attributes:
        asset_id: Unique identifier (uuid4 hex)
        record_id: Content record the asset is attached to
        s3_key: Object key in the media bucket
        local_url: Public URL of the local copy
        filename: Original filename derived from the remote URL
        content_type: MIME type reported by the remote host
        size_bytes: Downloaded size
        author_id: Inherited from the parent record when not given
        origin: Remote URL the asset was downloaded from
        metadata: Non-empty metadata values (e.g. alt_text)
        created_at: Creation timestamp
    """

    asset_id: str
    record_id: int
    s3_key: str
    local_url: str
    filename: str
    content_type: str
    size_bytes: int = 0
    author_id: str | None = None
    origin: str = ""
    metadata: dict[str, str] = field(default_factory=dict)
    created_at: datetime = field(default_factory=lambda: datetime.now(UTC))

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for DynamoDB storage."""
        data = {
            "asset_id": self.asset_id,
            "record_id": self.record_id,
            "s3_key": self.s3_key,
            "local_url": self.local_url,
            "filename": self.filename,
            "content_type": self.content_type,
            "size_bytes": self.size_bytes,
            "origin": self.origin,
            "metadata": self.metadata,
            "created_at": self.created_at.isoformat(),
        }

        if self.author_id:
            data["author_id"] = self.author_id

        return data

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "StoredAsset":
        """Create StoredAsset from DynamoDB record."""
        created_at = data.get("created_at")

        return cls(
            asset_id=data["asset_id"],
            record_id=_to_int(data["record_id"]),
            s3_key=data["s3_key"],
            local_url=data["local_url"],
            filename=data.get("filename", ""),
            content_type=data.get("content_type", ""),
            size_bytes=_to_int(data.get("size_bytes", 0)),
            author_id=data.get("author_id"),
            origin=data.get("origin", ""),
            metadata=dict(data.get("metadata", {})),
            created_at=datetime.fromisoformat(created_at) if created_at else datetime.now(UTC),
        )


@dataclass
class ImportOutcome:
    """Result of a single create-or-update import."""

    record_id: int
    created: bool
    images_replaced: int = 0
