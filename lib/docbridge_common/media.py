"""
Embedded media sideloading.

After a record is persisted, its body is scanned for <img> elements served
from the source service's media hosts. Each distinct remote URL is
downloaded once, stored in the media bucket, attached to the record, and the
element's src is pointed at the local copy. Only those src values change;
every other byte of the fragment is kept as it was.

Media failures never fail an import: they are collected as SideloadWarning
values and logged.
"""

import logging
import os
import posixpath
import re
import tempfile
import uuid
from collections.abc import Callable
from dataclasses import dataclass, field
from html import escape
from urllib.parse import unquote, urlparse

import httpx
from bs4 import BeautifulSoup

from docbridge_common import constants
from docbridge_common.events import EventBus, SideloadCompleted
from docbridge_common.exceptions import SideloadError, StorageError
from docbridge_common.models import AssetReference, StoredAsset
from docbridge_common.storage import AssetStore, ContentStore

logger = logging.getLogger(__name__)

# One <img ...> start tag; quoted attribute values may contain ">"
IMG_TAG = re.compile(r"""<img\b(?:"[^"]*"|'[^']*'|[^'">])*>""", re.IGNORECASE)

# name or name=value inside a start tag
TAG_ATTRIBUTE = re.compile(r"""([^\s"'<>/=]+)(?:\s*=\s*("[^"]*"|'[^']*'|[^\s"'=<>`]+))?""")


@dataclass(frozen=True)
class SideloadWarning:
    """A non-fatal failure to sideload one remote asset."""

    url: str
    reason: str


@dataclass
class MediaRewriteResult:
    """
    Outcome of one media pass.

    Attributes:
        new_html: Rewritten fragment (the input itself when nothing changed)
        replaced_count: Number of <img> elements whose src was rewritten
        warnings: Per-asset failures
        aborted: True when the pass was abandoned before completion
    """

    new_html: str
    replaced_count: int = 0
    warnings: list[SideloadWarning] = field(default_factory=list)
    aborted: bool = False


def is_valid_media_url(url: str | None) -> bool:
    """True for absolute http(s) URLs with a host."""
    if not url:
        return False
    parsed = urlparse(url)
    return parsed.scheme in ("http", "https") and bool(parsed.hostname)


def filename_from_url(url: str, content_type: str = "") -> str:
    """Derive a storage filename from the URL path, adding an extension if needed."""
    name = posixpath.basename(unquote(urlparse(url).path)) or "image"
    name = "".join(c if c.isalnum() or c in "._-" else "_" for c in name)

    if not posixpath.splitext(name)[1]:
        name += constants.SUPPORTED_IMAGE_TYPES.get(content_type, "")

    return name


def replace_src(tag: str, url: str) -> str:
    """Swap the src value inside one <img> start tag, keeping every other byte."""
    for match in TAG_ATTRIBUTE.finditer(tag, len("<img")):
        if match.group(1).lower() == "src" and match.group(2) is not None:
            start, end = match.span(2)
            return f'{tag[:start]}"{escape(url, quote=True)}"{tag[end:]}'
    return tag


def _line_offsets(text: str) -> list[int]:
    # html.parser reports (line, column) positions; lines split on "\n" only
    return [0] + [m.end() for m in re.finditer("\n", text)]


def _locate_tag(html_fragment: str, line_offsets: list[int], img) -> re.Match | None:
    if img.sourceline is None or img.sourcepos is None:
        return None
    offset = line_offsets[img.sourceline - 1] + img.sourcepos
    return IMG_TAG.match(html_fragment, offset)


def _splice(html_fragment: str, edits: list[tuple[int, int, str]]) -> str:
    parts = []
    last = 0
    for start, end, replacement in edits:
        parts.append(html_fragment[last:start])
        parts.append(replacement)
        last = end
    parts.append(html_fragment[last:])
    return "".join(parts)


class AssetSideloader:
    """
    Downloads one remote asset and stores it against a content record.

    Usage:
        sideloader = AssetSideloader(asset_store, event_bus=bus)
        asset = sideloader.sideload("https://images.airstory.co/v1/prod/a.jpg", 42)
    """

    def __init__(
        self,
        asset_store: AssetStore,
        event_bus: EventBus | None = None,
        content_store: ContentStore | None = None,
        timeout: float = constants.MEDIA_DOWNLOAD_TIMEOUT,
        max_bytes: int = constants.MAX_IMAGE_SIZE_BYTES,
        transport: httpx.BaseTransport | None = None,
    ):
        """
        Args:
            asset_store: Where files and asset rows are written
            event_bus: Receives SideloadCompleted after each stored asset
            content_store: Used to inherit the record's author when none is given
            timeout: Download timeout in seconds
            max_bytes: Largest accepted download
            transport: Optional httpx transport (tests use MockTransport)
        """
        self.asset_store = asset_store
        self.event_bus = event_bus
        self.content_store = content_store
        self.timeout = timeout
        self.max_bytes = max_bytes
        self.transport = transport

    def sideload(
        self,
        url: str,
        record_id: int,
        metadata: dict[str, str] | None = None,
        author_id: str | None = None,
    ) -> StoredAsset | None:
        """
        Sideload a single remote asset.

        Returns:
            The stored asset, or None when the URL is invalid or any step fails
        """
        try:
            return self.store(url, record_id, metadata, author_id)
        except SideloadError as e:
            logger.warning(str(e))
            return None

    def store(
        self,
        url: str,
        record_id: int,
        metadata: dict[str, str] | None = None,
        author_id: str | None = None,
        session: "SideloadSession | None" = None,
    ) -> StoredAsset:
        """
        Download, upload and record one asset, then publish SideloadCompleted.

        Raises:
            SideloadError: On invalid URL, download, or storage failure
        """
        if not is_valid_media_url(url):
            raise SideloadError(str(url), "invalid URL")

        metadata = {k: v for k, v in (metadata or {}).items() if k and v}

        with tempfile.NamedTemporaryFile(prefix="docbridge-", delete=False) as tmp_file:
            temp_path = tmp_file.name

        try:
            content_type, size = self._download(url, temp_path)

            asset_id = uuid.uuid4().hex
            filename = filename_from_url(url, content_type)
            key = self.asset_store.build_key(record_id, asset_id, filename)

            self.asset_store.upload_file(temp_path, key, content_type)
            asset = self.asset_store.create_asset(
                StoredAsset(
                    asset_id=asset_id,
                    record_id=record_id,
                    s3_key=key,
                    local_url=self.asset_store.public_url(key),
                    filename=filename,
                    content_type=content_type,
                    size_bytes=size,
                    author_id=author_id or self._record_author(record_id),
                    origin=url,
                    metadata=metadata,
                )
            )
        except StorageError as e:
            raise SideloadError(url, str(e)) from e
        finally:
            if os.path.exists(temp_path):
                os.unlink(temp_path)

        logger.info(f"Sideloaded {url} as asset {asset.asset_id} for record {record_id}")

        if self.event_bus is not None:
            self.event_bus.publish(
                SideloadCompleted(
                    remote_url=url,
                    record_id=record_id,
                    metadata=metadata,
                    session=session,
                )
            )

        return asset

    def _download(self, url: str, path: str) -> tuple[str, int]:
        """
        Stream a URL into a local file.

        Returns:
            Tuple of (content type, size in bytes)

        Raises:
            SideloadError: On transport failure, non-2xx status, non-image
                content, or an oversized body
        """
        size = 0

        try:
            with open(path, "wb") as out, httpx.Client(
                timeout=self.timeout,
                transport=self.transport,
                follow_redirects=True,
            ) as client, client.stream("GET", url) as response:
                response.raise_for_status()

                content_type = response.headers.get("content-type", "").split(";")[0].strip()
                if not content_type.startswith("image/"):
                    raise SideloadError(url, f"unsupported content type {content_type!r}")

                declared = response.headers.get("content-length")
                if declared and declared.isdigit() and int(declared) > self.max_bytes:
                    raise SideloadError(url, f"file too large ({declared} bytes)")

                for chunk in response.iter_bytes(chunk_size=constants.DOWNLOAD_CHUNK_SIZE):
                    size += len(chunk)
                    if size > self.max_bytes:
                        raise SideloadError(url, f"file exceeds {self.max_bytes} bytes")
                    out.write(chunk)
        except httpx.HTTPStatusError as e:
            raise SideloadError(url, f"HTTP {e.response.status_code}") from e
        except httpx.HTTPError as e:
            raise SideloadError(url, f"download failed: {e}") from e

        return content_type, size

    def _record_author(self, record_id: int) -> str | None:
        if self.content_store is None:
            return None
        try:
            record = self.content_store.get(record_id)
        except StorageError as e:
            logger.warning(f"Could not load record {record_id} for author lookup: {e}")
            return None
        return record.author_id if record else None


class SideloadSession:
    """
    Per-pass cache of sideloaded URLs.

    Each remote URL is attempted at most once per session: successes are
    reused, failures are remembered and skipped.
    """

    def __init__(self, sideloader: AssetSideloader, record_id: int, author_id: str | None = None):
        self.sideloader = sideloader
        self.record_id = record_id
        self.author_id = author_id
        self.references: dict[str, AssetReference] = {}
        self.failed: set[str] = set()
        self.warnings: list[SideloadWarning] = []

    def sideload(self, url: str, metadata: dict[str, str] | None = None) -> AssetReference | None:
        if url in self.references:
            return self.references[url]
        if url in self.failed:
            return None

        try:
            asset = self.sideloader.store(
                url,
                self.record_id,
                metadata=metadata,
                author_id=self.author_id,
                session=self,
            )
        except SideloadError as e:
            logger.warning(str(e))
            self.failed.add(url)
            self.warnings.append(SideloadWarning(url=url, reason=str(e)))
            return None

        reference = AssetReference(
            remote_url=url,
            local_url=asset.local_url,
            alt_text=asset.metadata.get("alt_text", ""),
            origin_metadata=dict(asset.metadata),
        )
        self.references[url] = reference
        return reference


class MediaRewriter:
    """
    Rewrites remote <img> sources in a fragment to sideloaded local copies.

    Usage:
        rewriter = MediaRewriter(sideloader, allowed_domains=("images.airstory.co",))
        result = rewriter.rewrite(42, record.body_html)
    """

    def __init__(
        self,
        sideloader: AssetSideloader,
        allowed_domains: tuple[str, ...] = constants.DEFAULT_SIDELOAD_DOMAINS,
        content_store: ContentStore | None = None,
    ):
        self.sideloader = sideloader
        self.allowed_domains = tuple(allowed_domains)
        self.content_store = content_store

    def rewrite(
        self,
        record_id: int,
        html_fragment: str,
        allowed_domains: tuple[str, ...] | None = None,
        should_abort: Callable[[], bool] | None = None,
        author_id: str | None = None,
    ) -> MediaRewriteResult:
        """
        Sideload allowed-host images in a fragment and rewrite their src.

        Args:
            record_id: Record the assets attach to
            html_fragment: Body fragment to scan
            allowed_domains: Overrides the rewriter's allowed hosts
            should_abort: Polled before each image; True abandons the pass
            author_id: Author for created assets

        Returns:
            MediaRewriteResult; on abort the input is returned unchanged
        """
        if not html_fragment or "<img" not in html_fragment.lower():
            return MediaRewriteResult(new_html=html_fragment)

        domains = {d.lower() for d in (allowed_domains or self.allowed_domains)}
        session = SideloadSession(self.sideloader, record_id, author_id=author_id)

        soup = BeautifulSoup(html_fragment, "html.parser")
        line_offsets = _line_offsets(html_fragment)
        edits: list[tuple[int, int, str]] = []

        for img in soup.find_all("img"):
            if should_abort is not None and should_abort():
                logger.warning(
                    f"Media pass for record {record_id} aborted; "
                    f"discarding {len(edits)} rewrites"
                )
                return MediaRewriteResult(
                    new_html=html_fragment,
                    warnings=session.warnings,
                    aborted=True,
                )

            src = img.get("src")
            if not is_valid_media_url(src):
                continue
            if (urlparse(src).hostname or "").lower() not in domains:
                continue

            tag = _locate_tag(html_fragment, line_offsets, img)
            if tag is None:
                logger.warning(f"Could not locate <img> for {src} in record {record_id}")
                continue

            reference = session.sideload(src, {"alt_text": img.get("alt", "")})
            if reference is None:
                continue

            edits.append((tag.start(), tag.end(), replace_src(tag.group(0), reference.local_url)))

        if not edits:
            return MediaRewriteResult(new_html=html_fragment, warnings=session.warnings)

        return MediaRewriteResult(
            new_html=_splice(html_fragment, edits),
            replaced_count=len(edits),
            warnings=session.warnings,
        )

    def rewrite_record(
        self,
        record_id: int,
        allowed_domains: tuple[str, ...] | None = None,
        should_abort: Callable[[], bool] | None = None,
    ) -> MediaRewriteResult:
        """
        Run a media pass over a stored record and save the body if it changed.

        Raises:
            StorageError: If the record cannot be loaded or saved
        """
        if self.content_store is None:
            raise StorageError("MediaRewriter has no content store")

        record = self.content_store.get(record_id)
        if record is None:
            raise StorageError(f"Record {record_id} does not exist")

        result = self.rewrite(
            record_id,
            record.body_html,
            allowed_domains=allowed_domains,
            should_abort=should_abort,
            author_id=record.author_id,
        )

        if result.replaced_count and result.new_html != record.body_html:
            self.content_store.update_body(record_id, result.new_html)

        return result
