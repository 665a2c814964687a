"""
Original-asset resolution for transformed image URLs.

The source service's image hosts serve resized variants by inserting a
modifier segment in front of the canonical path, for example:

    https://images.airstory.co/c_scale,w_0.1/v1/prod/i-ABC/image.jpg
    https://res.cloudinary.com/airstory/image/upload/c_scale,w_0.1/v1/prod/i-ABC/image.jpg

When a variant is sideloaded, the untransformed original is sideloaded too so
the full-size asset is kept alongside the record.
"""

import logging
from urllib.parse import urlparse, urlunparse

from docbridge_common import constants
from docbridge_common.events import EventBus, EventType, SideloadCompleted
from docbridge_common.media import AssetSideloader, SideloadSession

logger = logging.getLogger(__name__)


def derive_original_url(url: str, host_families: dict[str, str] | None = None) -> str | None:
    """
    Derive the untransformed URL for a transformed image URL.

    Args:
        url: Remote image URL
        host_families: Host -> path prefix map (defaults to IMAGE_HOST_FAMILIES)

    Returns:
        The original URL, or None when the host is unknown, the path is
        already canonical, or there is no modifier segment to strip
    """
    families = constants.IMAGE_HOST_FAMILIES if host_families is None else host_families
    parsed = urlparse(url)
    host = (parsed.hostname or "").lower()

    if host not in families:
        return None

    prefix = families[host].rstrip("/")
    if not parsed.path.startswith(prefix + "/"):
        return None

    rest = parsed.path[len(prefix):]
    if rest.startswith(constants.ORIGINAL_ASSET_PATH):
        return None

    marker = rest.find(constants.ORIGINAL_ASSET_PATH)
    if marker <= 0:
        return None

    # Drop only the segment immediately before v1/prod/
    head = rest[:marker].rsplit("/", 1)[0]
    return urlunparse(parsed._replace(path=prefix + head + rest[marker:]))


class OriginalAssetResolver:
    """
    SIDELOAD_COMPLETED subscriber that also sideloads the original asset.

    Usage:
        resolver = OriginalAssetResolver(sideloader)
        resolver.register(bus)
    """

    def __init__(
        self,
        sideloader: AssetSideloader,
        host_families: dict[str, str] | None = None,
    ):
        self.sideloader = sideloader
        self.host_families = (
            dict(constants.IMAGE_HOST_FAMILIES) if host_families is None else dict(host_families)
        )

    def register(self, bus: EventBus) -> None:
        bus.subscribe(EventType.SIDELOAD_COMPLETED, self.handle_sideload)

    def handle_sideload(self, event: SideloadCompleted) -> None:
        self.maybe_fetch_original(
            event.remote_url,
            event.record_id,
            event.metadata,
            event.session,
        )

    def maybe_fetch_original(
        self,
        remote_url: str,
        record_id: int,
        metadata: dict[str, str] | None = None,
        session: SideloadSession | None = None,
    ) -> None:
        """
        Sideload the original of a transformed asset, if there is one.

        Never raises; failures are logged.
        """
        original_url = derive_original_url(remote_url, self.host_families)
        if not original_url:
            return

        logger.debug(f"Fetching original {original_url} for {remote_url}")

        try:
            if session is not None:
                session.sideload(original_url, metadata)
            else:
                self.sideloader.sideload(original_url, record_id, metadata)
        except Exception as e:
            logger.warning(f"Failed to sideload original {original_url}: {e}", exc_info=True)
