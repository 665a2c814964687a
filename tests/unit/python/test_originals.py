"""Unit tests for original-asset resolution."""

from unittest.mock import MagicMock

import httpx
import pytest

from docbridge_common.events import EventBus, SideloadCompleted
from docbridge_common.media import AssetSideloader, MediaRewriter
from docbridge_common.originals import OriginalAssetResolver, derive_original_url
from docbridge_common.storage import AssetStore
from tests.fixtures.document_samples import (
    CLOUDINARY_IMAGE_URL,
    CLOUDINARY_ORIGINAL_URL,
    ORIGINAL_IMAGE_URL,
    PIXEL_GIF,
    TRANSFORMED_IMAGE_URL,
)


class TestDeriveOriginalUrl:
    """Tests for derive_original_url."""

    def test_strips_modifier_segment(self):
        assert derive_original_url(TRANSFORMED_IMAGE_URL) == ORIGINAL_IMAGE_URL

    def test_cloudinary_prefix(self):
        assert derive_original_url(CLOUDINARY_IMAGE_URL) == CLOUDINARY_ORIGINAL_URL

    def test_canonical_urls_are_left_alone(self):
        assert derive_original_url(ORIGINAL_IMAGE_URL) is None
        assert derive_original_url(CLOUDINARY_ORIGINAL_URL) is None

    def test_unknown_host(self):
        assert derive_original_url("https://example.com/c_scale/v1/prod/i/image.jpg") is None

    def test_custom_host_families(self):
        url = "https://images.example/c_scale,w_0.1/v1/prod/i-ABC/image.jpg"

        original = derive_original_url(url, {"images.example": ""})

        assert original == "https://images.example/v1/prod/i-ABC/image.jpg"

    def test_path_without_canonical_marker(self):
        assert derive_original_url("https://images.airstory.co/other/image.jpg") is None

    def test_path_outside_family_prefix(self):
        url = "https://res.cloudinary.com/someone/c_scale/v1/prod/i/image.jpg"
        assert derive_original_url(url) is None


class TestOriginalAssetResolver:
    """Tests for OriginalAssetResolver."""

    def test_sideloads_original_through_session(self):
        resolver = OriginalAssetResolver(MagicMock())
        session = MagicMock()

        resolver.maybe_fetch_original(TRANSFORMED_IMAGE_URL, 3, {"alt_text": "a"}, session)

        session.sideload.assert_called_once_with(ORIGINAL_IMAGE_URL, {"alt_text": "a"})

    def test_without_session_uses_sideloader(self):
        sideloader = MagicMock()
        resolver = OriginalAssetResolver(sideloader)

        resolver.maybe_fetch_original(TRANSFORMED_IMAGE_URL, 3, {"alt_text": "a"})

        sideloader.sideload.assert_called_once_with(ORIGINAL_IMAGE_URL, 3, {"alt_text": "a"})

    def test_canonical_url_does_nothing(self):
        sideloader = MagicMock()
        session = MagicMock()

        OriginalAssetResolver(sideloader).maybe_fetch_original(ORIGINAL_IMAGE_URL, 3, {}, session)

        session.sideload.assert_not_called()
        sideloader.sideload.assert_not_called()

    def test_errors_are_not_raised(self):
        session = MagicMock()
        session.sideload.side_effect = RuntimeError("boom")

        OriginalAssetResolver(MagicMock()).maybe_fetch_original(
            TRANSFORMED_IMAGE_URL, 3, {}, session
        )

    def test_handles_bus_events(self):
        bus = EventBus()
        session = MagicMock()
        OriginalAssetResolver(MagicMock()).register(bus)

        delivered = bus.publish(
            SideloadCompleted(
                remote_url=CLOUDINARY_IMAGE_URL, record_id=1, metadata={}, session=session
            )
        )

        assert delivered == 1
        session.sideload.assert_called_once_with(CLOUDINARY_ORIGINAL_URL, {})


class TestOriginalsDuringMediaPass:
    """Original assets are fetched as part of a rewrite pass."""

    @pytest.fixture
    def wired(self, assets_table, media_bucket):
        calls = []

        def handler(request):
            calls.append(str(request.url))
            return httpx.Response(200, content=PIXEL_GIF, headers={"content-type": "image/gif"})

        bus = EventBus()
        sideloader = AssetSideloader(
            AssetStore("test-assets", media_bucket),
            event_bus=bus,
            transport=httpx.MockTransport(handler),
        )
        OriginalAssetResolver(sideloader).register(bus)
        return MediaRewriter(sideloader), calls

    def test_original_fetched_after_variant(self, wired):
        rewriter, calls = wired

        result = rewriter.rewrite(1, f'<p><img src="{TRANSFORMED_IMAGE_URL}" alt="a"/></p>')

        assert result.replaced_count == 1
        assert calls == [TRANSFORMED_IMAGE_URL, ORIGINAL_IMAGE_URL]
        assert TRANSFORMED_IMAGE_URL not in result.new_html

    def test_shared_original_fetched_once(self, wired):
        rewriter, calls = wired
        fragment = (
            f'<img src="{TRANSFORMED_IMAGE_URL}">'
            f'<img src="{ORIGINAL_IMAGE_URL}">'
        )

        result = rewriter.rewrite(1, fragment)

        assert result.replaced_count == 2
        assert calls == [TRANSFORMED_IMAGE_URL, ORIGINAL_IMAGE_URL]
