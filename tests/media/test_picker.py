"""Tests for representative image selection."""

import io

import httpx
import pytest
from bs4 import BeautifulSoup
from PIL import Image

from placetime_fetcher.exceptions import ImageSelectionError
from placetime_fetcher.media.picker import ImagePicker, declared_images, inline_images


def png(width: int, height: int) -> bytes:
    buffer = io.BytesIO()
    Image.new("RGB", (width, height), (30, 60, 90)).save(buffer, format="PNG")
    return buffer.getvalue()


def picker_for(routes: dict) -> ImagePicker:
    """Build a picker whose requests are answered from a URL -> response map."""
    def handler(request: httpx.Request) -> httpx.Response:
        response = routes.get(str(request.url))
        if response is None:
            return httpx.Response(404)
        return response

    client = httpx.Client(transport=httpx.MockTransport(handler))
    return ImagePicker(client=client)


def html(body: str, head: str = "") -> httpx.Response:
    return httpx.Response(
        200,
        text=f"<html><head>{head}</head><body>{body}</body></html>",
        headers={"content-type": "text/html"},
    )


def image(width: int, height: int) -> httpx.Response:
    return httpx.Response(200, content=png(width, height), headers={"content-type": "image/png"})


class TestDeclaredImages:
    """Tests for declared_images."""

    def test_open_graph_and_twitter(self):
        """Test og:image, twitter:image and image_src are found in order."""
        soup = BeautifulSoup(
            '<meta property="og:image" content="/og.jpg">'
            '<meta name="twitter:image" content="https://cdn.example.com/tw.jpg">'
            '<link rel="image_src" href="src.jpg">',
            "html.parser",
        )

        assert declared_images(soup, "https://example.com/post/1") == [
            "https://example.com/og.jpg",
            "https://cdn.example.com/tw.jpg",
            "https://example.com/post/src.jpg",
        ]

    def test_duplicates_removed(self):
        """Test the same URL is listed once."""
        soup = BeautifulSoup(
            '<meta property="og:image" content="/a.jpg">'
            '<meta property="og:image:url" content="/a.jpg">',
            "html.parser",
        )

        assert declared_images(soup, "https://example.com/") == ["https://example.com/a.jpg"]


class TestInlineImages:
    """Tests for inline_images."""

    def test_filters(self):
        """Test small, data and decorative images are skipped."""
        soup = BeautifulSoup(
            '<img src="/logo.png">'
            '<img src="data:image/png;base64,AAAA">'
            '<img src="/tiny.jpg" width="16" height="16">'
            '<img src="/photo.jpg" width="640" height="480">'
            '<img data-src="/lazy.jpg">',
            "html.parser",
        )

        assert inline_images(soup, "https://example.com/", 200, 100) == [
            "https://example.com/photo.jpg",
            "https://example.com/lazy.jpg",
        ]


class TestImagePicker:
    """Tests for ImagePicker.pick."""

    def test_direct_image_link(self):
        """Test a link that serves an image is used as is."""
        picker = picker_for({"https://example.com/pic.png": image(640, 480)})

        picked = picker.pick("https://example.com/pic.png")

        assert picked.size == (640, 480)

    def test_declared_image_preferred(self):
        """Test the declared image wins over inline images."""
        picker = picker_for({
            "https://example.com/a": html(
                '<img src="/big.png">',
                head='<meta property="og:image" content="/og.png">',
            ),
            "https://example.com/og.png": image(600, 300),
            "https://example.com/big.png": image(1200, 900),
        })

        assert picker.pick("https://example.com/a").size == (600, 300)

    def test_largest_inline_image(self):
        """Test the largest acceptable inline image is chosen."""
        picker = picker_for({
            "https://example.com/a": html('<img src="/small.png"><img src="/large.png">'),
            "https://example.com/small.png": image(300, 200),
            "https://example.com/large.png": image(900, 600),
        })

        assert picker.pick("https://example.com/a").size == (900, 600)

    def test_too_small_declared_image_skipped(self):
        """Test a declared image below the minimum size falls back to inline images."""
        picker = picker_for({
            "https://example.com/a": html(
                '<img src="/inline.png">',
                head='<meta property="og:image" content="/og.png">',
            ),
            "https://example.com/og.png": image(50, 50),
            "https://example.com/inline.png": image(400, 300),
        })

        assert picker.pick("https://example.com/a").size == (400, 300)

    def test_no_candidate(self):
        """Test None is returned when the page has no usable image."""
        picker = picker_for({
            "https://example.com/a": html('<p>No pictures here</p><img src="/broken.png">'),
        })

        assert picker.pick("https://example.com/a") is None

    def test_undecodable_candidate_skipped(self):
        """Test a candidate that is not an image is skipped."""
        picker = picker_for({
            "https://example.com/a": html('<img src="/fake.png"><img src="/real.png">'),
            "https://example.com/fake.png": httpx.Response(200, content=b"not an image"),
            "https://example.com/real.png": image(400, 300),
        })

        assert picker.pick("https://example.com/a").size == (400, 300)

    def test_page_unreachable(self):
        """Test a page that cannot be fetched raises ImageSelectionError."""
        picker = picker_for({})

        with pytest.raises(ImageSelectionError):
            picker.pick("https://example.com/missing")

    def test_invalid_page_url(self):
        """Test an item link that is not a valid URL raises ImageSelectionError."""
        picker = picker_for({})

        with pytest.raises(ImageSelectionError):
            picker.pick("http://example.com:x/")

    def test_invalid_candidate_url_skipped(self):
        """Test a declared image with a malformed URL falls back to inline images."""
        picker = picker_for({
            "https://example.com/a": html(
                '<img src="/inline.png">',
                head='<meta property="og:image" content="http://cdn.example.com:bad/x.jpg">',
            ),
            "https://example.com/inline.png": image(600, 400),
        })

        assert picker.pick("https://example.com/a").size == (600, 400)
