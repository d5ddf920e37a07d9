"""Representative image selection for web pages.

Given an item link, find the image that best represents the page:

1. If the link itself serves an image, use it.
2. Declared images (og:image, twitter:image, link rel=image_src), in order.
3. Otherwise the largest <img> on the page that meets the minimum size.
"""

from __future__ import annotations

import io
import logging
from typing import List, Optional
from urllib.parse import urljoin

import httpx
from bs4 import BeautifulSoup
from PIL import Image

from placetime_fetcher import __version__
from placetime_fetcher.exceptions import ImageSelectionError
from placetime_fetcher.http_client import client_scope

logger = logging.getLogger(__name__)

# Image URLs that are almost never content
SKIP_PATTERNS = (
    "logo", "icon", "sprite", "avatar", "badge", "button",
    "banner", "pixel", "spacer", "blank", "rss", "feed",
)

DECLARED_IMAGE_META = (
    ("property", "og:image"),
    ("property", "og:image:url"),
    ("name", "twitter:image"),
    ("name", "twitter:image:src"),
)


def _attr_int(value: object) -> Optional[int]:
    try:
        return int(str(value).strip().rstrip("px"))
    except (TypeError, ValueError):
        return None


def declared_images(soup: BeautifulSoup, base_url: str) -> List[str]:
    """Get images the page declares as its representative image."""
    found: List[str] = []
    for attr, value in DECLARED_IMAGE_META:
        for tag in soup.find_all("meta", attrs={attr: value}):
            content = (tag.get("content") or "").strip()
            if content:
                found.append(urljoin(base_url, content))

    for tag in soup.find_all("link", rel="image_src"):
        href = (tag.get("href") or "").strip()
        if href:
            found.append(urljoin(base_url, href))

    return list(dict.fromkeys(found))


def inline_images(
    soup: BeautifulSoup,
    base_url: str,
    min_width: int,
    min_height: int,
) -> List[str]:
    """Get candidate <img> URLs in document order.

    Images declaring a size below the minimum, data URIs and obvious page
    furniture are skipped.
    """
    found: List[str] = []
    for img in soup.find_all("img"):
        src = (img.get("src") or img.get("data-src") or "").strip()
        if not src or src.startswith("data:"):
            continue
        if any(p in src.lower() for p in SKIP_PATTERNS):
            continue

        width = _attr_int(img.get("width"))
        height = _attr_int(img.get("height"))
        if (width is not None and width < min_width) or (height is not None and height < min_height):
            continue

        found.append(urljoin(base_url, src))

    return list(dict.fromkeys(found))


class ImagePicker:
    """Select a candidate image for a page.

    Example:
        picker = ImagePicker(timeout=30.0)
        image = picker.pick("https://example.com/article")
        if image is not None:
            print(image.size)
    """

    def __init__(
        self,
        timeout: float = 30.0,
        user_agent: str = f"placetime-fetcher/{__version__}",
        min_width: int = 200,
        min_height: int = 100,
        max_candidates: int = 8,
        client: Optional[httpx.Client] = None,
    ) -> None:
        """Initialize the picker.

        Args:
            timeout: Request timeout in seconds
            user_agent: User-Agent header for page and image requests
            min_width: Smallest acceptable image width
            min_height: Smallest acceptable image height
            max_candidates: Maximum number of inline images to download
            client: Shared HTTP client (a new one per pick if None)
        """
        self._timeout = timeout
        self._user_agent = user_agent
        self._min_width = min_width
        self._min_height = min_height
        self._max_candidates = max_candidates
        self._client = client

    def pick(self, url: str) -> Optional[Image.Image]:
        """Pick the representative image for ``url``.

        Returns:
            The selected image, or None if the page has no suitable image

        Raises:
            ImageSelectionError: If the page cannot be retrieved
        """
        with client_scope(self._client, self._timeout, self._user_agent) as client:
            try:
                response = client.get(url)
                response.raise_for_status()
            except (httpx.HTTPError, httpx.InvalidURL) as e:
                raise ImageSelectionError(f"Could not fetch page: {e}", url=url) from e

            content_type = response.headers.get("content-type", "").lower()
            if content_type.startswith("image/"):
                return self._open(response.content, url)

            soup = BeautifulSoup(response.text, "html.parser")
            base_url = str(response.url)

            for candidate in declared_images(soup, base_url):
                image = self._download(client, candidate)
                if image is not None and self._big_enough(image):
                    logger.debug(f"Using declared image {candidate} for {url}")
                    return image

            best: Optional[Image.Image] = None
            inline = inline_images(soup, base_url, self._min_width, self._min_height)
            for candidate in inline[: self._max_candidates]:
                image = self._download(client, candidate)
                if image is None or not self._big_enough(image):
                    continue
                if best is None or _area(image) > _area(best):
                    best = image

            if best is None:
                logger.debug(f"No image candidate found for {url}")
            return best

    def _big_enough(self, image: Image.Image) -> bool:
        width, height = image.size
        return width >= self._min_width and height >= self._min_height

    def _download(self, client: httpx.Client, url: str) -> Optional[Image.Image]:
        """Download and decode one candidate; failures just skip it."""
        try:
            response = client.get(url)
            response.raise_for_status()
        except (httpx.HTTPError, httpx.InvalidURL) as e:
            logger.debug(f"Skipping image candidate {url}: {e}")
            return None
        return self._open(response.content, url)

    def _open(self, data: bytes, url: str) -> Optional[Image.Image]:
        try:
            image = Image.open(io.BytesIO(data))
            image.load()
            return image
        except (OSError, Image.DecompressionBombError) as e:
            logger.debug(f"Could not decode image {url}: {e}")
            return None


def _area(image: Image.Image) -> int:
    return image.size[0] * image.size[1]
