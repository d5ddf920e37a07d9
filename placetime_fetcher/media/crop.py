"""Saliency-aware cropping.

The image is scaled so that it covers the target size, then a target-sized
window is slid along the axis that still overflows. Each window is scored
by its visual interest (grayscale entropy weighted by edge density) and the
most interesting window wins. Ties go to the window nearest the centre.
"""

from __future__ import annotations

import math
from typing import List, Tuple

from PIL import Image, ImageFilter, ImageStat

# Number of window positions evaluated along the overflowing axis
DEFAULT_STEPS = 24


def flatten(image: Image.Image, background: Tuple[int, int, int] = (255, 255, 255)) -> Image.Image:
    """Convert any image mode to RGB, compositing transparency on a background."""
    if image.mode in ("RGBA", "LA") or (image.mode == "P" and "transparency" in image.info):
        rgba = image.convert("RGBA")
        canvas = Image.new("RGB", rgba.size, background)
        canvas.paste(rgba, mask=rgba.split()[-1])
        return canvas
    if image.mode != "RGB":
        return image.convert("RGB")
    return image


def cover(image: Image.Image, width: int, height: int) -> Image.Image:
    """Resize so the image covers width x height while keeping its aspect ratio."""
    src_width, src_height = image.size
    scale = max(width / src_width, height / src_height)
    size = (
        max(width, math.ceil(src_width * scale)),
        max(height, math.ceil(src_height * scale)),
    )
    if size == image.size:
        return image
    return image.resize(size, Image.Resampling.LANCZOS)


def window_offsets(overflow: int, steps: int) -> List[int]:
    """Evenly spaced window offsets covering 0..overflow inclusive."""
    if overflow <= 0:
        return [0]
    count = min(overflow + 1, steps)
    if count == 1:
        return [0]
    return sorted({round(i * overflow / (count - 1)) for i in range(count)})


def interest(gray: Image.Image, edges: Image.Image) -> float:
    """Score a region: entropy of its gray levels weighted by edge density."""
    edge_mean = ImageStat.Stat(edges).mean[0]
    return gray.entropy() * (1.0 + edge_mean / 255.0)


class SaliencyCropper:
    """Crop images to an exact size, keeping their most interesting region.

    Example:
        cropper = SaliencyCropper()
        thumb = cropper.crop(image, 460, 160)
        assert thumb.size == (460, 160)
    """

    def __init__(self, steps: int = DEFAULT_STEPS) -> None:
        self._steps = max(1, steps)

    def crop(self, image: Image.Image, width: int, height: int) -> Image.Image:
        """Crop ``image`` to exactly ``width`` x ``height``.

        Raises:
            ValueError: If the target size is not positive
        """
        if width <= 0 or height <= 0:
            raise ValueError(f"Invalid crop size {width}x{height}")

        scaled = cover(flatten(image), width, height)
        box = self.best_box(scaled, width, height)
        return scaled.crop(box)

    def best_box(self, image: Image.Image, width: int, height: int) -> Tuple[int, int, int, int]:
        """Find the most salient width x height box in an image covering that size."""
        img_width, img_height = image.size
        gray = image.convert("L")
        edges = gray.filter(ImageFilter.FIND_EDGES)

        horizontal = img_width - width >= img_height - height
        overflow = img_width - width if horizontal else img_height - height
        centre = overflow / 2

        best_offset = 0
        best_score = -1.0
        for offset in window_offsets(overflow, self._steps):
            if horizontal:
                box = (offset, 0, offset + width, height)
            else:
                box = (0, offset, width, offset + height)
            score = interest(gray.crop(box), edges.crop(box))
            if score > best_score or (
                score == best_score and abs(offset - centre) < abs(best_offset - centre)
            ):
                best_score = score
                best_offset = offset

        if horizontal:
            return (best_offset, 0, best_offset + width, height)
        return (0, best_offset, width, best_offset + height)
