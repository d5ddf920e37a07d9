"""Image selection and cropping for feed items.

This module picks a representative image for a web page and crops it to
the fixed size items are displayed at.
"""

from placetime_fetcher.media.crop import SaliencyCropper
from placetime_fetcher.media.picker import ImagePicker

__all__ = [
    "ImagePicker",
    "SaliencyCropper",
]
