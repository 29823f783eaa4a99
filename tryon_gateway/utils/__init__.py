"""Image utilities."""

from . import image_codec
from .placeholder import placeholder_image

__all__ = ["image_codec", "placeholder_image"]
