"""Service layer: scoring side effects, claims, points and storage."""

from .storage import ImageStorage, get_image_storage

__all__ = [
    "ImageStorage",
    "get_image_storage",
]
