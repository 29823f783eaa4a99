"""Image payload and request models."""

from dataclasses import dataclass
from pathlib import Path

from pydantic import BaseModel, ConfigDict, Field, computed_field, field_validator


MIME_EXTENSIONS = {
    "image/png": ".png",
    "image/jpeg": ".jpg",
    "image/jpg": ".jpg",
    "image/webp": ".webp",
    "image/gif": ".gif",
}


class ImagePayload(BaseModel):
    """An image in transit: raw bytes plus the MIME type they are encoded in."""

    data: bytes = Field(repr=False)
    mime_type: str = "image/png"

    @field_validator("data")
    @classmethod
    def _not_empty(cls, value: bytes) -> bytes:
        if not value:
            raise ValueError("image data must not be empty")
        return value

    @field_validator("mime_type")
    @classmethod
    def _normalize_mime_type(cls, value: str) -> str:
        value = value.strip().lower()
        if "/" not in value:
            raise ValueError(f"not a MIME type: {value!r}")
        return value

    @computed_field
    @property
    def size(self) -> int:
        return len(self.data)

    @property
    def extension(self) -> str:
        """File suffix used when the payload has to live on disk."""
        return MIME_EXTENSIONS.get(self.mime_type, ".img")


class GenerationRequest(BaseModel):
    """Person photo and garment photo, in that order.

    Both are optional here so that an incomplete request can be rejected
    with a classified error instead of a validation exception.
    """

    model_config = ConfigDict(protected_namespaces=())

    model_image: ImagePayload | None = None
    cloth_image: ImagePayload | None = None

    @property
    def is_complete(self) -> bool:
        return self.model_image is not None and self.cloth_image is not None


@dataclass
class TransientFile:
    """A payload materialized on local disk for interfaces that need a path.

    Owned by the operation that created it; see ``image_codec.release``.
    """
    path: Path
    mime_type: str
    released: bool = False

    @property
    def exists(self) -> bool:
        return self.path.exists()
