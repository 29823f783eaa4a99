"""Generation outcome models."""

from datetime import datetime
from enum import Enum

from pydantic import BaseModel, Field, computed_field, model_validator

from ..errors import ErrorKind, TryOnError
from .image import ImagePayload


class Strategy(str, Enum):
    """Mechanism that produced (or failed to produce) an image."""
    REMOTE_API = "remote_api"
    BROWSER_AUTOMATION = "browser_automation"
    PLACEHOLDER = "placeholder"


class AttemptRecord(BaseModel):
    """Diagnostic record of one failed strategy attempt."""

    strategy: Strategy
    error_kind: ErrorKind
    message: str
    timestamp: datetime = Field(default_factory=datetime.now)


class GenerationResult(BaseModel):
    """Either a composite image or a terminal failure, never both."""

    image: ImagePayload | None = None
    error_kind: ErrorKind | None = None
    message: str | None = None

    strategy: Strategy | None = None
    fallback: bool = False  # True when the image is the synthetic placeholder

    # Masked failures, for logs only
    attempts: list[AttemptRecord] = Field(default_factory=list)

    @model_validator(mode="after")
    def _exactly_one_outcome(self) -> "GenerationResult":
        if (self.image is None) == (self.error_kind is None):
            raise ValueError("GenerationResult needs exactly one of image or error_kind")
        return self

    @computed_field
    @property
    def success(self) -> bool:
        return self.image is not None

    @classmethod
    def succeeded(
        cls,
        image: ImagePayload,
        strategy: Strategy,
        fallback: bool = False,
        attempts: list[AttemptRecord] | None = None,
    ) -> "GenerationResult":
        return cls(
            image=image,
            strategy=strategy,
            fallback=fallback,
            attempts=attempts or [],
        )

    @classmethod
    def failed(
        cls,
        kind: ErrorKind,
        message: str,
        strategy: Strategy | None = None,
        attempts: list[AttemptRecord] | None = None,
    ) -> "GenerationResult":
        return cls(
            error_kind=kind,
            message=message,
            strategy=strategy,
            attempts=attempts or [],
        )

    @classmethod
    def from_error(cls, error: TryOnError, strategy: Strategy | None = None) -> "GenerationResult":
        return cls.failed(error.kind, error.message, strategy=strategy)
