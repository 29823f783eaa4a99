"""Data models for the virtual try-on gateway."""

from .image import ImagePayload, GenerationRequest, TransientFile
from .result import Strategy, AttemptRecord, GenerationResult

__all__ = [
    "ImagePayload",
    "GenerationRequest",
    "TransientFile",
    "Strategy",
    "AttemptRecord",
    "GenerationResult",
]
