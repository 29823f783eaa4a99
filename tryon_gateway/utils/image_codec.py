"""Conversions between embedded image strings, bytes, and scratch files."""

import base64
import binascii
import logging
import re
import time
import uuid
from contextlib import contextmanager
from pathlib import Path
from typing import Iterator

from ..errors import ErrorKind, TryOnError
from ..models import ImagePayload, TransientFile


logger = logging.getLogger(__name__)

# e.g. "data:image/png;base64,"
DATA_URL_PREFIX = re.compile(r"^data:(?P<mime>[\w.+-]+/[\w.+-]+)?(?:;[\w=.-]+)*;base64,", re.IGNORECASE)
WHITESPACE = re.compile(r"\s+")

DEFAULT_MIME_TYPE = "image/jpeg"

# (magic prefix, offset, mime type)
MAGIC_NUMBERS = [
    (b"\x89PNG\r\n\x1a\n", 0, "image/png"),
    (b"\xff\xd8\xff", 0, "image/jpeg"),
    (b"GIF87a", 0, "image/gif"),
    (b"GIF89a", 0, "image/gif"),
    (b"WEBP", 8, "image/webp"),
]


def sniff_mime_type(data: bytes) -> str:
    """Guess an image MIME type from its leading bytes."""
    for magic, offset, mime_type in MAGIC_NUMBERS:
        if data[offset:offset + len(magic)] == magic:
            return mime_type
    return DEFAULT_MIME_TYPE


def strip_prefix(embedded: str) -> str:
    """Return the bare base64 body of an embedded image string."""
    return DATA_URL_PREFIX.sub("", embedded.strip(), count=1)


def decode(embedded: str) -> ImagePayload:
    """Decode a data URL or bare base64 string into an ImagePayload.

    Raises:
        TryOnError: ``InvalidImageEncoding`` if the input is empty or not
            valid base64.
    """
    if not isinstance(embedded, str) or not embedded.strip():
        raise TryOnError(ErrorKind.INVALID_IMAGE_ENCODING, "Image data is empty")

    text = embedded.strip()
    declared_mime = None
    match = DATA_URL_PREFIX.match(text)
    if match:
        declared_mime = match.group("mime")
        text = text[match.end():]
    elif text.startswith("data:"):
        raise TryOnError(
            ErrorKind.INVALID_IMAGE_ENCODING,
            "Data URL is not base64 encoded",
        )

    body = WHITESPACE.sub("", text)
    try:
        data = base64.b64decode(body, validate=True)
    except (binascii.Error, ValueError) as e:
        raise TryOnError(
            ErrorKind.INVALID_IMAGE_ENCODING,
            f"Image data is not valid base64: {e}",
        ) from e

    if not data:
        raise TryOnError(ErrorKind.INVALID_IMAGE_ENCODING, "Image data is empty")

    mime_type = declared_mime.lower() if declared_mime else sniff_mime_type(data)
    return ImagePayload(data=data, mime_type=mime_type)


def encode(payload: ImagePayload) -> str:
    """Encode a payload as a self-describing data URL."""
    encoded = base64.b64encode(payload.data).decode("ascii")
    return f"data:{payload.mime_type};base64,{encoded}"


def materialize(payload: ImagePayload, scratch_dir: Path) -> TransientFile:
    """Write a payload to a uniquely named file in the scratch directory.

    The caller owns the returned handle and must ``release`` it.
    """
    scratch_dir.mkdir(parents=True, exist_ok=True)
    name = f"tryon-{time.monotonic_ns()}-{uuid.uuid4().hex[:12]}{payload.extension}"
    path = scratch_dir / name
    path.write_bytes(payload.data)
    logger.debug("Materialized %d bytes to %s", payload.size, path)
    return TransientFile(path=path, mime_type=payload.mime_type)


def release(file: TransientFile) -> None:
    """Delete a transient file. Releasing twice is a no-op."""
    file.path.unlink(missing_ok=True)
    if not file.released:
        logger.debug("Released %s", file.path)
    file.released = True


@contextmanager
def transient_files(*payloads: ImagePayload, scratch_dir: Path) -> Iterator[list[TransientFile]]:
    """Materialize payloads for the duration of a ``with`` block.

    Files are yielded in argument order and all of them are released on
    exit, including when a later one fails to materialize.
    """
    files: list[TransientFile] = []
    try:
        for payload in payloads:
            files.append(materialize(payload, scratch_dir))
        yield files
    finally:
        for file in files:
            release(file)
