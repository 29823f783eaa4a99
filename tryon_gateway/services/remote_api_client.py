"""Client for the third-party try-on diffusion REST endpoint."""

import logging
import random
from typing import Any, Callable

import httpx

from ..config import GenerationOptions, RemoteApiConfig
from ..errors import ErrorKind, TryOnError
from ..models import GenerationRequest, GenerationResult, ImagePayload, Strategy
from ..utils import image_codec


logger = logging.getLogger(__name__)

# Ordered (substring, kind) rules applied to error bodies, first match wins
FAILURE_RULES: list[tuple[str, ErrorKind]] = [
    ("no human detected", ErrorKind.NO_SUBJECT_DETECTED),
    ("no person detected", ErrorKind.NO_SUBJECT_DETECTED),
    ("insufficient credits", ErrorKind.INSUFFICIENT_QUOTA),
    ("insufficient quota", ErrorKind.INSUFFICIENT_QUOTA),
    ("quota exceeded", ErrorKind.INSUFFICIENT_QUOTA),
    ("invalid model image", ErrorKind.INVALID_IMAGE_FORMAT),
    ("invalid cloth image", ErrorKind.INVALID_IMAGE_FORMAT),
    ("invalid image", ErrorKind.INVALID_IMAGE_FORMAT),
]

STATUS_RULES: dict[int, ErrorKind] = {
    402: ErrorKind.INSUFFICIENT_QUOTA,
}


def classify_failure(status_code: int, body: str) -> ErrorKind:
    """Map a non-success response to an ErrorKind."""
    lowered = body.lower()
    for needle, kind in FAILURE_RULES:
        if needle in lowered:
            return kind
    return STATUS_RULES.get(status_code, ErrorKind.REMOTE_SERVICE_ERROR)


# Extraction rules take the response and return the embedded image or None

def _from_raw_image(response: httpx.Response) -> str | ImagePayload | None:
    content_type = response.headers.get("content-type", "")
    if content_type.startswith("image/") and response.content:
        mime_type = content_type.split(";", 1)[0].strip()
        return ImagePayload(data=response.content, mime_type=mime_type)
    return None


def _json_field(name: str) -> Callable[[httpx.Response], str | None]:
    def rule(response: httpx.Response) -> str | None:
        data = _json_body(response)
        value = data.get(name) if isinstance(data, dict) else None
        return value if isinstance(value, str) and value else None
    rule.__name__ = f"_from_{name}"
    return rule


def _from_images(response: httpx.Response) -> str | None:
    data = _json_body(response)
    images = data.get("images") if isinstance(data, dict) else None
    if isinstance(images, list) and images and isinstance(images[0], str):
        return images[0]
    return None


def _json_body(response: httpx.Response) -> Any:
    try:
        return response.json()
    except ValueError:
        return None


EXTRACTION_RULES: list[Callable[[httpx.Response], str | ImagePayload | None]] = [
    _from_raw_image,
    _json_field("output"),
    _json_field("image"),
    _from_images,
]


def extract_image(response: httpx.Response) -> ImagePayload:
    """Run the extraction rules in order and decode the first match.

    Raises:
        TryOnError: ``MalformedRemoteResponse`` if no rule matches or the
            match is not a decodable image.
    """
    for rule in EXTRACTION_RULES:
        match = rule(response)
        if match is None:
            continue
        if isinstance(match, ImagePayload):
            return match
        try:
            return image_codec.decode(match)
        except TryOnError as e:
            raise TryOnError(
                ErrorKind.MALFORMED_REMOTE_RESPONSE,
                f"Result field is not a decodable image: {e.message}",
            ) from e

    raise TryOnError(
        ErrorKind.MALFORMED_REMOTE_RESPONSE,
        "Invalid response format from API: no image field found",
    )


class RemoteApiClient:
    """Client for the try-on diffusion endpoint."""

    def __init__(
        self,
        config: RemoteApiConfig,
        options: GenerationOptions | None = None,
        client: httpx.AsyncClient | None = None,
    ):
        self.config = config
        self.options = options or GenerationOptions()
        self._client = client

        if not config.api_key:
            logger.warning("Remote API key not configured; requests will fail over immediately")

    @property
    def client(self) -> httpx.AsyncClient:
        """Get or create the HTTP client."""
        if self._client is None or self._client.is_closed:
            self._client = httpx.AsyncClient(timeout=self.config.request_timeout)
        return self._client

    async def generate(
        self,
        request: GenerationRequest,
        options: GenerationOptions | None = None,
    ) -> GenerationResult:
        """Request one composite image.

        Never raises for remote failures: the outcome is a GenerationResult
        carrying either the image or the classified failure.
        """
        try:
            image = await self._generate(request, options or self.options)
        except TryOnError as e:
            logger.warning("Remote API failed: %s", e)
            return GenerationResult.from_error(e, strategy=Strategy.REMOTE_API)
        return GenerationResult.succeeded(image, strategy=Strategy.REMOTE_API)

    async def _generate(self, request: GenerationRequest, options: GenerationOptions) -> ImagePayload:
        if not request.is_complete:
            raise TryOnError(ErrorKind.MISSING_INPUT, "Both model and cloth images are required")
        if not self.config.api_key:
            raise TryOnError(ErrorKind.REMOTE_SERVICE_ERROR, "Remote API key not configured")

        payload = self._build_payload(request, options)
        logger.info(
            "Sending request to %s (steps=%s, seed=%s)",
            self.config.url, payload["num_inference_steps"], payload["seed"],
        )

        try:
            response = await self.client.post(
                self.config.url,
                json=payload,
                headers={"x-api-key": self.config.api_key},
                timeout=self.config.request_timeout,
            )
        except httpx.TimeoutException as e:
            raise TryOnError(
                ErrorKind.REMOTE_SERVICE_ERROR,
                f"Remote API timed out after {self.config.request_timeout}s",
            ) from e
        except httpx.HTTPError as e:
            raise TryOnError(ErrorKind.REMOTE_SERVICE_ERROR, f"Remote API unreachable: {e}") from e

        logger.info("API response status: %s", response.status_code)

        if not response.is_success:
            body = response.text
            kind = classify_failure(response.status_code, body)
            raise TryOnError(kind, f"API error {response.status_code}: {body[:500]}")

        return extract_image(response)

    def _build_payload(self, request: GenerationRequest, options: GenerationOptions) -> dict[str, Any]:
        """Build the JSON body; images travel as bare base64."""
        return {
            "model_image": image_codec.strip_prefix(image_codec.encode(request.model_image)),
            "cloth_image": image_codec.strip_prefix(image_codec.encode(request.cloth_image)),
            "category": options.category,
            "num_inference_steps": options.steps,
            "guidance_scale": options.guidance_scale,
            "seed": options.seed if options.seed is not None else self._random_seed(),
            "base64": True,
        }

    def _random_seed(self) -> int:
        """Generate a random seed."""
        return random.randint(0, 999999)

    async def close(self):
        """Close the HTTP client."""
        if self._client is not None and not self._client.is_closed:
            await self._client.aclose()
            self._client = None
