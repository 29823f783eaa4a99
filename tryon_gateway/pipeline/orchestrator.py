"""Generation orchestrator: remote API, then browser automation, then placeholder."""

import asyncio
import logging

from ..config import GatewayConfig
from ..errors import ErrorKind, TryOnError
from ..models import (
    AttemptRecord,
    GenerationRequest,
    GenerationResult,
    ImagePayload,
    Strategy,
)
from ..services import BrowserAutomationDriver, RemoteApiClient
from ..utils import image_codec, placeholder_image


logger = logging.getLogger(__name__)


class GenerationOrchestrator:
    """Obtains a composite image from unreliable third parties.

    Flow:
    1. Reject incomplete requests
    2. Call the remote API once
    3. Surface terminal failures (a bad input image) as errors
    4. Otherwise try the browser automation fallback once, if enabled
    5. Otherwise return the placeholder, flagged as a fallback

    Each strategy runs at most once per request and within its own budget.
    """

    def __init__(
        self,
        config: GatewayConfig,
        remote_client: RemoteApiClient | None = None,
        driver: BrowserAutomationDriver | None = None,
    ):
        self.config = config

        # Initialize strategies
        self.remote = remote_client or RemoteApiClient(
            config=config.remote,
            options=config.generation,
        )
        self.driver = driver or BrowserAutomationDriver(config.automation)

    @property
    def automation_enabled(self) -> bool:
        return self.config.automation.enabled

    @property
    def terminal_kinds(self) -> frozenset[ErrorKind]:
        """Failures no other strategy could fix."""
        kinds = {ErrorKind.INVALID_IMAGE_FORMAT}
        if not self.config.fallback.mask_insufficient_quota:
            kinds.add(ErrorKind.INSUFFICIENT_QUOTA)
        return frozenset(kinds)

    async def orchestrate(self, request: GenerationRequest) -> GenerationResult:
        """Produce a try-on result for one request.

        Returns:
            GenerationResult holding either an image (possibly the
            placeholder) or a terminal error
        """
        if not request.is_complete:
            logger.warning("Rejecting request: model or cloth image missing")
            return GenerationResult.failed(
                ErrorKind.MISSING_INPUT,
                "Both model and cloth images are required",
            )

        attempts: list[AttemptRecord] = []

        # Step 1: remote API
        result = await self._attempt_remote(request)
        if result.success:
            return result

        attempts.append(AttemptRecord(
            strategy=Strategy.REMOTE_API,
            error_kind=result.error_kind,
            message=result.message or "",
        ))

        if result.error_kind in self.terminal_kinds:
            logger.warning("Terminal remote failure, not falling back: %s", result.message)
            return GenerationResult.failed(
                result.error_kind,
                result.message or result.error_kind.value,
                strategy=Strategy.REMOTE_API,
                attempts=attempts,
            )

        # Step 2: browser automation
        if self.automation_enabled:
            try:
                image = await self._attempt_automation(request)
            except TryOnError as e:
                logger.warning("Browser automation failed: %s", e)
                attempts.append(AttemptRecord(
                    strategy=Strategy.BROWSER_AUTOMATION,
                    error_kind=e.kind,
                    message=e.message,
                ))
            else:
                return GenerationResult.succeeded(
                    image,
                    strategy=Strategy.BROWSER_AUTOMATION,
                    attempts=attempts,
                )
        else:
            logger.info("Browser automation disabled, skipping to placeholder")

        # Step 3: placeholder
        for attempt in attempts:
            logger.warning(
                "Masked %s failure (%s): %s",
                attempt.strategy.value, attempt.error_kind.value, attempt.message,
            )
        logger.info("All remote strategies failed. Using example image.")
        return GenerationResult.succeeded(
            placeholder_image(self.config.fallback.placeholder_path),
            strategy=Strategy.PLACEHOLDER,
            fallback=True,
            attempts=attempts,
        )

    async def orchestrate_embedded(
        self,
        model_image: str | None,
        cloth_image: str | None,
    ) -> GenerationResult:
        """Run from embedded image strings (data URLs or bare base64).

        Missing input is reported before decoding is attempted.
        """
        if not model_image or not cloth_image:
            return await self.orchestrate(GenerationRequest())

        try:
            request = GenerationRequest(
                model_image=image_codec.decode(model_image),
                cloth_image=image_codec.decode(cloth_image),
            )
        except TryOnError as e:
            logger.warning("Rejecting request: %s", e)
            return GenerationResult.from_error(e)

        return await self.orchestrate(request)

    async def _attempt_remote(self, request: GenerationRequest) -> GenerationResult:
        budget = self.config.fallback.remote_budget
        try:
            return await asyncio.wait_for(self.remote.generate(request), timeout=budget)
        except asyncio.TimeoutError:
            logger.warning("Remote API gave no answer within %ss", budget)
            return GenerationResult.failed(
                ErrorKind.REMOTE_SERVICE_ERROR,
                f"Remote API did not respond within {budget}s",
                strategy=Strategy.REMOTE_API,
            )
        except Exception as e:
            logger.exception("Unexpected error from remote API")
            return GenerationResult.failed(
                ErrorKind.REMOTE_SERVICE_ERROR,
                f"Remote API failed unexpectedly: {e}",
                strategy=Strategy.REMOTE_API,
            )

    async def _attempt_automation(self, request: GenerationRequest) -> ImagePayload:
        budget = self.config.fallback.automation_budget
        try:
            with image_codec.transient_files(
                request.model_image,
                request.cloth_image,
                scratch_dir=self.config.scratch_dir,
            ) as (model_file, cloth_file):
                return await asyncio.wait_for(
                    self.driver.run(model_file, cloth_file),
                    timeout=budget,
                )
        except TryOnError:
            raise
        except asyncio.TimeoutError as e:
            raise TryOnError(
                ErrorKind.AUTOMATION_TIMEOUT,
                f"Browser automation did not finish within {budget}s",
            ) from e
        except OSError as e:
            raise TryOnError(
                ErrorKind.AUTOMATION_UNAVAILABLE,
                f"Cannot stage images for upload: {e}",
            ) from e
        except Exception as e:
            logger.exception("Unexpected error during browser automation")
            raise TryOnError(
                ErrorKind.REMOTE_SERVICE_ERROR,
                f"Browser automation failed unexpectedly: {e}",
            ) from e

    async def close(self):
        """Release pooled network resources."""
        await self.remote.close()
