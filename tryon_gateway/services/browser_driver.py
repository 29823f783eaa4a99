"""Playwright automation of the public try-on Space as a fallback strategy.

Drives the Hugging Face Space web form like a user would:
1. Launch an isolated headless Chromium session
2. Open the Space and wait for it to settle
3. Upload the model and cloth images (in that order)
4. Click the run/submit control
5. Wait for the output image and screenshot it
6. Close the session, whatever happened
"""

import logging
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, TypeVar

from playwright.async_api import Error as PlaywrightError
from playwright.async_api import TimeoutError as PlaywrightTimeoutError
from playwright.async_api import async_playwright

from ..config import AutomationConfig
from ..errors import ErrorKind, TryOnError
from ..models import ImagePayload, TransientFile
from . import page_contract


logger = logging.getLogger(__name__)

T = TypeVar("T")


@dataclass
class AutomationSession:
    """One browser, context and page owned by a single automation attempt."""
    playwright: Any = None
    browser: Any = None
    context: Any = None
    page: Any = None
    closed: bool = False

    async def close(self):
        """Tear the session down. Safe to call more than once."""
        if self.closed:
            return
        self.closed = True
        try:
            if self.browser is not None:
                await self.browser.close()
                logger.info("Browser closed")
        except PlaywrightError as e:
            logger.warning("Browser teardown failed: %s", e)
        finally:
            # The runtime owns the driver process; it must stop even if the
            # browser close failed or was interrupted
            if self.playwright is not None:
                try:
                    await self.playwright.stop()
                except PlaywrightError as e:
                    logger.warning("Playwright shutdown failed: %s", e)


SessionLauncher = Callable[[AutomationConfig], Awaitable[AutomationSession]]


async def launch_chromium(config: AutomationConfig) -> AutomationSession:
    """Start Playwright and open a fresh Chromium context and page."""
    playwright = await async_playwright().start()
    session = AutomationSession(playwright=playwright)
    try:
        session.browser = await playwright.chromium.launch(headless=config.headless)
        session.context = await session.browser.new_context(
            viewport={"width": config.viewport_width, "height": config.viewport_height},
            user_agent=config.user_agent,
        )
        session.page = await session.context.new_page()
        # Upper bound for actions that take no explicit timeout
        session.page.set_default_timeout(config.navigation_timeout * 1000)
    except BaseException:
        await session.close()
        raise
    return session


class BrowserAutomationDriver:
    """Generates a try-on image through the Space's human-facing UI."""

    def __init__(
        self,
        config: AutomationConfig,
        launcher: SessionLauncher | None = None,
    ):
        self.config = config
        self.launcher = launcher or launch_chromium

    async def run(self, model_file: TransientFile, cloth_file: TransientFile) -> ImagePayload:
        """Run one automation attempt.

        Args:
            model_file: Person image on disk, goes to the first upload control
            cloth_file: Garment image on disk, goes to the second upload control

        Returns:
            Screenshot of the rendered result as a PNG payload

        Raises:
            TryOnError: classified failure of whichever step broke
        """
        logger.info("Starting browser automation...")
        logger.info("Model image: %s", model_file.path)
        logger.info("Cloth image: %s", cloth_file.path)

        session = await self._launch()
        try:
            page = session.page

            logger.info("Navigating to %s...", self.config.space_url)
            await self._step("navigate", self._navigate(page))

            logger.info("Waiting for file upload elements...")
            inputs = await self._step(
                "locate inputs",
                page_contract.find_file_inputs(page, self.config.input_timeout),
            )

            # First control is the person, second the garment
            logger.info("Uploading model image...")
            await self._step("upload model image", inputs[0].set_input_files(str(model_file.path)))
            logger.info("Uploading cloth image...")
            await self._step("upload cloth image", inputs[1].set_input_files(str(cloth_file.path)))

            logger.info("Clicking submit button...")
            submit = await self._step("locate submit", page_contract.find_submit_control(page))
            await self._step("click submit", submit.click())

            logger.info("Waiting for result to be generated...")
            result = await self._step(
                "await result",
                page_contract.await_result_image(page, self.config.result_timeout),
            )

            data = await self._step("capture result", result.screenshot(type="png"))
            if not data:
                raise TryOnError(ErrorKind.REMOTE_SERVICE_ERROR, "Result screenshot was empty")

            logger.info("Successfully retrieved result image (%d bytes)", len(data))
            return ImagePayload(data=data, mime_type="image/png")
        finally:
            await session.close()

    async def _launch(self) -> AutomationSession:
        try:
            return await self.launcher(self.config)
        except Exception as e:
            raise TryOnError(
                ErrorKind.AUTOMATION_UNAVAILABLE,
                f"Could not launch browser: {e}",
            ) from e

    async def _navigate(self, page: Any):
        timeout_ms = self.config.navigation_timeout * 1000
        await page.goto(self.config.space_url, wait_until="networkidle", timeout=timeout_ms)
        await page.wait_for_load_state("domcontentloaded", timeout=timeout_ms)

    async def _step(self, name: str, action: Awaitable[T]) -> T:
        """Await one step, turning raw Playwright errors into classified ones."""
        try:
            return await action
        except TryOnError:
            raise
        except PlaywrightTimeoutError as e:
            raise TryOnError(ErrorKind.AUTOMATION_TIMEOUT, f"Step '{name}' timed out: {e}") from e
        except PlaywrightError as e:
            raise TryOnError(ErrorKind.REMOTE_SERVICE_ERROR, f"Step '{name}' failed: {e}") from e
