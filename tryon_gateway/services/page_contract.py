"""Locator capabilities for the try-on Space web UI.

The page is not ours, so each thing the driver needs from it is a named
capability backed by an ordered list of selector strategies. Adding a
tolerated page variant means adding a strategy here, nothing else.

Works with any object exposing Playwright's async ``Page`` methods
``wait_for_selector``, ``query_selector`` and ``query_selector_all``.
"""

import logging
from dataclasses import dataclass
from typing import Any

from playwright.async_api import TimeoutError as PlaywrightTimeoutError

from ..errors import ErrorKind, TryOnError


logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class LocatorStrategy:
    """One way of finding an element."""
    name: str
    selector: str


@dataclass(frozen=True)
class Capability:
    """Something the driver needs from the page, with its fallbacks."""
    name: str
    strategies: tuple[LocatorStrategy, ...]

    @property
    def combined_selector(self) -> str:
        """CSS union of every strategy, for waiting on any of them."""
        return ", ".join(s.selector for s in self.strategies)


FILE_INPUTS = Capability(
    name="file inputs",
    strategies=(
        LocatorStrategy("file input", 'input[type="file"]'),
    ),
)

SUBMIT_CONTROL = Capability(
    name="submit control",
    strategies=(
        LocatorStrategy("run button", 'button:has-text("Run")'),
        LocatorStrategy("submit button", 'button:has-text("Submit")'),
        LocatorStrategy("generate button", 'button:has-text("Generate")'),
        LocatorStrategy("primary button", "button.primary"),
        LocatorStrategy("submit-typed button", 'button[type="submit"]'),
    ),
)

RESULT_IMAGE = Capability(
    name="result image",
    strategies=(
        LocatorStrategy("output image", "img.output-image"),
        LocatorStrategy("output container image", ".output-container img"),
        LocatorStrategy("result container image", ".result-container img"),
    ),
)

REQUIRED_FILE_INPUTS = 2


async def find_file_inputs(page: Any, timeout: float) -> list[Any]:
    """Wait for the upload controls and return at least two of them, in DOM order.

    Raises:
        TryOnError: ``AutomationPageLayoutMismatch`` if fewer than two
            inputs are attached before the timeout.
    """
    try:
        await page.wait_for_selector(
            FILE_INPUTS.combined_selector,
            state="attached",
            timeout=timeout * 1000,
        )
    except PlaywrightTimeoutError as e:
        raise TryOnError(
            ErrorKind.AUTOMATION_PAGE_LAYOUT_MISMATCH,
            f"No {FILE_INPUTS.name} appeared within {timeout}s",
        ) from e

    best: list[Any] = []
    for strategy in FILE_INPUTS.strategies:
        inputs = await page.query_selector_all(strategy.selector)
        if len(inputs) >= REQUIRED_FILE_INPUTS:
            logger.info("Found %d %s via %s", len(inputs), FILE_INPUTS.name, strategy.name)
            return inputs
        if len(inputs) > len(best):
            best = inputs

    raise TryOnError(
        ErrorKind.AUTOMATION_PAGE_LAYOUT_MISMATCH,
        f"Could not find enough file upload inputs on the page "
        f"(found {len(best)}, need {REQUIRED_FILE_INPUTS})",
    )


async def find_submit_control(page: Any) -> Any:
    """Return the first submit control any strategy finds.

    Raises:
        TryOnError: ``AutomationPageLayoutMismatch`` if none matches.
    """
    for strategy in SUBMIT_CONTROL.strategies:
        element = await page.query_selector(strategy.selector)
        if element is not None:
            logger.info("Found %s via %s", SUBMIT_CONTROL.name, strategy.name)
            return element

    raise TryOnError(
        ErrorKind.AUTOMATION_PAGE_LAYOUT_MISMATCH,
        "Could not find submit button on the page",
    )


async def await_result_image(page: Any, timeout: float) -> Any:
    """Wait for a rendered result image and return it.

    Raises:
        TryOnError: ``AutomationTimeout`` if nothing becomes visible in
            time, ``AutomationPageLayoutMismatch`` if the element vanishes
            between the wait and the lookup.
    """
    try:
        waited = await page.wait_for_selector(
            RESULT_IMAGE.combined_selector,
            state="visible",
            timeout=timeout * 1000,
        )
    except PlaywrightTimeoutError as e:
        raise TryOnError(
            ErrorKind.AUTOMATION_TIMEOUT,
            f"Result image did not appear within {timeout}s",
        ) from e

    for strategy in RESULT_IMAGE.strategies:
        element = await page.query_selector(strategy.selector)
        if element is not None and await element.is_visible():
            logger.info("Found %s via %s", RESULT_IMAGE.name, strategy.name)
            return element

    if waited is not None:
        return waited

    raise TryOnError(
        ErrorKind.AUTOMATION_PAGE_LAYOUT_MISMATCH,
        "Could not find result image on the page",
    )
