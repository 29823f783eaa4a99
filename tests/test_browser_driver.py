"""Tests for BrowserAutomationDriver with a fake Playwright session."""

import pytest
from playwright.async_api import Error as PlaywrightError
from playwright.async_api import TimeoutError as PlaywrightTimeoutError

from tryon_gateway.config import AutomationConfig
from tryon_gateway.errors import ErrorKind, TryOnError
from tryon_gateway.models import ImagePayload
from tryon_gateway.services import AutomationSession, BrowserAutomationDriver
from tryon_gateway.utils import image_codec

from conftest import FakeBrowser


@pytest.fixture
def automation_config():
    return AutomationConfig(
        enabled=True,
        space_url="https://space.test/tryon",
        navigation_timeout=1.0,
        input_timeout=1.0,
        result_timeout=1.0,
    )


@pytest.fixture
def staged_files(scratch_dir, jpeg_50kb, png_50kb):
    """Model and cloth images on disk, released after the test."""
    model = ImagePayload(data=jpeg_50kb, mime_type="image/jpeg")
    cloth = ImagePayload(data=png_50kb, mime_type="image/png")
    with image_codec.transient_files(model, cloth, scratch_dir=scratch_dir) as files:
        yield files


class TestDriverHappyPath:

    @pytest.mark.asyncio
    async def test_run_returns_screenshot(self, automation_config, launcher, fake_page, fake_browser,
                                          staged_files, minimal_png_bytes):
        driver = BrowserAutomationDriver(automation_config, launcher=launcher)
        model_file, cloth_file = staged_files

        payload = await driver.run(model_file, cloth_file)

        assert payload.data == minimal_png_bytes
        assert payload.mime_type == "image/png"
        assert fake_page.visited == ["https://space.test/tryon"]
        assert fake_browser.close_calls == 1

    @pytest.mark.asyncio
    async def test_uploads_in_fixed_order(self, automation_config, launcher, fake_page, staged_files):
        """Model image goes to the first control, cloth image to the second."""
        driver = BrowserAutomationDriver(automation_config, launcher=launcher)
        model_file, cloth_file = staged_files

        await driver.run(model_file, cloth_file)

        first, second = fake_page.elements['input[type="file"]']
        assert first.uploaded == [str(model_file.path)]
        assert second.uploaded == [str(cloth_file.path)]

    @pytest.mark.asyncio
    async def test_clicks_submit_once(self, automation_config, launcher, fake_page, staged_files):
        driver = BrowserAutomationDriver(automation_config, launcher=launcher)

        await driver.run(*staged_files)

        assert fake_page.elements['button:has-text("Run")'][0].clicks == 1


class TestDriverFailures:
    """Every failure is classified and the session is always closed."""

    @pytest.mark.asyncio
    async def test_launch_failure_is_unavailable(self, automation_config, staged_files):
        async def broken_launcher(config):
            raise PlaywrightError("Executable doesn't exist")

        driver = BrowserAutomationDriver(automation_config, launcher=broken_launcher)

        with pytest.raises(TryOnError) as exc_info:
            await driver.run(*staged_files)

        assert exc_info.value.kind == ErrorKind.AUTOMATION_UNAVAILABLE

    @pytest.mark.asyncio
    async def test_navigation_timeout(self, automation_config, launcher, fake_page, fake_browser, staged_files):
        fake_page.goto_error = PlaywrightTimeoutError("Timeout 1000ms exceeded")
        driver = BrowserAutomationDriver(automation_config, launcher=launcher)

        with pytest.raises(TryOnError) as exc_info:
            await driver.run(*staged_files)

        assert exc_info.value.kind == ErrorKind.AUTOMATION_TIMEOUT
        assert fake_browser.close_calls == 1

    @pytest.mark.asyncio
    async def test_navigation_error(self, automation_config, launcher, fake_page, fake_browser, staged_files):
        fake_page.goto_error = PlaywrightError("net::ERR_NAME_NOT_RESOLVED")
        driver = BrowserAutomationDriver(automation_config, launcher=launcher)

        with pytest.raises(TryOnError) as exc_info:
            await driver.run(*staged_files)

        assert exc_info.value.kind == ErrorKind.REMOTE_SERVICE_ERROR
        assert "navigate" in exc_info.value.message
        assert fake_browser.close_calls == 1

    @pytest.mark.asyncio
    async def test_locate_inputs_failure(self, automation_config, launcher, fake_page, fake_browser, staged_files):
        del fake_page.elements['input[type="file"]']
        driver = BrowserAutomationDriver(automation_config, launcher=launcher)

        with pytest.raises(TryOnError) as exc_info:
            await driver.run(*staged_files)

        assert exc_info.value.kind == ErrorKind.AUTOMATION_PAGE_LAYOUT_MISMATCH
        assert fake_browser.close_calls == 1

    @pytest.mark.asyncio
    async def test_missing_submit(self, automation_config, launcher, fake_page, fake_browser, staged_files):
        del fake_page.elements['button:has-text("Run")']
        driver = BrowserAutomationDriver(automation_config, launcher=launcher)

        with pytest.raises(TryOnError) as exc_info:
            await driver.run(*staged_files)

        assert exc_info.value.kind == ErrorKind.AUTOMATION_PAGE_LAYOUT_MISMATCH
        assert fake_browser.close_calls == 1

    @pytest.mark.asyncio
    async def test_result_never_appears(self, automation_config, launcher, fake_page, fake_browser, staged_files):
        del fake_page.elements["img.output-image"]
        driver = BrowserAutomationDriver(automation_config, launcher=launcher)

        with pytest.raises(TryOnError) as exc_info:
            await driver.run(*staged_files)

        assert exc_info.value.kind == ErrorKind.AUTOMATION_TIMEOUT
        assert fake_browser.close_calls == 1

    @pytest.mark.asyncio
    async def test_capture_failure_still_closes(self, automation_config, launcher, fake_page, fake_browser,
                                                staged_files):
        result = fake_page.elements["img.output-image"][0]

        async def broken_screenshot(**kwargs):
            raise PlaywrightError("Element is not attached to the DOM")

        result.screenshot = broken_screenshot
        driver = BrowserAutomationDriver(automation_config, launcher=launcher)

        with pytest.raises(TryOnError) as exc_info:
            await driver.run(*staged_files)

        assert exc_info.value.kind == ErrorKind.REMOTE_SERVICE_ERROR
        assert fake_browser.close_calls == 1


class TestAutomationSession:

    @pytest.mark.asyncio
    async def test_close_is_idempotent(self):
        browser = FakeBrowser()
        session = AutomationSession(browser=browser)

        await session.close()
        await session.close()

        assert browser.close_calls == 1
        assert session.closed

    @pytest.mark.asyncio
    async def test_runtime_stops_when_browser_close_fails(self):
        """A failing browser close must not leak the Playwright runtime."""
        runtime = FakeRuntime()
        session = AutomationSession(playwright=runtime, browser=FailingBrowser())

        await session.close()
        await session.close()

        assert runtime.stop_calls == 1
        assert session.closed

    @pytest.mark.asyncio
    async def test_runtime_stops_when_close_is_interrupted(self):
        """Non-Playwright errors still propagate, after the runtime stops."""
        runtime = FakeRuntime()
        browser = FailingBrowser(RuntimeError("interrupted"))
        session = AutomationSession(playwright=runtime, browser=browser)

        with pytest.raises(RuntimeError):
            await session.close()

        assert runtime.stop_calls == 1

    @pytest.mark.asyncio
    async def test_runtime_stops_on_clean_close(self):
        runtime = FakeRuntime()
        browser = FakeBrowser()
        session = AutomationSession(playwright=runtime, browser=browser)

        await session.close()

        assert browser.close_calls == 1
        assert runtime.stop_calls == 1


class FakeRuntime:
    """Stands in for the object returned by ``async_playwright().start()``."""

    def __init__(self):
        self.stop_calls = 0

    async def stop(self):
        self.stop_calls += 1


class FailingBrowser:

    def __init__(self, error=None):
        self.error = error or PlaywrightError("Target closed")

    async def close(self):
        raise self.error
