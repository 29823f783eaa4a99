# Test fixtures and configuration
import pytest
import sys
from pathlib import Path

from playwright.async_api import TimeoutError as PlaywrightTimeoutError

# Add project root to path
project_root = Path(__file__).parent.parent
sys.path.insert(0, str(project_root))

from tryon_gateway.config import AutomationConfig, FallbackPolicy, GatewayConfig, RemoteApiConfig
from tryon_gateway.models import GenerationRequest, ImagePayload
from tryon_gateway.services.browser_driver import AutomationSession


MINIMAL_PNG = bytes([
    0x89, 0x50, 0x4E, 0x47, 0x0D, 0x0A, 0x1A, 0x0A,  # PNG signature
    0x00, 0x00, 0x00, 0x0D, 0x49, 0x48, 0x44, 0x52,  # IHDR chunk
    0x00, 0x00, 0x00, 0x01, 0x00, 0x00, 0x00, 0x01,  # 1x1 dimensions
    0x08, 0x02, 0x00, 0x00, 0x00, 0x90, 0x77, 0x53,
    0xDE, 0x00, 0x00, 0x00, 0x0C, 0x49, 0x44, 0x41,  # IDAT chunk
    0x54, 0x08, 0xD7, 0x63, 0xF8, 0xCF, 0xC0, 0x00,
    0x00, 0x00, 0x03, 0x00, 0x01, 0x00, 0x05, 0xFE,
    0xD4, 0xAA, 0x00, 0x00, 0x00, 0x00, 0x49, 0x45,  # IEND chunk
    0x4E, 0x44, 0xAE, 0x42, 0x60, 0x82
])


@pytest.fixture
def minimal_png_bytes():
    """Minimal valid PNG image bytes."""
    return MINIMAL_PNG


@pytest.fixture
def jpeg_50kb():
    """50KB of JPEG-looking bytes (SOI marker + filler)."""
    body = bytes(range(256)) * 200
    return b"\xff\xd8\xff\xe0" + body[: 50 * 1024 - 4]


@pytest.fixture
def png_50kb():
    """50KB of PNG-looking bytes (signature + filler)."""
    body = bytes(reversed(range(256))) * 200
    return MINIMAL_PNG[:8] + body[: 50 * 1024 - 8]


@pytest.fixture
def generation_request(jpeg_50kb, png_50kb):
    """Complete request: JPEG person photo, PNG garment photo."""
    return GenerationRequest(
        model_image=ImagePayload(data=jpeg_50kb, mime_type="image/jpeg"),
        cloth_image=ImagePayload(data=png_50kb, mime_type="image/png"),
    )


@pytest.fixture
def scratch_dir(tmp_path):
    return tmp_path / "scratch"


@pytest.fixture
def gateway_config(scratch_dir):
    """Config with the browser fallback enabled and short budgets."""
    return GatewayConfig(
        scratch_dir=scratch_dir,
        remote=RemoteApiConfig(api_key="test-key", base_url="https://remote.test/v1"),
        automation=AutomationConfig(
            enabled=True,
            space_url="https://space.test/tryon",
            navigation_timeout=1.0,
            input_timeout=1.0,
            result_timeout=1.0,
        ),
        fallback=FallbackPolicy(remote_budget=5.0, automation_budget=5.0),
    )


# ---------------------------------------------------------------------------
# Playwright doubles
# ---------------------------------------------------------------------------

class FakeElement:
    """Stands in for a Playwright ElementHandle."""

    def __init__(self, name, visible=True, screenshot_bytes=MINIMAL_PNG):
        self.name = name
        self.visible = visible
        self.screenshot_bytes = screenshot_bytes
        self.uploaded = []
        self.clicks = 0

    async def set_input_files(self, files):
        self.uploaded.append(files)

    async def click(self):
        self.clicks += 1

    async def screenshot(self, **kwargs):
        return self.screenshot_bytes

    async def is_visible(self):
        return self.visible


class FakePage:
    """Stands in for a Playwright Page; elements are keyed by exact selector."""

    def __init__(self, elements=None):
        self.elements = elements if elements is not None else {}
        self.visited = []
        self.goto_error = None

    async def goto(self, url, **kwargs):
        self.visited.append(url)
        if self.goto_error is not None:
            raise self.goto_error

    async def wait_for_load_state(self, state, **kwargs):
        return None

    async def wait_for_selector(self, selector, state=None, timeout=None):
        for part in selector.split(", "):
            matches = [
                e for e in self.elements.get(part, [])
                if state != "visible" or e.visible
            ]
            if matches:
                return matches[0]
        raise PlaywrightTimeoutError(f"Timeout {timeout}ms exceeded waiting for {selector}")

    async def query_selector(self, selector):
        matches = self.elements.get(selector, [])
        return matches[0] if matches else None

    async def query_selector_all(self, selector):
        return list(self.elements.get(selector, []))


class FakeBrowser:
    """Counts how often the session tears it down."""

    def __init__(self):
        self.close_calls = 0

    async def close(self):
        self.close_calls += 1


@pytest.fixture
def fake_page():
    """A page matching the expected Space layout."""
    return FakePage({
        'input[type="file"]': [FakeElement("model input"), FakeElement("cloth input")],
        'button:has-text("Run")': [FakeElement("run button")],
        "img.output-image": [FakeElement("result")],
    })


@pytest.fixture
def fake_browser():
    return FakeBrowser()


@pytest.fixture
def launcher(fake_page, fake_browser):
    """Session launcher returning the fake page; records each session."""
    sessions = []

    async def launch(config):
        session = AutomationSession(browser=fake_browser, page=fake_page)
        sessions.append(session)
        return session

    launch.sessions = sessions
    return launch
