"""Remote generation strategies."""

from .remote_api_client import RemoteApiClient
from .browser_driver import AutomationSession, BrowserAutomationDriver, launch_chromium

__all__ = [
    "RemoteApiClient",
    "AutomationSession",
    "BrowserAutomationDriver",
    "launch_chromium",
]
