"""Configuration management for the virtual try-on gateway."""

import logging
import tempfile
from pathlib import Path

from pydantic import BaseModel, Field
from pydantic_settings import BaseSettings, SettingsConfigDict


logger = logging.getLogger(__name__)

DEFAULT_SPACE_URL = "https://huggingface.co/spaces/Kwai-Kolors/Kolors-Virtual-Try-On"
DEFAULT_USER_AGENT = (
    "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 "
    "(KHTML, like Gecko) Chrome/91.0.4472.124 Safari/537.36"
)


class GenerationOptions(BaseModel):
    """Parameters sent with every remote generation request."""
    category: str = "Upper body"  # garment region hint
    steps: int = 35
    guidance_scale: float = 2.0
    seed: int | None = None  # None = random


class RemoteApiConfig(BaseModel):
    """Third-party try-on REST endpoint."""
    api_key: str = ""
    base_url: str = "https://api.segmind.com/v1"
    endpoint: str = "/try-on-diffusion"
    request_timeout: float = 90.0

    @property
    def url(self) -> str:
        return f"{self.base_url.rstrip('/')}{self.endpoint}"


class AutomationConfig(BaseModel):
    """Headless browser fallback against the public Space UI."""
    enabled: bool = False
    space_url: str = DEFAULT_SPACE_URL
    headless: bool = True
    viewport_width: int = 1280
    viewport_height: int = 800
    user_agent: str = DEFAULT_USER_AGENT

    # Per-step timeouts in seconds
    navigation_timeout: float = 30.0
    input_timeout: float = 30.0
    result_timeout: float = 120.0  # remote inference is slow


class FallbackPolicy(BaseModel):
    """How remote failures are routed between strategies."""
    # Treat quota exhaustion as worth a browser retry / placeholder
    mask_insufficient_quota: bool = True
    placeholder_path: Path | None = None  # None = rendered default

    # Orchestrator-side upper bounds per strategy, in seconds
    remote_budget: float = 120.0
    automation_budget: float = 200.0


class GatewayConfig(BaseSettings):
    """Main gateway configuration."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_prefix="",
        env_nested_delimiter="__",
        extra="ignore",
    )

    # Server
    host: str = "0.0.0.0"
    port: int = 3001
    log_level: str = "INFO"

    # Paths
    scratch_dir: Path = Path(tempfile.gettempdir()) / "tryon-gateway"

    # Sub-configs
    remote: RemoteApiConfig = Field(default_factory=RemoteApiConfig)
    automation: AutomationConfig = Field(default_factory=AutomationConfig)
    fallback: FallbackPolicy = Field(default_factory=FallbackPolicy)
    generation: GenerationOptions = Field(default_factory=GenerationOptions)


def report_disabled_strategies(config: GatewayConfig):
    """Log every setting that turns a strategy off.

    Call after logging is configured so the records use the real handlers.
    """
    if not config.remote.api_key:
        logger.warning(
            "REMOTE__API_KEY is not set; remote API strategy will be skipped"
        )
    if not config.automation.enabled:
        logger.warning(
            "Browser automation fallback is disabled "
            "(set AUTOMATION__ENABLED=true to enable)"
        )
    if config.fallback.placeholder_path is not None and not config.fallback.placeholder_path.is_file():
        logger.warning(
            "Placeholder file %s not found; the rendered default will be used",
            config.fallback.placeholder_path,
        )


def load_config(report: bool = True) -> GatewayConfig:
    """Load configuration from environment and defaults.

    With ``report`` the disabled strategies are logged straight away, so a
    deployment never degrades without a log record.
    """
    config = GatewayConfig()
    if report:
        report_disabled_strategies(config)
    return config
