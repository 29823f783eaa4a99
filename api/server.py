"""FastAPI server for Virtual Try-On.

Receives requests from the web front-end with:
- modelImage: Base64 data URL of the person photo
- clothImage: Base64 data URL of the garment photo
"""

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from pydantic import BaseModel, ConfigDict, Field

from tryon_gateway import __version__
from tryon_gateway.config import GatewayConfig, load_config, report_disabled_strategies
from tryon_gateway.errors import ErrorKind
from tryon_gateway.pipeline import GenerationOrchestrator
from tryon_gateway.utils import image_codec


logger = logging.getLogger(__name__)

# Client-side problems; everything else is a remote/automation failure
STATUS_BY_KIND: dict[ErrorKind, int] = {
    ErrorKind.MISSING_INPUT: 400,
    ErrorKind.INVALID_IMAGE_ENCODING: 400,
}


class TryOnRequest(BaseModel):
    """Request body for try-on generation."""

    model_config = ConfigDict(populate_by_name=True, protected_namespaces=())

    model_image: str | None = Field(default=None, alias="modelImage")  # Base64 data URL
    cloth_image: str | None = Field(default=None, alias="clothImage")  # Base64 data URL


class TryOnResponse(BaseModel):
    """Response with generated image."""

    model_config = ConfigDict(populate_by_name=True)

    success: bool
    result_image: str = Field(serialization_alias="resultImage")
    fallback: bool = False


class ErrorResponse(BaseModel):
    """Structured failure body."""
    error: str
    message: str


# Initialized once per process (see lifespan / get_orchestrator)
_config: GatewayConfig | None = None
_orchestrator: GenerationOrchestrator | None = None


def configure_logging(config: GatewayConfig):
    logging.basicConfig(
        level=config.log_level.upper(),
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    )


def get_config() -> GatewayConfig:
    """Get or load the process configuration."""
    global _config
    if _config is None:
        # Loads from .env automatically via pydantic-settings; reported in lifespan
        _config = load_config(report=False)
    return _config


def get_orchestrator() -> GenerationOrchestrator:
    """Get or create the orchestrator instance."""
    global _orchestrator
    if _orchestrator is None:
        _orchestrator = GenerationOrchestrator(get_config())
    return _orchestrator


@asynccontextmanager
async def lifespan(app: FastAPI):
    config = get_config()
    configure_logging(config)
    report_disabled_strategies(config)
    get_orchestrator()
    yield
    global _orchestrator
    if _orchestrator is not None:
        await _orchestrator.close()
        _orchestrator = None


app = FastAPI(
    title="Virtual Try-On Gateway",
    description="Virtual try-on via remote API with browser automation fallback",
    version=__version__,
    lifespan=lifespan,
)

# The front-end is served from a different origin
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.exception_handler(RequestValidationError)
async def validation_error_handler(request: Request, exc: RequestValidationError):
    """Malformed bodies (non-string images, broken JSON) get the structured error shape."""
    problems = "; ".join(
        f"{'.'.join(str(part) for part in error.get('loc', ())[1:]) or 'body'}: {error.get('msg', '')}"
        for error in exc.errors()
    )
    logger.warning("Rejecting malformed request body: %s", problems)
    body = ErrorResponse(
        error=ErrorKind.INVALID_IMAGE_ENCODING.value,
        message=f"Request body is malformed: {problems}",
    )
    return JSONResponse(
        status_code=STATUS_BY_KIND[ErrorKind.INVALID_IMAGE_ENCODING],
        content=body.model_dump(),
    )


@app.get("/api/health")
async def health():
    """Liveness check."""
    return {"status": "ok"}


@app.post(
    "/api/virtual-try-on",
    response_model=TryOnResponse,
    responses={400: {"model": ErrorResponse}, 500: {"model": ErrorResponse}},
)
async def virtual_try_on(request: TryOnRequest):
    """Generate a virtual try-on image.

    Args:
        request: Contains model photo and cloth photo as base64 data URLs

    Returns:
        Data URL of the result image, or a structured error
    """
    logger.info("Received virtual try-on request")

    orchestrator = get_orchestrator()
    result = await orchestrator.orchestrate_embedded(
        model_image=request.model_image,
        cloth_image=request.cloth_image,
    )

    if not result.success:
        status_code = STATUS_BY_KIND.get(result.error_kind, 500)
        logger.warning("Try-on failed with %s (%s)", result.error_kind.value, status_code)
        body = ErrorResponse(error=result.error_kind.value, message=result.message or "")
        return JSONResponse(status_code=status_code, content=body.model_dump())

    response = TryOnResponse(
        success=True,
        result_image=image_codec.encode(result.image),
        fallback=result.fallback,
    )
    return JSONResponse(content=response.model_dump(by_alias=True))


if __name__ == "__main__":
    import uvicorn

    config = get_config()
    configure_logging(config)
    logger.info("Virtual try-on API available at http://localhost:%s/api/virtual-try-on", config.port)
    uvicorn.run(app, host=config.host, port=config.port)
