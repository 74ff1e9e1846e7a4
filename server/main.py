"""APS relay service.

A FastAPI service that relays a browser client's requests to Autodesk
Platform Services: token minting, file upload with translation, and
manifest polling.

Usage:
    python -m server.main

Environment Variables:
    APS_CLIENT_ID: APS application client id (required per request)
    APS_CLIENT_SECRET: APS application client secret (required per request)
    APS_BUCKET_KEY: OSS bucket that receives uploads (required per request)
    APS_REGION: Bucket region (default: US)
    APS_ALLOWED_ORIGINS: Comma-separated CORS allow-list (default: any origin)
    APS_BASE_URL: APS API base URL (default: https://developer.api.autodesk.com)
    PORT: Service port (default: 8787)
    HOST: Service host (default: 0.0.0.0)
    LOG_LEVEL: Logging level (default: info)
"""

import logging
from contextlib import asynccontextmanager
from dataclasses import asdict

import httpx
import uvicorn
from dotenv import load_dotenv
from fastapi import APIRouter, FastAPI, File, Request, UploadFile
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from pydantic import BaseModel, ConfigDict, Field
from starlette.exceptions import HTTPException as StarletteHTTPException
from starlette.middleware.base import BaseHTTPMiddleware

from server import __version__
from src.client import APSClient, UpstreamError, encode_urn
from src.config import APSSettings, ConfigurationError

logger = logging.getLogger(__name__)


class ClientInputError(Exception):
    """The client sent an unusable request."""

    def __init__(self, message: str):
        self.message = message
        self.status_code = 400
        super().__init__(message)


# Pydantic models
class TokenResponse(BaseModel):
    """Access token bundle handed to the viewer."""
    access_token: str
    token_type: str
    expires_in: int


class UploadTranslateResponse(BaseModel):
    """Upload-and-translate response."""
    model_config = ConfigDict(populate_by_name=True)

    resource_locator: str = Field(
        ...,
        alias="resourceLocator",
        description="Base64 URN of the uploaded object",
    )


class HealthResponse(BaseModel):
    """Health check response."""
    status: str
    missing: list[str]
    version: str


class OriginGuardMiddleware(BaseHTTPMiddleware):
    """Reject cross-origin requests whose Origin is not on the allow-list.

    Requests without an Origin header, or any request when the allow-list is
    empty, pass through untouched.
    """

    def __init__(self, app, allowed_origins: tuple[str, ...] = ()):
        super().__init__(app)
        self.allowed_origins = frozenset(allowed_origins)

    async def dispatch(self, request: Request, call_next):
        origin = request.headers.get("origin")
        if origin and self.allowed_origins and origin not in self.allowed_origins:
            return JSONResponse({"error": "CORS not allowed"}, status_code=403)
        return await call_next(request)


router = APIRouter(prefix="/api/aps")


def aps_client(request: Request) -> APSClient:
    """Build a per-request APS client from the app's settings."""
    return APSClient(
        request.app.state.settings,
        transport=request.app.state.transport,
    )


@router.get("/token", response_model=TokenResponse)
async def token_endpoint(request: Request) -> TokenResponse:
    """Mint a fresh access token."""
    async with aps_client(request) as client:
        token = await client.get_access_token()
    return TokenResponse(**asdict(token))


@router.post("/upload-translate", response_model=UploadTranslateResponse)
async def upload_translate_endpoint(
    request: Request,
    file: UploadFile | str | None = File(default=None),
) -> UploadTranslateResponse:
    """Upload a file to the bucket and start its translation."""
    # A plain text field named "file" is not an upload
    if not isinstance(file, UploadFile):
        raise ClientInputError("No file uploaded.")

    content = await file.read()
    async with aps_client(request) as client:
        token = await client.get_access_token()
        await client.ensure_bucket(token.access_token)
        uploaded = await client.upload_to_bucket(
            token.access_token, file.filename, content
        )
        urn = encode_urn(uploaded.object_id)
        await client.start_translation(token.access_token, urn)

    return UploadTranslateResponse(resource_locator=urn)


@router.get("/manifest/{urn:path}")
async def manifest_endpoint(urn: str, request: Request) -> JSONResponse:
    """Relay the translation manifest, status code included."""
    async with aps_client(request) as client:
        token = await client.get_access_token()
        manifest = await client.get_manifest(token.access_token, urn)
    return JSONResponse(manifest.body, status_code=manifest.status_code)


health_router = APIRouter()


@health_router.get("/health", response_model=HealthResponse)
async def health_check(request: Request) -> HealthResponse:
    """Health check endpoint. Does not contact APS."""
    missing = request.app.state.settings.missing()
    return HealthResponse(
        status="misconfigured" if missing else "ok",
        missing=missing,
        version=__version__,
    )


# Error handlers
async def relay_error_handler(request: Request, exc: Exception) -> JSONResponse:
    """Render taxonomy errors with their carried status."""
    status_code = getattr(exc, "status_code", None) or 500
    return JSONResponse({"error": exc.message}, status_code=status_code)


async def http_error_handler(
    request: Request, exc: StarletteHTTPException
) -> JSONResponse:
    return JSONResponse(
        {"error": str(exc.detail)},
        status_code=exc.status_code,
        headers=getattr(exc, "headers", None),
    )


async def validation_error_handler(
    request: Request, exc: RequestValidationError
) -> JSONResponse:
    message = "; ".join(
        f"{'.'.join(str(part) for part in err['loc'])}: {err['msg']}"
        for err in exc.errors()
    )
    return JSONResponse({"error": message}, status_code=422)


async def unexpected_error_handler(request: Request, exc: Exception) -> JSONResponse:
    logger.exception("Unhandled error")
    return JSONResponse({"error": str(exc) or "Server error"}, status_code=500)


# FastAPI app
@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan handler."""
    settings = app.state.settings
    logger.info(f"APS server running on http://localhost:{settings.port}")
    missing = settings.missing()
    if missing:
        logger.warning(f"Missing env vars: {', '.join(missing)}")
    yield
    logger.info("Shutting down APS server...")


def create_app(
    settings: APSSettings | None = None,
    transport: httpx.AsyncBaseTransport | None = None,
) -> FastAPI:
    """Create the relay application.

    Args:
        settings: Relay settings. If None, read from the environment.
        transport: Optional httpx transport for outbound APS calls.
    """
    settings = settings or APSSettings.from_env()

    app = FastAPI(
        title="APS Relay",
        description="Token, upload and translation relay for Autodesk Platform Services",
        version=__version__,
        lifespan=lifespan,
    )
    app.state.settings = settings
    app.state.transport = transport

    app.add_middleware(
        CORSMiddleware,
        allow_origins=list(settings.allowed_origins) or ["*"],
        allow_methods=["*"],
        allow_headers=["*"],
    )
    # Outermost, so disallowed origins never reach CORS preflight handling
    app.add_middleware(
        OriginGuardMiddleware,
        allowed_origins=settings.allowed_origins,
    )

    for exc_class in (ConfigurationError, UpstreamError, ClientInputError):
        app.add_exception_handler(exc_class, relay_error_handler)
    app.add_exception_handler(StarletteHTTPException, http_error_handler)
    app.add_exception_handler(RequestValidationError, validation_error_handler)
    app.add_exception_handler(Exception, unexpected_error_handler)

    app.include_router(router)
    app.include_router(health_router)
    return app


def main():
    """Run the service."""
    load_dotenv()
    settings = APSSettings.from_env()

    logging.basicConfig(
        level=getattr(logging, settings.log_level.upper()),
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    )
    logger.info(f"Starting server on {settings.host}:{settings.port}")
    uvicorn.run(
        create_app(settings),
        host=settings.host,
        port=settings.port,
        log_level=settings.log_level,
    )


if __name__ == "__main__":
    main()
