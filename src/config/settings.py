"""Settings and configuration for the APS relay."""

import os
from collections.abc import Mapping
from dataclasses import dataclass

DEFAULT_BASE_URL = "https://developer.api.autodesk.com"


class ConfigurationError(Exception):
    """Required settings are missing."""

    def __init__(self, message: str, missing: list[str] | None = None):
        self.message = message
        self.status_code = 500
        self.missing = missing or []
        super().__init__(message)


def parse_origins(value: str | None) -> tuple[str, ...]:
    """Split a comma-separated origin list, dropping blanks."""
    if not value:
        return ()
    return tuple(origin.strip() for origin in value.split(",") if origin.strip())


@dataclass(frozen=True)
class APSSettings:
    """APS relay settings.

    Credentials and the bucket key are optional at construction time so the
    process can start without them; handlers call `require()` before talking
    to APS.
    """

    # Credentials
    client_id: str | None = None
    client_secret: str | None = None

    # Storage
    bucket_key: str | None = None
    region: str = "US"

    # Boundary
    allowed_origins: tuple[str, ...] = ()
    base_url: str = DEFAULT_BASE_URL

    # Server
    host: str = "0.0.0.0"
    port: int = 8787
    log_level: str = "info"

    @classmethod
    def from_env(cls, environ: Mapping[str, str] | None = None) -> "APSSettings":
        """Build settings from environment variables."""
        env = os.environ if environ is None else environ
        return cls(
            client_id=env.get("APS_CLIENT_ID") or None,
            client_secret=env.get("APS_CLIENT_SECRET") or None,
            bucket_key=env.get("APS_BUCKET_KEY") or None,
            region=env.get("APS_REGION") or "US",
            allowed_origins=parse_origins(env.get("APS_ALLOWED_ORIGINS")),
            base_url=(env.get("APS_BASE_URL") or DEFAULT_BASE_URL).rstrip("/"),
            host=env.get("HOST") or "0.0.0.0",
            port=int(env.get("PORT") or "8787"),
            log_level=env.get("LOG_LEVEL") or "info",
        )

    @property
    def normalized_bucket_key(self) -> str:
        """Bucket key as APS expects it (lower-case)."""
        return (self.bucket_key or "").lower()

    def missing(self) -> list[str]:
        """Names of required settings that are not set."""
        missing = []
        if not self.client_id:
            missing.append("APS_CLIENT_ID")
        if not self.client_secret:
            missing.append("APS_CLIENT_SECRET")
        if not self.bucket_key:
            missing.append("APS_BUCKET_KEY")
        return missing

    def require(self) -> None:
        """Raise ConfigurationError if any required setting is missing."""
        missing = self.missing()
        if missing:
            raise ConfigurationError(
                f"Missing env vars: {', '.join(missing)}",
                missing=missing,
            )
