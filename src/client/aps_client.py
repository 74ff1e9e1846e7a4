"""HTTP client for the Autodesk Platform Services (APS) API.

This module wraps the handful of APS calls the relay needs: minting a
two-legged token, ensuring the OSS bucket exists, uploading an object and
driving Model Derivative translation jobs.

Usage:
    from src.client import APSClient
    from src.config import APSSettings

    async with APSClient(APSSettings.from_env()) as client:
        token = await client.get_access_token()
        await client.ensure_bucket(token.access_token)
"""

import logging
from dataclasses import dataclass
from typing import Any
from urllib.parse import quote

import httpx

from src.client.objects import build_object_name
from src.config.settings import APSSettings

logger = logging.getLogger(__name__)

TOKEN_SCOPE = "data:read data:write data:create bucket:create bucket:read"
BUCKET_POLICY = "persistent"
OUTPUT_FORMATS = [{"type": "svf2", "views": ["2d", "3d"]}]


class UpstreamError(Exception):
    """Non-success response (or transport failure) from the APS API."""

    def __init__(
        self,
        message: str,
        status_code: int | None = None,
        body: str | None = None,
    ):
        self.message = message
        self.status_code = status_code
        self.body = body
        super().__init__(message)


@dataclass
class AccessToken:
    """Two-legged access token bundle."""

    access_token: str
    token_type: str
    expires_in: int


@dataclass
class UploadedObject:
    """Object stored in an OSS bucket."""

    bucket_key: str
    object_key: str
    object_id: str
    size: int | None = None


@dataclass
class Manifest:
    """Model Derivative manifest, as returned by APS."""

    status_code: int
    body: Any


def _failure(label: str, response: httpx.Response) -> UpstreamError:
    # Unusable 2xx bodies carry no status so they render as 500
    text = response.text
    return UpstreamError(
        f"{label}: {response.status_code} {text}",
        status_code=None if response.is_success else response.status_code,
        body=text,
    )


class APSClient:
    """Async client for the APS endpoints used by the relay.

    One instance is meant to live for a single incoming request; nothing is
    cached between calls.

    Attributes:
        settings: Relay settings (credentials, bucket, region, base URL)
        timeout: Request timeout in seconds, or None for no timeout
    """

    def __init__(
        self,
        settings: APSSettings,
        timeout: float | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        """Initialize the APS client.

        Args:
            settings: Relay settings.
            timeout: Request timeout in seconds. None disables it.
            transport: Optional httpx transport (used to stub APS in tests).
        """
        self.settings = settings
        self.base_url = settings.base_url.rstrip("/")
        self.timeout = timeout
        self._transport = transport
        self._client: httpx.AsyncClient | None = None

    async def __aenter__(self) -> "APSClient":
        """Enter async context manager."""
        self._client = httpx.AsyncClient(
            base_url=self.base_url,
            timeout=httpx.Timeout(self.timeout),
            transport=self._transport,
        )
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        """Exit async context manager."""
        if self._client:
            await self._client.aclose()
            self._client = None

    @property
    def client(self) -> httpx.AsyncClient:
        """Get the HTTP client, ensuring it's initialized."""
        if self._client is None:
            raise RuntimeError(
                "APSClient must be used as an async context manager: "
                "async with APSClient(settings) as client: ..."
            )
        return self._client

    async def _request(self, method: str, url: str, **kwargs: Any) -> httpx.Response:
        try:
            response = await self.client.request(method, url, **kwargs)
        except httpx.RequestError as e:
            raise UpstreamError(f"Request failed: {e}") from e
        logger.debug(f"{method} {url} -> {response.status_code}")
        return response

    @staticmethod
    def _auth(token: str) -> dict[str, str]:
        return {"Authorization": f"Bearer {token}"}

    async def get_access_token(self) -> AccessToken:
        """Exchange the configured client credentials for a bearer token.

        Returns:
            AccessToken bundle

        Raises:
            ConfigurationError: If credentials or the bucket key are missing
            UpstreamError: If APS rejects the request
        """
        self.settings.require()
        response = await self._request(
            "POST",
            "/authentication/v2/token",
            data={
                "client_id": self.settings.client_id,
                "client_secret": self.settings.client_secret,
                "grant_type": "client_credentials",
                "scope": TOKEN_SCOPE,
            },
        )
        if not response.is_success:
            raise _failure("Token request failed", response)

        try:
            data = response.json()
            return AccessToken(
                access_token=data["access_token"],
                token_type=data.get("token_type", "Bearer"),
                expires_in=data.get("expires_in", 0),
            )
        except (ValueError, KeyError, TypeError, AttributeError) as e:
            raise _failure("Token request failed", response) from e

    async def ensure_bucket(self, token: str) -> bool:
        """Make sure the configured bucket exists.

        Args:
            token: Bearer token

        Returns:
            True if the bucket was created, False if it already existed

        Raises:
            UpstreamError: If the lookup or the create call fails
        """
        bucket_key = self.settings.normalized_bucket_key
        details = await self._request(
            "GET",
            f"/oss/v2/buckets/{bucket_key}/details",
            headers=self._auth(token),
        )
        if details.is_success:
            return False
        if details.status_code != 404:
            raise _failure("Bucket check failed", details)

        response = await self._request(
            "POST",
            "/oss/v2/buckets",
            headers={**self._auth(token), "x-ads-region": self.settings.region},
            json={"bucketKey": bucket_key, "policyKey": BUCKET_POLICY},
        )
        if not response.is_success:
            raise _failure("Bucket create failed", response)

        logger.info(f"Created bucket {bucket_key} in region {self.settings.region}")
        return True

    async def upload_to_bucket(
        self,
        token: str,
        filename: str | None,
        content: bytes,
    ) -> UploadedObject:
        """Upload raw bytes to the bucket under a timestamped, sanitized name.

        Args:
            token: Bearer token
            filename: Original filename from the client
            content: File bytes

        Returns:
            UploadedObject with the APS object id

        Raises:
            UpstreamError: If the upload fails
        """
        bucket_key = self.settings.normalized_bucket_key
        object_name = build_object_name(filename)
        response = await self._request(
            "PUT",
            f"/oss/v2/buckets/{bucket_key}/objects/{quote(object_name, safe='')}",
            headers={
                **self._auth(token),
                "Content-Type": "application/octet-stream",
            },
            content=content,
        )
        if not response.is_success:
            raise _failure("Upload failed", response)

        try:
            data = response.json()
            return UploadedObject(
                bucket_key=data.get("bucketKey", bucket_key),
                object_key=data.get("objectKey", object_name),
                object_id=data["objectId"],
                size=data.get("size"),
            )
        except (ValueError, KeyError, TypeError, AttributeError) as e:
            raise _failure("Upload failed", response) from e

    async def start_translation(self, token: str, urn: str) -> None:
        """Submit a Model Derivative job for the given URN.

        Raises:
            UpstreamError: If APS does not accept the job
        """
        response = await self._request(
            "POST",
            "/modelderivative/v2/designdata/job",
            headers=self._auth(token),
            json={
                "input": {"urn": urn},
                "output": {"formats": OUTPUT_FORMATS},
            },
        )
        if not response.is_success:
            raise _failure("Translate failed", response)

    async def get_manifest(self, token: str, urn: str) -> Manifest:
        """Fetch the translation manifest for a URN, whatever its status."""
        response = await self._request(
            "GET",
            f"/modelderivative/v2/designdata/{quote(urn, safe='')}/manifest",
            headers=self._auth(token),
        )
        try:
            body = response.json()
        except ValueError as e:
            raise _failure("Manifest request failed", response) from e
        return Manifest(status_code=response.status_code, body=body)
