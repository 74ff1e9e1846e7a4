#!/usr/bin/env python3
"""
Upload a file through the APS relay and wait for its translation.

Posts the file to the relay's upload-translate endpoint, prints the URN,
then polls the manifest endpoint until the job settles.

Usage:
    python scripts/translate_file.py model.rvt
    python scripts/translate_file.py model.dwg --relay-url http://localhost:8787 --interval 10
"""

import argparse
import asyncio
import os
import sys
import time
from dataclasses import dataclass
from typing import Any

import httpx

# =============================================================================
# Configuration
# =============================================================================

DEFAULT_RELAY_URL = os.environ.get("APS_RELAY_URL", "http://localhost:8787")
POLL_INTERVAL = 5.0      # seconds between manifest polls
POLL_TIMEOUT = 900.0     # give up waiting after this many seconds
UPLOAD_TIMEOUT = 300.0   # large uploads pass through two hops

TERMINAL_STATUSES = {"success", "failed", "timeout"}


# =============================================================================
# Relay Client
# =============================================================================

@dataclass
class ManifestStatus:
    """Snapshot of a manifest poll."""
    http_status: int
    status: str
    progress: str
    body: dict[str, Any]

    @property
    def done(self) -> bool:
        return self.status in TERMINAL_STATUSES


class RelayClient:
    """Minimal client for the relay's own endpoints.

    Every failure (error status, unreadable body) surfaces as RuntimeError.
    """

    def __init__(
        self,
        base_url: str = DEFAULT_RELAY_URL,
        timeout: float = UPLOAD_TIMEOUT,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self._transport = transport
        self._client: httpx.AsyncClient | None = None

    async def __aenter__(self) -> "RelayClient":
        self._client = httpx.AsyncClient(
            base_url=self.base_url,
            timeout=self.timeout,
            transport=self._transport,
        )
        return self

    async def __aexit__(self, *args) -> None:
        if self._client:
            await self._client.aclose()
            self._client = None

    @staticmethod
    def _json(response: httpx.Response) -> dict[str, Any]:
        try:
            data = response.json()
        except ValueError as e:
            raise RuntimeError(f"{response.status_code} {response.text[:200]}") from e
        if not isinstance(data, dict):
            raise RuntimeError(f"{response.status_code} unexpected body: {response.text[:200]}")
        return data

    @classmethod
    def _error(cls, response: httpx.Response) -> RuntimeError:
        try:
            message = cls._json(response).get("error")
        except RuntimeError as e:
            return e
        return RuntimeError(message or f"{response.status_code} {response.text[:200]}")

    async def upload(self, path: str) -> str:
        """Upload a file and return its URN."""
        with open(path, "rb") as f:
            files = {"file": (os.path.basename(path), f.read(), "application/octet-stream")}
        response = await self._client.post("/api/aps/upload-translate", files=files)
        if response.status_code != 200:
            raise self._error(response)
        data = self._json(response)
        if "resourceLocator" not in data:
            raise RuntimeError(f"No resourceLocator in response: {response.text[:200]}")
        return data["resourceLocator"]

    async def manifest(self, urn: str) -> ManifestStatus:
        """Fetch the manifest for a URN."""
        response = await self._client.get(f"/api/aps/manifest/{urn}")
        if response.status_code >= 400:
            raise self._error(response)
        body = self._json(response)
        return ManifestStatus(
            http_status=response.status_code,
            status=body.get("status", "unknown"),
            progress=body.get("progress", ""),
            body=body,
        )


async def wait_for_translation(
    client: RelayClient,
    urn: str,
    interval: float = POLL_INTERVAL,
    timeout: float = POLL_TIMEOUT,
) -> ManifestStatus | None:
    """Poll the manifest until the job settles or the deadline passes."""
    deadline = time.perf_counter() + timeout
    while True:
        manifest = await client.manifest(urn)
        print(f"  [{manifest.http_status}] {manifest.status} {manifest.progress}")
        if manifest.done:
            return manifest
        if time.perf_counter() + interval > deadline:
            return None
        await asyncio.sleep(interval)


# =============================================================================
# Main Entry Point
# =============================================================================

async def main(
    argv: list[str] | None = None,
    transport: httpx.AsyncBaseTransport | None = None,
) -> int:
    parser = argparse.ArgumentParser(description="Upload a file and wait for APS translation")
    parser.add_argument("path", help="File to upload")
    parser.add_argument("--relay-url", default=DEFAULT_RELAY_URL, help="Relay base URL")
    parser.add_argument("--interval", type=float, default=POLL_INTERVAL, help="Seconds between polls")
    parser.add_argument("--timeout", type=float, default=POLL_TIMEOUT, help="Seconds to wait for the job")
    args = parser.parse_args(argv)

    if not os.path.isfile(args.path):
        print(f"File not found: {args.path}", file=sys.stderr)
        return 1

    async with RelayClient(base_url=args.relay_url, transport=transport) as client:
        print(f"Uploading {args.path} to {args.relay_url}...")
        try:
            urn = await client.upload(args.path)
        except (RuntimeError, httpx.HTTPError) as e:
            print(f"Upload failed: {e}", file=sys.stderr)
            return 1
        print(f"URN: {urn}")

        print("Waiting for translation...")
        try:
            manifest = await wait_for_translation(client, urn, args.interval, args.timeout)
        except (RuntimeError, httpx.HTTPError) as e:
            print(f"Manifest request failed: {e}", file=sys.stderr)
            return 1

    if manifest is None:
        print(f"Gave up after {args.timeout:.0f}s", file=sys.stderr)
        return 1
    if manifest.status != "success":
        print(f"Translation {manifest.status}", file=sys.stderr)
        return 1

    print("Translation complete")
    return 0


if __name__ == "__main__":
    sys.exit(asyncio.run(main()))
