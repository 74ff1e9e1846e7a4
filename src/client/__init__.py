"""Client module for calling the APS API."""

from src.client.aps_client import (
    AccessToken,
    APSClient,
    Manifest,
    UploadedObject,
    UpstreamError,
)
from src.client.objects import build_object_name, encode_urn, sanitize_filename

__all__ = [
    "APSClient",
    "AccessToken",
    "Manifest",
    "UploadedObject",
    "UpstreamError",
    "build_object_name",
    "encode_urn",
    "sanitize_filename",
]
