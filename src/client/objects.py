"""Object naming and URN helpers for APS uploads."""

import base64
import re
import time

_UNSAFE_CHARS = re.compile(r"[^A-Za-z0-9._-]")


def sanitize_filename(filename: str | None) -> str:
    """Replace every character outside [A-Za-z0-9._-] with an underscore."""
    safe = _UNSAFE_CHARS.sub("_", filename or "")
    return safe or "file"


def build_object_name(filename: str | None, now_ms: int | None = None) -> str:
    """Build a collision-resistant object name: `<epoch-millis>-<safe-name>`."""
    if now_ms is None:
        now_ms = int(time.time() * 1000)
    return f"{now_ms}-{sanitize_filename(filename)}"


def encode_urn(object_id: str) -> str:
    """Base64-encode an APS object id into the URN handed to clients."""
    return base64.b64encode(object_id.encode("utf-8")).decode("ascii")
