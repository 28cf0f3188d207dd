# security.py
from __future__ import annotations
import hashlib
import hmac
from typing import Optional

from resumeflame.errors import SignatureError


def compute_hmac_sha256_hex(secret: str, body: bytes) -> str:
    mac = hmac.new(secret.encode("utf-8"), body, hashlib.sha256)
    return mac.hexdigest()


def _parse_composite(header: str) -> tuple[Optional[str], Optional[str]]:
    """Split a ``ts=<t>;h1=<hex>`` header into (ts, h1)."""
    parts = dict(p.strip().split("=", 1) for p in header.split(";") if "=" in p)
    return parts.get("ts"), parts.get("h1")


def verify_signature(secret: str, body: bytes, header: Optional[str]) -> None:
    """Check a webhook signature header against the raw request body.

    Accepts a bare hex digest of the body, or the composite
    ``ts=<t>;h1=<hex>`` form signed over ``b"<t>:" + body``.
    Raises SignatureError on any mismatch.
    """
    header = (header or "").strip()
    if not header:
        raise SignatureError("Missing signature")

    if "h1=" in header:
        ts, received = _parse_composite(header)
        if not ts or not received:
            raise SignatureError("Malformed signature header")
        expected = compute_hmac_sha256_hex(secret, ts.encode("utf-8") + b":" + body)
    else:
        received = header.removeprefix("sha256=")
        expected = compute_hmac_sha256_hex(secret, body)

    if not hmac.compare_digest(expected.encode("utf-8"), received.lower().encode("utf-8")):
        raise SignatureError("Invalid signature")
