"""Webhook payload signing.

Receivers verify a delivery by recomputing the HMAC over the raw request
body they received:

    expected = "sha256=" + HMAC-SHA256(secret, body).hexdigest()
"""

from __future__ import annotations

import hashlib
import hmac
import json
from typing import Any

SIGNATURE_HEADER = "X-Webhook-Signature"
SIGNATURE_PREFIX = "sha256="


def serialize_payload(payload: dict[str, Any]) -> bytes:
    """Serialize a payload to the exact bytes that are sent and signed."""
    return json.dumps(payload, separators=(",", ":"), ensure_ascii=False).encode("utf-8")


def generate_signature(secret: str, body: bytes) -> str:
    """Sign a request body with HMAC-SHA256.

    Args:
        secret: Shared secret configured on the endpoint.
        body: Serialized request body.

    Returns:
        Hex digest prefixed with ``sha256=``.
    """
    digest = hmac.new(secret.encode("utf-8"), body, hashlib.sha256).hexdigest()
    return f"{SIGNATURE_PREFIX}{digest}"


def verify_signature(secret: str, body: bytes, signature: str) -> bool:
    """Check a received signature in constant time."""
    expected = generate_signature(secret, body)
    return hmac.compare_digest(expected, signature)
