"""Verification of webhook deliveries sent by the Orthanc service.

Deliveries to a webhook registered with a ``secret`` are signed with
HMAC-SHA256 over the raw JSON body. Receivers check the signature before
trusting the payload.
"""

from __future__ import annotations

import hashlib
import hmac
import logging

from pydantic import ValidationError

from orthanc.exceptions import ErrorKind, OrthancError
from orthanc.models import WebhookEvent

logger = logging.getLogger(__name__)

SIGNATURE_PREFIX = "sha256="


def _as_bytes(payload: str | bytes) -> bytes:
    return payload if isinstance(payload, bytes) else payload.encode("utf-8")


def compute_signature(payload: str | bytes, secret: str) -> str:
    """Compute the HMAC-SHA256 signature for a webhook payload.

    Args:
        payload: Raw JSON body. Bytes are signed exactly as received.
        secret: Shared secret the webhook was registered with.

    Returns:
        Signature in format "sha256=<hex_digest>".
    """
    signature = hmac.new(
        key=secret.encode("utf-8"),
        msg=_as_bytes(payload),
        digestmod=hashlib.sha256,
    ).hexdigest()
    return f"{SIGNATURE_PREFIX}{signature}"


def verify_signature(payload: str | bytes, secret: str, signature: str | None) -> bool:
    """Check a delivery's signature in constant time."""
    if not signature:
        return False
    expected = compute_signature(payload, secret)
    return hmac.compare_digest(expected.encode("utf-8"), signature.encode("utf-8"))


def parse_event(
    payload: str | bytes,
    secret: str | None = None,
    signature: str | None = None,
) -> WebhookEvent:
    """Parse a webhook delivery, verifying its signature when a secret is given.

    Args:
        payload: Raw JSON body as received.
        secret: Shared secret; skip verification when None.
        signature: Value of the delivery's signature header.

    Returns:
        The parsed event.

    Raises:
        OrthancError: ``authentication`` if the signature does not match,
            ``validation`` if the body is not a valid event.
    """
    if secret is not None and not verify_signature(payload, secret, signature):
        logger.warning("Rejected webhook delivery with invalid signature")
        raise OrthancError(ErrorKind.AUTHENTICATION, "Invalid webhook signature")

    try:
        text = payload.decode("utf-8") if isinstance(payload, bytes) else payload
    except UnicodeDecodeError as e:
        raise OrthancError.validation("Invalid webhook payload: body is not UTF-8") from e

    try:
        return WebhookEvent.model_validate_json(text)
    except ValidationError as e:
        raise OrthancError.validation(f"Invalid webhook payload: {e.error_count()} errors") from e
