"""
Webhook Security Module

Signature verification for the payment gateway's capture notifications:
- HMAC-SHA256 over "<timestamp>.<raw body>" with the shared secret
- Constant-time signature comparison
- Timestamp window check against replays
"""

import hashlib
import hmac
import logging
import time
from typing import Optional

from fastapi import HTTPException, Request

logger = logging.getLogger(__name__)

# Maximum age of webhook in seconds (5 minutes)
MAX_WEBHOOK_AGE_SECONDS = 300

SIGNATURE_HEADER = "X-Webhook-Signature"
TIMESTAMP_HEADER = "X-Webhook-Timestamp"


def constant_time_compare(a: str, b: str) -> bool:
    """
    Compare two strings in constant time to prevent timing attacks.
    """
    if not a or not b:
        return False
    return hmac.compare_digest(a, b)


def compute_hmac_sha256(secret: str, payload: bytes) -> str:
    """Compute HMAC-SHA256 signature of payload"""
    return hmac.new(secret.encode("utf-8"), payload, hashlib.sha256).hexdigest()


def sign_payload(secret: str, timestamp: str, raw_body: bytes) -> str:
    return compute_hmac_sha256(secret, timestamp.encode("utf-8") + b"." + raw_body)


def verify_timestamp(timestamp: Optional[str], max_age: int = MAX_WEBHOOK_AGE_SECONDS) -> bool:
    """
    Verify webhook timestamp is within acceptable range.

    Args:
        timestamp: Unix timestamp as string
        max_age: Maximum age in seconds

    Returns:
        True if timestamp is valid, False otherwise
    """
    try:
        webhook_time = int(timestamp)
    except (ValueError, TypeError):
        logger.warning(f"🚫 Invalid webhook timestamp format: {timestamp}")
        return False

    age = abs(int(time.time()) - webhook_time)
    if age > max_age:
        logger.warning(f"🚫 Webhook timestamp too old: {age}s (max: {max_age}s)")
        return False
    return True


async def verify_payment_webhook(request: Request, secret: Optional[str]) -> bytes:
    """
    Verify a payment webhook and return its raw body.

    Raises:
        HTTPException: 503 when no secret is configured, 401 on any
            missing, stale or mismatched signature
    """
    # Get raw body BEFORE any parsing
    raw_body = await request.body()

    if not secret:
        logger.error("❌ PAYMENT_WEBHOOK_SECRET is not configured, rejecting webhook")
        raise HTTPException(status_code=503, detail="Webhook verification not configured")

    signature = request.headers.get(SIGNATURE_HEADER, "")
    timestamp = request.headers.get(TIMESTAMP_HEADER, "")

    if not signature or not timestamp:
        logger.error("❌ Missing webhook signature headers")
        raise HTTPException(status_code=401, detail="Missing webhook signature")

    if not verify_timestamp(timestamp):
        raise HTTPException(status_code=401, detail="Webhook timestamp expired")

    expected = sign_payload(secret, timestamp, raw_body)
    if not constant_time_compare(expected, signature):
        logger.warning("🚫 Payment webhook signature mismatch")
        raise HTTPException(status_code=401, detail="Invalid webhook signature")

    logger.info("✅ Payment webhook signature verified")
    return raw_body
