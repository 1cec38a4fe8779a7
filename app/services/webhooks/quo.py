"""Quo (formerly OpenPhone) webhook handler."""

from __future__ import annotations

import base64
import binascii
import hmac
import json
import logging

from fastapi import HTTPException, Request
from sqlalchemy.orm import Session

from app.core.config import settings
from app.services import inbound_event_service
from app.services.webhooks.base import hmac_sha256_b64, read_body_safe

logger = logging.getLogger(__name__)

SIGNATURE_HEADER = "openphone-signature"


def verify_quo_signature(body: bytes, header: str, secret: str) -> bool:
    """
    Verify an ``openphone-signature`` header.

    Format is ``hmac;1;<timestamp>;<base64 digest>``; the digest is
    HMAC-SHA256 over ``<timestamp>.<raw body>`` keyed with the base64-decoded
    signing secret.
    """
    parts = header.split(";")
    if len(parts) != 4 or parts[0] != "hmac":
        return False
    _, _version, timestamp, digest = parts
    try:
        key = base64.b64decode(secret)
    except (binascii.Error, ValueError):
        logger.error("QUO_WEBHOOK_SECRET is not valid base64")
        return False
    expected = hmac_sha256_b64(key, timestamp.encode("utf-8") + b"." + body)
    return hmac.compare_digest(expected, digest)


class QuoWebhookHandler:
    async def handle(self, request: Request, db: Session, **kwargs):
        """
        Receive Quo call and message events.

        Security:
        - Validates openphone-signature when QUO_WEBHOOK_SECRET is set
        - Caps payload size

        The sender always gets ``{received, matched}`` back; unknown numbers
        and unrelated event types are not errors.
        """
        body = await read_body_safe(request)

        if settings.QUO_WEBHOOK_SECRET:
            signature = request.headers.get(SIGNATURE_HEADER, "")
            if not signature:
                logger.warning("Quo webhook missing signature")
                raise HTTPException(403, "Missing signature")
            if not verify_quo_signature(body, signature, settings.QUO_WEBHOOK_SECRET):
                logger.warning("Quo webhook invalid signature")
                raise HTTPException(403, "Invalid signature")

        try:
            payload = json.loads(body) if body else {}
        except json.JSONDecodeError:
            raise HTTPException(400, "Invalid JSON")

        return await inbound_event_service.process_inbound_webhook(
            db, request.app.state.broadcast_bus, payload
        )
