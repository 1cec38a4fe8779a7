"""Shopify webhook handler."""

from __future__ import annotations

import hmac
import json
import logging

from fastapi import HTTPException, Request
from sqlalchemy.orm import Session

from app.core.config import settings
from app.services.webhooks.base import hmac_sha256_b64, read_body_safe

logger = logging.getLogger(__name__)

SIGNATURE_HEADER = "X-Shopify-Hmac-Sha256"
TOPIC_HEADER = "X-Shopify-Topic"


def verify_shopify_signature(body: bytes, signature: str, secret: str) -> bool:
    expected = hmac_sha256_b64(secret.encode("utf-8"), body)
    return hmac.compare_digest(expected, signature)


class ShopifyWebhookHandler:
    async def handle(self, request: Request, db: Session, **kwargs):
        """Acknowledge Shopify store events (orders, customers) and log the topic."""
        body = await read_body_safe(request)

        if settings.SHOPIFY_WEBHOOK_SECRET:
            signature = request.headers.get(SIGNATURE_HEADER, "")
            if not signature or not verify_shopify_signature(
                body, signature, settings.SHOPIFY_WEBHOOK_SECRET
            ):
                logger.warning("Shopify webhook invalid signature")
                raise HTTPException(403, "Invalid signature")

        try:
            payload = json.loads(body) if body else {}
        except json.JSONDecodeError:
            raise HTTPException(400, "Invalid JSON")

        topic = request.headers.get(TOPIC_HEADER)
        resource_id = payload.get("id") if isinstance(payload, dict) else None
        logger.info("Shopify webhook received: topic=%s id=%s", topic, resource_id)
        return {"received": True, "topic": topic}
