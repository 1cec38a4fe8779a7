"""Webhook handler registry."""

from __future__ import annotations

from app.services.webhooks.base import WebhookHandler
from app.services.webhooks.quo import QuoWebhookHandler
from app.services.webhooks.shopify import ShopifyWebhookHandler

_HANDLERS: dict[str, WebhookHandler] = {
    "quo": QuoWebhookHandler(),
    "shopify": ShopifyWebhookHandler(),
}


def get_handler(name: str):
    handler = _HANDLERS.get(name)
    if not handler:
        raise KeyError(f"Unknown webhook handler: {name}")
    return handler
