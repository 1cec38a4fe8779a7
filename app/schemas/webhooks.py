"""Webhook acknowledgement schemas."""

from pydantic import BaseModel


class InboundWebhookAck(BaseModel):
    received: bool = True
    matched: bool


class ShopifyWebhookAck(BaseModel):
    received: bool = True
    topic: str | None = None
