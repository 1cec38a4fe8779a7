"""Pydantic schemas for API request/response models."""

from app.schemas.agent import AgentRead, AvailabilityUpdate
from app.schemas.push import (
    MobilePushTokenRequest,
    PushStatusResponse,
    VapidKeyResponse,
    WebPushKeys,
    WebPushSubscriptionRequest,
)
from app.schemas.webhooks import InboundWebhookAck, ShopifyWebhookAck

__all__ = [
    # Agent
    "AgentRead",
    "AvailabilityUpdate",
    # Push
    "MobilePushTokenRequest",
    "PushStatusResponse",
    "VapidKeyResponse",
    "WebPushKeys",
    "WebPushSubscriptionRequest",
    # Webhooks
    "InboundWebhookAck",
    "ShopifyWebhookAck",
]
