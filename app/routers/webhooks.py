"""Webhooks router - inbound telephony and commerce events."""

from fastapi import APIRouter, Depends, Request
from sqlalchemy.orm import Session

from app.core.config import settings
from app.core.deps import get_db
from app.core.rate_limit import limiter
from app.schemas.webhooks import InboundWebhookAck, ShopifyWebhookAck
from app.services.webhooks.registry import get_handler

router = APIRouter()

WEBHOOK_LIMIT = f"{settings.RATE_LIMIT_WEBHOOK}/minute"


@router.post("/quo", response_model=InboundWebhookAck)
@limiter.limit(WEBHOOK_LIMIT)
async def receive_quo_webhook(request: Request, db: Session = Depends(get_db)):
    """
    Receive Quo call and message events.

    Always answers 200 with ``{received, matched}`` for well-formed requests;
    a caller with no commerce record is not a failure.
    """
    return await get_handler("quo").handle(request, db)


@router.post("/shopify", response_model=ShopifyWebhookAck)
@limiter.limit(WEBHOOK_LIMIT)
async def receive_shopify_webhook(request: Request, db: Session = Depends(get_db)):
    """Receive Shopify store events."""
    return await get_handler("shopify").handle(request, db)
