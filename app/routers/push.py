"""Push subscription management for the current agent."""

import logging

from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.orm import Session

from app.core.config import settings
from app.core.deps import get_current_agent, get_db
from app.db.models import Agent
from app.schemas.push import (
    MobilePushTokenRequest,
    PushStatusResponse,
    VapidKeyResponse,
    WebPushSubscriptionRequest,
)

router = APIRouter(prefix="/push", tags=["push"])
logger = logging.getLogger(__name__)


@router.get("/vapid-key", response_model=VapidKeyResponse)
def get_vapid_key():
    """Public VAPID key browsers need to create a push subscription."""
    if not settings.web_push_configured:
        raise HTTPException(status_code=404, detail="Web push is not configured")
    return VapidKeyResponse(public_key=settings.VAPID_PUBLIC_KEY)


@router.post("/subscribe", response_model=PushStatusResponse)
def subscribe_web_push(
    data: WebPushSubscriptionRequest,
    agent: Agent = Depends(get_current_agent),
    db: Session = Depends(get_db),
):
    """Store (or replace) this agent's browser push subscription."""
    agent.web_push_subscription = data.model_dump()
    db.commit()
    logger.info("Web push subscription saved for agent %s", agent.id)
    return PushStatusResponse(success=True)


@router.delete("/subscribe", response_model=PushStatusResponse)
def unsubscribe_web_push(
    agent: Agent = Depends(get_current_agent),
    db: Session = Depends(get_db),
):
    agent.web_push_subscription = None
    db.commit()
    return PushStatusResponse(success=True)


@router.put("/token", response_model=PushStatusResponse)
def register_mobile_token(
    data: MobilePushTokenRequest,
    agent: Agent = Depends(get_current_agent),
    db: Session = Depends(get_db),
):
    """Register the Expo push token for this agent's device."""
    agent.push_token = data.token
    db.commit()
    logger.info("Mobile push token saved for agent %s", agent.id)
    return PushStatusResponse(success=True)


@router.delete("/token", response_model=PushStatusResponse)
def remove_mobile_token(
    agent: Agent = Depends(get_current_agent),
    db: Session = Depends(get_db),
):
    agent.push_token = None
    db.commit()
    return PushStatusResponse(success=True)
