"""Push notification fan-out to offline operators.

One logical alert is delivered over two independent channels at once:

- mobile: Expo push tokens (HTTP API via httpx)
- web: browser Web Push subscriptions (VAPID, via pywebpush)

Every per-recipient delivery is its own unit of work and outcomes are
collected settle-all style, so one slow or failing recipient never delays
or cancels another. Subscriptions the provider reports as gone are cleared
so later alerts skip them. Nothing here retries; that is the caller's call.
"""

from __future__ import annotations

import asyncio
import json
import logging
import uuid
from dataclasses import asdict, dataclass, field
from enum import Enum
from typing import Any

import anyio
import httpx
from pywebpush import WebPushException, webpush
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from app.core.config import settings
from app.db.models import Agent

logger = logging.getLogger(__name__)

EXPIRED_WEB_PUSH_STATUSES = frozenset({404, 410})
EXPO_DEVICE_NOT_REGISTERED = "DeviceNotRegistered"


class DeliveryStatus(str, Enum):
    SENT = "sent"
    EXPIRED = "expired"
    FAILED = "failed"


class PushDeliveryError(Exception):
    """The push provider rejected a delivery for a non-terminal reason."""


@dataclass(frozen=True)
class PushAlert:
    title: str
    body: str
    data: dict[str, Any] = field(default_factory=dict)


@dataclass
class ChannelResult:
    sent: int = 0
    expired: int = 0
    failed: int = 0

    def record(self, status: DeliveryStatus) -> None:
        setattr(self, status.value, getattr(self, status.value) + 1)


@dataclass
class FanoutResult:
    mobile: ChannelResult = field(default_factory=ChannelResult)
    web: ChannelResult = field(default_factory=ChannelResult)

    def as_dict(self) -> dict[str, dict[str, int]]:
        return asdict(self)


# =============================================================================
# Recipients
# =============================================================================


def _mobile_recipients(db: Session) -> list[Agent]:
    return (
        db.query(Agent)
        .filter(
            Agent.is_active.is_(True),
            Agent.is_available.is_(True),
            Agent.push_token.isnot(None),
        )
        .all()
    )


def _web_recipients(db: Session) -> list[Agent]:
    agents = (
        db.query(Agent)
        .filter(
            Agent.is_active.is_(True),
            Agent.is_available.is_(True),
            Agent.web_push_subscription.isnot(None),
        )
        .all()
    )
    return [a for a in agents if (a.web_push_subscription or {}).get("endpoint")]


# =============================================================================
# Single-recipient delivery
# =============================================================================


async def send_expo_push(client: httpx.AsyncClient, token: str, alert: PushAlert) -> DeliveryStatus:
    """Deliver one alert to one Expo push token."""
    headers = {"Content-Type": "application/json", "Accept": "application/json"}
    if settings.EXPO_ACCESS_TOKEN:
        headers["Authorization"] = f"Bearer {settings.EXPO_ACCESS_TOKEN}"

    response = await client.post(
        settings.EXPO_PUSH_URL,
        json={
            "to": token,
            "sound": "default",
            "title": alert.title,
            "body": alert.body,
            "data": alert.data,
            "priority": "high",
        },
        headers=headers,
    )
    if response.is_error:
        raise PushDeliveryError(f"Expo returned HTTP {response.status_code}")

    ticket = response.json().get("data") or {}
    if isinstance(ticket, list):
        ticket = ticket[0] if ticket else {}
    if ticket.get("status") == "ok":
        return DeliveryStatus.SENT

    details = ticket.get("details") or {}
    if details.get("error") == EXPO_DEVICE_NOT_REGISTERED:
        return DeliveryStatus.EXPIRED
    raise PushDeliveryError(ticket.get("message") or "Expo rejected the message")


def _send_web_push_blocking(subscription: dict, payload: str) -> DeliveryStatus:
    try:
        webpush(
            subscription_info=subscription,
            data=payload,
            vapid_private_key=settings.VAPID_PRIVATE_KEY,
            # pywebpush fills in aud/exp on this dict, so never share it
            vapid_claims={"sub": settings.VAPID_EMAIL},
            ttl=settings.WEB_PUSH_TTL_SECONDS,
            timeout=settings.PUSH_TIMEOUT_SECONDS,
        )
    except WebPushException as exc:
        status_code = exc.response.status_code if exc.response is not None else None
        if status_code in EXPIRED_WEB_PUSH_STATUSES:
            return DeliveryStatus.EXPIRED
        raise
    return DeliveryStatus.SENT


async def send_web_push(subscription: dict, alert: PushAlert) -> DeliveryStatus:
    """Deliver one alert to one browser subscription (blocking client, run off-loop)."""
    payload = json.dumps({"title": alert.title, "body": alert.body, "data": alert.data}, default=str)
    return await anyio.to_thread.run_sync(_send_web_push_blocking, subscription, payload)


# =============================================================================
# Fan-out
# =============================================================================


def _settle(outcomes: list[DeliveryStatus | BaseException], channel: str) -> list[DeliveryStatus]:
    statuses: list[DeliveryStatus] = []
    for outcome in outcomes:
        if isinstance(outcome, DeliveryStatus):
            statuses.append(outcome)
            continue
        logger.warning("%s push delivery failed: %r", channel, outcome)
        statuses.append(DeliveryStatus.FAILED)
    return statuses


async def _deliver_mobile(agents: list[Agent], alert: PushAlert) -> list[DeliveryStatus]:
    if not agents:
        return []
    async with httpx.AsyncClient(timeout=settings.PUSH_TIMEOUT_SECONDS) as client:
        outcomes = await asyncio.gather(
            *(send_expo_push(client, agent.push_token, alert) for agent in agents),
            return_exceptions=True,
        )
    return _settle(list(outcomes), "mobile")


async def _deliver_web(agents: list[Agent], alert: PushAlert) -> list[DeliveryStatus]:
    if not agents:
        return []
    outcomes = await asyncio.gather(
        *(send_web_push(agent.web_push_subscription, alert) for agent in agents),
        return_exceptions=True,
    )
    return _settle(list(outcomes), "web")


def _prune_expired(
    db: Session,
    *,
    mobile: list[tuple[uuid.UUID, str]],
    web: list[tuple[uuid.UUID, dict]],
) -> None:
    """Clear dead push targets, unless the agent re-registered in the meantime."""
    if not mobile and not web:
        return
    try:
        for agent_id, token in mobile:
            agent = db.get(Agent, agent_id)
            if agent and agent.push_token == token:
                agent.push_token = None
                logger.info("Cleared expired mobile push token for agent %s", agent_id)
        for agent_id, subscription in web:
            agent = db.get(Agent, agent_id)
            if agent and agent.web_push_subscription == subscription:
                agent.web_push_subscription = None
                logger.info("Cleared expired web push subscription for agent %s", agent_id)
        db.commit()
    except SQLAlchemyError:
        db.rollback()
        logger.exception("Failed to clear expired push subscriptions")


async def notify(db: Session, alert: PushAlert) -> FanoutResult:
    """
    Send an alert to every available agent on both channels concurrently.

    Returns per-channel sent/expired/failed counts. Never raises for
    delivery problems.
    """
    mobile_agents = _mobile_recipients(db)
    web_agents = _web_recipients(db) if settings.web_push_configured else []

    # Snapshot targets before awaiting; the session is not touched concurrently
    mobile_targets = [(a.id, a.push_token) for a in mobile_agents]
    web_targets = [(a.id, a.web_push_subscription) for a in web_agents]

    mobile_outcome, web_outcome = await asyncio.gather(
        _deliver_mobile(mobile_agents, alert),
        _deliver_web(web_agents, alert),
        return_exceptions=True,
    )
    if isinstance(mobile_outcome, BaseException):
        logger.error("Mobile push channel failed: %r", mobile_outcome)
        mobile_outcome = [DeliveryStatus.FAILED] * len(mobile_targets)
    if isinstance(web_outcome, BaseException):
        logger.error("Web push channel failed: %r", web_outcome)
        web_outcome = [DeliveryStatus.FAILED] * len(web_targets)

    result = FanoutResult()
    for status in mobile_outcome:
        result.mobile.record(status)
    for status in web_outcome:
        result.web.record(status)

    _prune_expired(
        db,
        mobile=[t for t, s in zip(mobile_targets, mobile_outcome) if s == DeliveryStatus.EXPIRED],
        web=[t for t, s in zip(web_targets, web_outcome) if s == DeliveryStatus.EXPIRED],
    )

    logger.info(
        "Push fan-out complete: mobile sent=%d expired=%d failed=%d, "
        "web sent=%d expired=%d failed=%d",
        result.mobile.sent,
        result.mobile.expired,
        result.mobile.failed,
        result.web.sent,
        result.web.expired,
        result.web.failed,
    )
    return result
