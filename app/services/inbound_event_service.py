"""Inbound telephony pipeline: normalize, enrich, fan out, then persist.

Realtime broadcast and push fan-out run before the ticket is written, so an
operator hears about a call even if the database is having a bad moment.
A persistence failure is logged and reported but never reaches the sender.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Any

import sentry_sdk
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from app.core.broadcast import BroadcastBus
from app.core.structured_logging import build_log_context
from app.db.enums import InboundEventKind
from app.services import customer_resolver, push_service, ticket_threading_service
from app.services.customer_resolver import CustomerContext
from app.services.event_normalizer import InboundEvent, normalize_webhook
from app.services.push_service import PushAlert
from app.utils.datetime_parsing import isoformat_utc, utc_now

logger = logging.getLogger(__name__)

INCOMING_EVENT = "incoming"


def _ack(matched: bool) -> dict[str, bool]:
    return {"received": True, "matched": matched}


# =============================================================================
# Payload builders
# =============================================================================


def build_alert(event: InboundEvent, context: CustomerContext) -> PushAlert:
    """Push notification text for an inbound event."""
    is_call = event.kind == InboundEventKind.CALL
    data: dict[str, Any] = {
        "type": event.broadcast_type,
        "phone": event.phone,
        "customerId": context.customer_id,
        "customerName": context.customer_name,
    }

    if not context.matched:
        title = "Unknown Caller" if is_call else "Unknown Number"
        return PushAlert(title=title, body=event.phone, data=data)

    name = context.customer_name or event.phone
    title = f"Call from {name}" if is_call else f"Text from {name}"
    if context.recent_orders:
        last = context.recent_orders[0]
        body = f"{last.name}: {last.items} ({last.fulfillment_status or 'pending'})"
    else:
        customer = context.customer
        body = f"{customer.orders_count or 0} orders, ${customer.total_spent or '0.00'} lifetime"

    data["recentOrders"] = [o.to_payload() for o in context.recent_orders]
    return PushAlert(title=title, body=body, data=data)


def build_broadcast_payload(event: InboundEvent, context: CustomerContext) -> dict[str, Any]:
    return {
        "type": event.broadcast_type,
        "phone": event.phone,
        "messageBody": event.body,
        "timestamp": isoformat_utc(utc_now()),
        "customer": context.customer_payload(),
        "recentOrders": [o.to_payload() for o in context.recent_orders],
    }


# =============================================================================
# Pipeline
# =============================================================================


async def _broadcast(bus: BroadcastBus, payload: dict[str, Any]) -> int:
    return bus.broadcast(INCOMING_EVENT, payload)


def _sweep_stale_tickets(db: Session) -> None:
    try:
        ticket_threading_service.close_stale_resolved_tickets(db)
    except SQLAlchemyError:
        db.rollback()
        logger.exception("Stale ticket sweep failed")


async def process_inbound_webhook(
    db: Session,
    bus: BroadcastBus,
    payload: Any,
) -> dict[str, bool]:
    """
    Run one Quo webhook payload through the pipeline.

    Always returns ``{"received": True, "matched": bool}``; ``matched`` is
    true when the caller resolved to a commerce customer.
    """
    event = normalize_webhook(payload)
    if event is None:
        logger.warning("Inbound webhook without a resolvable phone number")
        return _ack(False)

    log_context = build_log_context(phone=event.phone, event_type=event.event_type)
    if not event.is_actionable:
        logger.info("Ignoring inbound event type", extra=log_context)
        return _ack(False)

    _sweep_stale_tickets(db)

    context = await customer_resolver.resolve(event.phone)
    event = event.with_customer_context(context)

    broadcast_outcome, push_outcome = await asyncio.gather(
        _broadcast(bus, build_broadcast_payload(event, context)),
        push_service.notify(db, build_alert(event, context)),
        return_exceptions=True,
    )
    if isinstance(broadcast_outcome, BaseException):
        logger.error("Realtime broadcast failed: %r", broadcast_outcome, extra=log_context)
    else:
        logger.info("Broadcast inbound event to %d streams", broadcast_outcome, extra=log_context)
    if isinstance(push_outcome, BaseException):
        logger.error("Push fan-out failed: %r", push_outcome, extra=log_context)

    if not event.is_threadable:
        logger.info("Text without a body, not threaded", extra=log_context)
        return _ack(context.matched)

    try:
        ticket_threading_service.thread_inbound_event(db, event)
    except Exception as exc:
        db.rollback()
        logger.exception("Failed to persist inbound event", extra=log_context)
        sentry_sdk.capture_exception(exc)

    return _ack(context.matched)
