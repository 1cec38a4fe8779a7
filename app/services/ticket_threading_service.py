"""Thread inbound calls and texts into durable support tickets.

Lifecycle::

    open -> in_progress -> resolved -> closed
    resolved -> open (reopen)

A (phone, channel) pair has at most one active ticket. A new contact lands on
the active ticket, reopens a recently resolved one, or starts a new one.
"""

from __future__ import annotations

import logging
import threading
import weakref
from dataclasses import dataclass
from datetime import datetime, timedelta
from enum import Enum

from sqlalchemy import update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from app.core.config import settings
from app.core.structured_logging import build_log_context
from app.db.enums import (
    ACTIVE_TICKET_STATUSES,
    InboundEventKind,
    SenderType,
    TicketChannel,
    TicketStatus,
)
from app.db.models import Ticket, TicketMessage
from app.services.event_normalizer import InboundEvent
from app.utils.datetime_parsing import utc_now

logger = logging.getLogger(__name__)

INCOMING_CALL_MESSAGE = "Incoming call"
REOPENED_MESSAGE = "Ticket reopened by new inbound contact"

ALLOWED_TRANSITIONS: dict[TicketStatus, frozenset[TicketStatus]] = {
    TicketStatus.OPEN: frozenset({TicketStatus.IN_PROGRESS}),
    TicketStatus.IN_PROGRESS: frozenset({TicketStatus.RESOLVED}),
    TicketStatus.RESOLVED: frozenset({TicketStatus.OPEN, TicketStatus.CLOSED}),
    TicketStatus.CLOSED: frozenset(),
}


class ThreadOutcome(str, Enum):
    EXISTING = "existing"
    REOPENED = "reopened"
    CREATED = "created"


@dataclass(frozen=True)
class ThreadResult:
    ticket: Ticket
    outcome: ThreadOutcome


class InvalidTransitionError(ValueError):
    """Requested status change is not an edge of the ticket lifecycle."""

    def __init__(self, current: TicketStatus, requested: TicketStatus):
        super().__init__(f"Cannot move ticket from {current.value} to {requested.value}")
        self.current = current
        self.requested = requested


def reopen_window() -> timedelta:
    return timedelta(days=settings.TICKET_REOPEN_WINDOW_DAYS)


# =============================================================================
# Per-key locking
# =============================================================================

_key_locks: "weakref.WeakValueDictionary[tuple[str, str], threading.Lock]" = (
    weakref.WeakValueDictionary()
)
_key_locks_guard = threading.Lock()


def _lock_for(phone: str, channel: TicketChannel) -> threading.Lock:
    key = (phone, channel.value)
    with _key_locks_guard:
        lock = _key_locks.get(key)
        if lock is None:
            lock = threading.Lock()
            _key_locks[key] = lock
        return lock


# =============================================================================
# Lifecycle
# =============================================================================


def transition_ticket(
    db: Session,
    ticket: Ticket,
    status: TicketStatus,
    *,
    resolution_type: str | None = None,
    resolution_reason: str | None = None,
    now: datetime | None = None,
) -> Ticket:
    """
    Move a ticket along the lifecycle. Does not commit.

    Raises:
        InvalidTransitionError: status is not reachable from the current one
    """
    if ticket.status == status:
        return ticket
    if status not in ALLOWED_TRANSITIONS[ticket.status]:
        raise InvalidTransitionError(ticket.status, status)

    now = now or utc_now()
    if status == TicketStatus.RESOLVED:
        ticket.resolved_at = now
        ticket.resolution_type = resolution_type
        ticket.resolution_reason = resolution_reason
    elif status == TicketStatus.OPEN:
        ticket.resolved_at = None
        ticket.resolution_type = None
        ticket.resolution_reason = None

    ticket.status = status
    ticket.updated_at = now
    db.flush()
    return ticket


def append_message(
    db: Session,
    ticket: Ticket,
    *,
    sender_type: SenderType,
    body: str,
    sender_agent_id=None,
    now: datetime | None = None,
) -> TicketMessage:
    """Append to the ticket timeline and bump the ticket's updated_at."""
    now = now or utc_now()
    message = TicketMessage(
        ticket_id=ticket.id,
        sender_type=sender_type,
        sender_agent_id=sender_agent_id,
        body=body,
        created_at=now,
    )
    db.add(message)
    ticket.updated_at = now
    db.flush()
    return message


# =============================================================================
# Threading
# =============================================================================


def _find_active(db: Session, phone: str, channel: TicketChannel) -> Ticket | None:
    return (
        db.query(Ticket)
        .filter(
            Ticket.customer_phone == phone,
            Ticket.channel == channel,
            Ticket.status.in_(ACTIVE_TICKET_STATUSES),
        )
        .order_by(Ticket.updated_at.desc())
        .first()
    )


def _find_reopenable(
    db: Session, phone: str, channel: TicketChannel, now: datetime
) -> Ticket | None:
    return (
        db.query(Ticket)
        .filter(
            Ticket.customer_phone == phone,
            Ticket.channel == channel,
            Ticket.status == TicketStatus.RESOLVED,
            Ticket.resolved_at > now - reopen_window(),
        )
        .order_by(Ticket.resolved_at.desc())
        .first()
    )


def _subject_for(event: InboundEvent) -> str:
    context = event.customer_context
    who = (context.customer_name if context else None) or event.phone
    prefix = "Call" if event.kind == InboundEventKind.CALL else "Text"
    return f"{prefix} from {who}"


def _create_ticket(db: Session, event: InboundEvent, now: datetime) -> Ticket:
    context = event.customer_context
    ticket = Ticket(
        channel=event.channel,
        status=TicketStatus.OPEN,
        subject=_subject_for(event),
        customer_phone=event.phone,
        customer_name=context.customer_name if context else None,
        customer_email=context.customer_email if context else None,
        external_customer_id=context.customer_id if context else None,
        created_at=now,
        updated_at=now,
    )
    db.add(ticket)
    db.flush()
    return ticket


def _thread_once(db: Session, event: InboundEvent, now: datetime) -> ThreadResult:
    ticket = _find_active(db, event.phone, event.channel)
    if ticket is not None:
        result = ThreadResult(ticket, ThreadOutcome.EXISTING)
    else:
        ticket = _find_reopenable(db, event.phone, event.channel, now)
        if ticket is not None:
            transition_ticket(db, ticket, TicketStatus.OPEN, now=now)
            append_message(db, ticket, sender_type=SenderType.SYSTEM, body=REOPENED_MESSAGE, now=now)
            result = ThreadResult(ticket, ThreadOutcome.REOPENED)
        else:
            ticket = _create_ticket(db, event, now)
            result = ThreadResult(ticket, ThreadOutcome.CREATED)

    if event.kind == InboundEventKind.TEXT:
        append_message(db, ticket, sender_type=SenderType.CUSTOMER, body=event.body, now=now)
    else:
        append_message(db, ticket, sender_type=SenderType.SYSTEM, body=INCOMING_CALL_MESSAGE, now=now)

    db.commit()
    return result


def thread_inbound_event(
    db: Session, event: InboundEvent, now: datetime | None = None
) -> ThreadResult:
    """
    Attach an inbound call or text to the right ticket and commit.

    Raises:
        ValueError: the event is not a call or a text with a body
        IntegrityError: a concurrent writer won twice in a row
    """
    if not event.is_threadable or event.channel is None:
        raise ValueError(f"Event type {event.event_type!r} cannot be threaded")

    now = now or utc_now()
    log_context = build_log_context(phone=event.phone, event_type=event.event_type)

    with _lock_for(event.phone, event.channel):
        try:
            result = _thread_once(db, event, now)
        except IntegrityError:
            # Another process created the active ticket first; it now exists
            db.rollback()
            logger.info("Active ticket race lost, retrying", extra=log_context)
            result = _thread_once(db, event, now)

    logger.info(
        "Threaded inbound event into ticket %s (%s)",
        result.ticket.id,
        result.outcome.value,
        extra={**log_context, "ticket_id": str(result.ticket.id)},
    )
    return result


def close_stale_resolved_tickets(db: Session, now: datetime | None = None) -> int:
    """Close resolved tickets whose reopen window has lapsed. Returns the count."""
    now = now or utc_now()
    cutoff = now - reopen_window()
    closed = db.execute(
        update(Ticket)
        .where(
            Ticket.status == TicketStatus.RESOLVED,
            Ticket.resolved_at <= cutoff,
        )
        .values(status=TicketStatus.CLOSED, updated_at=now)
        .execution_options(synchronize_session=False)
    ).rowcount
    db.commit()
    if closed:
        logger.info("Auto-closed %d stale resolved tickets", closed)
    return closed or 0
