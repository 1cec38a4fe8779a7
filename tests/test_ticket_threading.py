import threading
from datetime import datetime, timedelta, timezone

import pytest
from sqlalchemy.exc import IntegrityError

from app.core.config import settings
from app.db.enums import SenderType, TicketChannel, TicketStatus
from app.db.models import Ticket, TicketMessage
from app.services import ticket_threading_service
from app.services.customer_resolver import CustomerContext
from app.services.event_normalizer import normalize_webhook
from app.services.shopify_service import ShopifyCustomer
from app.services.ticket_threading_service import (
    InvalidTransitionError,
    ThreadOutcome,
    close_stale_resolved_tickets,
    thread_inbound_event,
    transition_ticket,
)
from app.utils.datetime_parsing import as_utc

PHONE = "+15551234567"
NOW = datetime(2026, 3, 1, 12, 0, tzinfo=timezone.utc)


def _text(body: str | None = "hi", phone: str = PHONE):
    obj = {"from": phone}
    if body is not None:
        obj["body"] = body
    return normalize_webhook({"type": "message.received", "data": {"object": obj}})


def _call(phone: str = PHONE):
    return normalize_webhook({"type": "call.ringing", "data": {"object": {"from": phone}}})


def _messages(db, ticket) -> list[TicketMessage]:
    return (
        db.query(TicketMessage)
        .filter(TicketMessage.ticket_id == ticket.id)
        .order_by(TicketMessage.created_at)
        .all()
    )


def _resolved_ticket(db, *, resolved_at: datetime, phone: str = PHONE) -> Ticket:
    ticket = Ticket(
        channel=TicketChannel.TEXT,
        status=TicketStatus.RESOLVED,
        subject=f"Text from {phone}",
        customer_phone=phone,
        resolution_type="answered",
        resolution_reason="done",
        created_at=resolved_at - timedelta(hours=1),
        updated_at=resolved_at,
        resolved_at=resolved_at,
    )
    db.add(ticket)
    db.commit()
    return ticket


def test_first_text_creates_open_ticket_with_customer_message(db):
    result = thread_inbound_event(db, _text("hi"), now=NOW)

    assert result.outcome == ThreadOutcome.CREATED
    ticket = result.ticket
    assert ticket.channel == TicketChannel.TEXT
    assert ticket.status == TicketStatus.OPEN
    assert ticket.customer_phone == PHONE
    assert ticket.subject == f"Text from {PHONE}"

    messages = _messages(db, ticket)
    assert len(messages) == 1
    assert messages[0].sender_type == SenderType.CUSTOMER
    assert messages[0].body == "hi"


def test_subject_uses_customer_name_when_matched(db):
    customer = ShopifyCustomer(id=42, first_name="Ada", last_name="Lovelace", email="ADA@x.com")
    event = _call().with_customer_context(CustomerContext(customer=customer))

    ticket = thread_inbound_event(db, event, now=NOW).ticket

    assert ticket.subject == "Call from Ada Lovelace"
    assert ticket.customer_name == "Ada Lovelace"
    assert ticket.customer_email == "ada@x.com"
    assert ticket.external_customer_id == "42"


def test_call_appends_system_message(db):
    ticket = thread_inbound_event(db, _call(), now=NOW).ticket

    messages = _messages(db, ticket)
    assert ticket.channel == TicketChannel.PHONE
    assert [(m.sender_type, m.body) for m in messages] == [(SenderType.SYSTEM, "Incoming call")]


def test_text_without_body_is_not_threaded(db):
    event = _text(None)

    assert event.is_actionable
    assert not event.is_threadable
    with pytest.raises(ValueError):
        thread_inbound_event(db, event, now=NOW)
    assert db.query(Ticket).count() == 0


def test_repeat_events_reuse_active_ticket(db):
    first = thread_inbound_event(db, _text("one"), now=NOW)
    second = thread_inbound_event(db, _text("two"), now=NOW + timedelta(minutes=5))

    assert second.outcome == ThreadOutcome.EXISTING
    assert second.ticket.id == first.ticket.id
    assert db.query(Ticket).count() == 1
    assert [m.body for m in _messages(db, first.ticket)] == ["one", "two"]
    assert as_utc(second.ticket.updated_at) == NOW + timedelta(minutes=5)


def test_in_progress_ticket_counts_as_active(db):
    ticket = thread_inbound_event(db, _text("one"), now=NOW).ticket
    transition_ticket(db, ticket, TicketStatus.IN_PROGRESS, now=NOW)
    db.commit()

    result = thread_inbound_event(db, _text("two"), now=NOW + timedelta(minutes=1))

    assert result.outcome == ThreadOutcome.EXISTING
    assert result.ticket.status == TicketStatus.IN_PROGRESS


def test_channels_are_threaded_separately(db):
    text_ticket = thread_inbound_event(db, _text("hi"), now=NOW).ticket
    call_ticket = thread_inbound_event(db, _call(), now=NOW).ticket

    assert text_ticket.id != call_ticket.id
    assert db.query(Ticket).count() == 2


def test_recently_resolved_ticket_is_reopened(db):
    resolved = _resolved_ticket(db, resolved_at=NOW - timedelta(days=6, hours=23))

    result = thread_inbound_event(db, _text("back again"), now=NOW)

    assert result.outcome == ThreadOutcome.REOPENED
    ticket = result.ticket
    assert ticket.id == resolved.id
    assert ticket.status == TicketStatus.OPEN
    assert ticket.resolved_at is None
    assert ticket.resolution_type is None
    assert ticket.resolution_reason is None
    bodies = [(m.sender_type, m.body) for m in _messages(db, ticket)]
    assert bodies[0][0] == SenderType.SYSTEM
    assert bodies[-1] == (SenderType.CUSTOMER, "back again")


def test_resolved_exactly_at_window_edge_is_not_reopened(db):
    window = timedelta(days=settings.TICKET_REOPEN_WINDOW_DAYS)
    old = _resolved_ticket(db, resolved_at=NOW - window)

    result = thread_inbound_event(db, _text("hello"), now=NOW)

    assert result.outcome == ThreadOutcome.CREATED
    assert result.ticket.id != old.id


def test_reopen_prefers_most_recently_resolved(db):
    older = _resolved_ticket(db, resolved_at=NOW - timedelta(days=3))
    newer = _resolved_ticket(db, resolved_at=NOW - timedelta(days=1))

    result = thread_inbound_event(db, _text("hi"), now=NOW)

    assert result.ticket.id == newer.id
    db.refresh(older)
    assert older.status == TicketStatus.RESOLVED


def test_closed_ticket_is_never_reopened(db):
    ticket = _resolved_ticket(db, resolved_at=NOW - timedelta(hours=1))
    transition_ticket(db, ticket, TicketStatus.CLOSED, now=NOW)
    db.commit()

    result = thread_inbound_event(db, _text("hi"), now=NOW)

    assert result.outcome == ThreadOutcome.CREATED


def test_non_actionable_event_is_rejected(db):
    event = normalize_webhook({"type": "call.completed", "from": PHONE})
    with pytest.raises(ValueError):
        thread_inbound_event(db, event, now=NOW)


def test_lost_race_retries_onto_the_winning_ticket(db, monkeypatch):
    winner = Ticket(
        channel=TicketChannel.TEXT,
        status=TicketStatus.OPEN,
        subject=f"Text from {PHONE}",
        customer_phone=PHONE,
        created_at=NOW,
        updated_at=NOW,
    )
    db.add(winner)
    db.commit()

    real_find_active = ticket_threading_service._find_active
    lookups = []

    def find_active_before_winner_committed(session, phone, channel):
        lookups.append(phone)
        if len(lookups) == 1:
            return None
        return real_find_active(session, phone, channel)

    monkeypatch.setattr(ticket_threading_service, "_find_active", find_active_before_winner_committed)

    result = thread_inbound_event(db, _text("hi"), now=NOW)

    assert len(lookups) == 2
    assert result.outcome == ThreadOutcome.EXISTING
    assert result.ticket.id == winner.id
    assert db.query(Ticket).count() == 1
    assert [m.body for m in _messages(db, winner)] == ["hi"]


def test_concurrent_first_contacts_share_one_ticket(file_db):
    _, session_factory = file_db
    event = _text("hi")
    barrier = threading.Barrier(2)
    results = []
    errors = []

    def deliver():
        session = session_factory()
        try:
            barrier.wait()
            result = thread_inbound_event(session, event, now=NOW)
            results.append((result.ticket.id, result.outcome))
        except Exception as exc:
            errors.append(exc)
        finally:
            session.close()

    workers = [threading.Thread(target=deliver) for _ in range(2)]
    for worker in workers:
        worker.start()
    for worker in workers:
        worker.join(timeout=10)

    assert errors == []
    assert len(results) == 2
    assert results[0][0] == results[1][0]
    assert {outcome for _, outcome in results} == {ThreadOutcome.CREATED, ThreadOutcome.EXISTING}

    with session_factory() as session:
        active = (
            session.query(Ticket)
            .filter(Ticket.status.in_([TicketStatus.OPEN, TicketStatus.IN_PROGRESS]))
            .all()
        )
        assert [t.id for t in active] == [results[0][0]]
        assert session.query(TicketMessage).count() == 2


def test_partial_unique_index_rejects_second_active_ticket(db):
    thread_inbound_event(db, _text("hi"), now=NOW)
    db.add(
        Ticket(
            channel=TicketChannel.TEXT,
            status=TicketStatus.OPEN,
            subject="duplicate",
            customer_phone=PHONE,
        )
    )
    with pytest.raises(IntegrityError):
        db.commit()
    db.rollback()


# =============================================================================
# Lifecycle
# =============================================================================


def test_transition_to_resolved_stamps_fields(db):
    ticket = thread_inbound_event(db, _text("hi"), now=NOW).ticket
    transition_ticket(db, ticket, TicketStatus.IN_PROGRESS, now=NOW)

    transition_ticket(
        db, ticket, TicketStatus.RESOLVED,
        resolution_type="refund", resolution_reason="damaged", now=NOW,
    )

    assert ticket.status == TicketStatus.RESOLVED
    assert as_utc(ticket.resolved_at) == NOW
    assert ticket.resolution_type == "refund"


@pytest.mark.parametrize(
    "start,target",
    [
        (TicketStatus.CLOSED, TicketStatus.OPEN),
        (TicketStatus.CLOSED, TicketStatus.RESOLVED),
        (TicketStatus.RESOLVED, TicketStatus.IN_PROGRESS),
        (TicketStatus.OPEN, TicketStatus.RESOLVED),
        (TicketStatus.OPEN, TicketStatus.CLOSED),
        (TicketStatus.IN_PROGRESS, TicketStatus.OPEN),
        (TicketStatus.IN_PROGRESS, TicketStatus.CLOSED),
    ],
)
def test_invalid_transitions_raise(db, start, target):
    ticket = Ticket(channel=TicketChannel.PHONE, status=start, subject="x", customer_phone=PHONE)
    db.add(ticket)
    db.flush()

    with pytest.raises(InvalidTransitionError):
        transition_ticket(db, ticket, target)


# =============================================================================
# Stale sweep
# =============================================================================


def test_close_stale_resolved_tickets(db):
    window = timedelta(days=settings.TICKET_REOPEN_WINDOW_DAYS)
    stale = [
        _resolved_ticket(db, resolved_at=NOW - window, phone="+1000"),
        _resolved_ticket(db, resolved_at=NOW - window - timedelta(days=30), phone="+1001"),
    ]
    fresh = _resolved_ticket(db, resolved_at=NOW - window + timedelta(minutes=1), phone="+1002")
    active = thread_inbound_event(db, _text("hi", phone="+1003"), now=NOW).ticket

    closed = close_stale_resolved_tickets(db, now=NOW)

    assert closed == 2
    db.expire_all()
    assert all(db.get(Ticket, t.id).status == TicketStatus.CLOSED for t in stale)
    assert db.get(Ticket, fresh.id).status == TicketStatus.RESOLVED
    assert db.get(Ticket, active.id).status == TicketStatus.OPEN

    assert close_stale_resolved_tickets(db, now=NOW) == 0
