"""Normalize Quo (OpenPhone) webhook payloads into a canonical inbound event.

The upstream sender has shipped several payload shapes over time:

- v3: ``{"type": "call.ringing", "data": {"object": {"from": ..., "body": ...}}}``
- flat: ``{"event": "message.received", "from": ..., "body": ...}``
- participants: ``{"type": ..., "participants": [{"number": ..., "direction": "inbound"}]}``

Everything downstream only ever sees :class:`InboundEvent`.
"""

from __future__ import annotations

from dataclasses import dataclass, field, replace
from typing import TYPE_CHECKING, Any

from app.db.enums import InboundEventKind, TicketChannel
from app.utils.normalization import clean_phone

if TYPE_CHECKING:
    from app.services.customer_resolver import CustomerContext

CALL_EVENT_TYPES = frozenset({"call.ringing", "call.started", "call.answered"})
TEXT_EVENT_TYPES = frozenset({"message.received"})

_CHANNEL_BY_KIND = {
    InboundEventKind.CALL: TicketChannel.PHONE,
    InboundEventKind.TEXT: TicketChannel.TEXT,
}


@dataclass(frozen=True)
class InboundEvent:
    """Canonical inbound telephony event. Never persisted on its own."""

    phone: str
    event_type: str | None
    kind: InboundEventKind | None
    channel: TicketChannel | None
    body: str | None = None
    customer_context: "CustomerContext | None" = field(default=None, compare=False)

    @property
    def is_actionable(self) -> bool:
        """True for calls and texts; other event types are acknowledged and dropped."""
        return self.kind is not None

    @property
    def is_threadable(self) -> bool:
        """Calls always open a ticket; texts only when they carry a body."""
        if self.kind == InboundEventKind.TEXT:
            return bool(self.body)
        return self.is_actionable

    @property
    def broadcast_type(self) -> str:
        return "incoming_call" if self.kind == InboundEventKind.CALL else "incoming_text"

    def with_customer_context(self, context: "CustomerContext") -> "InboundEvent":
        return replace(self, customer_context=context)


def _as_dict(value: Any) -> dict:
    return value if isinstance(value, dict) else {}


def classify_event_type(event_type: str | None) -> InboundEventKind | None:
    if event_type in CALL_EVENT_TYPES:
        return InboundEventKind.CALL
    if event_type in TEXT_EVENT_TYPES:
        return InboundEventKind.TEXT
    return None


def extract_phone(payload: dict) -> str | None:
    """
    Find the originating number, first match wins:

    1. ``data.object.from``
    2. top-level ``from``
    3. the participant flagged external / inbound (``number``, then ``phone``)
    4. the first participant's ``number``
    """
    data_obj = _as_dict(_as_dict(payload.get("data")).get("object"))
    for candidate in (data_obj.get("from"), payload.get("from")):
        phone = clean_phone(candidate)
        if phone:
            return phone

    participants = payload.get("participants")
    if not isinstance(participants, list) or not participants:
        return None

    entries = [_as_dict(p) for p in participants]
    external = next(
        (p for p in entries if p.get("type") == "external" or p.get("direction") == "inbound"),
        None,
    )
    if external:
        phone = clean_phone(external.get("number")) or clean_phone(external.get("phone"))
        if phone:
            return phone
    return clean_phone(entries[0].get("number"))


def extract_message_body(payload: dict) -> str | None:
    data_obj = _as_dict(_as_dict(payload.get("data")).get("object"))
    for candidate in (data_obj.get("body"), data_obj.get("text"), payload.get("body")):
        if isinstance(candidate, str) and candidate.strip():
            return candidate
    return None


def normalize_webhook(payload: Any) -> InboundEvent | None:
    """
    Build an InboundEvent from an arbitrary webhook body.

    Returns None when no phone number can be found; the caller still
    acknowledges the webhook but does no further processing.
    """
    payload = _as_dict(payload)
    phone = extract_phone(payload)
    if not phone:
        return None

    raw_type = payload.get("type") or payload.get("event")
    event_type = raw_type if isinstance(raw_type, str) else None
    kind = classify_event_type(event_type)
    body = extract_message_body(payload) if kind == InboundEventKind.TEXT else None

    return InboundEvent(
        phone=phone,
        event_type=event_type,
        kind=kind,
        channel=_CHANNEL_BY_KIND.get(kind) if kind else None,
        body=body,
    )
