"""Structured logging helpers (PII-safe)."""

from typing import Any

from app.utils.normalization import extract_phone_last4


def build_log_context(
    *,
    agent_id: str | None = None,
    ticket_id: str | None = None,
    phone: str | None = None,
    event_type: str | None = None,
    route: str | None = None,
    method: str | None = None,
) -> dict[str, Any]:
    """Return a PII-safe log context dict. Phones are reduced to their last four digits."""
    context: dict[str, Any] = {}
    if agent_id:
        context["agent_id"] = agent_id
    if ticket_id:
        context["ticket_id"] = ticket_id
    if phone:
        context["phone_last4"] = extract_phone_last4(phone)
    if event_type:
        context["event_type"] = event_type
    if route:
        context["route"] = route
    if method:
        context["method"] = method
    return context
