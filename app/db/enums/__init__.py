"""Enum definitions for application constants."""

from app.db.enums.auth import AgentRole
from app.db.enums.ticketing import (
    ACTIVE_TICKET_STATUSES,
    InboundEventKind,
    SenderType,
    TicketChannel,
    TicketPriority,
    TicketStatus,
)

__all__ = [
    "ACTIVE_TICKET_STATUSES",
    "AgentRole",
    "InboundEventKind",
    "SenderType",
    "TicketChannel",
    "TicketPriority",
    "TicketStatus",
]
