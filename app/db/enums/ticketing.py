"""Ticketing and inbound-event enums."""

from enum import Enum


class TicketChannel(str, Enum):
    """Medium a ticket arrived through."""

    PHONE = "phone"
    TEXT = "text"
    SHOPIFY_WEB = "shopify_web"
    EMAIL = "email"
    AMAZON = "amazon"


class TicketStatus(str, Enum):
    """Ticket lifecycle status."""

    OPEN = "open"
    IN_PROGRESS = "in_progress"
    RESOLVED = "resolved"
    CLOSED = "closed"


ACTIVE_TICKET_STATUSES = frozenset({TicketStatus.OPEN, TicketStatus.IN_PROGRESS})


class TicketPriority(str, Enum):
    """Ticket priority level."""

    LOW = "low"
    NORMAL = "normal"
    HIGH = "high"
    URGENT = "urgent"


class SenderType(str, Enum):
    """Author of a ticket message."""

    CUSTOMER = "customer"
    AGENT = "agent"
    SYSTEM = "system"


class InboundEventKind(str, Enum):
    """Telephony event kinds that get threaded into tickets."""

    CALL = "call"
    TEXT = "text"
