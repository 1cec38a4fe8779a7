"""SQLAlchemy ORM models."""

from app.db.models.auth import Agent
from app.db.models.ticketing import Ticket, TicketMessage

__all__ = ["Agent", "Ticket", "TicketMessage"]
