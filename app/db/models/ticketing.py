"""Ticketing ORM models."""

from __future__ import annotations

import uuid
from datetime import datetime, timezone
from typing import TYPE_CHECKING

from sqlalchemy import Enum, ForeignKey, Index, String, Text, Uuid, text
from sqlalchemy.orm import Mapped, mapped_column, relationship

from app.db.base import Base
from app.db.enums import SenderType, TicketChannel, TicketPriority, TicketStatus

if TYPE_CHECKING:
    from app.db.models import Agent


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _enum_type(enum_cls, *, name: str) -> Enum:
    """Store str-enums by value as portable VARCHAR columns."""
    return Enum(
        enum_cls,
        name=name,
        native_enum=False,
        length=32,
        values_callable=lambda members: [member.value for member in members],
    )


_ACTIVE_STATUS_CLAUSE = text("status IN ('open', 'in_progress')")


class Ticket(Base):
    """A unit of customer contact needing resolution."""

    __tablename__ = "tickets"
    __table_args__ = (
        # At most one active ticket per (phone, channel)
        Index(
            "uq_tickets_active_phone_channel",
            "customer_phone",
            "channel",
            unique=True,
            postgresql_where=_ACTIVE_STATUS_CLAUSE,
            sqlite_where=_ACTIVE_STATUS_CLAUSE,
        ),
        Index("idx_tickets_phone_channel_status", "customer_phone", "channel", "status"),
        Index("idx_tickets_status_resolved_at", "status", "resolved_at"),
        Index("idx_tickets_updated_at", "updated_at"),
    )

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    channel: Mapped[TicketChannel] = mapped_column(
        _enum_type(TicketChannel, name="ticket_channel"), nullable=False
    )
    status: Mapped[TicketStatus] = mapped_column(
        _enum_type(TicketStatus, name="ticket_status"),
        nullable=False,
        default=TicketStatus.OPEN,
    )
    priority: Mapped[TicketPriority] = mapped_column(
        _enum_type(TicketPriority, name="ticket_priority"),
        nullable=False,
        default=TicketPriority.NORMAL,
    )
    subject: Mapped[str] = mapped_column(Text, nullable=False)
    customer_phone: Mapped[str | None] = mapped_column(String(32), nullable=True)
    customer_name: Mapped[str | None] = mapped_column(Text, nullable=True)
    customer_email: Mapped[str | None] = mapped_column(String(320), nullable=True)
    external_customer_id: Mapped[str | None] = mapped_column(String(64), nullable=True)
    assigned_agent_id: Mapped[uuid.UUID | None] = mapped_column(
        Uuid, ForeignKey("agents.id", ondelete="SET NULL"), nullable=True
    )
    resolution_type: Mapped[str | None] = mapped_column(String(64), nullable=True)
    resolution_reason: Mapped[str | None] = mapped_column(Text, nullable=True)
    created_at: Mapped[datetime] = mapped_column(nullable=False, default=_utcnow)
    updated_at: Mapped[datetime] = mapped_column(nullable=False, default=_utcnow)
    resolved_at: Mapped[datetime | None] = mapped_column(nullable=True)

    assigned_agent: Mapped["Agent | None"] = relationship()
    messages: Mapped[list["TicketMessage"]] = relationship(
        back_populates="ticket", order_by="TicketMessage.created_at"
    )

    @property
    def is_active(self) -> bool:
        return self.status in (TicketStatus.OPEN, TicketStatus.IN_PROGRESS)


class TicketMessage(Base):
    """One inbound, outbound, or system utterance on a ticket. Append-only."""

    __tablename__ = "ticket_messages"
    __table_args__ = (Index("idx_ticket_messages_ticket_created", "ticket_id", "created_at"),)

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    ticket_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("tickets.id", ondelete="CASCADE"), nullable=False
    )
    sender_type: Mapped[SenderType] = mapped_column(
        _enum_type(SenderType, name="ticket_sender_type"), nullable=False
    )
    sender_agent_id: Mapped[uuid.UUID | None] = mapped_column(
        Uuid, ForeignKey("agents.id", ondelete="SET NULL"), nullable=True
    )
    body: Mapped[str] = mapped_column(Text, nullable=False)
    created_at: Mapped[datetime] = mapped_column(nullable=False, default=_utcnow)

    ticket: Mapped["Ticket"] = relationship(back_populates="messages")
    sender_agent: Mapped["Agent | None"] = relationship()
