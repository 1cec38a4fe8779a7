"""Operator (agent) ORM model."""

from __future__ import annotations

import uuid
from datetime import datetime, timezone
from typing import Any

from sqlalchemy import JSON, Boolean, Enum, Integer, String, Text, Uuid, text, true
from sqlalchemy.orm import Mapped, mapped_column

from app.db.base import Base
from app.db.enums import AgentRole


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class Agent(Base):
    """
    A support operator.

    Owns at most one mobile push token and one web-push subscription;
    both are cleared by the notification fan-out when the provider reports
    them as dead.
    """

    __tablename__ = "agents"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    email: Mapped[str] = mapped_column(String(320), nullable=False, unique=True)
    role: Mapped[AgentRole] = mapped_column(
        Enum(
            AgentRole,
            name="agent_role",
            native_enum=False,
            length=32,
            values_callable=lambda members: [member.value for member in members],
        ),
        nullable=False,
        default=AgentRole.AGENT,
    )
    is_active: Mapped[bool] = mapped_column(
        Boolean, nullable=False, default=True, server_default=true()
    )
    is_available: Mapped[bool] = mapped_column(
        Boolean, nullable=False, default=True, server_default=true()
    )
    push_token: Mapped[str | None] = mapped_column(Text, nullable=True)
    web_push_subscription: Mapped[dict[str, Any] | None] = mapped_column(
        JSON(none_as_null=True), nullable=True
    )
    token_version: Mapped[int] = mapped_column(
        Integer, nullable=False, default=1, server_default=text("1")
    )
    created_at: Mapped[datetime] = mapped_column(nullable=False, default=_utcnow)
    updated_at: Mapped[datetime] = mapped_column(nullable=False, default=_utcnow, onupdate=_utcnow)
