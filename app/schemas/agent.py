"""Agent-related Pydantic schemas."""

from datetime import datetime
from uuid import UUID

from pydantic import BaseModel

from app.db.enums import AgentRole


class AgentRead(BaseModel):
    """Response schema for the current agent."""

    id: UUID
    name: str
    email: str
    role: AgentRole
    is_active: bool
    is_available: bool
    has_push_token: bool
    has_web_push: bool
    created_at: datetime

    @classmethod
    def from_agent(cls, agent) -> "AgentRead":
        return cls(
            id=agent.id,
            name=agent.name,
            email=agent.email,
            role=agent.role,
            is_active=agent.is_active,
            is_available=agent.is_available,
            has_push_token=agent.push_token is not None,
            has_web_push=agent.web_push_subscription is not None,
            created_at=agent.created_at,
        )


class AvailabilityUpdate(BaseModel):
    """Request schema for toggling push availability."""

    is_available: bool
