"""Current agent profile and availability."""

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from app.core.deps import get_current_agent, get_db
from app.db.models import Agent
from app.schemas.agent import AgentRead, AvailabilityUpdate

router = APIRouter(prefix="/me", tags=["me"])


@router.get("", response_model=AgentRead)
def get_me(agent: Agent = Depends(get_current_agent)):
    return AgentRead.from_agent(agent)


@router.put("/availability", response_model=AgentRead)
def update_availability(
    data: AvailabilityUpdate,
    agent: Agent = Depends(get_current_agent),
    db: Session = Depends(get_db),
):
    """
    Toggle whether this agent receives push alerts.

    Streams are unaffected; an unavailable agent still sees live events.
    """
    agent.is_available = data.is_available
    db.commit()
    db.refresh(agent)
    return AgentRead.from_agent(agent)
