"""FastAPI dependencies for authentication and database access."""

from typing import Generator
from uuid import UUID

import jwt
from fastapi import Depends, HTTPException, Request
from sqlalchemy.orm import Session

from app.core.broadcast import BroadcastBus
from app.core.security import decode_session_token
from app.db.models import Agent
from app.db.session import SessionLocal

BEARER_PREFIX = "Bearer "
TOKEN_QUERY_PARAM = "token"


def get_db() -> Generator[Session, None, None]:
    """
    Database session dependency.

    Yields a database session and ensures it's closed after the request.
    """
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


def _extract_token(request: Request) -> str | None:
    auth_header = request.headers.get("Authorization", "")
    if auth_header.startswith(BEARER_PREFIX):
        return auth_header[len(BEARER_PREFIX):].strip() or None
    # EventSource cannot set headers, so streams pass the token as ?token=
    return request.query_params.get(TOKEN_QUERY_PARAM) or None


def get_current_agent(request: Request, db: Session = Depends(get_db)) -> Agent:
    """
    Get the authenticated agent from a bearer token.

    Validates:
    - Token exists and is a valid, unexpired JWT
    - Agent exists and is active
    - Token version matches (for revocation support)

    Raises:
        HTTPException 401: Authentication failed
    """
    token = _extract_token(request)
    if not token:
        raise HTTPException(status_code=401, detail="Not authenticated")

    try:
        payload = decode_session_token(token)
        agent_id = UUID(payload["sub"])
    except (jwt.InvalidTokenError, KeyError, ValueError):
        raise HTTPException(status_code=401, detail="Invalid or expired token")

    agent = db.get(Agent, agent_id)
    if not agent:
        raise HTTPException(status_code=401, detail="Agent not found")

    if not agent.is_active:
        raise HTTPException(status_code=401, detail="Account disabled")

    if agent.token_version != payload.get("token_version"):
        raise HTTPException(status_code=401, detail="Session revoked")

    return agent


def get_stream_agent(request: Request) -> Agent:
    """
    Authenticate a long-lived stream.

    The session is closed before the response starts; no pooled connection
    stays checked out while the stream is open.
    """
    with SessionLocal() as db:
        return get_current_agent(request, db)


def get_broadcast_bus(request: Request) -> BroadcastBus:
    """Return the process-wide broadcast bus created in the app lifespan."""
    return request.app.state.broadcast_bus
