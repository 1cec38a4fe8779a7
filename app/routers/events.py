"""Realtime operator event stream (server-sent events)."""

import logging

from fastapi import APIRouter, Depends, Request
from fastapi.responses import StreamingResponse

from app.core.broadcast import BroadcastBus, SseSubscriber
from app.core.config import settings
from app.core.deps import get_broadcast_bus, get_stream_agent
from app.core.structured_logging import build_log_context
from app.db.models import Agent
from app.utils.sse import STREAM_HEADERS

router = APIRouter(prefix="/events", tags=["events"])
logger = logging.getLogger(__name__)


@router.get("/stream")
async def stream_events(
    request: Request,
    agent: Agent = Depends(get_stream_agent),
    bus: BroadcastBus = Depends(get_broadcast_bus),
) -> StreamingResponse:
    """
    Open a long-lived event stream.

    Emits ``connected`` on open, ``incoming`` for every inbound call or text,
    and keep-alive comments in between. Browsers pass the session token as
    ``?token=`` since EventSource cannot set headers.
    """
    subscriber = SseSubscriber(max_queue_size=settings.SSE_SUBSCRIBER_QUEUE_SIZE)
    bus.subscribe(subscriber)
    log_context = build_log_context(agent_id=str(agent.id), route="/events/stream")
    logger.info("Event stream opened (%d open)", bus.subscriber_count, extra=log_context)

    async def event_generator():
        try:
            async for frame in subscriber.frames():
                yield frame
        finally:
            bus.unsubscribe(subscriber)
            logger.info("Event stream closed (%d open)", bus.subscriber_count, extra=log_context)

    return StreamingResponse(
        event_generator(),
        media_type="text/event-stream",
        headers=STREAM_HEADERS,
    )
