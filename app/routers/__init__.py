"""API routers."""

from app.routers.events import router as events_router
from app.routers.me import router as me_router
from app.routers.push import router as push_router
from app.routers.webhooks import router as webhooks_router

__all__ = [
    "events_router",
    "me_router",
    "push_router",
    "webhooks_router",
]
