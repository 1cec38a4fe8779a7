"""Server-sent events helpers."""

from __future__ import annotations

import json
from typing import Any


def format_sse(event_type: str, data: Any) -> str:
    """Format a single named SSE event frame."""
    return f"event: {event_type}\ndata: {json.dumps(data, default=str)}\n\n"


def format_sse_comment(comment: str = "keepalive") -> str:
    """Format a comment-only frame; clients ignore it, proxies see traffic."""
    return f": {comment}\n\n"


STREAM_HEADERS = {
    "Cache-Control": "no-cache, no-transform",
    "Content-Encoding": "identity",
    "Connection": "keep-alive",
    "X-Accel-Buffering": "no",
}
