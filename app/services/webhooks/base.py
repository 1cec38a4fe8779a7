"""Webhook handler interface and shared request helpers."""

from __future__ import annotations

import base64
import hashlib
import hmac
from typing import Protocol

from fastapi import HTTPException, Request, Response
from sqlalchemy.orm import Session

from app.core.config import settings

WebhookResult = dict | Response


class WebhookHandler(Protocol):
    async def handle(self, request: Request, db: Session, **kwargs) -> WebhookResult:
        """Handle a webhook request."""


async def read_body_safe(request: Request, max_bytes: int | None = None) -> bytes:
    """Read the raw body, rejecting anything over the payload cap with 413."""
    limit = max_bytes or settings.WEBHOOK_MAX_PAYLOAD_BYTES
    content_length = request.headers.get("content-length")
    if content_length:
        try:
            if int(content_length) > limit:
                raise HTTPException(413, "Payload too large")
        except ValueError:
            pass

    chunks: list[bytes] = []
    total = 0
    async for chunk in request.stream():
        if not chunk:
            continue
        total += len(chunk)
        if total > limit:
            raise HTTPException(413, "Payload too large")
        chunks.append(chunk)
    return b"".join(chunks)


def hmac_sha256_b64(key: bytes, message: bytes) -> str:
    return base64.b64encode(hmac.new(key, message, hashlib.sha256).digest()).decode("ascii")
