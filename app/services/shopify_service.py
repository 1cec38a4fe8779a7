"""Shopify Admin API integration (read-only customer and order lookups).

Used by the customer resolver to attach commerce context to inbound calls
and texts. Refunds, reships, and other order mutations live elsewhere.
"""

from __future__ import annotations

import logging
from contextlib import asynccontextmanager
from typing import Any, AsyncIterator

import httpx
from pydantic import BaseModel, ConfigDict, Field

from app.core.config import settings
from app.services.http_service import request_with_retries

logger = logging.getLogger(__name__)

CUSTOMER_SEARCH_LIMIT = 10


class ShopifyError(Exception):
    """Shopify responded with a non-success status."""

    def __init__(self, status_code: int, message: str):
        super().__init__(f"Shopify API error {status_code}: {message}")
        self.status_code = status_code


# ============================================================================
# Response Models
# ============================================================================

class ShopifyCustomer(BaseModel):
    """Subset of the Shopify customer resource we rely on."""
    model_config = ConfigDict(extra="ignore")

    id: int | str
    first_name: str | None = None
    last_name: str | None = None
    email: str | None = None
    phone: str | None = None
    orders_count: int | None = 0
    total_spent: str | None = "0.00"


class ShopifyLineItem(BaseModel):
    model_config = ConfigDict(extra="ignore")

    title: str | None = None
    quantity: int | None = 1


class ShopifyOrder(BaseModel):
    """Subset of the Shopify order resource we rely on."""
    model_config = ConfigDict(extra="ignore")

    id: int | str
    name: str
    created_at: str | None = None
    total_price: str | None = None
    fulfillment_status: str | None = None
    line_items: list[ShopifyLineItem] = Field(default_factory=list)


# ============================================================================
# HTTP plumbing
# ============================================================================

def _base_url() -> str:
    return f"https://{settings.SHOPIFY_STORE}/admin/api/{settings.SHOPIFY_API_VERSION}"


def _headers() -> dict[str, str]:
    return {
        "X-Shopify-Access-Token": settings.SHOPIFY_ACCESS_TOKEN,
        "Content-Type": "application/json",
    }


@asynccontextmanager
async def _client_scope(client: httpx.AsyncClient | None) -> AsyncIterator[httpx.AsyncClient]:
    if client is not None:
        yield client
        return
    async with httpx.AsyncClient(timeout=settings.SHOPIFY_TIMEOUT_SECONDS) as owned:
        yield owned


async def _shopify_get(
    path: str,
    params: dict[str, Any],
    *,
    client: httpx.AsyncClient | None = None,
) -> dict:
    url = f"{_base_url()}{path}"
    async with _client_scope(client) as http:
        response = await request_with_retries(
            lambda: http.get(url, params=params, headers=_headers()),
            service="shopify",
        )
    if response.is_error:
        raise ShopifyError(response.status_code, response.text[:500])
    return response.json()


# ============================================================================
# Lookups
# ============================================================================

async def search_customers_by_phone(
    phone: str,
    *,
    client: httpx.AsyncClient | None = None,
) -> list[ShopifyCustomer]:
    """Search customers by phone. Shopify ranks matches; the first is the best."""
    data = await _shopify_get(
        "/customers/search.json",
        {"query": f"phone:{phone}", "limit": CUSTOMER_SEARCH_LIMIT},
        client=client,
    )
    return [ShopifyCustomer.model_validate(c) for c in data.get("customers") or []]


async def get_recent_orders(
    customer_id: int | str,
    limit: int = 3,
    *,
    client: httpx.AsyncClient | None = None,
) -> list[ShopifyOrder]:
    """Most recent orders for a customer, newest first (any status)."""
    data = await _shopify_get(
        "/orders.json",
        {"customer_id": customer_id, "status": "any", "limit": limit},
        client=client,
    )
    return [ShopifyOrder.model_validate(o) for o in data.get("orders") or []]
