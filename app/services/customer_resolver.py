"""Resolve an inbound phone number to a commerce customer and recent orders.

Most calls come from numbers with no customer record, so "no match" is an
ordinary outcome. A failing commerce API degrades to the same result and
never aborts the inbound pipeline.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any

import httpx
from pydantic import BaseModel

from app.core.config import settings
from app.core.structured_logging import build_log_context
from app.services import shopify_service
from app.services.shopify_service import ShopifyCustomer, ShopifyError, ShopifyOrder
from app.utils.normalization import normalize_email, normalize_name

logger = logging.getLogger(__name__)


class OrderSummary(BaseModel):
    """Order reduced to what an operator needs at a glance."""

    id: str
    name: str
    date: str | None = None
    total: str | None = None
    items: str = ""
    fulfillment_status: str | None = None

    @classmethod
    def from_order(cls, order: ShopifyOrder) -> "OrderSummary":
        return cls(
            id=str(order.id),
            name=order.name,
            date=order.created_at,
            total=order.total_price,
            items=", ".join(item.title for item in order.line_items if item.title),
            fulfillment_status=order.fulfillment_status,
        )

    def to_payload(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "name": self.name,
            "date": self.date,
            "total": self.total,
            "items": self.items,
            "fulfillmentStatus": self.fulfillment_status,
        }


@dataclass(frozen=True)
class CustomerContext:
    customer: ShopifyCustomer | None = None
    recent_orders: list[OrderSummary] = field(default_factory=list)

    @property
    def matched(self) -> bool:
        return self.customer is not None

    @property
    def customer_id(self) -> str | None:
        return str(self.customer.id) if self.customer else None

    @property
    def customer_name(self) -> str | None:
        if not self.customer:
            return None
        return normalize_name(self.customer.first_name, self.customer.last_name)

    @property
    def customer_email(self) -> str | None:
        return normalize_email(self.customer.email) if self.customer else None

    def customer_payload(self) -> dict[str, Any] | None:
        if not self.customer:
            return None
        return {
            "id": self.customer_id,
            "name": self.customer_name,
            "email": self.customer_email,
            "ordersCount": self.customer.orders_count or 0,
            "totalSpent": self.customer.total_spent or "0.00",
        }


NO_MATCH = CustomerContext()


async def resolve(phone: str, *, limit: int | None = None) -> CustomerContext:
    """
    Look up the customer for a phone number plus their most recent orders.

    Never raises for collaborator failures; returns NO_MATCH instead.
    """
    if not settings.shopify_configured:
        logger.debug("Shopify not configured; skipping customer lookup")
        return NO_MATCH

    order_limit = limit if limit is not None else settings.RECENT_ORDERS_LIMIT
    log_context = build_log_context(phone=phone)
    try:
        customers = await shopify_service.search_customers_by_phone(phone)
        if not customers:
            logger.info("No commerce customer for inbound number", extra=log_context)
            return NO_MATCH

        customer = customers[0]
        orders = await shopify_service.get_recent_orders(customer.id, order_limit)
    except (httpx.HTTPError, ShopifyError, ValueError) as exc:
        # ValueError covers malformed JSON and pydantic validation failures
        logger.warning(
            "Commerce lookup failed, continuing without customer: %s",
            exc,
            extra=log_context,
        )
        return NO_MATCH

    return CustomerContext(
        customer=customer,
        recent_orders=[OrderSummary.from_order(o) for o in orders[:order_limit]],
    )
