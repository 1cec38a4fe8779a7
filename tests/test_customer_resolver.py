import httpx
import pytest

from app.core.config import settings
from app.services import customer_resolver, shopify_service
from app.services.customer_resolver import NO_MATCH
from app.services.shopify_service import ShopifyCustomer, ShopifyError, ShopifyOrder


@pytest.fixture
def shopify_configured(monkeypatch):
    monkeypatch.setattr(settings, "SHOPIFY_STORE", "test-store.myshopify.com")
    monkeypatch.setattr(settings, "SHOPIFY_ACCESS_TOKEN", "shpat_test")


def _order(n: int, status: str | None = "fulfilled") -> ShopifyOrder:
    return ShopifyOrder.model_validate(
        {
            "id": 1000 + n,
            "name": f"#{1000 + n}",
            "created_at": "2026-01-0{}T10:00:00Z".format(n),
            "total_price": "19.99",
            "fulfillment_status": status,
            "line_items": [{"title": "Mug"}, {"title": "Tea"}],
        }
    )


@pytest.mark.asyncio
async def test_unconfigured_shopify_is_no_match(monkeypatch):
    monkeypatch.setattr(settings, "SHOPIFY_STORE", "")

    async def fail(*args, **kwargs):
        raise AssertionError("should not call Shopify")

    monkeypatch.setattr(shopify_service, "search_customers_by_phone", fail)

    assert await customer_resolver.resolve("+15551234567") is NO_MATCH


@pytest.mark.asyncio
async def test_first_match_and_recent_orders(shopify_configured, monkeypatch):
    captured = {}

    async def fake_search(phone):
        captured["phone"] = phone
        return [
            ShopifyCustomer(id=1, first_name="Ada", last_name="Lovelace", orders_count=4, total_spent="80.00"),
            ShopifyCustomer(id=2, first_name="Someone", last_name="Else"),
        ]

    async def fake_orders(customer_id, limit):
        captured["customer_id"] = customer_id
        captured["limit"] = limit
        return [_order(1), _order(2, None), _order(3), _order(4)]

    monkeypatch.setattr(shopify_service, "search_customers_by_phone", fake_search)
    monkeypatch.setattr(shopify_service, "get_recent_orders", fake_orders)

    context = await customer_resolver.resolve("+15551234567")

    assert captured == {"phone": "+15551234567", "customer_id": 1, "limit": 3}
    assert context.matched
    assert context.customer_name == "Ada Lovelace"
    assert len(context.recent_orders) == 3
    first = context.recent_orders[0].to_payload()
    assert first == {
        "id": "1001",
        "name": "#1001",
        "date": "2026-01-01T10:00:00Z",
        "total": "19.99",
        "items": "Mug, Tea",
        "fulfillmentStatus": "fulfilled",
    }
    assert context.customer_payload() == {
        "id": "1",
        "name": "Ada Lovelace",
        "email": None,
        "ordersCount": 4,
        "totalSpent": "80.00",
    }


@pytest.mark.asyncio
async def test_no_customers_is_no_match(shopify_configured, monkeypatch):
    async def fake_search(phone):
        return []

    monkeypatch.setattr(shopify_service, "search_customers_by_phone", fake_search)

    context = await customer_resolver.resolve("+15551234567")

    assert not context.matched
    assert context.recent_orders == []


@pytest.mark.asyncio
@pytest.mark.parametrize(
    "error",
    [
        httpx.ConnectTimeout("timed out"),
        ShopifyError(401, "Invalid API key"),
    ],
)
async def test_commerce_failure_degrades_to_no_match(shopify_configured, monkeypatch, error):
    async def fake_search(phone):
        raise error

    monkeypatch.setattr(shopify_service, "search_customers_by_phone", fake_search)

    assert await customer_resolver.resolve("+15551234567") is NO_MATCH


@pytest.mark.asyncio
async def test_shopify_client_search_request(shopify_configured):
    seen = {}

    def handler(request: httpx.Request) -> httpx.Response:
        seen["url"] = request.url
        seen["token"] = request.headers.get("X-Shopify-Access-Token")
        return httpx.Response(200, json={"customers": [{"id": 7, "first_name": "Bo", "extra": 1}]})

    async with httpx.AsyncClient(transport=httpx.MockTransport(handler)) as client:
        customers = await shopify_service.search_customers_by_phone("+15551234567", client=client)

    assert [c.id for c in customers] == [7]
    assert seen["token"] == "shpat_test"
    assert seen["url"].host == "test-store.myshopify.com"
    assert seen["url"].path == f"/admin/api/{settings.SHOPIFY_API_VERSION}/customers/search.json"
    assert seen["url"].params["query"] == "phone:+15551234567"


@pytest.mark.asyncio
async def test_shopify_client_error_status_raises(shopify_configured):
    async with httpx.AsyncClient(
        transport=httpx.MockTransport(lambda request: httpx.Response(404, text="Not Found"))
    ) as client:
        with pytest.raises(ShopifyError) as exc_info:
            await shopify_service.get_recent_orders(1, client=client)

    assert exc_info.value.status_code == 404


@pytest.mark.asyncio
async def test_null_fields_in_shopify_response_are_tolerated(shopify_configured):
    def handler(request: httpx.Request) -> httpx.Response:
        if request.url.path.endswith("/customers/search.json"):
            return httpx.Response(
                200,
                json={"customers": [{"id": 7, "first_name": "Bo", "orders_count": None, "total_spent": None}]},
            )
        return httpx.Response(
            200,
            json={"orders": [{"id": 1, "name": "#1001", "line_items": [{"title": None, "quantity": None}, {"title": "Mug"}]}]},
        )

    async with httpx.AsyncClient(transport=httpx.MockTransport(handler)) as client:
        customers = await shopify_service.search_customers_by_phone("+15551234567", client=client)
        orders = await shopify_service.get_recent_orders(7, client=client)

    context = customer_resolver.CustomerContext(
        customer=customers[0],
        recent_orders=[customer_resolver.OrderSummary.from_order(o) for o in orders],
    )

    assert context.matched
    assert context.customer_payload()["ordersCount"] == 0
    assert context.customer_payload()["totalSpent"] == "0.00"
    assert context.recent_orders[0].items == "Mug"
