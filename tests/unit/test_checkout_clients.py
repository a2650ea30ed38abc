"""Unit tests for the checkout API wrappers: addresses and order lookups."""

import pytest
from libs.common.errors import ApiError, MalformedResponse
from services.checkout_service.clients import addresses, orders, payments
from services.checkout_service.schemas import AddressCreate
from tests.factories import bearer, fail, ok

ORDER = {
    "_id": "ord-1",
    "orderNumber": "ORD-1001",
    "trackingCode": "TRK-7Q2",
    "items": [
        {
            "productId": "prod-1",
            "name": "Linen Shirt",
            "price": 2250,
            "quantity": 2,
            "lineTotal": 4500,
        }
    ],
    "subtotal": 4500,
    "shippingCost": 499,
    "taxAmount": 383,
    "discount": 1000,
    "total": 5382,
    "status": "pending",
    "paymentStatus": "unpaid",
}


@pytest.mark.asyncio
@pytest.mark.unit
async def test_fetch_orders_reads_pagination(storefront_client, fake_api):
    fake_api.route(
        "GET",
        "/api/orders",
        ok([ORDER], pagination={"page": 2, "limit": 1, "total": 3, "pages": 3}),
    )

    page = await orders.fetch_orders(storefront_client, "access-1", page=2, limit=1)

    assert page.data[0].order_number == "ORD-1001"
    assert page.data[0].items[0].line_total == 4500
    assert page.pagination.pages == 3
    request = fake_api.requests[0]
    assert request.url.params["page"] == "2"
    assert bearer(request) == "access-1"


@pytest.mark.asyncio
@pytest.mark.unit
async def test_order_recovery_lookup_by_number(storefront_client, fake_api):
    fake_api.route("GET", "/api/orders", ok(ORDER))

    order = await orders.fetch_order_by_number(storefront_client, "ORD-1001", "access-1")

    assert order.id == "ord-1"
    assert order.total == 5382
    assert fake_api.requests[0].url.params["orderNumber"] == "ORD-1001"


@pytest.mark.asyncio
@pytest.mark.unit
async def test_guest_tracking_lookup_is_public(storefront_client, fake_api):
    fake_api.route("GET", "/api/orders", fail(404, "Order not found"))

    with pytest.raises(ApiError) as exc_info:
        await orders.fetch_order_by_tracking_code(storefront_client, "TRK-NOPE")

    assert exc_info.value.status_code == 404
    request = fake_api.requests[0]
    assert bearer(request) is None
    assert request.url.params["trackingCode"] == "TRK-NOPE"


@pytest.mark.asyncio
@pytest.mark.unit
async def test_address_book_create_and_delete(storefront_client, fake_api):
    saved = {
        "_id": "addr-9",
        "firstName": "Jane",
        "lastName": "Shopper",
        "address1": "12 Elm St",
        "city": "Austin",
        "state": "TX",
        "zipCode": "73301",
        "isDefault": True,
    }
    fake_api.route("POST", "/api/addresses", ok(saved))
    fake_api.route("DELETE", "/api/addresses", ok(None, message="Address deleted"))

    created = await addresses.create_address(
        storefront_client,
        AddressCreate(first_name="Jane", zip_code="73301", is_default=True),
        "access-1",
    )
    await addresses.delete_address(storefront_client, created.id, "access-1")

    assert created.is_default
    assert created.to_address().zip_code == "73301"
    assert fake_api.calls("DELETE", "/api/addresses")[0].url.params["id"] == "addr-9"


@pytest.mark.asyncio
@pytest.mark.unit
async def test_intent_without_client_secret_is_malformed(storefront_client, fake_api):
    fake_api.route("POST", "/api/payments/create-intent", ok({"id": "pi_1"}))

    with pytest.raises(MalformedResponse):
        await payments.create_payment_intent(storefront_client, "ord-1")
