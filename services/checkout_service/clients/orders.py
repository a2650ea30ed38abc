"""Order creation and lookup wrappers."""

from typing import Optional

from libs.common.service_client import StorefrontClient, parse, read_envelope, unwrap
from services.checkout_service.schemas import (
    Order,
    OrderCreate,
    OrderCreated,
    OrderPage,
    Pagination,
)


async def create_order(
    client: StorefrontClient,
    body: OrderCreate,
    *,
    access_token: Optional[str] = None,
    cart_session_id: Optional[str] = None,
) -> OrderCreated:
    """POST /api/checkout - create an order from the current cart.

    The guest cart session id is sent both in the body and as the cart
    session header so the server can resolve a not-yet-merged guest cart.
    """
    response = await client.request(
        "/api/checkout",
        "POST",
        json=body.to_payload(),
        access_token=access_token,
        cart_session_id=cart_session_id,
    )
    data = unwrap(response, "Checkout failed")
    return parse(OrderCreated, data, response, "Unexpected checkout response")


async def fetch_orders(
    client: StorefrontClient,
    access_token: str,
    *,
    page: Optional[int] = None,
    limit: Optional[int] = None,
    status: Optional[str] = None,
) -> OrderPage:
    params = {}
    if page is not None:
        params["page"] = page
    if limit is not None:
        params["limit"] = limit
    if status:
        params["status"] = status

    response = await client.request(
        "/api/orders", params=params or None, access_token=access_token
    )
    unwrap(response, "Failed to fetch orders", require_data=False)
    body = read_envelope(response)
    return OrderPage(
        data=[parse(Order, o, response) for o in body.get("data") or []],
        pagination=parse(Pagination, body.get("pagination") or {}, response),
    )


async def fetch_order_by_number(
    client: StorefrontClient, order_number: str, access_token: str
) -> Order:
    """Used by the recovery view after a partial placement."""
    response = await client.request(
        "/api/orders",
        params={"orderNumber": order_number},
        access_token=access_token,
    )
    data = unwrap(response, "Order not found")
    return parse(Order, data, response)


async def fetch_order_by_tracking_code(
    client: StorefrontClient, tracking_code: str
) -> Order:
    """Guest order lookup; public, no auth."""
    response = await client.send("/api/orders", params={"trackingCode": tracking_code})
    data = unwrap(response, "Order not found")
    return parse(Order, data, response)
