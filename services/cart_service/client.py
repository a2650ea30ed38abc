"""
Cart API wrappers.

Every call accepts an optional bearer token and an optional guest cart
session id; the pipeline turns them into identity headers.
"""

from typing import Optional

from libs.common.service_client import StorefrontClient, parse, unwrap
from services.cart_service.schemas import CartMutationResponse, CartResponse

CART_PATH = "/api/cart"


async def fetch_cart(
    client: StorefrontClient,
    *,
    access_token: Optional[str] = None,
    cart_session_id: Optional[str] = None,
) -> CartResponse:
    """GET /api/cart. With both a token and a guest id the server merges."""
    response = await client.request(
        CART_PATH, access_token=access_token, cart_session_id=cart_session_id
    )
    data = unwrap(response, "Failed to fetch cart")
    return parse(CartResponse, data, response, "Unexpected cart response")


async def add_to_cart(
    client: StorefrontClient,
    product_id: str,
    *,
    variant_id: Optional[str] = None,
    quantity: int = 1,
    access_token: Optional[str] = None,
    cart_session_id: Optional[str] = None,
) -> CartMutationResponse:
    response = await client.request(
        CART_PATH,
        "POST",
        json={"productId": product_id, "variantId": variant_id, "quantity": quantity},
        access_token=access_token,
        cart_session_id=cart_session_id,
    )
    data = unwrap(response, "Failed to add to cart")
    return parse(CartMutationResponse, data, response)


async def update_cart_item(
    client: StorefrontClient,
    item_id: str,
    quantity: int,
    *,
    access_token: Optional[str] = None,
    cart_session_id: Optional[str] = None,
) -> CartMutationResponse:
    response = await client.request(
        CART_PATH,
        "PUT",
        json={"itemId": item_id, "quantity": quantity},
        access_token=access_token,
        cart_session_id=cart_session_id,
    )
    data = unwrap(response, "Failed to update cart")
    return parse(CartMutationResponse, data, response)


async def remove_cart_item(
    client: StorefrontClient,
    item_id: str,
    *,
    access_token: Optional[str] = None,
    cart_session_id: Optional[str] = None,
) -> CartMutationResponse:
    response = await client.request(
        CART_PATH,
        "DELETE",
        params={"itemId": item_id},
        access_token=access_token,
        cart_session_id=cart_session_id,
    )
    data = unwrap(response, "Failed to remove item")
    return parse(CartMutationResponse, data, response)


async def clear_cart(
    client: StorefrontClient,
    *,
    access_token: Optional[str] = None,
    cart_session_id: Optional[str] = None,
) -> CartMutationResponse:
    response = await client.request(
        CART_PATH,
        "DELETE",
        params={"clear": "true"},
        access_token=access_token,
        cart_session_id=cart_session_id,
    )
    data = unwrap(response, "Failed to clear cart")
    return parse(CartMutationResponse, data, response)
