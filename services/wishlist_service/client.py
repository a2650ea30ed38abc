"""
Wishlist API wrappers.

Unlike the cart, the wishlist envelope carries ``sessionId``, ``action`` and
``count`` at the top level next to ``data``.
"""

from typing import Optional

from libs.common.errors import ApiError
from libs.common.service_client import (
    StorefrontClient,
    error_message,
    parse,
    read_envelope,
)
from services.wishlist_service.schemas import (
    WishlistProduct,
    WishlistResponse,
    WishlistToggleResponse,
)

WISHLIST_PATH = "/api/wishlist"


def _checked_body(response, default_message: str) -> dict:
    body = read_envelope(response)
    if not response.is_success or not body.get("success"):
        raise ApiError(
            message=error_message(body, default_message),
            status_code=response.status_code,
            response_data=body,
        )
    return body


async def fetch_wishlist(
    client: StorefrontClient,
    *,
    access_token: Optional[str] = None,
    wishlist_session_id: Optional[str] = None,
) -> WishlistResponse:
    response = await client.request(
        WISHLIST_PATH,
        access_token=access_token,
        wishlist_session_id=wishlist_session_id,
    )
    body = _checked_body(response, "Failed to fetch wishlist")
    data = body.get("data")
    products = data if isinstance(data, list) else []
    return WishlistResponse(
        products=[parse(WishlistProduct, p, response) for p in products],
        session_id=body.get("sessionId"),
    )


async def toggle_wishlist(
    client: StorefrontClient,
    product_id: str,
    *,
    access_token: Optional[str] = None,
    wishlist_session_id: Optional[str] = None,
) -> WishlistToggleResponse:
    payload = {"productId": product_id}
    if wishlist_session_id:
        payload["sessionId"] = wishlist_session_id

    response = await client.request(
        WISHLIST_PATH,
        "POST",
        json=payload,
        access_token=access_token,
        wishlist_session_id=wishlist_session_id,
    )
    body = _checked_body(response, "Failed to update wishlist")
    return WishlistToggleResponse(
        action=body.get("action") or "added",
        count=body.get("count") or 0,
        session_id=body.get("sessionId"),
    )
