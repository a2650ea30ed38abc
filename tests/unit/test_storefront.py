"""Unit tests for storefront wiring: startup restore plus guest merges."""

import httpx
import pytest
from libs.auth.models import TokenPair
from libs.auth.storage import InMemorySessionIdStore, InMemoryTokenStore
from services.gateway_service.app.main import create_storefront
from tests.factories import BASE_URL, USER_PAYLOAD, bearer, cart_line, cart_payload, ok


@pytest.mark.asyncio
@pytest.mark.unit
async def test_startup_restores_session_and_merges_both_guest_resources(fake_api):
    stores = (
        InMemoryTokenStore(TokenPair(access_token="access-1", refresh_token="refresh-1")),
        InMemorySessionIdStore("guest-cart"),
        InMemorySessionIdStore("guest-wish"),
    )
    fake_api.route("GET", "/api/auth/check", ok({"authenticated": True, "user": USER_PAYLOAD}))
    fake_api.route("GET", "/api/cart", ok(cart_payload([cart_line()], subtotal=4500)))
    fake_api.route("GET", "/api/wishlist", ok([]))

    storefront = create_storefront(
        stores=stores, transport=httpx.MockTransport(fake_api), base_url=BASE_URL
    )
    await storefront.startup()

    assert storefront.auth.is_authenticated
    cart_get = fake_api.calls("GET", "/api/cart")[0]
    wishlist_get = fake_api.calls("GET", "/api/wishlist")[0]
    assert (bearer(cart_get), cart_get.headers["X-Cart-Session"]) == ("access-1", "guest-cart")
    assert (bearer(wishlist_get), wishlist_get.headers["X-Wishlist-Session"]) == (
        "access-1",
        "guest-wish",
    )
    assert await stores[1].get() is None
    assert await stores[2].get() is None
    assert storefront.cart.subtotal == 4500


@pytest.mark.asyncio
@pytest.mark.unit
async def test_logout_clears_both_resources(fake_api):
    stores = (InMemoryTokenStore(), InMemorySessionIdStore(), InMemorySessionIdStore())
    fake_api.route(
        "POST",
        "/api/auth/login",
        ok({"accessToken": "access-1", "refreshToken": "refresh-1", "user": USER_PAYLOAD}),
    )
    fake_api.route("GET", "/api/cart", ok(cart_payload([cart_line()], subtotal=4500)))
    fake_api.route("GET", "/api/wishlist", ok([]))
    storefront = create_storefront(
        stores=stores, transport=httpx.MockTransport(fake_api), base_url=BASE_URL
    )
    await storefront.startup()
    await storefront.auth.login("jane@shopmail.com", "hunter22")
    await storefront.cart.refetch()
    assert storefront.cart.item_count == 2

    await storefront.auth.logout()

    assert storefront.cart.items == []
    assert storefront.wishlist.products == []
