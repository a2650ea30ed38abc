"""Unit tests for CartReconciler: guest identity, merge-on-login, logout clear.

The fake API plays the storefront: a guest cart is keyed by X-Cart-Session,
and a GET carrying both a bearer token and a guest id merges the two.
"""

import asyncio

import pytest
from libs.auth.models import AuthenticatedIdentity, User
from libs.auth.session import AuthSessionManager, AuthStatus
from libs.common.errors import ApiError, MalformedResponse
from libs.common.reconciler import ReconcilerStatus
from services.cart_service.client import fetch_cart
from services.cart_service.reconciler import CartReconciler
from tests.factories import (
    USER_PAYLOAD,
    bearer,
    cart_line,
    cart_payload,
    fail,
    ok,
)

LOGIN_DATA = {"accessToken": "access-1", "refreshToken": "refresh-1", "user": USER_PAYLOAD}


@pytest.fixture
def cart(storefront_client, token_store, cart_session_store):
    return CartReconciler(storefront_client, token_store, cart_session_store)


@pytest.fixture
def auth(storefront_client, token_store, cart):
    manager = AuthSessionManager(storefront_client, token_store)
    manager.subscribe(cart.handle_identity_change)
    return manager


def _cart_headers(request):
    return bearer(request), request.headers.get("X-Cart-Session")


# ---------------------------------------------------------------------------
# Loading
# ---------------------------------------------------------------------------


@pytest.mark.asyncio
@pytest.mark.unit
async def test_load_takes_totals_from_server(cart, fake_api, cart_session_store):
    """Subtotal and item count are the server's numbers, never recomputed."""
    await cart_session_store.set("guest-abc")
    # Server subtotal deliberately differs from sum(lineTotal)
    fake_api.route(
        "GET",
        "/api/cart",
        ok(cart_payload([cart_line(price=2250, quantity=2)], subtotal=4000)),
    )

    await cart.load()

    assert cart.status == ReconcilerStatus.READY
    assert cart.subtotal == 4000
    assert cart.item_count == 2
    assert _cart_headers(fake_api.requests[0]) == (None, "guest-abc")


@pytest.mark.asyncio
@pytest.mark.unit
async def test_load_failure_empties_cart_and_records_error(cart, fake_api):
    fake_api.route("GET", "/api/cart", fail(500, "Cart unavailable"))

    await cart.load()

    assert not cart.is_loading
    assert cart.items == []
    assert cart.subtotal == 0
    assert cart.error == "Cart unavailable"


@pytest.mark.asyncio
@pytest.mark.unit
async def test_guest_add_adopts_server_session_id(cart, fake_api, cart_session_store):
    fake_api.route(
        "POST", "/api/cart", ok({"itemCount": 1, "subtotal": 2250, "sessionId": "guest-new"})
    )
    fake_api.route(
        "GET",
        "/api/cart",
        ok(cart_payload([cart_line(quantity=1)], subtotal=2250, session_id="guest-new")),
    )

    await cart.add_item("prod-1", quantity=1)

    assert cart.cart_session_id == "guest-new"
    assert await cart_session_store.get() == "guest-new"
    # Every mutation is followed by a refetch
    assert _cart_headers(fake_api.calls("GET", "/api/cart")[0]) == (None, "guest-new")
    assert cart.item_count == 1


# ---------------------------------------------------------------------------
# Mutations
# ---------------------------------------------------------------------------


@pytest.mark.asyncio
@pytest.mark.unit
async def test_quantity_zero_is_a_removal(cart, fake_api):
    fake_api.route("DELETE", "/api/cart", ok({"itemCount": 0, "subtotal": 0}))
    fake_api.route("GET", "/api/cart", ok(cart_payload()))

    await cart.update_quantity("line-1", 0)

    assert fake_api.calls("PUT", "/api/cart") == []
    delete = fake_api.calls("DELETE", "/api/cart")[0]
    assert delete.url.params["itemId"] == "line-1"
    assert cart.items == []


@pytest.mark.asyncio
@pytest.mark.unit
async def test_positive_quantity_updates_then_refetches(cart, fake_api):
    fake_api.route("PUT", "/api/cart", ok({"itemCount": 3, "subtotal": 6750}))
    fake_api.route(
        "GET", "/api/cart", ok(cart_payload([cart_line(quantity=3)], subtotal=6750))
    )

    await cart.update_quantity("line-1", 3)

    assert len(fake_api.calls("PUT", "/api/cart")) == 1
    assert cart.subtotal == 6750
    assert cart.items[0].quantity == 3


@pytest.mark.asyncio
@pytest.mark.unit
async def test_clear_sends_clear_flag(cart, fake_api):
    fake_api.route("DELETE", "/api/cart", ok({"itemCount": 0, "subtotal": 0}))
    fake_api.route("GET", "/api/cart", ok(cart_payload()))

    await cart.clear()

    assert fake_api.calls("DELETE", "/api/cart")[0].url.params["clear"] == "true"


@pytest.mark.asyncio
@pytest.mark.unit
async def test_failed_mutation_propagates(cart, fake_api):
    fake_api.route("POST", "/api/cart", fail(400, "Only 2 left in stock"))

    with pytest.raises(ApiError) as exc_info:
        await cart.add_item("prod-1", quantity=5)

    assert exc_info.value.message == "Only 2 left in stock"
    assert fake_api.calls("GET", "/api/cart") == []


# ---------------------------------------------------------------------------
# Merge on login
# ---------------------------------------------------------------------------


@pytest.mark.asyncio
@pytest.mark.unit
async def test_guest_to_login_merges_exactly_once(
    cart, auth, fake_api, cart_session_store
):
    """Guest cart, then login: one merge GET with both identities, id dropped."""
    await cart_session_store.set("guest-abc")
    fake_api.route("POST", "/api/auth/login", ok(LOGIN_DATA))
    fake_api.route(
        "GET",
        "/api/cart",
        ok(cart_payload([cart_line(quantity=2)], subtotal=4500)),
    )
    await cart.load()

    await auth.login("jane@shopmail.com", "hunter22")
    await cart.handle_identity_change(await auth.identity())

    gets = fake_api.calls("GET", "/api/cart")
    assert [_cart_headers(r) for r in gets] == [
        (None, "guest-abc"),
        ("access-1", "guest-abc"),
    ]
    assert cart.cart_session_id is None
    assert await cart_session_store.get() is None
    assert cart.subtotal == 4500

    await cart.refetch()
    assert _cart_headers(fake_api.calls("GET", "/api/cart")[-1]) == ("access-1", None)


@pytest.mark.asyncio
@pytest.mark.unit
async def test_concurrent_identity_events_merge_once(
    cart, fake_api, token_store, tokens, cart_session_store
):
    """A second login event while the merge is in flight does not merge again."""
    await cart_session_store.set("guest-abc")

    async def slow_cart(request):
        await asyncio.sleep(0.01)
        return ok(cart_payload([cart_line()], subtotal=4500))

    fake_api.route("GET", "/api/cart", slow_cart)
    await cart.load()
    await token_store.set(tokens)
    identity = AuthenticatedIdentity(
        access_token="access-1", user=User.model_validate(USER_PAYLOAD)
    )

    await asyncio.gather(
        cart.handle_identity_change(identity),
        cart.handle_identity_change(identity),
    )

    merges = [
        r
        for r in fake_api.calls("GET", "/api/cart")
        if _cart_headers(r) == ("access-1", "guest-abc")
    ]
    assert len(merges) == 1


@pytest.mark.asyncio
@pytest.mark.unit
async def test_failed_merge_keeps_guest_id_and_retry_succeeds(
    cart, auth, fake_api, cart_session_store
):
    await cart_session_store.set("guest-abc")
    fake_api.route("POST", "/api/auth/login", ok(LOGIN_DATA))
    fake_api.route(
        "GET",
        "/api/cart",
        ok(cart_payload([cart_line()], subtotal=4500)),
        fail(500, "Merge failed upstream"),
        ok(cart_payload([cart_line()], subtotal=4500)),
    )
    await cart.load()

    await auth.login("jane@shopmail.com", "hunter22")

    assert cart.error is not None
    assert cart.cart_session_id == "guest-abc"
    assert await cart_session_store.get() == "guest-abc"

    cart.clear_error()
    assert await cart.retry_merge() is True
    assert cart.cart_session_id is None
    assert await cart_session_store.get() is None
    assert cart.error is None


@pytest.mark.asyncio
@pytest.mark.unit
async def test_unreadable_merge_response_is_a_soft_failure(
    cart, auth, fake_api, token_store, cart_session_store
):
    """Login still succeeds and later listeners still hear about it."""
    await cart_session_store.set("guest-abc")
    fake_api.route("POST", "/api/auth/login", ok(LOGIN_DATA))
    fake_api.route(
        "GET",
        "/api/cart",
        ok(cart_payload([cart_line()], subtotal=4500)),
        ok({"items": [{"id": "l1"}]}),
    )
    await cart.load()
    notified = []

    async def record(identity):
        notified.append(identity)

    auth.subscribe(record)

    await auth.login("jane@shopmail.com", "hunter22")

    assert auth.status == AuthStatus.AUTHENTICATED
    assert (await token_store.get()).access_token == "access-1"
    assert len(notified) == 1
    assert cart.error is not None
    assert cart.cart_session_id == "guest-abc"
    assert await cart_session_store.get() == "guest-abc"


@pytest.mark.asyncio
@pytest.mark.unit
async def test_fetch_cart_reports_unexpected_shape_as_malformed(
    storefront_client, fake_api
):
    fake_api.route("GET", "/api/cart", ok({"items": [{"id": "l1"}]}))

    with pytest.raises(MalformedResponse) as exc_info:
        await fetch_cart(storefront_client, cart_session_id="guest-abc")

    assert exc_info.value.status_code == 200
    assert exc_info.value.response_data == {"items": [{"id": "l1"}]}


@pytest.mark.asyncio
@pytest.mark.unit
async def test_no_guest_id_means_no_merge(cart, auth, fake_api):
    fake_api.route("POST", "/api/auth/login", ok(LOGIN_DATA))

    await auth.login("jane@shopmail.com", "hunter22")

    assert fake_api.calls("GET", "/api/cart") == []
    assert not cart.merge_pending


# ---------------------------------------------------------------------------
# Logout
# ---------------------------------------------------------------------------


@pytest.mark.asyncio
@pytest.mark.unit
async def test_logout_clears_local_cart_without_server_call(
    cart, auth, fake_api, cart_session_store
):
    fake_api.route("POST", "/api/auth/login", ok(LOGIN_DATA))
    fake_api.route(
        "GET", "/api/cart", ok(cart_payload([cart_line()], subtotal=4500))
    )
    await auth.login("jane@shopmail.com", "hunter22")
    await cart.refetch()
    requests_before = len(fake_api.requests)

    await auth.logout()

    assert cart.items == []
    assert cart.subtotal == 0
    assert cart.cart_session_id is None
    assert await cart_session_store.get() is None
    assert len(fake_api.requests) == requests_before
