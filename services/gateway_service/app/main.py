"""Composition root for the storefront client.

Wires the stores, the request pipeline, the auth session and the cart and
wishlist reconcilers together so identity transitions reach both resources.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Optional

import httpx
from libs.auth.session import AuthSessionManager
from libs.auth.storage import SessionIdStore, TokenStore, build_stores
from libs.common.logging import configure_logging, get_logger
from libs.common.service_client import StorefrontClient
from services.cart_service.reconciler import CartReconciler
from services.checkout_service.orchestrator import (
    CheckoutOrchestrator,
    PaymentCollector,
)
from services.wishlist_service.reconciler import WishlistReconciler

logger = get_logger(__name__)


@dataclass
class Storefront:
    client: StorefrontClient
    auth: AuthSessionManager
    cart: CartReconciler
    wishlist: WishlistReconciler

    async def startup(self) -> None:
        """Restore the session, then load both resources for that identity."""
        await self.auth.restore()
        # A pending guest merge runs on the first fetch
        await self.cart.load()
        await self.wishlist.load()
        logger.info(
            "Storefront ready (%s, %d cart items, %d saved)",
            self.auth.status.value,
            self.cart.item_count,
            self.wishlist.count,
        )

    def checkout(self, payment_collector: PaymentCollector) -> CheckoutOrchestrator:
        """Start a fresh checkout attempt against the live cart."""
        return CheckoutOrchestrator(self.client, self.auth, self.cart, payment_collector)


def create_storefront(
    *,
    stores: Optional[tuple[TokenStore, SessionIdStore, SessionIdStore]] = None,
    transport: Optional[httpx.AsyncBaseTransport] = None,
    base_url: Optional[str] = None,
) -> Storefront:
    """Create and wire the storefront client instance."""
    configure_logging()

    token_store, cart_store, wishlist_store = stores or build_stores()
    client = StorefrontClient(token_store, base_url=base_url, transport=transport)
    auth = AuthSessionManager(client, token_store)
    cart = CartReconciler(client, token_store, cart_store)
    wishlist = WishlistReconciler(client, token_store, wishlist_store)

    auth.subscribe(cart.handle_identity_change)
    auth.subscribe(wishlist.handle_identity_change)

    return Storefront(client=client, auth=auth, cart=cart, wishlist=wishlist)
