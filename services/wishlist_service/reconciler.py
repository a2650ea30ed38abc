"""Wishlist state: same guest/merge/clear lifecycle as the cart."""

from typing import Optional

from libs.common.reconciler import SessionResourceReconciler
from services.wishlist_service import client as wishlist_api
from services.wishlist_service.schemas import (
    WishlistProduct,
    WishlistResponse,
    WishlistToggleResponse,
)


class WishlistReconciler(SessionResourceReconciler):
    resource_name = "wishlist"

    def __init__(self, client, token_store, session_store):
        super().__init__(client, token_store, session_store)
        self.products: list[WishlistProduct] = []

    @property
    def wishlist_session_id(self) -> Optional[str]:
        return self.session_id

    @property
    def count(self) -> int:
        return len(self.products)

    def contains(self, product_id: str) -> bool:
        return any(p.id == product_id for p in self.products)

    async def _fetch(
        self, access_token: Optional[str], session_id: Optional[str]
    ) -> WishlistResponse:
        return await wishlist_api.fetch_wishlist(
            self.client, access_token=access_token, wishlist_session_id=session_id
        )

    def _apply(self, data: WishlistResponse) -> None:
        self.products = list(data.products)

    def _reset(self) -> None:
        self.products = []

    async def toggle(self, product_id: str) -> WishlistToggleResponse:
        access_token, session_id = await self._identity_args()
        result = await wishlist_api.toggle_wishlist(
            self.client,
            product_id,
            access_token=access_token,
            wishlist_session_id=session_id,
        )
        await self._adopt_session_id(result.session_id)
        await self.refetch()
        return result
