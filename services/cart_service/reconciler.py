"""Cart state: guest identity, merge-on-login, and server-refetched mutations."""

from typing import Optional

from libs.common.reconciler import SessionResourceReconciler
from services.cart_service import client as cart_api
from services.cart_service.schemas import CartLine, CartResponse


class CartReconciler(SessionResourceReconciler):
    resource_name = "cart"

    def __init__(self, client, token_store, session_store):
        super().__init__(client, token_store, session_store)
        self.items: list[CartLine] = []
        self.subtotal = 0
        self.item_count = 0

    @property
    def cart_session_id(self) -> Optional[str]:
        return self.session_id

    async def _fetch(
        self, access_token: Optional[str], session_id: Optional[str]
    ) -> CartResponse:
        return await cart_api.fetch_cart(
            self.client, access_token=access_token, cart_session_id=session_id
        )

    def _apply(self, data: CartResponse) -> None:
        self.items = list(data.items)
        self.subtotal = data.subtotal
        self.item_count = data.item_count

    def _reset(self) -> None:
        self.items = []
        self.subtotal = 0
        self.item_count = 0

    # ------------------------------------------------------------------
    # Mutations
    # ------------------------------------------------------------------

    async def add_item(
        self, product_id: str, variant_id: Optional[str] = None, quantity: int = 1
    ) -> None:
        access_token, session_id = await self._identity_args()
        result = await cart_api.add_to_cart(
            self.client,
            product_id,
            variant_id=variant_id,
            quantity=quantity,
            access_token=access_token,
            cart_session_id=session_id,
        )
        await self._adopt_session_id(result.session_id)
        await self.refetch()

    async def update_quantity(self, item_id: str, quantity: int) -> None:
        """Set a line's quantity; zero or below removes the line."""
        access_token, session_id = await self._identity_args()
        if quantity <= 0:
            await cart_api.remove_cart_item(
                self.client,
                item_id,
                access_token=access_token,
                cart_session_id=session_id,
            )
        else:
            await cart_api.update_cart_item(
                self.client,
                item_id,
                quantity,
                access_token=access_token,
                cart_session_id=session_id,
            )
        await self.refetch()

    async def remove_item(self, item_id: str) -> None:
        access_token, session_id = await self._identity_args()
        await cart_api.remove_cart_item(
            self.client, item_id, access_token=access_token, cart_session_id=session_id
        )
        await self.refetch()

    async def clear(self) -> None:
        access_token, session_id = await self._identity_args()
        await cart_api.clear_cart(
            self.client, access_token=access_token, cart_session_id=session_id
        )
        await self.refetch()
