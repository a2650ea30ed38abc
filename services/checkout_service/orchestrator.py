"""Checkout state machine.

SHIPPING -> DELIVERY -> PAYMENT -> PLACED, with back transitions to any
earlier step before placement. Placement is two-phase: create the order,
then create a payment intent for it. Once an order exists it is never
created again; a failed intent routes to the order-status recovery view.
"""

from __future__ import annotations

import asyncio
import enum
from dataclasses import dataclass, field
from typing import Optional, Protocol

from libs.auth.session import AuthSessionManager
from libs.common.config import get_settings
from libs.common.errors import (
    CheckoutStateError,
    MalformedResponse,
    PaymentDeclined,
    PlacementPartial,
    StorefrontError,
    ValidationFailed,
)
from libs.common.logging import get_logger
from libs.common.service_client import StorefrontClient
from services.cart_service.reconciler import CartReconciler
from services.checkout_service.clients import (
    addresses as addresses_api,
    coupons as coupons_api,
    orders as orders_api,
    payments as payments_api,
    shipping as shipping_api,
)
from services.checkout_service.pricing import (
    DEFAULT_SHIPPING_METHOD,
    FALLBACK_SHIPPING_METHODS,
    PriceBreakdown,
    compute_prices,
    find_method,
)
from services.checkout_service.schemas import (
    Address,
    AddressCreate,
    OrderCreate,
    OrderCreated,
    PaymentIntent,
    PlacementResult,
    SavedAddress,
    ShippingMethod,
    ValidatedCoupon,
)
from services.checkout_service.validation import validate_shipping_step

logger = get_logger(__name__)

REVALIDATE_ON_CHANGE = "revalidate_on_change"


class CheckoutStep(int, enum.Enum):
    SHIPPING = 0
    DELIVERY = 1
    PAYMENT = 2
    PLACED = 3


@dataclass
class PaymentOutcome:
    succeeded: bool
    error_message: Optional[str] = None


class PaymentCollector(Protocol):
    """Presents the payment UI for a client secret (e.g. a Stripe sheet)."""

    async def collect(self, client_secret: str) -> PaymentOutcome: ...


@dataclass
class CheckoutState:
    step: CheckoutStep = CheckoutStep.SHIPPING
    shipping_address: Address = field(default_factory=Address)
    billing_address: Address = field(default_factory=Address)
    billing_same_as_shipping: bool = True
    save_address: bool = False
    guest_email: str = ""
    saved_addresses: list[SavedAddress] = field(default_factory=list)
    shipping_method: str = DEFAULT_SHIPPING_METHOD
    available_methods: list[ShippingMethod] = field(
        default_factory=lambda: list(FALLBACK_SHIPPING_METHODS)
    )
    loading_methods: bool = False
    zone_name: Optional[str] = None
    customer_note: str = ""
    applied_coupon: Optional[ValidatedCoupon] = None
    coupon_subtotal: Optional[int] = None
    coupon_error: Optional[str] = None
    errors: dict[str, str] = field(default_factory=dict)
    placing_order: bool = False
    order: Optional[OrderCreated] = None
    order_unconfirmed: bool = False
    payment_intent: Optional[PaymentIntent] = None
    recovery_order_number: Optional[str] = None


class CheckoutOrchestrator:
    """Drives one checkout attempt. Discard it on navigation away."""

    def __init__(
        self,
        client: StorefrontClient,
        auth: AuthSessionManager,
        cart: CartReconciler,
        payment_collector: PaymentCollector,
        *,
        tax_rate: Optional[float] = None,
        coupon_policy: Optional[str] = None,
    ):
        settings = get_settings()
        self.client = client
        self.auth = auth
        self.cart = cart
        self.payment_collector = payment_collector
        self.tax_rate = tax_rate if tax_rate is not None else settings.TAX_RATE
        self.coupon_policy = coupon_policy or settings.COUPON_POLICY
        self.state = CheckoutState(
            shipping_address=Address(country=settings.DEFAULT_COUNTRY),
            billing_address=Address(country=settings.DEFAULT_COUNTRY),
        )
        self._lookup_task: Optional[asyncio.Task] = None
        self._lookup_generation = 0

    # ------------------------------------------------------------------
    # Entry / exit
    # ------------------------------------------------------------------

    async def start(self) -> None:
        """Prefill from the default saved address, then resolve shipping."""
        if self.auth.is_authenticated:
            await self._prefetch_addresses()
        self._schedule_method_lookup()

    async def aclose(self) -> None:
        if self._lookup_task is not None and not self._lookup_task.done():
            self._lookup_task.cancel()
            try:
                await self._lookup_task
            except asyncio.CancelledError:
                pass
        self._lookup_task = None

    async def _prefetch_addresses(self) -> None:
        access_token = await self.auth.access_token()
        if not access_token:
            return
        try:
            saved = await addresses_api.fetch_addresses(self.client, access_token)
        except StorefrontError as exc:
            logger.info("Saved addresses unavailable: %s", exc.message)
            return
        self.state.saved_addresses = saved
        default = next((a for a in saved if a.is_default), None)
        if default is not None:
            self.state.shipping_address = default.to_address()

    # ------------------------------------------------------------------
    # Form input
    # ------------------------------------------------------------------

    def select_saved_address(self, address: SavedAddress) -> None:
        self.update_shipping_address(**address.to_address().model_dump())

    def update_shipping_address(self, **changes) -> None:
        current = self.state.shipping_address
        updated = current.model_copy(update=changes)
        self.state.shipping_address = Address.model_validate(updated.model_dump())
        for name in changes:
            self.state.errors.pop(name, None)
        if updated.country != current.country or updated.state != current.state:
            self._schedule_method_lookup()

    def update_billing_address(self, **changes) -> None:
        updated = self.state.billing_address.model_copy(update=changes)
        self.state.billing_address = Address.model_validate(updated.model_dump())
        for name in changes:
            self.state.errors.pop(f"billing_{name}", None)

    def set_billing_same_as_shipping(self, same: bool) -> None:
        self.state.billing_same_as_shipping = same

    def set_save_address(self, save: bool) -> None:
        self.state.save_address = save

    def set_guest_email(self, email: str) -> None:
        self.state.guest_email = email
        self.state.errors.pop("guest_email", None)

    def set_customer_note(self, note: str) -> None:
        self.state.customer_note = note

    # ------------------------------------------------------------------
    # Steps
    # ------------------------------------------------------------------

    def advance(self) -> CheckoutStep:
        """Move one step forward through the step gate.

        Raises:
            ValidationFailed with per-field messages when the gate fails.
        """
        step = self.state.step
        if step == CheckoutStep.SHIPPING:
            errors = validate_shipping_step(
                self.state.shipping_address,
                self.state.billing_address,
                billing_same_as_shipping=self.state.billing_same_as_shipping,
                is_authenticated=self.auth.is_authenticated,
                guest_email=self.state.guest_email,
            )
            self.state.errors = errors
            if errors:
                raise ValidationFailed(errors, "Please complete the required fields")
        elif step == CheckoutStep.DELIVERY:
            if find_method(self.state.available_methods, self.state.shipping_method) is None:
                errors = {"shipping_method": "Choose a shipping method"}
                self.state.errors = errors
                raise ValidationFailed(errors, "Please choose a shipping method")
        else:
            raise CheckoutStateError(f"Cannot advance from {step.name.lower()}")

        self.state.step = CheckoutStep(step + 1)
        return self.state.step

    def go_back(self, to: Optional[CheckoutStep] = None) -> CheckoutStep:
        step = self.state.step
        if step in (CheckoutStep.SHIPPING, CheckoutStep.PLACED):
            raise CheckoutStateError(f"Cannot go back from {step.name.lower()}")
        target = CheckoutStep(step - 1) if to is None else to
        if target >= step:
            raise CheckoutStateError("Can only go back to an earlier step")
        self.state.step = target
        return target

    # ------------------------------------------------------------------
    # Shipping methods
    # ------------------------------------------------------------------

    def select_shipping_method(self, method_id: str) -> None:
        if find_method(self.state.available_methods, method_id) is None:
            raise ValidationFailed(
                {"shipping_method": f"Shipping method {method_id} is not available"}
            )
        self.state.shipping_method = method_id
        self.state.errors.pop("shipping_method", None)

    async def wait_for_shipping_methods(self) -> None:
        """Block until the lookup for the current address has settled."""
        while self._lookup_task is not None and not self._lookup_task.done():
            await asyncio.wait({self._lookup_task})

    def _schedule_method_lookup(self) -> None:
        address = self.state.shipping_address
        country = address.country or get_settings().DEFAULT_COUNTRY

        # Supersede any slower in-flight lookup for an older address
        if self._lookup_task is not None and not self._lookup_task.done():
            self._lookup_task.cancel()

        self._lookup_generation += 1
        self.state.loading_methods = True
        self._lookup_task = asyncio.create_task(
            self._lookup_methods(self._lookup_generation, country, address.state)
        )

    async def _lookup_methods(self, generation: int, country: str, state: str) -> None:
        try:
            zone = await shipping_api.fetch_shipping_zone(self.client, country, state)
        except StorefrontError as exc:
            if generation != self._lookup_generation:
                return
            logger.info("Shipping lookup failed for %s/%s: %s", country, state, exc.message)
            self._set_methods(list(FALLBACK_SHIPPING_METHODS), None)
        else:
            if generation != self._lookup_generation:
                return
            if zone is not None and zone.methods:
                self._set_methods(list(zone.methods), zone.zone_name)
            else:
                self._set_methods(list(FALLBACK_SHIPPING_METHODS), None)
        finally:
            if generation == self._lookup_generation:
                self.state.loading_methods = False

    def _set_methods(self, methods: list[ShippingMethod], zone_name: Optional[str]) -> None:
        self.state.available_methods = methods
        self.state.zone_name = zone_name
        if find_method(methods, self.state.shipping_method) is None:
            self.state.shipping_method = methods[0].method_id

    # ------------------------------------------------------------------
    # Pricing and coupons
    # ------------------------------------------------------------------

    @property
    def prices(self) -> PriceBreakdown:
        return compute_prices(
            self.cart.subtotal,
            self.state.available_methods,
            self.state.shipping_method,
            self.tax_rate,
            self.state.applied_coupon,
        )

    @property
    def coupon_is_stale(self) -> bool:
        return (
            self.state.applied_coupon is not None
            and self.state.coupon_subtotal != self.cart.subtotal
        )

    async def apply_coupon(self, code: str) -> Optional[ValidatedCoupon]:
        """Validate a code against the current subtotal; replaces any applied coupon."""
        code = code.strip()
        if not code:
            return None
        self.state.coupon_error = None
        subtotal = self.cart.subtotal
        try:
            coupon = await coupons_api.validate_coupon(
                self.client, code, subtotal, await self.auth.access_token()
            )
        except StorefrontError as exc:
            self.state.applied_coupon = None
            self.state.coupon_subtotal = None
            self.state.coupon_error = exc.message
            raise
        self.state.applied_coupon = coupon
        self.state.coupon_subtotal = subtotal
        return coupon

    def remove_coupon(self) -> None:
        """Local only; coupons are not consumed until placement."""
        self.state.applied_coupon = None
        self.state.coupon_subtotal = None
        self.state.coupon_error = None

    async def revalidate_coupon(self) -> Optional[ValidatedCoupon]:
        """Re-check a coupon whose subtotal changed, when the policy asks for it.

        Under ``trust_until_placement`` the applied coupon is kept as is and
        the order endpoint has the final word.
        """
        if self.coupon_policy != REVALIDATE_ON_CHANGE or not self.coupon_is_stale:
            return self.state.applied_coupon
        code = self.state.applied_coupon.code
        try:
            return await self.apply_coupon(code)
        except StorefrontError:
            logger.info("Coupon %s no longer valid for subtotal %s", code, self.cart.subtotal)
            return None

    # ------------------------------------------------------------------
    # Placement
    # ------------------------------------------------------------------

    async def place_order(self) -> PlacementResult:
        """Create the order, then its payment intent.

        Raises:
            CheckoutStateError outside the payment step, or when an order was
                already created for this checkout.
            ValidationFailed when a revalidated coupon no longer applies; the
                shopper should confirm the new total before placing again.
            PlacementPartial when the order exists but the intent failed, or
                when the order response could not be read; the caller should
                route to the order-status view for ``exc.order_number`` or to
                the order history when it is None.
        """
        if self.state.step != CheckoutStep.PAYMENT:
            raise CheckoutStateError("Orders can only be placed from the payment step")
        if self.state.order is not None:
            raise CheckoutStateError(
                f"Order {self.state.order.order_number} was already created"
            )
        if self.state.order_unconfirmed:
            raise CheckoutStateError(
                "An order may already exist for this checkout. Check your orders."
            )

        access_token = await self.auth.access_token()
        self.state.placing_order = True
        self.state.errors = {}
        try:
            if access_token and self.auth.is_authenticated and self.state.save_address:
                await self._save_shipping_address(access_token)

            had_coupon = self.state.applied_coupon is not None
            if await self.revalidate_coupon() is None and had_coupon:
                errors = {"coupon": self.state.coupon_error or "Coupon no longer applies"}
                self.state.errors = errors
                raise ValidationFailed(errors, "Your coupon no longer applies to this cart")

            try:
                order = await orders_api.create_order(
                    self.client,
                    self._order_payload(),
                    access_token=access_token,
                    cart_session_id=self.cart.cart_session_id,
                )
            except MalformedResponse as exc:
                # The server accepted the order; only its reply was unreadable
                order_number = exc.response_data.get("orderNumber")
                self.state.order_unconfirmed = True
                self.state.recovery_order_number = order_number
                logger.warning(
                    "Order accepted but response unreadable: %s",
                    exc.message,
                    extra={"order_number": order_number, "status_code": exc.status_code},
                )
                raise PlacementPartial(
                    "Your order was received, but we could not confirm it. "
                    "Please check your account orders."
                ) from exc
            self.state.order = order
            logger.info(
                "Order %s created, requesting payment intent",
                order.order_number,
                extra={"order_number": order.order_number},
            )

            try:
                intent = await payments_api.create_payment_intent(
                    self.client, order.order_id, access_token
                )
            except StorefrontError as exc:
                logger.warning(
                    "Payment intent failed for order %s: %s",
                    order.order_number,
                    exc.message,
                    extra={
                        "order_number": order.order_number,
                        "status_code": exc.status_code,
                    },
                )
                self.state.recovery_order_number = order.order_number
                raise PlacementPartial(
                    "Order created, but payment failed to initialize. "
                    "Please check your account orders.",
                    order=order,
                ) from exc

            self.state.payment_intent = intent
            return PlacementResult(order=order, payment_intent=intent)
        finally:
            self.state.placing_order = False

    async def submit_payment(self) -> OrderCreated:
        """Collect payment against the current intent; retry-safe on decline.

        Raises:
            CheckoutStateError outside the payment step.
            PaymentDeclined when collection fails; the step stays PAYMENT.
        """
        if self.state.step != CheckoutStep.PAYMENT:
            raise CheckoutStateError("Payment can only be collected from the payment step")
        intent = self.state.payment_intent
        if intent is None or self.state.order is None:
            raise CheckoutStateError("No payment intent to pay")

        outcome = await self.payment_collector.collect(intent.client_secret)
        if not outcome.succeeded:
            raise PaymentDeclined(outcome.error_message or "Payment failed. Please try again.")

        await self.cart.refetch()
        self.state.step = CheckoutStep.PLACED
        return self.state.order

    def _order_payload(self) -> OrderCreate:
        state = self.state
        guest_email = None if self.auth.is_authenticated else state.guest_email.strip()
        coupon_code = state.applied_coupon.code.strip() if state.applied_coupon else None
        return OrderCreate(
            shipping_address=state.shipping_address,
            billing_address=None if state.billing_same_as_shipping else state.billing_address,
            billing_same_as_shipping=state.billing_same_as_shipping,
            shipping_method=state.shipping_method,
            customer_note=state.customer_note.strip(),
            session_id=self.cart.cart_session_id,
            guest_email=guest_email or None,
            coupon_code=coupon_code or None,
        )

    async def _save_shipping_address(self, access_token: str) -> None:
        body = AddressCreate.model_validate(
            {**self.state.shipping_address.model_dump(), "label": "Shipping"}
        )
        try:
            await addresses_api.create_address(self.client, body, access_token)
        except StorefrontError as exc:
            logger.info("Could not save checkout address: %s", exc.message)
