"""Checkout price estimate: shipping, tax, discount and total.

These are display numbers. The order endpoint computes the charged total.
"""

from dataclasses import dataclass
from typing import Optional, Sequence

from libs.common.currency import apply_rate, format_price
from services.checkout_service.schemas import ShippingMethod, ValidatedCoupon

# Used when no zone matches or the lookup fails
FALLBACK_SHIPPING_METHODS: tuple[ShippingMethod, ...] = (
    ShippingMethod(
        method_id="standard",
        label="Standard Shipping",
        description="5-7 business days",
        price=499,
        free_threshold=5000,
        estimated_days="5-7 business days",
    ),
    ShippingMethod(
        method_id="express",
        label="Express Shipping",
        description="2-3 business days",
        price=999,
        free_threshold=None,
        estimated_days="2-3 business days",
    ),
    ShippingMethod(
        method_id="overnight",
        label="Overnight Shipping",
        description="Next business day",
        price=1999,
        free_threshold=None,
        estimated_days="Next business day",
    ),
)

DEFAULT_SHIPPING_METHOD = "standard"
DEFAULT_SHIPPING_PRICE = 499


@dataclass(frozen=True)
class PriceBreakdown:
    subtotal: int
    shipping_cost: int
    tax: int
    discount: int
    total: int

    def formatted(self) -> dict[str, str]:
        return {
            "subtotal": format_price(self.subtotal),
            "shipping": "FREE" if self.shipping_cost == 0 else format_price(self.shipping_cost),
            "tax": format_price(self.tax),
            "discount": format_price(-self.discount),
            "total": format_price(self.total),
        }


def find_method(
    methods: Sequence[ShippingMethod], method_id: str
) -> Optional[ShippingMethod]:
    return next((m for m in methods if m.method_id == method_id), None)


def shipping_cost(
    methods: Sequence[ShippingMethod], method_id: str, subtotal: int
) -> int:
    """Free when the method's threshold is met, else its listed price."""
    method = find_method(methods, method_id)
    if method is None:
        return methods[0].price if methods else DEFAULT_SHIPPING_PRICE
    # A zero threshold means "no free shipping", same as None
    if method.free_threshold and subtotal >= method.free_threshold:
        return 0
    return method.price


def estimate_tax(subtotal: int, rate: float) -> int:
    return apply_rate(subtotal, rate)


def coupon_discount(coupon: Optional[ValidatedCoupon]) -> int:
    return coupon.discount_amount if coupon is not None else 0


def order_total(subtotal: int, shipping: int, tax: int, discount: int) -> int:
    """Never negative, however large the coupon."""
    return max(0, subtotal + shipping + tax - discount)


def compute_prices(
    subtotal: int,
    methods: Sequence[ShippingMethod],
    method_id: str,
    tax_rate: float,
    coupon: Optional[ValidatedCoupon] = None,
) -> PriceBreakdown:
    shipping = shipping_cost(methods, method_id, subtotal)
    tax = estimate_tax(subtotal, tax_rate)
    discount = coupon_discount(coupon)
    return PriceBreakdown(
        subtotal=subtotal,
        shipping_cost=shipping,
        tax=tax,
        discount=discount,
        total=order_total(subtotal, shipping, tax, discount),
    )
