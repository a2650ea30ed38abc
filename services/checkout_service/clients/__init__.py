"""Checkout service API wrappers package."""

from services.checkout_service.clients import (
    addresses,
    coupons,
    orders,
    payments,
    shipping,
)

__all__ = ["addresses", "coupons", "orders", "payments", "shipping"]
