"""Coupon validation against the current cart subtotal."""

from typing import Optional

from libs.common.service_client import StorefrontClient, parse, unwrap
from services.checkout_service.schemas import ValidatedCoupon


async def validate_coupon(
    client: StorefrontClient,
    code: str,
    subtotal: int,
    access_token: Optional[str] = None,
) -> ValidatedCoupon:
    response = await client.request(
        "/api/coupons/validate",
        "POST",
        json={"code": code.strip(), "subtotal": subtotal},
        access_token=access_token,
    )
    data = unwrap(response, "Invalid coupon")
    return parse(ValidatedCoupon, data, response)
