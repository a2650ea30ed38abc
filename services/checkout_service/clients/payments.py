"""Payment intent creation for a reserved order."""

from typing import Optional

from libs.common.service_client import StorefrontClient, parse, read_envelope, unwrap
from services.checkout_service.schemas import PaymentIntent


async def create_payment_intent(
    client: StorefrontClient, order_id: str, access_token: Optional[str] = None
) -> PaymentIntent:
    response = await client.request(
        "/api/payments/create-intent",
        "POST",
        json={"orderId": order_id},
        access_token=access_token,
    )
    unwrap(response, "Failed to create payment intent", require_data=False)
    # Some deployments put clientSecret at the top level instead of under data
    body = read_envelope(response)
    data = body.get("data") or body
    return parse(
        PaymentIntent, data, response, "Payment intent response missing client secret"
    )
