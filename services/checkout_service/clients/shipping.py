"""Public shipping-zone lookup by country/state."""

from typing import Optional

from libs.common.service_client import StorefrontClient, parse, unwrap
from services.checkout_service.schemas import ShippingZone

SHIPPING_ZONES_PATH = "/api/shipping-zones"


async def fetch_shipping_zone(
    client: StorefrontClient, country: str, state: Optional[str] = None
) -> Optional[ShippingZone]:
    """Return the zone serving the address, or None when no zone matches."""
    params = {"country": country.upper()}
    if state and state.strip():
        params["state"] = state.strip().upper()

    response = await client.send(SHIPPING_ZONES_PATH, params=params)
    data = unwrap(response, "Failed to fetch shipping methods", require_data=False)
    if not data:
        return None
    return parse(ShippingZone, data, response, "Unexpected shipping zone response")
