"""Saved address book wrappers (authenticated only)."""

from libs.common.service_client import StorefrontClient, parse, unwrap
from services.checkout_service.schemas import AddressCreate, SavedAddress

ADDRESSES_PATH = "/api/addresses"


async def fetch_addresses(
    client: StorefrontClient, access_token: str
) -> list[SavedAddress]:
    response = await client.request(ADDRESSES_PATH, access_token=access_token)
    data = unwrap(response, "Failed to fetch addresses", require_data=False) or []
    return [parse(SavedAddress, a, response) for a in data]


async def create_address(
    client: StorefrontClient, body: AddressCreate, access_token: str
) -> SavedAddress:
    response = await client.request(
        ADDRESSES_PATH,
        "POST",
        json=body.model_dump(by_alias=True, exclude_none=True),
        access_token=access_token,
    )
    data = unwrap(response, "Failed to create address")
    return parse(SavedAddress, data, response)


async def update_address(
    client: StorefrontClient, address_id: str, changes: dict, access_token: str
) -> SavedAddress:
    response = await client.request(
        ADDRESSES_PATH,
        "PUT",
        json={"addressId": address_id, **changes},
        access_token=access_token,
    )
    data = unwrap(response, "Failed to update address")
    return parse(SavedAddress, data, response)


async def delete_address(
    client: StorefrontClient, address_id: str, access_token: str
) -> None:
    response = await client.request(
        ADDRESSES_PATH,
        "DELETE",
        params={"id": address_id},
        access_token=access_token,
    )
    unwrap(response, "Failed to delete address", require_data=False)
