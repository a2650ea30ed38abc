"""Field validation for the shipping step gate."""

from pydantic import validate_email
from pydantic_core import PydanticCustomError
from services.checkout_service.schemas import Address

REQUIRED_ADDRESS_FIELDS = {
    "first_name": "First name is required",
    "last_name": "Last name is required",
    "address1": "Address is required",
    "city": "City is required",
    "state": "State is required",
    "zip_code": "ZIP code is required",
}

BILLING_PREFIX = "billing_"


def validate_address(address: Address, prefix: str = "") -> dict[str, str]:
    """Return ``{field: message}`` for every blank required field."""
    errors = {}
    for field, message in REQUIRED_ADDRESS_FIELDS.items():
        value = getattr(address, field)
        if not value or not value.strip():
            errors[prefix + field] = message
    return errors


def validate_guest_email(email: str) -> dict[str, str]:
    if not email or not email.strip():
        return {"guest_email": "Email is required"}
    try:
        validate_email(email.strip())
    except PydanticCustomError:
        return {"guest_email": "Invalid email address"}
    return {}


def validate_shipping_step(
    shipping_address: Address,
    billing_address: Address,
    *,
    billing_same_as_shipping: bool,
    is_authenticated: bool,
    guest_email: str = "",
) -> dict[str, str]:
    errors = {}
    if not is_authenticated:
        errors.update(validate_guest_email(guest_email))
    errors.update(validate_address(shipping_address))
    if not billing_same_as_shipping:
        errors.update(validate_address(billing_address, BILLING_PREFIX))
    return errors
