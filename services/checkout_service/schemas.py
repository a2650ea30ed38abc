"""Pydantic schemas for checkout: addresses, shipping, coupons, orders, payments.

All money fields are integer cents.
"""

from typing import Literal, Optional

from pydantic import AliasChoices, BaseModel, ConfigDict, Field

# ============================================================================
# ADDRESS SCHEMAS
# ============================================================================


class Address(BaseModel):
    """A shipping or billing address as entered in checkout."""

    model_config = ConfigDict(populate_by_name=True, validate_assignment=True)

    first_name: str = Field("", alias="firstName")
    last_name: str = Field("", alias="lastName")
    company: str = ""
    address1: str = ""
    address2: str = ""
    city: str = ""
    state: str = ""
    zip_code: str = Field("", alias="zipCode")
    country: str = "US"
    phone: str = ""

    def to_payload(self) -> dict:
        return self.model_dump(by_alias=True)


class SavedAddress(Address):
    id: str = Field(..., validation_alias=AliasChoices("_id", "id"))
    label: Optional[str] = None
    is_default: bool = Field(False, alias="isDefault")

    def to_address(self) -> Address:
        return Address.model_validate(
            self.model_dump(include=set(Address.model_fields))
        )


class AddressCreate(Address):
    label: Optional[str] = None
    is_default: bool = Field(False, alias="isDefault")


# ============================================================================
# SHIPPING SCHEMAS
# ============================================================================


class ShippingMethod(BaseModel):
    model_config = ConfigDict(populate_by_name=True, frozen=True)

    method_id: str = Field(..., alias="methodId")
    label: str
    description: Optional[str] = None
    price: int = Field(..., ge=0)
    free_threshold: Optional[int] = Field(None, alias="freeThreshold")
    estimated_days: Optional[str] = Field(None, alias="estimatedDays")


class ShippingZone(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    zone_id: Optional[str] = Field(None, alias="zoneId")
    zone_name: Optional[str] = Field(None, alias="zoneName")
    methods: list[ShippingMethod] = []


# ============================================================================
# COUPON SCHEMAS
# ============================================================================


class ValidatedCoupon(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    code: str
    discount_type: Literal["percentage", "fixed"] = Field(
        "fixed", alias="discountType"
    )
    discount_value: float = Field(0, alias="discountValue")
    discount_amount: int = Field(..., ge=0, alias="discountAmount")
    description: Optional[str] = None


# ============================================================================
# ORDER SCHEMAS
# ============================================================================


class OrderCreate(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    shipping_address: Address = Field(..., alias="shippingAddress")
    billing_address: Optional[Address] = Field(None, alias="billingAddress")
    billing_same_as_shipping: bool = Field(True, alias="billingSameAsShipping")
    shipping_method: str = Field(..., alias="shippingMethod")
    customer_note: str = Field("", alias="customerNote")
    session_id: Optional[str] = Field(None, alias="sessionId")
    guest_email: Optional[str] = Field(None, alias="guestEmail")
    coupon_code: Optional[str] = Field(None, alias="couponCode")

    def to_payload(self) -> dict:
        payload = self.model_dump(by_alias=True, exclude_none=True)
        if self.billing_same_as_shipping:
            payload.pop("billingAddress", None)
        return payload


class OrderCreated(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    order_id: str = Field(..., alias="orderId")
    order_number: str = Field(..., alias="orderNumber")
    tracking_code: Optional[str] = Field(None, alias="trackingCode")
    total: int
    status: str


class OrderLine(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    product_id: str = Field(..., alias="productId")
    variant_id: Optional[str] = Field(None, alias="variantId")
    name: str
    sku: Optional[str] = None
    price: int
    quantity: int
    line_total: int = Field(..., alias="lineTotal")


class Order(BaseModel):
    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    id: str = Field(..., validation_alias=AliasChoices("_id", "id"))
    order_number: str = Field(..., alias="orderNumber")
    tracking_code: Optional[str] = Field(None, alias="trackingCode")
    guest_email: Optional[str] = Field(None, alias="guestEmail")
    items: list[OrderLine] = []
    shipping_address: Optional[Address] = Field(None, alias="shippingAddress")
    subtotal: int = 0
    shipping_cost: int = Field(0, alias="shippingCost")
    tax_amount: int = Field(0, alias="taxAmount")
    discount: int = 0
    total: int = 0
    shipping_method: Optional[str] = Field(None, alias="shippingMethod")
    status: str
    payment_status: Optional[str] = Field(None, alias="paymentStatus")


class Pagination(BaseModel):
    page: int = 1
    limit: int = 10
    total: int = 0
    pages: int = 0


class OrderPage(BaseModel):
    data: list[Order] = []
    pagination: Pagination = Pagination()


# ============================================================================
# PAYMENT SCHEMAS
# ============================================================================


class PaymentIntent(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    client_secret: str = Field(..., alias="clientSecret")
    payment_intent_id: str = Field(
        ..., validation_alias=AliasChoices("id", "paymentIntentId")
    )


class PlacementResult(BaseModel):
    order: OrderCreated
    payment_intent: PaymentIntent
