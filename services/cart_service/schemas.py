"""Pydantic schemas for cart API payloads. Money is integer cents."""

from typing import Optional

from pydantic import AliasChoices, BaseModel, ConfigDict, Field


class CartLine(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    id: str = Field(..., validation_alias=AliasChoices("_id", "id"))
    product_id: str = Field(..., alias="productId")
    variant_id: Optional[str] = Field(None, alias="variantId")
    name: str
    slug: Optional[str] = None
    image: Optional[str] = None
    unit_price: int = Field(..., alias="price")
    original_price: Optional[int] = Field(None, alias="originalPrice")
    quantity: int = Field(..., ge=0)
    max_quantity: int = Field(0, alias="maxQuantity")
    allow_backorder: bool = Field(False, alias="allowBackorder")
    variant_info: Optional[dict[str, str]] = Field(None, alias="variantInfo")
    line_total: int = Field(..., alias="lineTotal")


class CartResponse(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    items: list[CartLine] = []
    subtotal: int = 0
    item_count: int = Field(0, alias="itemCount")
    cart_id: Optional[str] = Field(None, alias="cartId")
    session_id: Optional[str] = Field(None, alias="sessionId")


class CartMutationResponse(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    item_count: int = Field(0, alias="itemCount")
    subtotal: int = 0
    session_id: Optional[str] = Field(None, alias="sessionId")
