"""Pydantic schemas for wishlist API payloads."""

from typing import Literal, Optional

from pydantic import AliasChoices, BaseModel, ConfigDict, Field


class ProductImage(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    url: str
    alt: Optional[str] = None
    is_primary: bool = Field(False, alias="isPrimary")


class WishlistProduct(BaseModel):
    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    id: str = Field(..., validation_alias=AliasChoices("_id", "id"))
    name: str
    slug: str = ""
    base_price: int = Field(0, alias="basePrice")
    sale_price: Optional[int] = Field(None, alias="salePrice")
    status: Optional[str] = None
    images: list[ProductImage] = []
    average_rating: Optional[float] = Field(None, alias="averageRating")
    review_count: Optional[int] = Field(None, alias="reviewCount")


class WishlistResponse(BaseModel):
    products: list[WishlistProduct] = []
    session_id: Optional[str] = None


class WishlistToggleResponse(BaseModel):
    action: Literal["added", "removed"] = "added"
    count: int = 0
    session_id: Optional[str] = None
