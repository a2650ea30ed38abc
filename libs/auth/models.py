from dataclasses import dataclass
from typing import Optional, Union

from pydantic import AliasChoices, BaseModel, ConfigDict, EmailStr, Field


class TokenPair(BaseModel):
    """
    Access/refresh bearer credentials issued by login and every refresh.
    Both fields are required, so a partial pair can never be stored.
    """

    model_config = ConfigDict(populate_by_name=True, frozen=True)

    access_token: str = Field(..., min_length=1, alias="accessToken")
    refresh_token: str = Field(..., min_length=1, alias="refreshToken")
    expires_in: Optional[int] = Field(None, alias="expiresIn")


class User(BaseModel):
    """
    Represents the signed-in shopper as returned by the auth endpoints.
    """

    model_config = ConfigDict(populate_by_name=True)

    id: str = Field(..., validation_alias=AliasChoices("id", "_id"))
    email: EmailStr
    name: str = ""
    role: str = "customer"
    status: Optional[str] = None
    phone: Optional[str] = None
    avatar: Optional[str] = None
    last_login: Optional[str] = Field(None, alias="lastLogin")


@dataclass(frozen=True)
class AnonymousIdentity:
    cart_session_id: Optional[str] = None
    wishlist_session_id: Optional[str] = None

    @property
    def is_authenticated(self) -> bool:
        return False


@dataclass(frozen=True)
class AuthenticatedIdentity:
    access_token: str
    user: User

    @property
    def is_authenticated(self) -> bool:
        return True


Identity = Union[AnonymousIdentity, AuthenticatedIdentity]
