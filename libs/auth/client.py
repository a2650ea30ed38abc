"""
Auth API wrappers: login, signup, session check, profile and passwords.

Login and check go through ``StorefrontClient.send`` (no refresh-and-retry);
session restore handles its own 401 recovery.
"""

from dataclasses import dataclass
from typing import Optional

import httpx
from libs.auth.models import TokenPair, User
from libs.common.errors import (
    ApiError,
    MalformedResponse,
    SignupLoginFailed,
    StorefrontError,
)
from libs.common.service_client import StorefrontClient, parse, read_envelope, unwrap


@dataclass
class LoginResult:
    tokens: TokenPair
    user: User


def _parse_user(data: dict, response: httpx.Response) -> User:
    return parse(User, data, response, "Response missing user profile")


async def login(client: StorefrontClient, email: str, password: str) -> LoginResult:
    """Login with email and password.

    Raises:
        ApiError on bad credentials.
        MalformedResponse when either token is missing.
    """
    response = await client.send(
        "/api/auth/login", "POST", json={"email": email, "password": password}
    )
    data = unwrap(response, "Login failed")
    if not data.get("accessToken") or not data.get("refreshToken"):
        raise MalformedResponse(
            "Login response missing tokens", status_code=response.status_code
        )
    return LoginResult(
        tokens=parse(TokenPair, data, response, "Login response missing tokens"),
        user=_parse_user(data.get("user") or {}, response),
    )


async def signup(
    client: StorefrontClient, name: str, email: str, password: str
) -> LoginResult:
    """Create an account, then log in with it.

    Signup does not return tokens for this client type, so a session is only
    obtained through the follow-up login.

    Raises:
        ApiError when signup itself is rejected (e.g. email taken).
        SignupLoginFailed when the account exists but login failed.
    """
    response = await client.send(
        "/api/auth/signup",
        "POST",
        json={"name": name, "email": email, "password": password},
    )
    unwrap(response, "Signup failed", require_data=False)

    try:
        return await login(client, email, password)
    except StorefrontError as exc:
        raise SignupLoginFailed(
            f"Account created, but signing in failed: {exc.message}",
            status_code=exc.status_code,
            response_data=exc.response_data,
        ) from exc


async def check(client: StorefrontClient, access_token: str) -> User:
    """Verify a session and return its user.

    Raises:
        ApiError with status_code 401 when the token is not accepted.
    """
    response = await client.send("/api/auth/check", access_token=access_token)
    data = unwrap(response, "Session check failed")
    if not data.get("authenticated") or not data.get("user"):
        raise ApiError("Not authenticated", status_code=401, response_data=data)
    return _parse_user(data["user"], response)


async def update_profile(
    client: StorefrontClient,
    access_token: str,
    *,
    name: str,
    phone: Optional[str] = None,
    bio: Optional[str] = None,
) -> User:
    payload = {"name": name}
    if phone is not None:
        payload["phone"] = phone
    if bio is not None:
        payload["bio"] = bio

    response = await client.request(
        "/api/auth/profile", "PUT", json=payload, access_token=access_token
    )
    data = unwrap(response, "Profile update failed")
    return _parse_user(data.get("user") or {}, response)


async def change_password(
    client: StorefrontClient,
    access_token: str,
    *,
    current_password: str,
    new_password: str,
) -> str:
    response = await client.request(
        "/api/auth/change-password",
        "PUT",
        json={"currentPassword": current_password, "newPassword": new_password},
        access_token=access_token,
    )
    data = unwrap(response, "Password change failed", require_data=False) or {}
    return data.get("message") or "Password changed successfully"


async def forgot_password(client: StorefrontClient, email: str) -> str:
    """Request a password reset email. Always answers with a neutral message."""
    response = await client.send(
        "/api/auth/forgot-password", "POST", json={"email": email}
    )
    unwrap(response, "Password reset request failed", require_data=False)
    body = read_envelope(response)
    data = body.get("data") or {}
    return (
        data.get("message")
        or body.get("message")
        or "If that email is in our system, we have sent a reset link."
    )
