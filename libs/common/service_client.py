"""Async HTTP client for the storefront API.

All protected calls should go through ``StorefrontClient.request`` so that a
401 gets exactly one transparent refresh-and-retry. Auth endpoints that must
not trigger a refresh (login, check, refresh itself) use ``send``.
"""

from __future__ import annotations

import asyncio
from typing import Any, Awaitable, Callable, Optional, TypeVar

import httpx
from libs.auth.models import TokenPair
from libs.auth.storage import TokenStore
from libs.common.config import get_settings
from libs.common.errors import (
    ApiError,
    ConfigurationError,
    MalformedResponse,
    NetworkUnreachable,
    SessionExpired,
    StorefrontError,
)
from libs.common.logging import get_logger
from pydantic import BaseModel, ValidationError

logger = get_logger(__name__)

CART_SESSION_HEADER = "X-Cart-Session"
WISHLIST_SESSION_HEADER = "X-Wishlist-Session"
CLIENT_HEADER = "X-Client"

SESSION_EXPIRED_MESSAGE = "Session expired. Please log in again."

SessionExpiredListener = Callable[[], Awaitable[None]]

ModelT = TypeVar("ModelT", bound=BaseModel)


# ---------------------------------------------------------------------------
# Envelope helpers
# ---------------------------------------------------------------------------


def read_envelope(response: httpx.Response) -> dict:
    """Return the decoded JSON body, or an empty dict for non-JSON bodies."""
    try:
        body = response.json()
    except ValueError:
        return {}
    return body if isinstance(body, dict) else {"data": body}


def error_message(body: dict, default: str) -> str:
    """Pick the most specific error text out of an envelope."""
    msg = body.get("error") or body.get("message")
    if isinstance(msg, dict):
        msg = msg.get("message")
    return msg if isinstance(msg, str) and msg else default


def unwrap(
    response: httpx.Response,
    default_message: str,
    *,
    require_data: bool = True,
) -> Any:
    """Validate a ``{success, data, error}`` envelope and return ``data``.

    Raises:
        ApiError on a non-2xx status, ``success: false`` or missing data.
    """
    body = read_envelope(response)
    if not response.is_success or body.get("success") is False:
        raise ApiError(
            message=error_message(body, f"{default_message} ({response.status_code})"),
            status_code=response.status_code,
            response_data=body,
        )
    data = body.get("data")
    if require_data and data is None:
        raise ApiError(
            message=error_message(body, f"{default_message} ({response.status_code})"),
            status_code=response.status_code,
            response_data=body,
        )
    return data


def parse(
    model: type[ModelT],
    data: Any,
    response: httpx.Response,
    message: str = "Unexpected response from the API",
) -> ModelT:
    """Validate ``data`` into ``model``.

    Raises:
        MalformedResponse when the payload does not fit the model. The raw
        payload is kept on ``response_data`` when it is a dict.
    """
    try:
        return model.model_validate(data)
    except ValidationError as exc:
        logger.warning(
            "%s: %d validation errors for %s",
            message,
            exc.error_count(),
            model.__name__,
            extra={"status_code": response.status_code},
        )
        raise MalformedResponse(
            message,
            status_code=response.status_code,
            response_data=data if isinstance(data, dict) else None,
        ) from exc


# ---------------------------------------------------------------------------
# Client
# ---------------------------------------------------------------------------


class StorefrontClient:
    """Request pipeline: identity headers plus single refresh-and-retry on 401."""

    def __init__(
        self,
        token_store: TokenStore,
        *,
        base_url: Optional[str] = None,
        client_type: Optional[str] = None,
        timeout: Optional[float] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        settings = get_settings()
        self.token_store = token_store
        self.base_url = (
            base_url if base_url is not None else settings.API_BASE_URL
        ).rstrip("/")
        self.client_type = client_type or settings.CLIENT_TYPE
        self.timeout = timeout if timeout is not None else settings.REQUEST_TIMEOUT
        self._transport = transport
        self._refresh_lock = asyncio.Lock()
        self._session_expired_listeners: list[SessionExpiredListener] = []

    def on_session_expired(self, listener: SessionExpiredListener) -> None:
        """Register a callback fired after stored tokens are dropped."""
        self._session_expired_listeners.append(listener)

    def build_headers(
        self,
        access_token: Optional[str] = None,
        cart_session_id: Optional[str] = None,
        wishlist_session_id: Optional[str] = None,
    ) -> dict[str, str]:
        if cart_session_id and wishlist_session_id:
            raise ValueError("A request carries a cart or a wishlist session, not both")

        headers = {
            "Content-Type": "application/json",
            CLIENT_HEADER: self.client_type,
        }
        if access_token:
            headers["Authorization"] = f"Bearer {access_token}"
        if cart_session_id:
            headers[CART_SESSION_HEADER] = cart_session_id
        elif wishlist_session_id:
            headers[WISHLIST_SESSION_HEADER] = wishlist_session_id
        return headers

    async def send(
        self,
        path: str,
        method: str = "GET",
        *,
        json: Any = None,
        params: Optional[dict] = None,
        access_token: Optional[str] = None,
        cart_session_id: Optional[str] = None,
        wishlist_session_id: Optional[str] = None,
    ) -> httpx.Response:
        """Make a single HTTP call with identity headers, no retry.

        Raises:
            ConfigurationError when no base URL is configured.
            NetworkUnreachable on connection failures.
        """
        if not self.base_url:
            raise ConfigurationError("API base URL not configured. Set API_BASE_URL.")

        url = f"{self.base_url}{path if path.startswith('/') else '/' + path}"
        headers = self.build_headers(access_token, cart_session_id, wishlist_session_id)

        try:
            async with httpx.AsyncClient(
                timeout=self.timeout, transport=self._transport
            ) as client:
                response = await client.request(
                    method,
                    url,
                    headers=headers,
                    json=json,
                    params=params,
                )
        except httpx.RequestError as exc:
            logger.warning("Request to %s %s failed: %s", method, url, exc)
            raise NetworkUnreachable(
                f"Cannot reach API at {self.base_url}. "
                "Check that API_BASE_URL points at a running storefront API."
            ) from exc
        return response

    async def request(
        self,
        path: str,
        method: str = "GET",
        *,
        json: Any = None,
        params: Optional[dict] = None,
        access_token: Optional[str] = None,
        cart_session_id: Optional[str] = None,
        wishlist_session_id: Optional[str] = None,
    ) -> httpx.Response:
        """Make a request; on 401 with a token, refresh once and retry once.

        Anonymous 401s are returned as-is.

        Raises:
            SessionExpired when refresh is impossible, fails, or the retried
            call is still unauthorized.
        """
        kwargs = dict(
            json=json,
            params=params,
            cart_session_id=cart_session_id,
            wishlist_session_id=wishlist_session_id,
        )
        response = await self.send(path, method, access_token=access_token, **kwargs)
        if response.status_code != 401 or not access_token:
            return response

        new_access_token = await self._refreshed_access_token(access_token)
        response = await self.send(
            path, method, access_token=new_access_token, **kwargs
        )
        if response.status_code == 401:
            logger.info("Still unauthorized after refresh on %s %s", method, path)
            await self.expire_session()
            raise SessionExpired(SESSION_EXPIRED_MESSAGE, status_code=401)
        return response

    async def refresh_tokens(self, refresh_token: str) -> TokenPair:
        """Exchange a refresh token for a new, rotated pair."""
        response = await self.send(
            "/api/auth/refresh", "POST", json={"refreshToken": refresh_token}
        )
        data = unwrap(response, "Token refresh failed")
        return parse(TokenPair, data, response, "Refresh response missing tokens")

    async def expire_session(self) -> None:
        """Drop stored tokens and notify listeners."""
        await self.token_store.clear()
        for listener in self._session_expired_listeners:
            await listener()

    async def _refreshed_access_token(self, used_access_token: str) -> str:
        # Serialized so two concurrent 401s rotate the refresh token only once.
        async with self._refresh_lock:
            tokens = await self.token_store.get()
            if tokens is not None and tokens.access_token != used_access_token:
                return tokens.access_token

            if tokens is None or not tokens.refresh_token:
                await self.expire_session()
                raise SessionExpired(SESSION_EXPIRED_MESSAGE, status_code=401)

            try:
                refreshed = await self.refresh_tokens(tokens.refresh_token)
            except StorefrontError as exc:
                logger.info("Token refresh failed: %s", exc.message)
                await self.expire_session()
                raise SessionExpired(SESSION_EXPIRED_MESSAGE, status_code=401) from exc

            await self.token_store.set(refreshed)
            return refreshed.access_token
