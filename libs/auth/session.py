"""Auth session lifecycle: restore, login, signup, logout, profile refresh."""

from __future__ import annotations

import enum
from typing import Awaitable, Callable, Optional

from libs.auth import client as auth_api
from libs.auth.models import (
    AnonymousIdentity,
    AuthenticatedIdentity,
    Identity,
    TokenPair,
    User,
)
from libs.auth.storage import TokenStore
from libs.common.errors import ApiError, SessionExpired, StorefrontError
from libs.common.logging import get_logger
from libs.common.service_client import StorefrontClient

logger = get_logger(__name__)

IdentityListener = Callable[[Identity], Awaitable[None]]


class AuthStatus(str, enum.Enum):
    RESTORING = "restoring"
    AUTHENTICATED = "authenticated"
    ANONYMOUS = "anonymous"


class AuthSessionManager:
    """Owns the token lifecycle and publishes identity transitions."""

    def __init__(self, client: StorefrontClient, token_store: TokenStore):
        self.client = client
        self.token_store = token_store
        self.status = AuthStatus.RESTORING
        self.user: Optional[User] = None
        self.session_expired = False
        self._listeners: list[IdentityListener] = []
        client.on_session_expired(self.handle_session_expired)

    @property
    def is_authenticated(self) -> bool:
        return self.status == AuthStatus.AUTHENTICATED

    @property
    def is_loading(self) -> bool:
        return self.status == AuthStatus.RESTORING

    def subscribe(self, listener: IdentityListener) -> None:
        self._listeners.append(listener)

    async def access_token(self) -> Optional[str]:
        tokens = await self.token_store.get()
        return tokens.access_token if tokens else None

    async def identity(self) -> Identity:
        token = await self.access_token()
        if self.is_authenticated and token and self.user is not None:
            return AuthenticatedIdentity(access_token=token, user=self.user)
        return AnonymousIdentity()

    # ------------------------------------------------------------------
    # Transitions
    # ------------------------------------------------------------------

    async def restore(self) -> AuthStatus:
        """Settle the startup state from whatever tokens are stored."""
        self.status = AuthStatus.RESTORING
        tokens = await self.token_store.get()
        if tokens is None:
            await self._settle(None)
            return self.status

        try:
            user = await auth_api.check(self.client, tokens.access_token)
        except ApiError as exc:
            if exc.status_code != 401:
                logger.info("Session check failed (%s), signing out", exc.message)
                await self.token_store.clear()
                await self._settle(None)
                return self.status
            user = await self._recover_with_refresh(tokens)
        except StorefrontError as exc:
            logger.info("Session check failed (%s), signing out", exc.message)
            await self.token_store.clear()
            await self._settle(None)
            return self.status

        await self._settle(user)
        return self.status

    async def login(self, email: str, password: str) -> User:
        self.session_expired = False
        result = await auth_api.login(self.client, email, password)
        await self.token_store.set(result.tokens)
        await self._settle(result.user)
        return result.user

    async def signup(self, name: str, email: str, password: str) -> User:
        self.session_expired = False
        result = await auth_api.signup(self.client, name, email, password)
        await self.token_store.set(result.tokens)
        await self._settle(result.user)
        return result.user

    async def logout(self) -> None:
        """Local-only sign out."""
        await self.token_store.clear()
        self.session_expired = False
        await self._settle(None)

    async def refresh_profile(self) -> None:
        """Best-effort re-check. Never signs the user out."""
        token = await self.access_token()
        if not token:
            return
        try:
            self.user = await auth_api.check(self.client, token)
        except StorefrontError as exc:
            logger.debug("Profile refresh skipped: %s", exc.message)

    async def update_profile(
        self, name: str, phone: Optional[str] = None, bio: Optional[str] = None
    ) -> User:
        token = await self.access_token()
        if not token:
            raise SessionExpired("Please log in to update your profile.")
        self.user = await auth_api.update_profile(
            self.client, token, name=name, phone=phone, bio=bio
        )
        return self.user

    async def change_password(self, current_password: str, new_password: str) -> str:
        token = await self.access_token()
        if not token:
            raise SessionExpired("Please log in to change your password.")
        return await auth_api.change_password(
            self.client,
            token,
            current_password=current_password,
            new_password=new_password,
        )

    async def forgot_password(self, email: str) -> str:
        return await auth_api.forgot_password(self.client, email)

    async def handle_session_expired(self) -> None:
        """Called by the request pipeline once stored tokens are dropped."""
        if self.is_authenticated:
            self.session_expired = True
        await self._settle(None)

    def clear_session_expired(self) -> None:
        self.session_expired = False

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    async def _recover_with_refresh(self, tokens: TokenPair) -> Optional[User]:
        try:
            refreshed = await self.client.refresh_tokens(tokens.refresh_token)
            await self.token_store.set(refreshed)
            return await auth_api.check(self.client, refreshed.access_token)
        except StorefrontError as exc:
            logger.info("Stored session could not be refreshed: %s", exc.message)
            await self.token_store.clear()
            self.session_expired = True
            return None

    async def _settle(self, user: Optional[User]) -> None:
        self.user = user
        self.status = AuthStatus.AUTHENTICATED if user else AuthStatus.ANONYMOUS
        identity = await self.identity()
        for listener in self._listeners:
            await listener(identity)
