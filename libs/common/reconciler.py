"""Shared state machine for guest-session resources (cart, wishlist).

Lifecycle: LOADING -> READY, with two transitions layered on READY:

- merge: the first time the identity is authenticated while a guest session
  id exists, fetch with both the bearer token and the guest id (the server
  merges), then drop the guest id. At most one attempt per login; a failure
  re-arms the guard and keeps the guest id.
- clear on logout: authenticated -> anonymous resets local state and the
  stored guest id. No server call.

The server is the only source of computed fields, so every mutation is
followed by a full refetch instead of a local patch.
"""

from __future__ import annotations

import enum
from typing import Any, Optional

from libs.auth.models import Identity
from libs.auth.storage import SessionIdStore, TokenStore
from libs.common.errors import MergeFailed, StorefrontError
from libs.common.logging import get_logger
from libs.common.service_client import StorefrontClient
from libs.common.tasks import GuardedTask

logger = get_logger(__name__)


class ReconcilerStatus(str, enum.Enum):
    LOADING = "loading"
    READY = "ready"


class SessionResourceReconciler:
    resource_name = "resource"

    def __init__(
        self,
        client: StorefrontClient,
        token_store: TokenStore,
        session_store: SessionIdStore,
    ):
        self.client = client
        self.token_store = token_store
        self.session_store = session_store
        self.status = ReconcilerStatus.LOADING
        self.session_id: Optional[str] = None
        self.error: Optional[str] = None
        self._is_authenticated = False
        self._was_authenticated: Optional[bool] = None
        self._merge_task = GuardedTask(
            self._merge_guest_session, name=f"{self.resource_name}-merge"
        )

    # ------------------------------------------------------------------
    # Resource-specific hooks
    # ------------------------------------------------------------------

    async def _fetch(self, access_token: Optional[str], session_id: Optional[str]) -> Any:
        raise NotImplementedError

    def _apply(self, data: Any) -> None:
        raise NotImplementedError

    def _response_session_id(self, data: Any) -> Optional[str]:
        return getattr(data, "session_id", None)

    def _reset(self) -> None:
        raise NotImplementedError

    # ------------------------------------------------------------------
    # State
    # ------------------------------------------------------------------

    @property
    def is_loading(self) -> bool:
        return self.status == ReconcilerStatus.LOADING

    @property
    def merge_pending(self) -> bool:
        return (
            self._is_authenticated
            and bool(self.session_id)
            and not self._merge_task.attempted
        )

    @property
    def merge_in_flight(self) -> bool:
        return self._merge_task.in_flight

    def clear_error(self) -> None:
        self.error = None

    # ------------------------------------------------------------------
    # Loading
    # ------------------------------------------------------------------

    async def load(self) -> None:
        """Initial load from the persisted session id and current token."""
        self.session_id = await self.session_store.get()
        if self.merge_pending:
            await self.merge()
            return
        access_token = await self._access_token()
        await self._load(access_token, self.session_id)

    async def refetch(self) -> None:
        """Reload from the server; attempts a pending merge first."""
        if self.merge_pending:
            await self.merge()
            return
        access_token, session_id = await self._identity_args()
        await self._load(access_token, session_id)

    async def _load(self, access_token: Optional[str], session_id: Optional[str]) -> None:
        self.status = ReconcilerStatus.LOADING
        try:
            data = await self._fetch(access_token, session_id)
        except StorefrontError as exc:
            logger.warning("Failed to load %s: %s", self.resource_name, exc.message)
            self.error = exc.message
            self._reset()
        else:
            self.error = None
            self._apply(data)
            await self._adopt_session_id(self._response_session_id(data))
        finally:
            self.status = ReconcilerStatus.READY

    # ------------------------------------------------------------------
    # Identity transitions
    # ------------------------------------------------------------------

    async def handle_identity_change(self, identity: Identity) -> None:
        authenticated = identity.is_authenticated
        previous = self._was_authenticated
        self._was_authenticated = authenticated
        self._is_authenticated = authenticated

        if previous is True and not authenticated:
            await self._clear_on_logout()
        elif authenticated:
            await self.merge()

    async def merge(self) -> bool:
        """Trigger the guest merge if one is due. Returns True when it ran."""
        if not self._is_authenticated or not self.session_id:
            return False
        try:
            return await self._merge_task.run()
        except MergeFailed as exc:
            self.error = exc.message
            return False

    async def retry_merge(self) -> bool:
        """Explicit retry entry point for a previously failed merge."""
        if not self._is_authenticated or not self.session_id:
            return False
        try:
            return await self._merge_task.retry()
        except MergeFailed as exc:
            self.error = exc.message
            return False

    async def _merge_guest_session(self) -> None:
        access_token = await self._access_token()
        if not access_token:
            raise MergeFailed(f"Cannot merge {self.resource_name} without a session")

        guest_session_id = self.session_id
        self.status = ReconcilerStatus.LOADING
        try:
            data = await self._fetch(access_token, guest_session_id)
        except StorefrontError as exc:
            logger.warning(
                "Failed to merge guest %s %s: %s",
                self.resource_name,
                guest_session_id,
                exc.message,
            )
            raise MergeFailed(
                f"Failed to merge {self.resource_name}: {exc.message}",
                status_code=exc.status_code,
            ) from exc
        finally:
            self.status = ReconcilerStatus.READY

        self._apply(data)
        await self.session_store.clear()
        self.session_id = None
        self.error = None
        logger.info("Merged guest %s %s", self.resource_name, guest_session_id)

    async def _clear_on_logout(self) -> None:
        self._merge_task.reset()
        await self.session_store.clear()
        self.session_id = None
        self.error = None
        self._reset()

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    async def _access_token(self) -> Optional[str]:
        tokens = await self.token_store.get()
        return tokens.access_token if tokens else None

    async def _identity_args(self) -> tuple[Optional[str], Optional[str]]:
        access_token = await self._access_token()
        session_id = self.session_id or await self.session_store.get()
        return access_token, session_id

    async def _adopt_session_id(self, session_id: Optional[str]) -> None:
        if session_id and session_id != self.session_id:
            self.session_id = session_id
            await self.session_store.set(session_id)
