"""Local persistence for the token pair and guest session ids.

The core only talks to the ``TokenStore`` / ``SessionIdStore`` protocols so
tests can substitute the in-memory implementations. The JSON-file
implementations keep everything in one small state file, each key cleared
independently.
"""

from __future__ import annotations

import json
from pathlib import Path
from typing import Optional, Protocol

from libs.auth.models import TokenPair
from libs.common.config import get_settings
from libs.common.logging import get_logger

logger = get_logger(__name__)

ACCESS_TOKEN_KEY = "access_token"
REFRESH_TOKEN_KEY = "refresh_token"
CART_SESSION_KEY = "cart_session"
WISHLIST_SESSION_KEY = "wishlist_session"


class TokenStore(Protocol):
    async def get(self) -> Optional[TokenPair]: ...

    async def set(self, tokens: TokenPair) -> None: ...

    async def clear(self) -> None: ...


class SessionIdStore(Protocol):
    async def get(self) -> Optional[str]: ...

    async def set(self, session_id: str) -> None: ...

    async def clear(self) -> None: ...


# ---------------------------------------------------------------------------
# In-memory stores
# ---------------------------------------------------------------------------


class InMemoryTokenStore:
    def __init__(self, tokens: Optional[TokenPair] = None):
        self._tokens = tokens

    async def get(self) -> Optional[TokenPair]:
        return self._tokens

    async def set(self, tokens: TokenPair) -> None:
        self._tokens = tokens

    async def clear(self) -> None:
        self._tokens = None


class InMemorySessionIdStore:
    def __init__(self, session_id: Optional[str] = None):
        self._session_id = session_id

    async def get(self) -> Optional[str]:
        return self._session_id

    async def set(self, session_id: str) -> None:
        self._session_id = session_id

    async def clear(self) -> None:
        self._session_id = None


# ---------------------------------------------------------------------------
# JSON file stores
# ---------------------------------------------------------------------------


class JsonStateFile:
    """A flat string->string mapping persisted as JSON."""

    def __init__(self, path: str | Path):
        self.path = Path(path)

    def read(self) -> dict[str, str]:
        if not self.path.exists():
            return {}
        try:
            data = json.loads(self.path.read_text(encoding="utf-8"))
        except (OSError, ValueError):
            logger.warning("Unreadable state file %s, starting empty", self.path)
            return {}
        return data if isinstance(data, dict) else {}

    def write(self, data: dict[str, str]) -> None:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        self.path.write_text(json.dumps(data), encoding="utf-8")

    def update(self, **values: Optional[str]) -> None:
        data = self.read()
        for key, value in values.items():
            if value is None:
                data.pop(key, None)
            else:
                data[key] = value
        self.write(data)


class FileTokenStore:
    def __init__(self, state: JsonStateFile):
        self._state = state

    async def get(self) -> Optional[TokenPair]:
        data = self._state.read()
        access_token = data.get(ACCESS_TOKEN_KEY)
        refresh_token = data.get(REFRESH_TOKEN_KEY)
        if access_token and refresh_token:
            return TokenPair(access_token=access_token, refresh_token=refresh_token)
        return None

    async def set(self, tokens: TokenPair) -> None:
        self._state.update(
            **{
                ACCESS_TOKEN_KEY: tokens.access_token,
                REFRESH_TOKEN_KEY: tokens.refresh_token,
            }
        )

    async def clear(self) -> None:
        self._state.update(**{ACCESS_TOKEN_KEY: None, REFRESH_TOKEN_KEY: None})


class FileSessionIdStore:
    def __init__(self, state: JsonStateFile, key: str):
        self._state = state
        self._key = key

    async def get(self) -> Optional[str]:
        return self._state.read().get(self._key) or None

    async def set(self, session_id: str) -> None:
        self._state.update(**{self._key: session_id})

    async def clear(self) -> None:
        self._state.update(**{self._key: None})


def build_stores() -> tuple[TokenStore, SessionIdStore, SessionIdStore]:
    """Return (token store, cart session store, wishlist session store).

    Backed by ``STATE_FILE`` when configured, in-memory otherwise.
    """
    settings = get_settings()
    if not settings.STATE_FILE:
        return InMemoryTokenStore(), InMemorySessionIdStore(), InMemorySessionIdStore()

    state = JsonStateFile(settings.STATE_FILE)
    return (
        FileTokenStore(state),
        FileSessionIdStore(state, CART_SESSION_KEY),
        FileSessionIdStore(state, WISHLIST_SESSION_KEY),
    )
