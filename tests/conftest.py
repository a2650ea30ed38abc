import httpx
import pytest
from libs.auth.models import TokenPair
from libs.auth.storage import InMemorySessionIdStore, InMemoryTokenStore
from libs.common.config import get_settings
from libs.common.service_client import StorefrontClient
from tests.factories import BASE_URL, FakeApi


# ---------------------------------------------------------------------------
# Fixtures
# ---------------------------------------------------------------------------


@pytest.fixture(autouse=True)
def settings_env(monkeypatch):
    """Pin the settings the suite relies on, whatever the local .env says."""
    monkeypatch.setenv("API_BASE_URL", BASE_URL)
    monkeypatch.setenv("CLIENT_TYPE", "mobile")
    monkeypatch.setenv("TAX_RATE", "0.085")
    monkeypatch.setenv("DEFAULT_COUNTRY", "US")
    monkeypatch.setenv("COUPON_POLICY", "trust_until_placement")
    monkeypatch.delenv("STATE_FILE", raising=False)
    get_settings.cache_clear()
    yield get_settings()
    get_settings.cache_clear()


@pytest.fixture
def fake_api() -> FakeApi:
    return FakeApi()


@pytest.fixture
def tokens() -> TokenPair:
    return TokenPair(access_token="access-1", refresh_token="refresh-1")


@pytest.fixture
def token_store() -> InMemoryTokenStore:
    return InMemoryTokenStore()


@pytest.fixture
def cart_session_store() -> InMemorySessionIdStore:
    return InMemorySessionIdStore()


@pytest.fixture
def wishlist_session_store() -> InMemorySessionIdStore:
    return InMemorySessionIdStore()


@pytest.fixture
def storefront_client(fake_api, token_store) -> StorefrontClient:
    return StorefrontClient(
        token_store, base_url=BASE_URL, transport=httpx.MockTransport(fake_api)
    )
