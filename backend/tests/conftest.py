"""
Pytest configuration for the credits service tests.
"""

import pytest

from models.domain.user import User, UserRole
from services.cache import SimpleCache
from services.config_store import ConfigStore
from services.credits_service import CreditsService
from services.credits_store import StoreRegistry
from services.purchase_guard import LocalInFlightGuard
from services.purchase_orchestrator import PurchaseOrchestrator
from tests.fakes import (
    FakeContentRepository,
    FakeDatabase,
    FakeLedgerRepository,
    FakeModerationRepository,
    FakePurchaseRepository,
    FakeSettingsRepository,
    FakeSubscriptionRepository,
    FakeUserRepository,
    add_user,
)

# Configure pytest-asyncio
pytest_plugins = ('pytest_asyncio',)


def pytest_configure(config):
    """Configure pytest with asyncio marker."""
    config.addinivalue_line(
        "markers", "asyncio: mark test as an async test."
    )


# =============================================================================
# FIXTURES
# =============================================================================

@pytest.fixture
def db() -> FakeDatabase:
    return FakeDatabase()


@pytest.fixture
def user_repo(db):
    return FakeUserRepository(db)


@pytest.fixture
def ledger_repo(db):
    return FakeLedgerRepository(db)


@pytest.fixture
def purchase_repo(db):
    return FakePurchaseRepository(db)


@pytest.fixture
def content_repo(db):
    return FakeContentRepository(db)


@pytest.fixture
def subscription_repo(db):
    return FakeSubscriptionRepository(db)


@pytest.fixture
def settings_repo(db):
    return FakeSettingsRepository(db)


@pytest.fixture
def moderation_repo(db):
    return FakeModerationRepository(db)


@pytest.fixture
def config_store(settings_repo) -> ConfigStore:
    # Fresh cache per test; the module-level cache would leak between tests
    return ConfigStore(settings_repo, cache=SimpleCache())


@pytest.fixture
def stores() -> StoreRegistry:
    return StoreRegistry()


@pytest.fixture
def credits(ledger_repo, subscription_repo, config_store, stores) -> CreditsService:
    return CreditsService(ledger_repo, subscription_repo, config_store, stores)


@pytest.fixture
def orchestrator(purchase_repo, content_repo, config_store, credits) -> PurchaseOrchestrator:
    return PurchaseOrchestrator(purchase_repo, content_repo, config_store, credits,
                                guard=LocalInFlightGuard())


@pytest.fixture
def developer(db) -> User:
    return add_user(db, "admin@funfans.com", role=UserRole.DEVELOPER, username="admin")


@pytest.fixture
def creator(db) -> User:
    return add_user(db, "creator@funfans.com", role=UserRole.CREATOR, username="creator")
