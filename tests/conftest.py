"""Shared test fixtures and configuration.

Provides an in-memory local store, an in-process document service and a
fixed clock so engine tests never touch the real filesystem or network.
"""

from __future__ import annotations

from datetime import UTC, datetime, timedelta
from unittest.mock import patch

import pytest

from plansync.adapters.memory import InMemoryDocumentService
from plansync.adapters.sqlite import LocalStore
from plansync.services.friend_service import FriendService
from plansync.services.identity import Session, StaticIdentityProvider
from plansync.services.lifecycle import LifecycleScheduler
from plansync.services.sharing_service import SharingService
from plansync.services.sync_service import PrivateSyncService
from plansync.utils.logger import reset_logger

NOW = datetime(2026, 5, 1, 12, 0, tzinfo=UTC)

ALICE = Session(user_id="alice", email="alice@example.com", display_name="Alice")
BOB = Session(user_id="bob", email="bob@example.com", display_name="Bob")


# ---------------------------------------------------------------------------
# Filesystem isolation
# ---------------------------------------------------------------------------


@pytest.fixture(autouse=True)
def isolate_dirs(tmp_path):
    """Keep config, data and log files inside tmp_path."""
    tmpdir = str(tmp_path)
    reset_logger()
    with (
        patch("plansync.config.user_config_dir", return_value=tmpdir),
        patch("plansync.config.user_data_dir", return_value=tmpdir),
        patch("plansync.utils.logger.user_log_dir", return_value=tmpdir),
    ):
        yield tmp_path
    reset_logger()


@pytest.fixture(autouse=True)
def reset_config_manager():
    """Drop the global ConfigManager between tests."""
    import plansync.config

    plansync.config._config_manager = None
    yield
    plansync.config._config_manager = None


# ---------------------------------------------------------------------------
# Engines
# ---------------------------------------------------------------------------


class FakeClock:
    """Callable clock that tests can move forward."""

    def __init__(self, now: datetime = NOW):
        self.now = now

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs) -> datetime:
        self.now += timedelta(**kwargs)
        return self.now


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def store():
    """A migrated in-memory LocalStore."""
    local = LocalStore.open()
    yield local
    local.close()


@pytest.fixture
def documents(clock):
    return InMemoryDocumentService(clock=clock)


@pytest.fixture
def identity():
    return StaticIdentityProvider(ALICE)


@pytest.fixture
def sync_service(store, documents, identity, clock):
    return PrivateSyncService(store, documents, identity, clock=clock)


@pytest.fixture
def sharing(store, documents, identity, clock):
    return SharingService(store, documents, identity, clock=clock)


@pytest.fixture
def friends(store, documents, identity, clock):
    return FriendService(store, documents, identity, clock=clock)


@pytest.fixture
def scheduler(store, identity, sharing, sync_service, clock):
    return LifecycleScheduler(store, identity, sharing, sync_service, interval=1, clock=clock)
