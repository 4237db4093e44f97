"""Wiring of the store, the remote adapter and the engines."""

from __future__ import annotations

from typing import Optional

from plansync.adapters.rest_api import RestDocumentService
from plansync.adapters.sqlite import LocalStore
from plansync.config import ConfigManager
from plansync.exceptions import RemoteNotConfiguredError
from plansync.repositories import DocumentService
from plansync.services.friend_service import FriendService
from plansync.services.identity import CredentialsIdentityProvider, IdentityProvider
from plansync.services.lifecycle import LifecycleScheduler
from plansync.services.sharing_service import SharingService
from plansync.services.sync_conflicts import SyncConflictTracker
from plansync.services.sync_service import PrivateSyncService


class AppContext:
    """Everything a session needs, built once and closed once."""

    def __init__(
        self,
        store: LocalStore,
        documents: DocumentService,
        identity: IdentityProvider,
        *,
        conflict_tracker: Optional[SyncConflictTracker] = None,
        interval: float = 60,
        auto_sync: bool = True,
    ):
        self.store = store
        self.documents = documents
        self.identity = identity
        self.sync = PrivateSyncService(store, documents, identity, conflict_tracker)
        self.sharing = SharingService(store, documents, identity)
        self.friends = FriendService(store, documents, identity)
        self.lifecycle = LifecycleScheduler(
            store,
            identity,
            self.sharing,
            self.sync,
            interval=interval,
            auto_sync=auto_sync,
        )

    async def close(self) -> None:
        """Close the remote client and the database connection."""
        await self.documents.close()
        self.store.close()


def build_app_context(
    config_manager: ConfigManager,
    documents: Optional[DocumentService] = None,
    identity: Optional[IdentityProvider] = None,
) -> AppContext:
    """Build an AppContext from configuration.

    Args:
        config_manager: Source of configuration and stored credentials
        documents: Remote adapter to use instead of the configured REST endpoint
        identity: Identity provider to use instead of the stored credentials

    Raises:
        RemoteNotConfiguredError: If no adapter was given and remote.endpoint is unset
    """
    config = config_manager.config
    identity = identity or CredentialsIdentityProvider(config_manager)

    if documents is None:
        if not config.remote.endpoint:
            raise RemoteNotConfiguredError(
                "No remote endpoint configured. Use 'plansync config set remote.endpoint <url>'."
            )
        session = identity.current_session()
        documents = RestDocumentService(
            config.remote.endpoint,
            timeout=config.remote.timeout,
            retry=config.remote.retry,
            token=session.token if session else None,
        )

    store = LocalStore.open(config_manager.db_path)
    return AppContext(
        store,
        documents,
        identity,
        conflict_tracker=SyncConflictTracker(config_manager.config_dir),
        interval=config.sync.interval,
        auto_sync=config.sync.auto,
    )
