"""Exceptions raised by the plansync engines and adapters."""

from __future__ import annotations


class PlanSyncError(Exception):
    """Base exception for all plansync errors."""


# ---------------------------------------------------------------------------
# Remote document layer
# ---------------------------------------------------------------------------


class DocumentServiceError(PlanSyncError):
    """Raised by a document service adapter when the remote call fails."""


class DocumentNotFoundError(DocumentServiceError):
    """Raised when updating a document that does not exist."""


class DocumentDecodeError(PlanSyncError):
    """Raised when a remote document lacks required fields."""


# ---------------------------------------------------------------------------
# Preconditions
# ---------------------------------------------------------------------------


class NotAuthenticatedError(PlanSyncError):
    """Raised when an operation needs a signed-in user and there is none."""

    def __init__(self, message: str = "User not authenticated"):
        super().__init__(message)


class MissingRemoteIdError(PlanSyncError):
    """Raised when an entity has never been uploaded but the operation needs its remote id."""


class AuthorizationError(PlanSyncError):
    """Raised when the caller's role does not allow the requested mutation."""


class InvalidTaskError(PlanSyncError):
    """Raised when a task is not eligible for the requested operation."""


class RequestNotFoundError(PlanSyncError):
    """Raised when a friend request has no remote counterpart."""


class RequestAlreadyResolvedError(PlanSyncError):
    """Raised when accepting or declining a request that was already resolved."""


class RemoteNotConfiguredError(PlanSyncError):
    """Raised when no remote endpoint is configured and no adapter was injected."""


# ---------------------------------------------------------------------------
# Remote failures with context
# ---------------------------------------------------------------------------


class RemoteServiceError(PlanSyncError):
    """A document service failure wrapped with the entity and phase it hit."""

    def __init__(self, message: str, *, entity: str | None = None, phase: str | None = None):
        super().__init__(message)
        self.entity = entity
        self.phase = phase


class SyncError(RemoteServiceError):
    """Raised when one or more phases of a private sync pass failed.

    Attributes:
        phase_errors: Mapping of phase name to the error that phase hit
        result: The partial SyncResult of the pass
    """

    def __init__(self, message: str, *, phase_errors=None, result=None, **kwargs):
        super().__init__(message, **kwargs)
        self.phase_errors = dict(phase_errors or {})
        self.result = result


class SharingError(RemoteServiceError):
    """Raised when a shared-task write or delete fails remotely."""


class FriendGraphError(RemoteServiceError):
    """Raised when a friend graph operation fails remotely."""


# ---------------------------------------------------------------------------
# Conflicts and validation
# ---------------------------------------------------------------------------


class DuplicateTagError(PlanSyncError):
    """Raised when a tag name already exists for the owner."""


class InvalidEmailError(PlanSyncError):
    """Raised when an email address does not look like one."""


class CannotAddSelfError(PlanSyncError):
    """Raised when a user tries to befriend themself."""


class UserNotFoundError(PlanSyncError):
    """Raised when no user is registered under an email."""


class AlreadyFriendsError(PlanSyncError):
    """Raised when the two users are already friends."""


class RequestAlreadyExistsError(PlanSyncError):
    """Raised when an unresolved request between the same pair already exists."""


class ReverseRequestPendingError(RequestAlreadyExistsError):
    """Raised when the target already sent the caller an unresolved request."""
