"""Identity provider port and the session it hands out.

Authentication itself is external; plansync only consumes the authenticated
user's opaque id, email and display name.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Optional

from pydantic import BaseModel

from plansync.config import ConfigManager
from plansync.exceptions import NotAuthenticatedError


class Session(BaseModel):
    """An authenticated user."""

    user_id: str
    email: str
    display_name: str = ""
    token: Optional[str] = None

    @property
    def name(self) -> str:
        return self.display_name or self.email


class IdentityProvider(ABC):
    """Source of the current session."""

    @abstractmethod
    def current_session(self) -> Session | None:
        """Return the signed-in session, or None."""

    def require_session(self) -> Session:
        """Return the session or raise NotAuthenticatedError."""
        session = self.current_session()
        if session is None:
            raise NotAuthenticatedError()
        return session


class StaticIdentityProvider(IdentityProvider):
    """Provider holding a fixed session (tests, embedding applications)."""

    def __init__(self, session: Session | None = None):
        self.session = session

    def current_session(self) -> Session | None:
        return self.session

    def sign_out(self) -> None:
        self.session = None


class CredentialsIdentityProvider(IdentityProvider):
    """Provider reading the credentials saved by ``plansync login``."""

    def __init__(self, config_manager: ConfigManager):
        self.config_manager = config_manager

    def current_session(self) -> Session | None:
        credentials = self.config_manager.load_credentials()
        if not credentials or not credentials.get("user_id") or not credentials.get("email"):
            return None
        return Session(
            user_id=credentials["user_id"],
            email=credentials["email"],
            display_name=credentials.get("name", ""),
            token=credentials.get("token"),
        )
