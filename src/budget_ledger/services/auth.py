"""Identity and re-authentication gate for destructive transitions."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Protocol, runtime_checkable

from passlib.context import CryptContext

from budget_ledger.exceptions import ReauthenticationError

logger = logging.getLogger(__name__)

pwd_context = CryptContext(schemes=["bcrypt"], deprecated="auto")


@dataclass(frozen=True)
class Identity:
    """The user performing an action."""

    user_id: str
    display_name: str = ""

    @property
    def name(self) -> str:
        return self.display_name or self.user_id


@runtime_checkable
class IdentityProvider(Protocol):
    """Session user and password check against the identity service."""

    def current_user(self) -> Identity | None:
        ...

    def verify_password(self, user_id: str, password: str) -> bool:
        ...


class InMemoryIdentityProvider:
    """bcrypt password hashes held in memory."""

    def __init__(self) -> None:
        self._users: dict[str, str] = {}
        self._names: dict[str, str] = {}
        self._current: Identity | None = None

    def register(self, user_id: str, password: str, display_name: str = "") -> Identity:
        self._users[user_id] = pwd_context.hash(password)
        self._names[user_id] = display_name
        return Identity(user_id, display_name)

    def sign_in(self, user_id: str) -> Identity:
        """Make a registered user the session user."""
        if user_id not in self._users:
            raise KeyError(f"Unknown user: {user_id}")
        self._current = Identity(user_id, self._names.get(user_id, ""))
        return self._current

    def sign_out(self) -> None:
        self._current = None

    def current_user(self) -> Identity | None:
        return self._current

    def verify_password(self, user_id: str, password: str) -> bool:
        stored = self._users.get(user_id)
        if stored is None:
            return False
        return pwd_context.verify(password, stored)


class ReauthGate:
    """Transition guard requiring a fresh password challenge.

    Guarded actions: PO close, reopen and cancel; invoice cancel.
    """

    def __init__(self, identity_provider: IdentityProvider):
        self.identity_provider = identity_provider

    def require(self, action: str, actor: Identity, password: str | None) -> None:
        """Raise ReauthenticationError unless the password matches the actor."""
        if not password or not password.strip():
            raise ReauthenticationError(action, "Password is required")
        if not self.identity_provider.verify_password(actor.user_id, password):
            logger.warning("Re-authentication failed for %s on %s", actor.user_id, action)
            raise ReauthenticationError(action, "Incorrect password")
