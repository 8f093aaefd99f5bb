"""
Admin Gate - PIN verification for privileged operations

Privileged calls take an explicit AdminSession instead of reading a global
"is admin" flag. The PIN itself is never stored: only a salted SHA-256
verifier kept in the settings collection.
"""

import logging
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Optional

from ..scanner.validation import ContentHasher
from ..storage.settings import SettingsStore

logger = logging.getLogger(__name__)

ADMIN_VERIFIER_KEY = "admin_pin_verifier"


class AuthenticationError(Exception):
    """Raised when a submitted credential does not match."""
    pass


class AuthorizationError(Exception):
    """Raised when a privileged operation is attempted without a valid session."""
    pass


@dataclass(frozen=True)
class AdminSession:
    """
    Proof of a successful admin login.

    Attributes:
        actor: Identity that logged in
        granted_at: Login time (UTC)
        expires_at: End of validity (UTC), None = no expiry
    """
    actor: str
    granted_at: datetime
    expires_at: Optional[datetime] = None

    def is_valid(self, now: Optional[datetime] = None) -> bool:
        if self.expires_at is None:
            return True
        return (now or datetime.now(timezone.utc)) < self.expires_at


def require_admin(session: Optional[AdminSession]) -> AdminSession:
    """Raise AuthorizationError unless session is a valid AdminSession."""
    if not isinstance(session, AdminSession):
        raise AuthorizationError("Admin session required")
    if not session.is_valid():
        raise AuthorizationError(f"Admin session of {session.actor} has expired")
    return session


class AdminGate:
    """
    PIN-based admin login.

    Features:
    - Salted verifier stored via SettingsStore
    - First PIN can be set freely, later changes need an admin session
    - Sessions optionally expire
    """

    def __init__(
        self,
        settings: SettingsStore,
        hasher: Optional[ContentHasher] = None,
        session_ttl: Optional[timedelta] = timedelta(minutes=15)
    ):
        self.settings = settings
        self.hasher = hasher or ContentHasher()
        self.session_ttl = session_ttl

    def has_credential(self) -> bool:
        return self.settings.get(ADMIN_VERIFIER_KEY) is not None

    def set_credential(self, secret: str, session: Optional[AdminSession] = None) -> None:
        """
        Set or change the admin PIN.

        Raises:
            AuthorizationError: A PIN exists and no valid session was given
        """
        if not secret:
            raise ValueError("Admin PIN must not be empty")
        if self.has_credential():
            require_admin(session)
        self.settings.set(ADMIN_VERIFIER_KEY, self.hasher.make_verifier(secret))
        logger.info("Admin PIN %s", "changed" if session else "initialised")

    def login(self, secret: str, actor: str) -> AdminSession:
        """
        Verify a submitted PIN.

        Raises:
            AuthenticationError: No PIN configured or PIN mismatch
        """
        verifier = self.settings.get(ADMIN_VERIFIER_KEY)
        if verifier is None:
            raise AuthenticationError("No admin PIN configured")
        if not self.hasher.verify(secret, verifier):
            logger.warning("Failed admin login by %s", actor)
            raise AuthenticationError("Invalid admin PIN")

        now = datetime.now(timezone.utc)
        expires_at = now + self.session_ttl if self.session_ttl else None
        logger.info("Admin login by %s", actor)
        return AdminSession(actor=actor, granted_at=now, expires_at=expires_at)
