"""
SESSION AUTHORITY

Single owner of the locally cached credential and session marker.
Every other component reads identity through this object and never
touches the underlying store directly.

Lifecycle:
- init(credential)      → sign-in, marks session alive
- refresh_activity()    → every route change
- verify_remote()       → corroborate with the authoritative identity check
- clear()               → idempotent sign-out

Rules:
- Decode failures are logged, never retried
- Server is the source of truth for revocation
- An inactive session is cleared as soon as it is observed
"""

import logging
import time
from collections.abc import MutableMapping
from enum import Enum
from datetime import datetime, timezone
from typing import Any, Callable, Dict, Optional

from patra.config import REAUTH_BUFFER_SECONDS, SESSION_MAX_AGE_SECONDS
from patra.errors import InvalidCredential, NetworkFailure
from patra.security.roles import normalize_role
from patra.security.token import Identity, derive_identity
from patra.storage.session_store import MemorySessionStore

logger = logging.getLogger(__name__)

# Storage keys (same names the browser client used)
TOKEN_KEY = "token"
SESSION_ACTIVE_KEY = "sessionActive"
LAST_ACTIVITY_KEY = "lastActivity"

_SESSION_KEYS = (TOKEN_KEY, SESSION_ACTIVE_KEY, LAST_ACTIVITY_KEY)

# Server rejection code that means "expired" rather than "rejected"
EXPIRED_CODES = {"TOKEN_EXPIRED"}


class VerificationResult(str, Enum):
    VALID = "VALID"
    EXPIRED = "EXPIRED"
    REJECTED = "REJECTED"
    UNREACHABLE = "UNREACHABLE"


class SessionAuthority:
    """Owns credential storage, expiry checks and remote re-validation."""

    def __init__(
        self,
        client: Any,
        store: Optional[MutableMapping] = None,
        *,
        clock: Callable[[], float] = time.time,
        max_inactivity_seconds: int = SESSION_MAX_AGE_SECONDS,
        reauth_buffer_seconds: int = REAUTH_BUFFER_SECONDS,
    ):
        self.client = client
        self.store = store if store is not None else MemorySessionStore()
        self.clock = clock
        self.max_inactivity_seconds = max_inactivity_seconds
        self.reauth_buffer_seconds = reauth_buffer_seconds

    # --------------------------------------------------
    # Sign-in
    # --------------------------------------------------
    def init(self, credential: str) -> Identity:
        """
        Adopt a freshly issued credential.

        The credential is decoded first; a malformed one never reaches the
        store.
        """
        identity = derive_identity(credential)
        self.store[TOKEN_KEY] = credential
        self.store[SESSION_ACTIVE_KEY] = True
        self.store[LAST_ACTIVITY_KEY] = self.clock()
        logger.info(f"Session started for {identity.email} as {identity.role}")
        return identity

    def sign_in(self, email: str, password: str) -> Identity:
        response = self.client.login(email, password)
        credential = response.get("token") or response.get("credential")
        if not credential:
            raise InvalidCredential("Login response carried no credential")
        return self.init(credential)

    # --------------------------------------------------
    # Reads
    # --------------------------------------------------
    def now(self) -> datetime:
        return datetime.fromtimestamp(self.clock(), tz=timezone.utc)

    @property
    def credential(self) -> Optional[str]:
        return self.store.get(TOKEN_KEY)

    def derive_identity(self, credential: Optional[str] = None) -> Identity:
        credential = credential if credential is not None else self.credential
        if credential is None:
            raise InvalidCredential("No credential stored")
        return derive_identity(credential)

    def current_identity(self) -> Optional[Identity]:
        """Identity for the stored credential, or None if there is none usable."""
        if self.credential is None:
            return None
        try:
            return self.derive_identity()
        except InvalidCredential:
            self.clear()
            return None

    def needs_reauth(self) -> bool:
        identity = self.current_identity()
        if identity is None:
            return True
        return identity.needs_reauth(self.now(), buffer_seconds=self.reauth_buffer_seconds)

    # --------------------------------------------------
    # Liveness
    # --------------------------------------------------
    def is_alive(self) -> bool:
        """
        Alive only while the liveness flag is set and the last activity is
        within the inactivity ceiling. Exceeding the ceiling clears the
        session before returning False.
        """
        active = self.store.get(SESSION_ACTIVE_KEY) is True
        last_activity = self.store.get(LAST_ACTIVITY_KEY)

        if not active or last_activity is None:
            return False

        try:
            idle_for = self.clock() - float(last_activity)
        except (TypeError, ValueError):
            self.clear()
            return False

        if idle_for > self.max_inactivity_seconds:
            logger.info("Session exceeded inactivity ceiling, clearing")
            self.clear()
            return False

        return True

    def refresh_activity(self) -> None:
        if self.is_alive():
            self.store[LAST_ACTIVITY_KEY] = self.clock()

    # --------------------------------------------------
    # Remote verification
    # --------------------------------------------------
    def verify_remote(self, credential: Optional[str] = None) -> VerificationResult:
        """
        Round trip to the authoritative identity check.

        EXPIRED and REJECTED clear the local store unconditionally.
        UNREACHABLE (transport failure) is "not authenticated" for the caller
        but keeps the credential for the next attempt.
        """
        credential = credential if credential is not None else self.credential
        if credential is None:
            return VerificationResult.REJECTED

        try:
            identity = derive_identity(credential)
        except InvalidCredential:
            self.clear()
            return VerificationResult.REJECTED

        try:
            response: Dict[str, Any] = self.client.verify_identity(credential)
        except NetworkFailure as e:
            logger.error(f"Identity verification unreachable: {e}")
            return VerificationResult.UNREACHABLE

        if response.get("valid"):
            server_identity = response.get("identity") or {}
            server_role = server_identity.get("roleName")
            if server_role is not None and normalize_role(server_role) != identity.role:
                logger.warning(
                    f"Role mismatch for {identity.email}: "
                    f"token={identity.role} server={normalize_role(server_role)}"
                )
                self.clear()
                return VerificationResult.REJECTED
            return VerificationResult.VALID

        code = response.get("code")
        self.clear()
        if code in EXPIRED_CODES:
            logger.warning(f"Credential for {identity.email} expired on server")
            return VerificationResult.EXPIRED

        logger.warning(f"Credential for {identity.email} rejected by server ({code})")
        return VerificationResult.REJECTED

    # --------------------------------------------------
    # Sign-out
    # --------------------------------------------------
    def clear(self) -> None:
        for key in _SESSION_KEYS:
            self.store.pop(key, None)
