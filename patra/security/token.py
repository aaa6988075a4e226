"""
CREDENTIAL DECODING

Purpose:
- Turn a bearer credential (signed three-part token) into an Identity
- Decode claims WITHOUT trusting them; the remote verification call in
  session_authority is what corroborates a credential

Claims contract:
- Required: id, exp
- Expected: email, roleName
- Optional: roleId, stationName, iat
"""

import logging
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Any, Dict, Optional

from jose import JWTError, jwt

from patra.config import REAUTH_BUFFER_SECONDS
from patra.errors import InvalidCredential
from patra.security.roles import normalize_role

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Identity:
    """
    Who is acting. Only ever built by derive_identity() from a credential.
    """

    subject_id: str
    email: str
    role: str
    station_name: Optional[str]
    issued_at: Optional[datetime]
    expires_at: datetime
    role_id: Optional[int] = None

    def is_expired(self, now: Optional[datetime] = None) -> bool:
        now = now or datetime.now(timezone.utc)
        return self.expires_at <= now

    def needs_reauth(
        self,
        now: Optional[datetime] = None,
        buffer_seconds: int = REAUTH_BUFFER_SECONDS,
    ) -> bool:
        """True once we are inside the safety buffer before expiry."""
        now = now or datetime.now(timezone.utc)
        return self.expires_at <= now + timedelta(seconds=buffer_seconds)


def _from_epoch(value: Any) -> datetime:
    return datetime.fromtimestamp(float(value), tz=timezone.utc)


def decode_claims(credential: str) -> Dict[str, Any]:
    """
    Decode the payload segment of a credential without verifying it.

    Raises InvalidCredential for anything that is not three dot-separated
    segments with a JSON object payload carrying a numeric `exp`.
    """
    if not credential or not isinstance(credential, str):
        raise InvalidCredential("Credential is empty")

    if credential.count(".") != 2:
        raise InvalidCredential("Credential must have three segments")

    try:
        claims = jwt.get_unverified_claims(credential)
    except JWTError as e:
        raise InvalidCredential(f"Undecodable credential payload: {e}") from e

    if not isinstance(claims, dict):
        raise InvalidCredential("Credential payload is not an object")

    exp = claims.get("exp")
    if exp is None or isinstance(exp, bool) or not isinstance(exp, (int, float)):
        raise InvalidCredential("Credential payload has no usable 'exp'")

    return claims


def derive_identity(credential: str) -> Identity:
    """
    Build an Identity from a credential.

    Decode failures are logged once and surfaced as InvalidCredential;
    callers must not retry them.
    """
    try:
        claims = decode_claims(credential)
        subject = claims.get("id")
        if subject is None or str(subject).strip() == "":
            raise InvalidCredential("Credential payload has no subject 'id'")

        role_id = claims.get("roleId")
        return Identity(
            subject_id=str(subject),
            email=str(claims.get("email") or ""),
            role=normalize_role(claims.get("roleName")),
            station_name=claims.get("stationName"),
            issued_at=_from_epoch(claims["iat"]) if claims.get("iat") is not None else None,
            expires_at=_from_epoch(claims["exp"]),
            role_id=int(role_id) if role_id is not None else None,
        )
    except InvalidCredential as e:
        logger.warning(f"Credential rejected during decode: {e}")
        raise
    except (TypeError, ValueError, OverflowError) as e:
        logger.warning(f"Credential rejected during decode: {e}")
        raise InvalidCredential(str(e)) from e
