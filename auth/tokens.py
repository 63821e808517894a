"""
auth/tokens.py -- Signed, time-bounded bearer tokens for accounts.

Security design decisions:
  JWT: python-jose with HS256. Access and refresh tokens are signed with
       independent keys and carry independent lifetimes, both from Settings.
       Every token embeds:
         sub  -- the account id (string)
         type -- "access" or "refresh"; verification rejects the wrong type
         iat / exp -- issue and expiry timestamps (integer seconds)
         jti  -- random id, so two tokens issued in the same second differ

  Failure modes are typed rather than None-returning: the refresh lifecycle
       needs to tell a forged token (InvalidTokenError) from a stale one
       (ExpiredTokenError), and a missing key must stop the operation with
       ConfigurationError instead of signing with an empty secret.

  token_digest(): refresh tokens are stored as SHA-256 digests, never as
       plaintext. The token already carries 128 bits of jti entropy plus a
       signature, so a fast hash is sufficient for at-rest protection and
       keeps lookup O(1).

Layer rule: imports only from core/.
"""

from __future__ import annotations

import hashlib
import uuid
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Any

from jose import JWTError, jwt

from core.config import get_settings
from core.errors import ConfigurationError, ExpiredTokenError, InvalidTokenError

_ALGORITHM = "HS256"

ACCESS = "access"
REFRESH = "refresh"
_PURPOSES = (ACCESS, REFRESH)


@dataclass(frozen=True)
class IssuedToken:
    """A freshly signed token and the moment it stops verifying."""

    token: str
    expires_at: int  # unix seconds, same value as the exp claim


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _key_and_ttl(purpose: str) -> tuple[str, int]:
    if purpose not in _PURPOSES:
        raise ValueError(f"Unknown token purpose: {purpose!r}")
    cfg = get_settings()
    if purpose == ACCESS:
        return cfg.access_token_secret, cfg.access_token_expire_seconds
    return cfg.refresh_token_secret, cfg.refresh_token_expire_seconds


def issue_token(
    subject: str | int,
    purpose: str,
    *,
    signing_key: str | None = None,
    ttl_seconds: int | None = None,
    extra_claims: dict[str, Any] | None = None,
) -> IssuedToken:
    """Sign a token for subject.

    signing_key and ttl_seconds default to the configured values for purpose.
    Raises ConfigurationError when the resolved key is empty or the ttl is
    not positive -- the token is never signed in that case.
    """
    default_key, default_ttl = _key_and_ttl(purpose)
    key = default_key if signing_key is None else signing_key
    ttl = default_ttl if ttl_seconds is None else ttl_seconds
    if not key:
        raise ConfigurationError(f"No signing key configured for {purpose} tokens.")
    if ttl <= 0:
        raise ConfigurationError(f"No positive lifetime configured for {purpose} tokens.")

    now = _utcnow()
    expire = int((now + timedelta(seconds=ttl)).timestamp())
    payload: dict[str, Any] = dict(extra_claims or {})
    payload.update(
        {
            "sub": str(subject),
            "type": purpose,
            "iat": int(now.timestamp()),
            "exp": expire,
            "jti": uuid.uuid4().hex,
        }
    )
    return IssuedToken(token=jwt.encode(payload, key, algorithm=_ALGORITHM), expires_at=expire)


def decode_token(token: str, purpose: str, *, signing_key: str | None = None) -> dict[str, Any]:
    """Verify signature, expiry and type; return the full claim set.

    Raises ExpiredTokenError if the token is past exp, InvalidTokenError for
    any other defect (bad signature, garbage input, wrong type, no subject).
    """
    default_key, _ = _key_and_ttl(purpose)
    key = default_key if signing_key is None else signing_key
    if not key:
        raise ConfigurationError(f"No signing key configured for {purpose} tokens.")
    try:
        # exp is checked by hand below against _utcnow() so tests can move
        # the clock without patching jose internals.
        payload = jwt.decode(token, key, algorithms=[_ALGORITHM], options={"verify_exp": False})
    except JWTError as exc:
        raise InvalidTokenError("Token is invalid.") from exc

    exp = payload.get("exp")
    if not isinstance(exp, int):
        raise InvalidTokenError("Token is invalid.")
    if exp <= int(_utcnow().timestamp()):
        raise ExpiredTokenError("Token has expired.")
    if payload.get("type") != purpose:
        raise InvalidTokenError(f"Token is not a {purpose} token.")
    if not payload.get("sub"):
        raise InvalidTokenError("Token has no subject.")
    return payload


def verify_token(token: str, purpose: str, *, signing_key: str | None = None) -> str:
    """Verify token and return its subject id."""
    return decode_token(token, purpose, signing_key=signing_key)["sub"]


def token_digest(token: str) -> str:
    """Return the hex SHA-256 of token, the form in which refresh tokens are stored."""
    return hashlib.sha256(token.encode("utf-8")).hexdigest()
