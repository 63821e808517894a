"""
auth/vault.py -- One-way hashing and verification of tenant secrets and passwords.

bcrypt is used directly (no passlib wrapper). passlib's wrap-bug detection
builds a password longer than 72 bytes, which bcrypt 4.x rejects outright.

The cost factor comes from Settings.bcrypt_rounds (default 10). Output is
non-deterministic: every call to hash_secret() draws a fresh salt, so two
hashes of the same plaintext differ while both verify.

bcrypt only reads the first 72 bytes of its input. Longer inputs are rejected
with ValidationError instead of being silently truncated -- two passwords that
share a 72-byte prefix must not verify against each other.

Layer rule: imports only from core/.
"""

from __future__ import annotations

import bcrypt

from core.config import get_settings
from core.errors import InfrastructureError, ValidationError

MAX_SECRET_BYTES = 72


def _to_bytes(secret: str | bytes) -> bytes:
    return secret.encode("utf-8") if isinstance(secret, str) else secret


def hash_secret(secret: str | bytes, rounds: int | None = None) -> str:
    """Return a salted bcrypt hash of secret.

    Raises ValidationError for inputs beyond bcrypt's 72-byte limit and
    InfrastructureError if the bcrypt backend itself fails.
    """
    raw = _to_bytes(secret)
    if len(raw) > MAX_SECRET_BYTES:
        raise ValidationError(f"Secret must be at most {MAX_SECRET_BYTES} bytes.")
    cost = rounds if rounds is not None else get_settings().bcrypt_rounds
    try:
        return bcrypt.hashpw(raw, bcrypt.gensalt(rounds=cost)).decode("utf-8")
    except (ValueError, TypeError) as exc:
        raise InfrastructureError("Secret hashing failed.") from exc


def verify_secret(secret: str | bytes, hashed: str | None) -> bool:
    """Return True if secret matches hashed.

    Never raises: a missing, malformed or foreign hash simply fails to match.
    bcrypt.checkpw compares in constant time.
    """
    if not hashed:
        return False
    try:
        return bcrypt.checkpw(_to_bytes(secret), hashed.encode("utf-8"))
    except (ValueError, TypeError):
        return False


# Timing equalization. Computed once at import so the first authentication
# attempt is not measurably slower than later ones. Callers verify against this
# when no real hash exists, so a missing tenant or account costs one bcrypt
# round just like a wrong secret does.
DUMMY_HASH: str = hash_secret("tenantgate_timing_dummy")
