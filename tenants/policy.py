"""
tenants/policy.py -- Signup input validation against a tenant's policy.

validate_signup() is a pure function over (policy, candidate fields). It is
called once, before the account registry is invoked, so the registry can treat
the role it stores as already validated. Rules are checked in a fixed order and
the first failure raises ValidationError naming that rule.

The password itself never appears in an error message.
"""

from __future__ import annotations

import re

from auth.vault import MAX_SECRET_BYTES
from core.errors import ValidationError
from tenants.models import PasswordPolicy, TenantPolicy

USERNAME_RE = re.compile(r"^(?![._])[a-z0-9]+(?:[._][a-z0-9]+)*$")
EMAIL_RE = re.compile(r"^[a-zA-Z0-9][a-zA-Z0-9._%+-]*[a-zA-Z0-9]@[a-zA-Z0-9.-]+\.[a-zA-Z]{2,}$")

SYMBOLS = '!@#$%^&*(),.?":{}|<>'
_SYMBOL_RE = re.compile("[" + re.escape(SYMBOLS) + "]")


def check_password(policy: PasswordPolicy, password: str | None) -> None:
    """Raise ValidationError if password violates policy."""
    if not password:
        raise ValidationError("Password is required.")
    if len(password.encode("utf-8")) > MAX_SECRET_BYTES:
        raise ValidationError(f"Password must be at most {MAX_SECRET_BYTES} bytes long.")
    rules = [
        (len(password) < policy.min_length, f"Password must be at least {policy.min_length} characters long."),
        (policy.require_digit and not re.search(r"\d", password), "Password must contain at least one number."),
        (
            policy.require_symbol and not _SYMBOL_RE.search(password),
            "Password must contain at least one special character.",
        ),
        (
            policy.require_uppercase and not re.search(r"[A-Z]", password),
            "Password must contain at least one uppercase letter.",
        ),
    ]
    for failed, message in rules:
        if failed:
            raise ValidationError(message)


def check_role(policy: TenantPolicy, role: str | None) -> None:
    """Raise ValidationError if role is given but not configured on the tenant.

    An empty role counts as no role.
    """
    if not role:
        return
    names = policy.role_names()
    if role not in names:
        allowed = ", ".join(sorted(names)) or "(none configured)"
        raise ValidationError(f"Invalid role. Must be one of: {allowed}")


def validate_signup(
    policy: TenantPolicy,
    username: str | None,
    email: str | None,
    password: str | None,
    role: str | None = None,
) -> None:
    """Validate a signup request against the tenant's policy.

    username and email are both required because an account is unique on each
    within its tenant.
    """
    if not username or not USERNAME_RE.match(username):
        raise ValidationError("Username not valid.")
    if not email or not EMAIL_RE.match(email):
        raise ValidationError("Invalid email format or email not present.")
    check_password(policy.password_policy, password)
    check_role(policy, role)
