"""
accounts/refresh.py -- Refresh-token lifecycle over an account's token set.

Token states:
  issued  -- digest present in the account's set and the token unexpired
  rotated -- digest removed and a new token recorded, in one transaction
  revoked -- digest removed, nothing replaces it
  expired -- the token no longer verifies; its row is dropped the next time
             the account's set is written (or by the periodic sweep)

Every operation that accepts a presented token checks, in order:
  1. signature, type and expiry (InvalidTokenError / ExpiredTokenError)
  2. the subject is this account (InvalidTokenError)
  3. membership in the set, as part of the atomic write (NotFoundError)

A NotFoundError on step 3 means the token was already rotated or revoked --
a possible replay -- and is logged at WARNING.

Multiple concurrently valid refresh tokens per account are allowed (one per
device/session). revoke_all_refresh_tokens() is "log out everywhere".
"""

from __future__ import annotations

import logging
import time

from accounts.models import Account, TokenPair
from accounts.store import AccountStore
from auth.tokens import ACCESS, REFRESH, IssuedToken, decode_token, issue_token, token_digest
from core.config import get_settings
from core.errors import InvalidTokenError, NotFoundError

logger = logging.getLogger("tenantgate.accounts")


def _purge_cutoff() -> int | None:
    return int(time.time()) if get_settings().purge_expired_refresh_tokens else None


def _check_presented(account: Account, presented: str) -> str:
    """Verify presented for account and return its digest."""
    payload = decode_token(presented, REFRESH)
    if payload["sub"] != str(account.id):
        raise InvalidTokenError("Refresh token does not belong to this account.")
    return token_digest(presented)


def _new_refresh_token(account: Account) -> IssuedToken:
    return issue_token(account.id, REFRESH, extra_claims={"tenant": account.tenant_id})


def issue_access_token(account: Account) -> IssuedToken:
    """Sign a short-lived access token carrying the account's tenant and role."""
    return issue_token(account.id, ACCESS, extra_claims={"tenant": account.tenant_id, "role": account.role})


def _issue_refresh(store: AccountStore, account: Account) -> IssuedToken:
    issued = _new_refresh_token(account)
    store.add_refresh_token(account.id, token_digest(issued.token), issued.expires_at, purge_before=_purge_cutoff())
    account.refresh_tokens = store.list_refresh_tokens(account.id)
    logger.info("Refresh token issued: tenant_id=%s account=%s", account.tenant_id, account.id)
    return issued


def issue_refresh_token(store: AccountStore, account: Account) -> str:
    """Create a refresh token, add it to the account's set and return it."""
    return _issue_refresh(store, account).token


def _rotate_refresh(store: AccountStore, account: Account, presented: str) -> IssuedToken:
    old_digest = _check_presented(account, presented)
    issued = _new_refresh_token(account)
    swapped = store.replace_refresh_token(
        account.id,
        old_digest,
        token_digest(issued.token),
        issued.expires_at,
        purge_before=_purge_cutoff(),
    )
    if not swapped:
        logger.warning("Refresh token replay rejected: tenant_id=%s account=%s", account.tenant_id, account.id)
        raise NotFoundError("Refresh token not found.")
    account.refresh_tokens = store.list_refresh_tokens(account.id)
    logger.info("Refresh token rotated: tenant_id=%s account=%s", account.tenant_id, account.id)
    return issued


def rotate_refresh_token(store: AccountStore, account: Account, presented: str) -> str:
    """Exchange presented for a new refresh token.

    After success presented can never be rotated or revoked again.
    """
    return _rotate_refresh(store, account, presented).token


def revoke_refresh_token(store: AccountStore, account: Account, presented: str) -> bool:
    """Remove presented from the account's set without issuing a replacement."""
    digest = _check_presented(account, presented)
    if not store.remove_refresh_token(account.id, digest, purge_before=_purge_cutoff()):
        logger.warning("Refresh token replay rejected: tenant_id=%s account=%s", account.tenant_id, account.id)
        raise NotFoundError("Refresh token not found.")
    account.refresh_tokens = store.list_refresh_tokens(account.id)
    logger.info("Refresh token revoked: tenant_id=%s account=%s", account.tenant_id, account.id)
    return True


def revoke_all_refresh_tokens(store: AccountStore, account: Account) -> bool:
    """Empty the account's refresh-token set unconditionally."""
    removed = store.remove_all_refresh_tokens(account.id)
    account.refresh_tokens = []
    logger.info("All refresh tokens revoked: tenant_id=%s account=%s count=%d", account.tenant_id, account.id, removed)
    return True


def issue_token_pair(store: AccountStore, account: Account) -> TokenPair:
    """Issue an access token and a new refresh token (login)."""
    access = issue_access_token(account)
    refresh = _issue_refresh(store, account)
    return TokenPair(
        access_token=access.token,
        refresh_token=refresh.token,
        access_expires_at=access.expires_at,
        refresh_expires_at=refresh.expires_at,
    )


def rotate_token_pair(store: AccountStore, account: Account, presented: str) -> TokenPair:
    """Rotate presented and issue a fresh access token alongside (refresh)."""
    refresh = _rotate_refresh(store, account, presented)
    access = issue_access_token(account)
    return TokenPair(
        access_token=access.token,
        refresh_token=refresh.token,
        access_expires_at=access.expires_at,
        refresh_expires_at=refresh.expires_at,
    )

def resolve_account(store: AccountStore, tenant_id: str, token: str, purpose: str = REFRESH) -> Account:
    """Return the account a verified token was issued to.

    Raises InvalidTokenError if the subject is unknown or belongs to another
    tenant -- a token never crosses tenant boundaries.
    """
    subject = decode_token(token, purpose)["sub"]
    account = store.get(int(subject)) if subject.isdigit() else None
    if account is None or account.tenant_id != tenant_id:
        raise InvalidTokenError("Token does not belong to this project.")
    return account


def confirm_refresh_token(store: AccountStore, account: Account, presented: str) -> None:
    """Raise unless presented verifies for account and is still in its set."""
    digest = _check_presented(account, presented)
    if not store.has_refresh_token(account.id, digest):
        logger.warning("Refresh token replay rejected: tenant_id=%s account=%s", account.tenant_id, account.id)
        raise NotFoundError("Refresh token not found.")
