"""Unit tests for accounts/refresh.py -- the refresh-token lifecycle.

Covers:
- issue adds exactly one digest to the account's set; plaintext is never stored
- several tokens may be valid at once (one per session)
- rotation removes the presented token and adds a new one; replay fails NotFoundError
- concurrent rotations of one token: exactly one succeeds
- revoke one / revoke all
- expired and foreign tokens fail before any membership check
- expired rows are purged on write and by the sweep
- resolve_account() never crosses tenants
"""

from __future__ import annotations

import threading
import time
from datetime import datetime, timedelta, timezone

import pytest

import auth.tokens as tokens
from accounts.refresh import (
    confirm_refresh_token,
    issue_access_token,
    issue_refresh_token,
    issue_token_pair,
    resolve_account,
    revoke_all_refresh_tokens,
    revoke_refresh_token,
    rotate_refresh_token,
    rotate_token_pair,
)
from accounts.registry import create_account
from accounts.store import AccountStore
from auth.tokens import ACCESS, REFRESH, decode_token, token_digest
from core.errors import ExpiredTokenError, InvalidTokenError, NotFoundError

TENANT = "prjAAAAAAAAAAAA"


@pytest.fixture
def account(account_store):
    return create_account(account_store, TENANT, "alice", "alice@x.com", "Str0ng!Pw")


def _move_clock(monkeypatch, seconds: int) -> None:
    later = datetime.now(timezone.utc) + timedelta(seconds=seconds)
    monkeypatch.setattr(tokens, "_utcnow", lambda: later)


class TestIssue:
    def test_issue_adds_digest(self, account_store, account) -> None:
        token = issue_refresh_token(account_store, account)
        assert account.refresh_tokens == [token_digest(token)]
        assert account_store.list_refresh_tokens(account.id) == [token_digest(token)]
        assert token not in account_store.list_refresh_tokens(account.id)

    def test_token_claims(self, account_store, account) -> None:
        payload = decode_token(issue_refresh_token(account_store, account), REFRESH)
        assert payload["sub"] == str(account.id)
        assert payload["tenant"] == TENANT

    def test_multiple_sessions(self, account_store, account) -> None:
        first = issue_refresh_token(account_store, account)
        second = issue_refresh_token(account_store, account)
        assert len(account.refresh_tokens) == 2
        assert first != second

    def test_access_token_claims(self, account_store) -> None:
        admin = create_account(account_store, TENANT, "root", "root@x.com", "Str0ng!Pw", role="admin")
        payload = decode_token(issue_access_token(admin).token, ACCESS)
        assert payload["role"] == "admin"
        assert payload["tenant"] == TENANT

    def test_token_pair(self, account_store, account) -> None:
        pair = issue_token_pair(account_store, account)
        assert decode_token(pair.access_token, ACCESS)["sub"] == str(account.id)
        assert account.refresh_tokens == [token_digest(pair.refresh_token)]
        assert pair.refresh_expires_at > pair.access_expires_at


class TestRotate:
    def test_rotation_swaps_digest(self, account_store, account) -> None:
        old = issue_refresh_token(account_store, account)
        new = rotate_refresh_token(account_store, account, old)
        assert new != old
        assert account.refresh_tokens == [token_digest(new)]

    def test_replay_fails(self, account_store, account) -> None:
        old = issue_refresh_token(account_store, account)
        rotate_refresh_token(account_store, account, old)
        with pytest.raises(NotFoundError, match="Refresh token not found."):
            rotate_refresh_token(account_store, account, old)

    def test_rotation_leaves_other_sessions(self, account_store, account) -> None:
        keep = issue_refresh_token(account_store, account)
        spent = issue_refresh_token(account_store, account)
        new = rotate_refresh_token(account_store, account, spent)
        assert set(account.refresh_tokens) == {token_digest(keep), token_digest(new)}

    def test_rotate_pair(self, account_store, account) -> None:
        first = issue_token_pair(account_store, account)
        second = rotate_token_pair(account_store, account, first.refresh_token)
        assert account.refresh_tokens == [token_digest(second.refresh_token)]

    def test_expired_token_fails_before_membership(self, account_store, account, monkeypatch) -> None:
        token = issue_refresh_token(account_store, account)
        _move_clock(monkeypatch, 8 * 24 * 3600)
        with pytest.raises(ExpiredTokenError):
            rotate_refresh_token(account_store, account, token)
        assert account_store.list_refresh_tokens(account.id) == [token_digest(token)]

    def test_token_of_other_account(self, account_store, account) -> None:
        bob = create_account(account_store, TENANT, "bob", "bob@x.com", "Str0ng!Pw")
        bobs = issue_refresh_token(account_store, bob)
        with pytest.raises(InvalidTokenError):
            rotate_refresh_token(account_store, account, bobs)
        assert bob.refresh_tokens == [token_digest(bobs)]

    def test_access_token_cannot_rotate(self, account_store, account) -> None:
        access = issue_access_token(account).token
        with pytest.raises(InvalidTokenError):
            rotate_refresh_token(account_store, account, access)

    def test_concurrent_rotation_single_winner(self, tmp_path) -> None:
        """Two threads rotate the same token; exactly one gets a new token."""
        store = AccountStore(f"sqlite:///{tmp_path / 'race.db'}")
        try:
            owner = create_account(store, TENANT, "alice", "alice@x.com", "Str0ng!Pw")
            presented = issue_refresh_token(store, owner)
            barrier = threading.Barrier(2)
            results: list[str] = []

            def attempt() -> None:
                account = store.get(owner.id)
                barrier.wait()
                try:
                    rotate_refresh_token(store, account, presented)
                    results.append("ok")
                except NotFoundError:
                    results.append("not_found")

            threads = [threading.Thread(target=attempt) for _ in range(2)]
            for t in threads:
                t.start()
            for t in threads:
                t.join()

            assert sorted(results) == ["not_found", "ok"]
            assert len(store.list_refresh_tokens(owner.id)) == 1
        finally:
            store.close()


class TestRevoke:
    def test_revoke_one(self, account_store, account) -> None:
        keep = issue_refresh_token(account_store, account)
        gone = issue_refresh_token(account_store, account)
        assert revoke_refresh_token(account_store, account, gone) is True
        assert account.refresh_tokens == [token_digest(keep)]

    def test_revoke_twice(self, account_store, account) -> None:
        token = issue_refresh_token(account_store, account)
        revoke_refresh_token(account_store, account, token)
        with pytest.raises(NotFoundError):
            revoke_refresh_token(account_store, account, token)

    def test_revoked_token_cannot_rotate(self, account_store, account) -> None:
        token = issue_refresh_token(account_store, account)
        revoke_refresh_token(account_store, account, token)
        with pytest.raises(NotFoundError):
            rotate_refresh_token(account_store, account, token)

    def test_revoke_all(self, account_store, account) -> None:
        tokens_ = [issue_refresh_token(account_store, account) for _ in range(3)]
        assert revoke_all_refresh_tokens(account_store, account) is True
        assert account.refresh_tokens == []
        assert account_store.list_refresh_tokens(account.id) == []
        for token in tokens_:
            with pytest.raises(NotFoundError):
                rotate_refresh_token(account_store, account, token)

    def test_revoke_all_on_empty_set(self, account_store, account) -> None:
        assert revoke_all_refresh_tokens(account_store, account) is True

    def test_confirm(self, account_store, account) -> None:
        token = issue_refresh_token(account_store, account)
        confirm_refresh_token(account_store, account, token)
        revoke_refresh_token(account_store, account, token)
        with pytest.raises(NotFoundError):
            confirm_refresh_token(account_store, account, token)


class TestPurge:
    def test_expired_rows_dropped_on_write(self, account_store, account) -> None:
        now = int(time.time())
        account_store.add_refresh_token(account.id, "stale", now - 10)
        issue_refresh_token(account_store, account)
        assert "stale" not in account_store.list_refresh_tokens(account.id)
        assert len(account.refresh_tokens) == 1

    def test_expired_rows_dropped_on_revoke(self, account_store, account) -> None:
        now = int(time.time())
        first = issue_refresh_token(account_store, account)
        issue_refresh_token(account_store, account)
        account_store.add_refresh_token(account.id, "stale", now - 10)
        revoke_refresh_token(account_store, account, first)
        remaining = account_store.list_refresh_tokens(account.id)
        assert "stale" not in remaining
        assert remaining == account.refresh_tokens
        assert len(remaining) == 1

    def test_failed_revoke_keeps_expired_rows(self, account_store, account) -> None:
        now = int(time.time())
        issue_refresh_token(account_store, account)
        account_store.add_refresh_token(account.id, "stale", now - 10)
        with pytest.raises(NotFoundError):
            revoke_refresh_token(account_store, account, tokens.issue_token(account.id, REFRESH).token)
        assert "stale" in account_store.list_refresh_tokens(account.id)

    def test_sweep(self, account_store, account) -> None:
        now = int(time.time())
        account_store.add_refresh_token(account.id, "stale-1", now - 10)
        account_store.add_refresh_token(account.id, "stale-2", now)
        account_store.add_refresh_token(account.id, "live", now + 3600)
        assert account_store.purge_expired_refresh_tokens(now) == 2
        assert account_store.list_refresh_tokens(account.id) == ["live"]


class TestResolveAccount:
    def test_resolves_owner(self, account_store, account) -> None:
        token = issue_refresh_token(account_store, account)
        assert resolve_account(account_store, TENANT, token).id == account.id

    def test_other_tenant_rejected(self, account_store, account) -> None:
        token = issue_refresh_token(account_store, account)
        with pytest.raises(InvalidTokenError, match="does not belong"):
            resolve_account(account_store, "prjBBBBBBBBBBBB", token)

    def test_access_purpose(self, account_store, account) -> None:
        access = issue_access_token(account).token
        assert resolve_account(account_store, TENANT, access, purpose=ACCESS).id == account.id
        with pytest.raises(InvalidTokenError):
            resolve_account(account_store, TENANT, access)

    def test_deleted_subject(self, account_store) -> None:
        token = tokens.issue_token(9999, REFRESH).token
        with pytest.raises(InvalidTokenError):
            resolve_account(account_store, TENANT, token)
