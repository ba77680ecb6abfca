"""In-memory account store with per-key locking."""

from __future__ import annotations

from collections import defaultdict
from dataclasses import replace
from threading import Lock
from typing import DefaultDict

from .domain.account import Account
from .domain.contracts import AccountFilter, MergeFn, MergeResult


def _copy(account: Account) -> Account:
    return replace(account, countries=list(account.countries), reported_by=list(account.reported_by))


class InMemoryAccountRepository:
    """Thread-safe account store for local development and tests.

    Writes to the same account id serialize on a per-key lock; writes to
    different ids proceed in parallel. Reads only take the short table lock.
    """

    def __init__(self) -> None:
        self._accounts: dict[str, Account] = {}
        self._key_locks: DefaultDict[str, Lock] = defaultdict(Lock)
        self._registry_lock = Lock()
        self._table_lock = Lock()

    def _lock_for(self, account_id: str) -> Lock:
        with self._registry_lock:
            return self._key_locks[account_id]

    def get(self, account_id: str) -> Account | None:
        with self._table_lock:
            account = self._accounts.get(account_id)
        return _copy(account) if account else None

    def read_modify_write(self, account_id: str, merge: MergeFn) -> MergeResult:
        with self._lock_for(account_id):
            result = merge(self.get(account_id))
            with self._table_lock:
                self._accounts[account_id] = _copy(result.account)
        return result

    def list_page(
        self, account_filter: AccountFilter, offset: int, limit: int
    ) -> tuple[list[Account], int]:
        matching = [account for account in self.scan_all() if account_filter.matches(account)]
        return matching[offset : offset + limit], len(matching)

    def scan_all(self) -> list[Account]:
        with self._table_lock:
            accounts = [_copy(account) for account in self._accounts.values()]
        accounts.sort(key=lambda a: a.last_reported_at, reverse=True)
        return accounts
