"""Domain-level contracts shared by the service, the stores and the API layer."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Callable, Protocol

from .account import Account


class SubmitOutcome(str, Enum):
    created = "created"
    updated = "updated"


@dataclass(slots=True, frozen=True)
class ReportIntake:
    """Validated and sanitized report from one client about one account."""

    client_id: str
    account_id: str
    name: str
    countries: tuple[str, ...]
    data_format_version: str


@dataclass(slots=True)
class MergeResult:
    """New state of an account after applying one intake."""

    account: Account
    outcome: SubmitOutcome
    new_reporter: bool

    @property
    def created(self) -> bool:
        return self.outcome is SubmitOutcome.created


@dataclass(slots=True, frozen=True)
class AccountFilter:
    """Optional listing filters; ``None`` or empty means no filtering."""

    country: str | None = None
    search: str | None = None

    def matches(self, account: Account) -> bool:
        if self.country and self.country not in account.countries:
            return False
        if self.search and self.search not in account.name:
            return False
        return True


@dataclass(slots=True)
class AccountPage:
    """One page of the filtered listing plus the global country facet."""

    accounts: list[Account]
    total_count: int
    current_page: int
    total_pages: int
    unique_countries: list[str] = field(default_factory=list)


MergeFn = Callable[[Account | None], MergeResult]


class AccountStore(Protocol):
    """Keyed account storage with an atomic read-modify-write per account id."""

    def get(self, account_id: str) -> Account | None: ...

    def read_modify_write(self, account_id: str, merge: MergeFn) -> MergeResult: ...

    def list_page(
        self, account_filter: AccountFilter, offset: int, limit: int
    ) -> tuple[list[Account], int]: ...

    def scan_all(self) -> list[Account]: ...
