from __future__ import annotations

import uuid
from concurrent.futures import ThreadPoolExecutor
from datetime import datetime, timedelta, timezone

import pytest

from takedown_observer.domain.account import Account
from takedown_observer.domain.aggregation import merge_report
from takedown_observer.domain.contracts import ReportIntake, SubmitOutcome
from takedown_observer.domain.errors import StorageFailure
from takedown_observer.domain.service import ReportService
from takedown_observer.memory_repository import InMemoryAccountRepository

CLIENT_A = "123e4567-e89b-12d3-a456-426614174000"
CLIENT_B = "9b2f0c4e-5a1d-4c3b-8e7f-0123456789ab"
T0 = datetime(2025, 2, 20, 13, 0, tzinfo=timezone.utc)


class SteppingClock:
    """Clock returning a fixed start time advanced by one minute per call."""

    def __init__(self, start: datetime = T0) -> None:
        self.current = start

    def __call__(self) -> datetime:
        now = self.current
        self.current += timedelta(minutes=1)
        return now


def make_intake(client_id: str = CLIENT_A, **overrides) -> ReportIntake:
    fields = {
        "client_id": client_id,
        "account_id": "acct_1",
        "name": "Acct",
        "countries": ("US", "GB"),
        "data_format_version": "1.0",
    }
    fields.update(overrides)
    return ReportIntake(**fields)


@pytest.fixture
def service():
    return ReportService(InMemoryAccountRepository(), clock=SteppingClock())


def test_merge_creates_account_for_unseen_id():
    result = merge_report(None, make_intake(), T0)
    assert result.outcome is SubmitOutcome.created
    assert result.new_reporter
    assert result.account.report_count == 1
    assert result.account.reported_by == [CLIENT_A]
    assert result.account.last_reported_at == T0
    assert result.account.countries == ["US", "GB"]


def test_merge_does_not_mutate_existing_account():
    existing = merge_report(None, make_intake(), T0).account
    merge_report(existing, make_intake(CLIENT_B), T0 + timedelta(minutes=1))
    assert existing.reported_by == [CLIENT_A]
    assert existing.report_count == 1


def test_merge_keeps_timestamp_monotonic():
    existing = merge_report(None, make_intake(), T0).account
    result = merge_report(existing, make_intake(CLIENT_B), T0 - timedelta(hours=1))
    assert result.account.last_reported_at == T0


def test_two_clients_count_twice(service):
    first = service.submit(make_intake(CLIENT_A))
    second = service.submit(make_intake(CLIENT_B))

    assert first.outcome is SubmitOutcome.created
    assert second.outcome is SubmitOutcome.updated
    assert second.new_reporter
    assert second.account.report_count == 2
    assert second.account.reported_by == [CLIENT_A, CLIENT_B]


def test_same_client_twice_counts_once_but_refreshes_timestamp(service):
    first = service.submit(make_intake())
    second = service.submit(make_intake())

    assert second.outcome is SubmitOutcome.updated
    assert not second.new_reporter
    assert second.account.report_count == 1
    assert second.account.reported_by == [CLIENT_A]
    assert second.account.last_reported_at > first.account.last_reported_at


def test_repeat_report_overwrites_descriptive_fields(service):
    service.submit(make_intake())
    service.submit(make_intake(name="Renamed", countries=("FR",), data_format_version="1.0"))

    stored = service._store.get("acct_1")  # type: ignore[attr-defined]
    assert stored.name == "Renamed"
    assert stored.countries == ["FR"]
    assert stored.data_format_version == "1.0"
    assert stored.report_count == 1


def test_report_count_matches_reporter_set(service):
    clients = [CLIENT_A, CLIENT_B, CLIENT_A, str(uuid.uuid4()), CLIENT_B]
    for client_id in clients:
        result = service.submit(make_intake(client_id))
    assert result.account.report_count == len(result.account.reported_by) == 3


def test_concurrent_distinct_clients_are_all_counted():
    repository = InMemoryAccountRepository()
    service = ReportService(repository)
    clients = [str(uuid.uuid4()) for _ in range(50)]

    with ThreadPoolExecutor(max_workers=8) as pool:
        list(pool.map(lambda client_id: service.submit(make_intake(client_id)), clients))

    stored = repository.get("acct_1")
    assert stored.report_count == 50
    assert sorted(stored.reported_by) == sorted(clients)


def test_concurrent_repeats_from_one_client_count_once():
    repository = InMemoryAccountRepository()
    service = ReportService(repository)

    with ThreadPoolExecutor(max_workers=8) as pool:
        list(pool.map(lambda _: service.submit(make_intake()), range(40)))

    assert repository.get("acct_1").report_count == 1


class FailingStore(InMemoryAccountRepository):
    def read_modify_write(self, account_id, merge):
        raise StorageFailure("submit")

    def scan_all(self):
        raise StorageFailure("scan")


def test_storage_failure_propagates_without_writes():
    store = FailingStore()
    service = ReportService(store)

    with pytest.raises(StorageFailure):
        service.submit(make_intake())
    assert store.get("acct_1") is None

    with pytest.raises(StorageFailure):
        service.export_csv()
    with pytest.raises(StorageFailure):
        service.list_accounts()


def test_store_returns_copies():
    repository = InMemoryAccountRepository()
    ReportService(repository).submit(make_intake())

    fetched = repository.get("acct_1")
    fetched.reported_by.append("tampered")
    assert repository.get("acct_1") == Account(
        account_id="acct_1",
        name="Acct",
        countries=["US", "GB"],
        last_reported_at=fetched.last_reported_at,
        data_format_version="1.0",
        report_count=1,
        reported_by=[CLIENT_A],
    )
