"""Merge rule deciding how one intake changes the stored account."""

from __future__ import annotations

from datetime import datetime

from .account import Account
from .contracts import MergeResult, ReportIntake, SubmitOutcome


def merge_report(existing: Account | None, intake: ReportIntake, now: datetime) -> MergeResult:
    """Apply ``intake`` to ``existing`` and return the account state to persist.

    Descriptive fields (name, countries, timestamp, format version) always take
    the intake's values. The reporter set and ``report_count`` only grow when the
    intake's client has not reported this account before, so one client cannot
    inflate the count by reporting repeatedly.
    """
    if existing is None:
        account = Account(
            account_id=intake.account_id,
            name=intake.name,
            countries=list(intake.countries),
            last_reported_at=now,
            data_format_version=intake.data_format_version,
            report_count=1,
            reported_by=[intake.client_id],
        )
        return MergeResult(account=account, outcome=SubmitOutcome.created, new_reporter=True)

    reported_by = list(existing.reported_by)
    new_reporter = intake.client_id not in reported_by
    if new_reporter:
        reported_by.append(intake.client_id)

    account = Account(
        account_id=existing.account_id,
        name=intake.name,
        countries=list(intake.countries),
        # never move backwards, even if the server clock does
        last_reported_at=max(existing.last_reported_at, now),
        data_format_version=intake.data_format_version,
        report_count=existing.report_count + 1 if new_reporter else existing.report_count,
        reported_by=reported_by,
    )
    return MergeResult(account=account, outcome=SubmitOutcome.updated, new_reporter=new_reporter)
