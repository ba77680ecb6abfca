"""Report service orchestrating intake, aggregation, listing and export."""

from __future__ import annotations

import logging
import math
from datetime import datetime, timezone
from typing import Callable

from .aggregation import merge_report
from .contracts import AccountFilter, AccountPage, AccountStore, MergeResult, ReportIntake
from .errors import StorageFailure
from .export import render_accounts_csv
from ..metrics import REPORTS_TOTAL, STORAGE_FAILURES_TOTAL

logger = logging.getLogger(__name__)

PAGE_SIZE = 20
# keeps the row offset within a signed 64-bit OFFSET
MAX_PAGE = (2**63 - 1) // PAGE_SIZE


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class ReportService:
    """Account workflows backed by an ``AccountStore``."""

    def __init__(
        self,
        store: AccountStore,
        clock: Callable[[], datetime] = _utcnow,
    ) -> None:
        """Store dependencies; ``clock`` supplies the server time for each report."""
        self._store = store
        self._clock = clock

    def submit(self, intake: ReportIntake) -> MergeResult:
        """Merge a validated intake into the stored account atomically.

        Raises
        ------
        StorageFailure
            The store failed; nothing was written.
        """

        def merge(existing):
            return merge_report(existing, intake, self._clock())

        try:
            result = self._store.read_modify_write(intake.account_id, merge)
        except StorageFailure as exc:
            STORAGE_FAILURES_TOTAL.labels(operation=exc.operation).inc()
            raise

        client_tag = intake.client_id[:8]
        if result.created:
            REPORTS_TOTAL.labels(outcome="created").inc()
            logger.info("account %s created by client %s", intake.account_id, client_tag)
        elif result.new_reporter:
            REPORTS_TOTAL.labels(outcome="corroborated").inc()
            logger.info(
                "account %s corroborated by client %s (reports=%d)",
                intake.account_id,
                client_tag,
                result.account.report_count,
            )
        else:
            REPORTS_TOTAL.labels(outcome="repeated").inc()
            logger.debug("account %s re-reported by client %s", intake.account_id, client_tag)
        return result

    def record_rejection(self) -> None:
        REPORTS_TOTAL.labels(outcome="rejected").inc()

    def list_accounts(
        self,
        *,
        country: str | None = None,
        search: str | None = None,
        page: int = 1,
    ) -> AccountPage:
        """Return one page of accounts, newest report first, with the global country facet."""
        if not 1 <= page <= MAX_PAGE:
            page = 1
        account_filter = AccountFilter(country=country or None, search=search or None)
        try:
            accounts, total_count = self._store.list_page(
                account_filter, (page - 1) * PAGE_SIZE, PAGE_SIZE
            )
            everything = self._store.scan_all()
        except StorageFailure as exc:
            STORAGE_FAILURES_TOTAL.labels(operation=exc.operation).inc()
            raise

        unique_countries = sorted({code for account in everything for code in account.countries})
        return AccountPage(
            accounts=accounts,
            total_count=total_count,
            current_page=page,
            total_pages=math.ceil(total_count / PAGE_SIZE),
            unique_countries=unique_countries,
        )

    def export_csv(self) -> str:
        """Render every account as CSV, newest report first."""
        try:
            accounts = self._store.scan_all()
        except StorageFailure as exc:
            STORAGE_FAILURES_TOTAL.labels(operation=exc.operation).inc()
            raise
        return render_accounts_csv(accounts)
