"""CSV rendering of the account table."""

from __future__ import annotations

import csv
import io
from typing import Iterable

from .account import Account

CSV_HEADER = ["Account ID", "Username", "Countries", "Last Reported At", "Data Format Version"]
COUNTRY_SEPARATOR = ", "


def render_accounts_csv(accounts: Iterable[Account]) -> str:
    """Render accounts as CSV text, header first, rows in the given order."""
    buffer = io.StringIO()
    writer = csv.writer(buffer, lineterminator="\n")
    writer.writerow(CSV_HEADER)
    for account in accounts:
        writer.writerow(
            [
                account.account_id,
                account.name,
                COUNTRY_SEPARATOR.join(account.countries),
                account.last_reported_at.isoformat(timespec="seconds"),
                account.data_format_version,
            ]
        )
    return buffer.getvalue()
