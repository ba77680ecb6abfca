from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime


@dataclass(slots=True)
class Account:
    """Aggregate root for an account reported as taken down."""

    account_id: str
    name: str
    countries: list[str]
    last_reported_at: datetime
    data_format_version: str
    report_count: int = 0
    reported_by: list[str] = field(default_factory=list)
