"""Errors raised while accepting reports or talking to the account store."""

from __future__ import annotations


class ReportRejected(ValueError):
    """Base class for validation failures; terminal for the request."""

    field: str = "report"

    def __init__(self, reason: str) -> None:
        super().__init__(f"{self.field}: {reason}")
        self.reason = reason


class InvalidClientID(ReportRejected):
    field = "client_id"

    def __init__(self, reason: str = "invalid format") -> None:
        super().__init__(reason)


class UnsupportedVersion(ReportRejected):
    field = "data_format_version"

    def __init__(self, reason: str = "unsupported") -> None:
        super().__init__(reason)


class InvalidAccountID(ReportRejected):
    field = "account.id"


class InvalidAccountName(ReportRejected):
    field = "account.name"


class InvalidCountries(ReportRejected):
    field = "account.countries"


class StorageFailure(RuntimeError):
    """Raised when the account store fails; the unit of work was rolled back."""

    def __init__(self, operation: str) -> None:
        super().__init__(f"storage failure during {operation}")
        self.operation = operation
