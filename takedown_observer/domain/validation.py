"""Shape checks and sanitization for incoming reports.

Every function here is pure: nothing consults the account store, so a report
is accepted or rejected on its own content alone.
"""

from __future__ import annotations

import html
import re
from typing import Sequence

from .contracts import ReportIntake
from .errors import (
    InvalidAccountID,
    InvalidAccountName,
    InvalidClientID,
    InvalidCountries,
    UnsupportedVersion,
)

DATA_FORMAT_VERSION = "1.0"

MAX_ACCOUNT_ID_LENGTH = 40
MAX_ACCOUNT_NAME_LENGTH = 30
MAX_COUNTRIES = 252
COUNTRY_CODE_LENGTH = 2

_UUID_PATTERN = re.compile(
    r"[0-9a-fA-F]{8}-[0-9a-fA-F]{4}-[0-9a-fA-F]{4}-[0-9a-fA-F]{4}-[0-9a-fA-F]{12}"
)
_ACCOUNT_ID_PATTERN = re.compile(r"[A-Za-z0-9_=]+")
_ACCOUNT_NAME_PATTERN = re.compile(r"[A-Za-z0-9_]+")
_COUNTRY_CODE_PATTERN = re.compile(r"[A-Z]{2}")


def validate_uuid(value: str) -> bool:
    """Return ``True`` for a hyphenated 8-4-4-4-12 hex UUID in any case."""
    if not isinstance(value, str):
        return False
    return _UUID_PATTERN.fullmatch(value) is not None


def validate_account_id(value: str) -> None:
    if not value:
        raise InvalidAccountID("empty")
    if len(value) > MAX_ACCOUNT_ID_LENGTH:
        raise InvalidAccountID(f"too long (maximum {MAX_ACCOUNT_ID_LENGTH} characters)")
    if _ACCOUNT_ID_PATTERN.fullmatch(value) is None:
        raise InvalidAccountID("invalid characters")


def validate_account_name(value: str) -> None:
    if not value:
        raise InvalidAccountName("empty")
    if len(value) > MAX_ACCOUNT_NAME_LENGTH:
        raise InvalidAccountName(f"too long (maximum {MAX_ACCOUNT_NAME_LENGTH} characters)")
    if _ACCOUNT_NAME_PATTERN.fullmatch(value) is None:
        raise InvalidAccountName("invalid characters")


def validate_countries(values: Sequence[str]) -> None:
    """Check a country list, reporting the first offending entry by position.

    Duplicates are detected by exact, case-sensitive comparison. Offending
    values are never echoed back, only their index.
    """
    if not values:
        raise InvalidCountries("empty")
    if len(values) > MAX_COUNTRIES:
        raise InvalidCountries(f"too many (maximum {MAX_COUNTRIES})")

    seen: set[str] = set()
    for index, code in enumerate(values):
        if not isinstance(code, str) or len(code) != COUNTRY_CODE_LENGTH:
            raise InvalidCountries(f"bad length at position {index}")
        if _COUNTRY_CODE_PATTERN.fullmatch(code) is None:
            raise InvalidCountries(f"bad format at position {index}")
        if code in seen:
            raise InvalidCountries(f"duplicate at position {index}")
        seen.add(code)


def sanitize_string(value: str) -> str:
    """Drop control characters, trim whitespace and HTML-escape the result."""
    cleaned = "".join(ch for ch in value if ord(ch) >= 0x20 and ord(ch) != 0x7F)
    return html.escape(cleaned.strip(), quote=True)


def validate_report(
    *,
    client_id: str,
    data_format_version: str,
    account_id: str,
    name: str,
    countries: Sequence[str],
) -> ReportIntake:
    """Validate a raw report and return the sanitized intake.

    Checks run in a fixed order (client id, format version, account id, account
    name, countries) so the same bad report always yields the same error.

    Raises
    ------
    ReportRejected
        The subclass names the first field that failed.
    """
    if not validate_uuid(client_id):
        raise InvalidClientID()
    if data_format_version != DATA_FORMAT_VERSION:
        raise UnsupportedVersion()
    validate_account_id(account_id)
    validate_account_name(name)
    validate_countries(countries)

    return ReportIntake(
        client_id=client_id,
        account_id=sanitize_string(account_id),
        name=sanitize_string(name),
        countries=tuple(countries),
        data_format_version=data_format_version,
    )
