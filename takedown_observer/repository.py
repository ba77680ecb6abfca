"""Database repository for reported accounts."""

from __future__ import annotations

import logging
from typing import Any

import psycopg
from psycopg.rows import tuple_row
from psycopg.types.json import Jsonb
from psycopg_pool import ConnectionPool

from .domain.account import Account
from .domain.contracts import AccountFilter, MergeFn, MergeResult
from .domain.errors import StorageFailure

logger = logging.getLogger(__name__)

_COLUMNS = "account_id, name, countries, last_reported_at, report_count, reported_by, data_format_version"

SCHEMA_SQL = """
CREATE TABLE IF NOT EXISTS reported_accounts (
    account_id TEXT PRIMARY KEY,
    name TEXT NOT NULL,
    countries JSONB NOT NULL DEFAULT '[]'::jsonb,
    last_reported_at TIMESTAMPTZ NOT NULL,
    report_count INTEGER NOT NULL DEFAULT 0,
    reported_by JSONB NOT NULL DEFAULT '[]'::jsonb,
    data_format_version TEXT NOT NULL
);
CREATE INDEX IF NOT EXISTS reported_accounts_last_reported_at_idx
    ON reported_accounts (last_reported_at DESC);
"""


class AccountRepository:
    """Postgres-backed account persistence with a locked read-modify-write per account."""

    def __init__(self, pool: ConnectionPool) -> None:
        """Store the connection pool used for all database interactions."""
        self._pool = pool

    def ensure_schema(self) -> None:
        """Create the accounts table and its ordering index when missing."""
        try:
            with self._pool.connection() as conn:
                with conn.cursor() as cur:
                    cur.execute(SCHEMA_SQL)
                conn.commit()
        except psycopg.Error as exc:
            logger.exception("schema setup failed")
            raise StorageFailure("ensure_schema") from exc

    def get(self, account_id: str) -> Account | None:
        """Fetch an account by identifier or return ``None``."""
        try:
            with self._pool.connection() as conn:
                with conn.cursor(row_factory=tuple_row) as cur:
                    cur.execute(
                        f"SELECT {_COLUMNS} FROM reported_accounts WHERE account_id = %s",
                        (account_id,),
                    )
                    row = cur.fetchone()
        except psycopg.Error as exc:
            logger.exception("account lookup failed")
            raise StorageFailure("get") from exc
        return self._map_record(row) if row else None

    def read_modify_write(self, account_id: str, merge: MergeFn) -> MergeResult:
        """Run ``merge`` against the current row and persist its result in one transaction.

        A transaction-scoped advisory lock keyed on the account id serializes
        concurrent writers for the same account, including the first insert
        where there is no row to lock yet. Other account ids are unaffected.
        """
        try:
            with self._pool.connection() as conn:
                with conn.cursor(row_factory=tuple_row) as cur:
                    cur.execute(
                        "SELECT pg_advisory_xact_lock(hashtextextended(%s, 0))", (account_id,)
                    )
                    cur.execute(
                        f"SELECT {_COLUMNS} FROM reported_accounts WHERE account_id = %s",
                        (account_id,),
                    )
                    row = cur.fetchone()
                    result = merge(self._map_record(row) if row else None)
                    account = result.account
                    cur.execute(
                        f"""
                        INSERT INTO reported_accounts ({_COLUMNS})
                        VALUES (%s, %s, %s, %s, %s, %s, %s)
                        ON CONFLICT (account_id) DO UPDATE SET
                            name = EXCLUDED.name,
                            countries = EXCLUDED.countries,
                            last_reported_at = EXCLUDED.last_reported_at,
                            report_count = EXCLUDED.report_count,
                            reported_by = EXCLUDED.reported_by,
                            data_format_version = EXCLUDED.data_format_version
                        """,
                        (
                            account.account_id,
                            account.name,
                            Jsonb(account.countries),
                            account.last_reported_at,
                            account.report_count,
                            Jsonb(account.reported_by),
                            account.data_format_version,
                        ),
                    )
                conn.commit()
        except psycopg.Error as exc:
            logger.exception("report transaction for account %s failed", account_id)
            raise StorageFailure("submit") from exc
        return result

    def list_page(
        self, account_filter: AccountFilter, offset: int, limit: int
    ) -> tuple[list[Account], int]:
        """Return the filtered rows for one page and the total number of matching rows."""
        clauses: list[str] = []
        params: list[Any] = []

        if account_filter.country:
            clauses.append("countries ? %s")
            params.append(account_filter.country)
        if account_filter.search:
            clauses.append("strpos(name, %s) > 0")
            params.append(account_filter.search)

        where_sql = f"WHERE {' AND '.join(clauses)}" if clauses else ""
        page_query = f"""
            SELECT {_COLUMNS}
            FROM reported_accounts
            {where_sql}
            ORDER BY last_reported_at DESC, account_id
            LIMIT %s OFFSET %s
        """

        try:
            with self._pool.connection() as conn:
                with conn.cursor(row_factory=tuple_row) as cur:
                    cur.execute(f"SELECT count(*) FROM reported_accounts {where_sql}", params)
                    total = cur.fetchone()[0]
                    cur.execute(page_query, [*params, limit, offset])
                    rows = cur.fetchall()
        except psycopg.Error as exc:
            logger.exception("account listing failed")
            raise StorageFailure("list") from exc
        return [self._map_record(row) for row in rows], int(total)

    def scan_all(self) -> list[Account]:
        """Return every account, most recently reported first."""
        try:
            with self._pool.connection() as conn:
                with conn.cursor(row_factory=tuple_row) as cur:
                    cur.execute(
                        f"SELECT {_COLUMNS} FROM reported_accounts "
                        "ORDER BY last_reported_at DESC, account_id"
                    )
                    rows = cur.fetchall()
        except psycopg.Error as exc:
            logger.exception("account scan failed")
            raise StorageFailure("scan") from exc
        return [self._map_record(row) for row in rows]

    def _map_record(self, row: tuple) -> Account:
        """Convert a raw database tuple into the domain ``Account`` dataclass."""
        return Account(
            account_id=row[0],
            name=row[1],
            countries=list(row[2] or []),
            last_reported_at=row[3],
            report_count=row[4],
            reported_by=list(row[5] or []),
            data_format_version=row[6],
        )
