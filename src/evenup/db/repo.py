from __future__ import annotations

from decimal import Decimal
from typing import Any

import asyncpg

from evenup.domain.models import Currency, Member
from evenup.logging import get_logger, sql_logger
from evenup.services.snapshot import snapshot_from_rows

SCHEMA = """
CREATE TABLE IF NOT EXISTS group_balances (
    group_id TEXT NOT NULL,
    member_id TEXT NOT NULL,
    currency TEXT NOT NULL,
    amount NUMERIC NOT NULL,
    position SERIAL,
    PRIMARY KEY (group_id, member_id, currency)
);
CREATE TABLE IF NOT EXISTS group_expenses (
    id BIGSERIAL PRIMARY KEY,
    group_id TEXT NOT NULL
);
CREATE TABLE IF NOT EXISTS settlements (
    id BIGSERIAL PRIMARY KEY,
    group_id TEXT NOT NULL,
    payer_id TEXT NOT NULL,
    receiver_id TEXT NOT NULL,
    currency TEXT NOT NULL,
    amount NUMERIC NOT NULL CHECK (amount > 0),
    created_at TIMESTAMPTZ NOT NULL DEFAULT now(),
    CHECK (payer_id <> receiver_id)
);
"""


class Database:
    def __init__(self, dsn: str) -> None:
        self._dsn = dsn
        self._pool: asyncpg.Pool | None = None
        self._log = get_logger(__name__)

    async def connect(self) -> None:
        if self._pool is None:
            # asyncpg expects a plain postgresql:// scheme
            dsn = self._dsn.replace("+asyncpg", "")
            self._pool = await asyncpg.create_pool(dsn)
            self._log.info("db.pool.created")

    async def close(self) -> None:
        if self._pool is not None:
            await self._pool.close()
            self._pool = None
            self._log.info("db.pool.closed")

    async def fetch(self, query: str, *args: Any) -> list[asyncpg.Record]:
        await self._ensure_pool()
        assert self._pool
        sql_logger.info("sql.fetch", query=query, args=args)
        return await self._pool.fetch(query, *args)

    async def fetchval(self, query: str, *args: Any) -> Any:
        await self._ensure_pool()
        assert self._pool
        sql_logger.info("sql.fetchval", query=query, args=args)
        return await self._pool.fetchval(query, *args)

    async def execute(self, query: str, *args: Any) -> str:
        await self._ensure_pool()
        assert self._pool
        sql_logger.info("sql.execute", query=query, args=args)
        return await self._pool.execute(query, *args)

    async def _ensure_pool(self) -> None:
        if self._pool is None:
            await self.connect()


class LedgerRepository:
    """Ledger collaborator for one group.

    Balances are aggregated upstream into ``group_balances``; this class only
    reads them back and appends confirmed settlements.
    """

    def __init__(self, db: Database, group_id: str) -> None:
        self.db = db
        self.group_id = group_id
        self._log = get_logger(__name__)

    async def ensure_schema(self) -> None:
        await self.db.execute(SCHEMA)

    async def fetch_snapshot(self) -> dict[Member, dict[Currency, Decimal]]:
        rows = await self.db.fetch(
            """
            SELECT member_id, currency, amount
            FROM group_balances
            WHERE group_id = $1
            ORDER BY position
            """,
            self.group_id,
        )
        return snapshot_from_rows(rows)

    async def has_expenses(self) -> bool:
        found = await self.db.fetchval(
            "SELECT EXISTS (SELECT 1 FROM group_expenses WHERE group_id = $1)",
            self.group_id,
        )
        return bool(found)

    async def record(self, payer: Member, receiver: Member, currency: Currency, amount: Decimal) -> bool:
        try:
            status = await self.db.execute(
                """
                INSERT INTO settlements (group_id, payer_id, receiver_id, currency, amount)
                VALUES ($1, $2, $3, $4, $5)
                """,
                self.group_id,
                payer,
                receiver,
                currency,
                amount,
            )
        except (asyncpg.PostgresError, asyncpg.InterfaceError, OSError) as exc:
            self._log.error("settlement.record.failed", group_id=self.group_id, error=str(exc))
            return False
        return status == "INSERT 0 1"
