from decimal import Decimal

import asyncpg
import pytest

from evenup.db.repo import Database, LedgerRepository
from evenup.services.recorder import build_instruction, hand_off
from evenup.services.settlement import simplify


class DummyDB:
    def __init__(self) -> None:
        self.balances = []
        self.executed = []
        self.fail: Exception | None = None

    async def fetch(self, query: str, *args):
        if "group_balances" in query:
            return [row for row in self.balances if row["group_id"] == args[0]]
        return []

    async def fetchval(self, query: str, *args):
        if "group_expenses" in query:
            return args[0] == "trip"
        return None

    async def execute(self, query: str, *args):
        if self.fail is not None:
            raise self.fail
        self.executed.append((query, args))
        return "INSERT 0 1"


@pytest.mark.asyncio
async def test_fetch_snapshot_and_simplify():
    db = DummyDB()
    db.balances = [
        {"group_id": "trip", "member_id": "a", "currency": "INR", "amount": Decimal("30")},
        {"group_id": "trip", "member_id": "b", "currency": "INR", "amount": Decimal("10")},
        {"group_id": "trip", "member_id": "c", "currency": "INR", "amount": Decimal("-40")},
        {"group_id": "other", "member_id": "z", "currency": "INR", "amount": Decimal("1")},
    ]
    repo = LedgerRepository(db, "trip")  # type: ignore[arg-type]

    snapshot = await repo.fetch_snapshot()

    assert list(snapshot) == ["a", "b", "c"]
    assert [(t.payer, t.receiver) for t in simplify(snapshot)["INR"]] == [("c", "b"), ("c", "a")]
    assert await repo.has_expenses() is True


@pytest.mark.asyncio
async def test_record_settlement():
    db = DummyDB()
    repo = LedgerRepository(db, "trip")  # type: ignore[arg-type]

    ok = await hand_off(repo, build_instruction("c", "b", "INR", 10))

    assert ok is True
    query, args = db.executed[0]
    assert "INSERT INTO settlements" in query
    assert args == ("trip", "c", "b", "INR", Decimal(10))


@pytest.mark.asyncio
async def test_record_failure_is_reported():
    db = DummyDB()
    repo = LedgerRepository(db, "trip")  # type: ignore[arg-type]

    db.fail = ConnectionRefusedError("db down")
    assert await repo.record("c", "b", "INR", Decimal(10)) is False

    db.fail = asyncpg.InterfaceError("pool is closed")
    assert await repo.record("c", "b", "INR", Decimal(10)) is False


@pytest.mark.asyncio
async def test_ensure_schema():
    db = DummyDB()
    repo = LedgerRepository(db, "trip")  # type: ignore[arg-type]

    await repo.ensure_schema()

    assert "CREATE TABLE IF NOT EXISTS settlements" in db.executed[0][0]


class FakePool:
    def __init__(self) -> None:
        self.calls = []
        self.closed = False

    async def fetch(self, query: str, *args):
        self.calls.append(("fetch", args))
        return [{"member_id": "a", "currency": "INR", "amount": Decimal(0)}]

    async def fetchval(self, query: str, *args):
        self.calls.append(("fetchval", args))
        return True

    async def execute(self, query: str, *args):
        self.calls.append(("execute", args))
        return "INSERT 0 1"

    async def close(self) -> None:
        self.closed = True


@pytest.mark.asyncio
async def test_database_connects_lazily(monkeypatch):
    pool = FakePool()
    dsns = []

    async def fake_create_pool(dsn):
        dsns.append(dsn)
        return pool

    monkeypatch.setattr(asyncpg, "create_pool", fake_create_pool)
    db = Database("postgresql+asyncpg://user@localhost/evenup")
    repo = LedgerRepository(db, "trip")

    assert await repo.fetch_snapshot() == {"a": {"INR": Decimal(0)}}
    assert await repo.has_expenses() is True
    assert await repo.record("c", "b", "INR", Decimal(10)) is True

    assert dsns == ["postgresql://user@localhost/evenup"]
    assert [name for name, _ in pool.calls] == ["fetch", "fetchval", "execute"]

    await db.close()
    assert pool.closed
