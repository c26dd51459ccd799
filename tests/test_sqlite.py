import pytest

from autotransaction import AutoTransaction, TransactionError, transactional
from autotransaction.config import TransactionSettings
from autotransaction.sql.sqlite.interface import SQLitePool


@pytest.fixture
async def auto(tmp_path):
    auto = AutoTransaction(
        dsn=str(tmp_path / "test.db"),
        settings=TransactionSettings(
            connection=None, attempts=1, throw_on_failure=True
        ),
    )
    await auto.connect()
    await auto.registry.resolve().execute(
        "CREATE TABLE accounts (id INTEGER PRIMARY KEY, balance INTEGER)"
    )
    yield auto
    await auto.disconnect()


@pytest.fixture
def conn(auto):
    return auto.registry.resolve()


async def balances(conn):
    rows = await conn.fetch_all("SELECT id, balance FROM accounts ORDER BY id")
    return {row["id"]: row["balance"] for row in rows}


async def insert(conn, account_id, balance):
    await conn.execute(
        "INSERT INTO accounts (id, balance) VALUES ($id, $balance)",
        params={"id": account_id, "balance": balance},
    )


def test_file_path_builds_sqlite_interface(auto, conn):
    assert isinstance(conn.interface, SQLitePool)
    assert conn.name == "default"
    assert conn.interface.is_open


async def test_committed_writes_are_visible(auto, conn):
    async def work():
        await insert(conn, 1, 100)
        await insert(conn, 2, 50)
        return await conn.fetch_one(
            "SELECT balance FROM accounts WHERE id = $1", [1]
        )

    row = await auto.run_in_transaction(work)

    assert row == {"balance": 100}
    assert await balances(conn) == {1: 100, 2: 50}


async def test_rolled_back_writes_are_discarded(auto, conn):
    async def work():
        await insert(conn, 1, 100)
        raise ValueError("insufficient funds")

    with pytest.raises(TransactionError, match="insufficient funds"):
        await auto.run_in_transaction(work)

    assert await balances(conn) == {}


async def test_nested_failure_keeps_outer_writes(auto, conn):
    async def inner():
        await insert(conn, 2, 50)
        raise ValueError("rejected")

    async def outer():
        await insert(conn, 1, 100)
        try:
            await auto.run_in_transaction(inner)
        except ValueError:
            pass
        await insert(conn, 3, 25)

    await auto.run_in_transaction(outer)

    assert await balances(conn) == {1: 100, 3: 25}


async def test_nested_success_is_committed_with_outer(auto, conn):
    async def inner():
        await insert(conn, 2, 50)

    async def outer():
        await insert(conn, 1, 100)
        await auto.run_in_transaction(inner)

    await auto.run_in_transaction(outer)

    assert await balances(conn) == {1: 100, 2: 50}


async def test_retry_commits_only_last_attempt(auto, conn):
    calls = 0

    async def work():
        nonlocal calls
        calls += 1
        await insert(conn, calls, calls * 10)
        if calls < 3:
            raise RuntimeError("database is locked")

    await auto.run_in_transaction(work, attempts=3)

    assert calls == 3
    assert await balances(conn) == {3: 30}


async def test_declared_method(auto, conn):
    class Ledger:
        @transactional(attempts=2)
        async def open_account(self, account_id):
            await insert(conn, account_id, 0)
            return account_id

        @transactional(throw_on_failure=False)
        async def close_account(self, account_id):
            await conn.execute(
                "DELETE FROM accounts WHERE id = $1", [account_id]
            )
            raise RuntimeError("account has pending transfers")

    ledger = Ledger()
    transactions = auto.bind(ledger)

    assert await transactions.call("open_account", 7) == 7
    assert await transactions.call("close_account", 7) is None
    assert await balances(conn) == {7: 0}
