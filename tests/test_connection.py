import pytest

from autotransaction.exception import TransactionProtocolError
from autotransaction.transaction import TransactionState


async def test_begin_pins_one_handle(connection, interface):
    context = await connection.begin()
    await connection.execute(
        "UPDATE items SET name = $name", params={"name": "x"}
    )
    await connection.fetch_all("SELECT * FROM items")
    await connection.commit()

    assert context.state is TransactionState.COMMITTED
    assert context.transaction_id.startswith("txn_")
    assert interface.acquired == 1
    assert len(set(map(id, interface.handles))) == 1
    assert interface.statements == [
        "BEGIN",
        "UPDATE items SET name = %(name)s",
        "SELECT * FROM items",
        "COMMIT",
    ]
    assert interface.values[1] == {"name": "x"}


async def test_statements_outside_transaction_use_own_handle(
    connection, interface
):
    interface.rows = [{"id": 1}]

    first = await connection.fetch_one(
        "SELECT * FROM items WHERE id = $1", [1]
    )
    rows = await connection.fetch_all("SELECT * FROM items")

    assert first == {"id": 1}
    assert rows == [{"id": 1}]
    assert interface.acquired == 2
    assert interface.statements[0] == "SELECT * FROM items WHERE id = %s"
    assert interface.values[0] == [1]


async def test_begin_twice_is_refused(connection):
    await connection.begin()

    with pytest.raises(TransactionProtocolError, match="already has an open"):
        await connection.begin()

    await connection.rollback()


async def test_commit_without_transaction(connection):
    with pytest.raises(TransactionProtocolError, match="No open transaction"):
        await connection.commit()


async def test_rollback_without_transaction(connection):
    with pytest.raises(TransactionProtocolError, match="No open transaction"):
        await connection.rollback()


async def test_commit_with_open_savepoint(connection, interface):
    await connection.begin()
    await connection.create_savepoint()

    with pytest.raises(TransactionProtocolError, match="open savepoint"):
        await connection.commit()

    await connection.rollback()
    assert connection.depth == 0
    assert interface.statements[-1] == "ROLLBACK"


async def test_savepoints_track_depth(connection):
    await connection.begin()
    first = await connection.create_savepoint()
    second = await connection.create_savepoint()

    assert (first.name, second.name) == ("sp_1", "sp_2")
    assert connection.depth == 3
    assert connection.context.savepoints == [first, second]

    await second.rollback()
    assert second.state is TransactionState.ROLLED_BACK_TO_SAVEPOINT
    assert connection.depth == 2

    await first.release()
    assert first.is_released
    assert connection.depth == 1

    await connection.commit()
    assert connection.depth == 0


async def test_only_innermost_savepoint_can_be_released(connection):
    await connection.begin()
    first = await connection.create_savepoint()
    await connection.create_savepoint()

    with pytest.raises(TransactionProtocolError, match="not the innermost"):
        await first.release()

    await connection.rollback()


async def test_savepoint_released_twice(connection):
    await connection.begin()
    savepoint = await connection.create_savepoint()
    await savepoint.release()

    with pytest.raises(TransactionProtocolError, match="already released"):
        await savepoint.release()

    await connection.commit()


async def test_duplicate_savepoint_name(connection):
    await connection.begin()
    await connection.create_savepoint("before_import")

    with pytest.raises(TransactionProtocolError, match="already exists"):
        await connection.create_savepoint("before_import")

    await connection.rollback()


async def test_failed_savepoint_statement(connection, interface):
    interface.fail("SAVEPOINT sp_1", RuntimeError("not supported"))
    await connection.begin()

    with pytest.raises(TransactionProtocolError) as exc_info:
        await connection.create_savepoint()

    assert isinstance(exc_info.value.__cause__, RuntimeError)
    assert connection.depth == 1
    await connection.rollback()


async def test_failed_rollback_to_savepoint_keeps_depth(
    connection, interface
):
    interface.fail("ROLLBACK TO SAVEPOINT sp_1", RuntimeError("lost"))
    await connection.begin()
    savepoint = await connection.create_savepoint()

    with pytest.raises(TransactionProtocolError):
        await savepoint.rollback()

    assert connection.depth == 1
    assert connection.context.savepoints == []
    await connection.rollback()
