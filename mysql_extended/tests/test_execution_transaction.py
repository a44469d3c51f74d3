import asyncio

import pytest

from mysql_extended.database import Database, QueryInterface, Transaction
from mysql_extended.errors import TransactionStateError
from mysql_extended.execution.transaction import TransactionState
from mysql_extended.tests.fakes import FakeConnection, FakeDriver, make_pool_database


@pytest.mark.asyncio
async def test_begin_returns_query_interface() -> None:
    db, _, _ = make_pool_database()

    transaction = await db.begin()

    assert isinstance(transaction, Transaction)
    assert isinstance(transaction, QueryInterface)
    assert transaction.state is TransactionState.BEGAN
    await transaction.rollback()


@pytest.mark.asyncio
async def test_transaction_reuses_one_connection() -> None:
    db, driver, _ = make_pool_database()

    transaction = await db.begin()
    await transaction.select("users")
    await transaction.insert("users", {"firstname": "A"})
    await transaction.commit()

    assert len(driver.connections) == 1
    assert driver.connections[0].statements == [
        "BEGIN",
        "SELECT * FROM `users`",
        "INSERT INTO `users` (`firstname`) VALUES (?)",
        "COMMIT",
    ]


@pytest.mark.asyncio
async def test_transaction_connection_held_until_terminal() -> None:
    db, driver, pool = make_pool_database()

    transaction = await db.begin()
    await transaction.select("users")
    assert len(driver.open_connections) == 1
    assert pool.released == []

    await transaction.commit()

    assert driver.open_connections == []
    assert len(pool.released) == 1


@pytest.mark.asyncio
async def test_connection_released_after_rollback() -> None:
    db, driver, _ = make_pool_database()

    transaction = await db.begin()
    await transaction.select("users")
    await transaction.rollback()

    assert driver.open_connections == []
    assert transaction.state is TransactionState.ROLLED_BACK


@pytest.mark.asyncio
async def test_commit_twice_fails() -> None:
    db, _, _ = make_pool_database()
    transaction = await db.begin()
    await transaction.commit()

    with pytest.raises(TransactionStateError) as excinfo:
        await transaction.commit()

    assert str(excinfo.value) == "Cannot COMMIT transaction. Already got COMMIT"


@pytest.mark.asyncio
async def test_rollback_twice_fails() -> None:
    db, _, _ = make_pool_database()
    transaction = await db.begin()
    await transaction.rollback()

    with pytest.raises(TransactionStateError) as excinfo:
        await transaction.rollback()

    assert str(excinfo.value) == "Cannot ROLLBACK transaction. Already got ROLLBACK"


@pytest.mark.asyncio
async def test_rollback_after_commit_names_commit() -> None:
    db, _, _ = make_pool_database()
    transaction = await db.begin()
    await transaction.commit()

    with pytest.raises(TransactionStateError) as excinfo:
        await transaction.rollback()

    assert str(excinfo.value) == "Cannot ROLLBACK transaction. Already got COMMIT"


@pytest.mark.asyncio
async def test_commit_after_rollback_names_rollback() -> None:
    db, driver, _ = make_pool_database()
    transaction = await db.begin()
    await transaction.rollback()

    with pytest.raises(TransactionStateError) as excinfo:
        await transaction.commit()

    assert str(excinfo.value) == "Cannot COMMIT transaction. Already got ROLLBACK"
    assert driver.connections[0].statements == ["BEGIN", "ROLLBACK"]


@pytest.mark.asyncio
async def test_begin_twice_fails() -> None:
    db, _, _ = make_pool_database()
    transaction = await db.begin()

    with pytest.raises(TransactionStateError, match="already began"):
        await transaction.controller.begin()

    await transaction.rollback()


@pytest.mark.asyncio
async def test_queries_after_commit_are_rejected() -> None:
    db, driver, _ = make_pool_database()
    transaction = await db.begin()
    await transaction.commit()

    with pytest.raises(TransactionStateError, match="Already got COMMIT"):
        await transaction.select("users")

    assert driver.connections[0].statements == ["BEGIN", "COMMIT"]


@pytest.mark.asyncio
async def test_failed_commit_still_terminates_and_releases() -> None:
    db, driver, pool = make_pool_database()
    driver.fail("COMMIT", RuntimeError("connection lost"))
    transaction = await db.begin()

    with pytest.raises(RuntimeError, match="connection lost"):
        await transaction.commit()

    assert transaction.state is TransactionState.COMMITTED
    assert len(pool.released) == 1
    with pytest.raises(TransactionStateError, match="Already got COMMIT"):
        await transaction.rollback()


@pytest.mark.asyncio
async def test_failed_begin_releases_connection() -> None:
    db, driver, pool = make_pool_database()
    driver.fail("BEGIN", RuntimeError("server gone"))

    with pytest.raises(RuntimeError, match="server gone"):
        await db.begin()

    assert len(pool.released) == 1


@pytest.mark.asyncio
async def test_get_last_insert_id_inside_transaction() -> None:
    db, driver, _ = make_pool_database(rows=[{"id": 9}])

    transaction = await db.begin()
    await transaction.insert("users", {"firstname": "A"})
    assert await transaction.get_last_insert_id() == 9
    await transaction.commit()

    assert driver.connections[0].statements[-2:] == ["SELECT LAST_INSERT_ID() as id", "COMMIT"]


@pytest.mark.asyncio
async def test_transaction_on_fixed_connection_never_releases_it() -> None:
    connection = FakeConnection(1)
    db = Database(connection=connection, driver=FakeDriver())

    transaction = await db.begin()
    await transaction.commit()
    await db.query("SELECT 1")

    assert connection.statements == ["BEGIN", "COMMIT", "SELECT 1"]
    assert connection.is_open


# --------------------------------------------------
# Managed transactions
# --------------------------------------------------


@pytest.mark.asyncio
async def test_managed_transaction_rolls_back_and_reraises() -> None:
    db, driver, _ = make_pool_database()
    error = ValueError("Oopsy")

    async def work(transaction: Transaction) -> None:
        await transaction.select("users")
        raise error

    with pytest.raises(ValueError) as excinfo:
        await db.transaction(work)

    assert excinfo.value is error
    assert len(driver.connections) == 1
    assert driver.connections[0].statements == ["BEGIN", "SELECT * FROM `users`", "ROLLBACK"]
    assert driver.open_connections == []


@pytest.mark.asyncio
async def test_managed_transaction_auto_commits_and_returns_result() -> None:
    db, driver, _ = make_pool_database(rows=[{"id": 1}])

    async def work(transaction: Transaction) -> list:
        return await transaction.select("users")

    result = await db.transaction(work)

    assert result == [{"id": 1}]
    assert driver.connections[0].statements == ["BEGIN", "SELECT * FROM `users`", "COMMIT"]
    assert driver.open_connections == []


@pytest.mark.asyncio
async def test_managed_transaction_rollback_failure_chains_callback_error() -> None:
    db, driver, _ = make_pool_database()
    driver.fail("ROLLBACK", RuntimeError("rollback failed"))

    async def work(transaction: Transaction) -> None:
        raise ValueError("Oopsy")

    with pytest.raises(RuntimeError, match="rollback failed") as excinfo:
        await db.transaction(work)

    assert isinstance(excinfo.value.__context__, ValueError)
    assert driver.open_connections == []


@pytest.mark.asyncio
async def test_managed_transaction_callback_that_rolled_back_itself() -> None:
    db, driver, _ = make_pool_database()

    async def work(transaction: Transaction) -> None:
        await transaction.rollback()
        raise ValueError("aborted")

    with pytest.raises(ValueError, match="aborted"):
        await db.transaction(work)

    assert driver.connections[0].statements == ["BEGIN", "ROLLBACK"]


@pytest.mark.asyncio
async def test_managed_transaction_rolls_back_on_cancellation() -> None:
    db, driver, _ = make_pool_database()
    started = asyncio.Event()

    async def work(transaction: Transaction) -> None:
        started.set()
        await asyncio.sleep(10)

    task = asyncio.ensure_future(db.transaction(work))
    await started.wait()
    task.cancel()

    with pytest.raises(asyncio.CancelledError):
        await task

    assert driver.connections[0].statements == ["BEGIN", "ROLLBACK"]
    assert driver.open_connections == []


# --------------------------------------------------
# Context manager
# --------------------------------------------------


@pytest.mark.asyncio
async def test_context_manager_commits_on_clean_exit() -> None:
    db, driver, _ = make_pool_database()

    async with await db.begin() as transaction:
        await transaction.update("users", {"firstname": "A"}, {"id": 1})

    assert driver.connections[0].statements == [
        "BEGIN",
        "UPDATE `users` SET `firstname` = ? WHERE `id` = ?",
        "COMMIT",
    ]


@pytest.mark.asyncio
async def test_context_manager_rolls_back_on_error() -> None:
    db, driver, _ = make_pool_database()

    with pytest.raises(KeyError):
        async with await db.begin() as transaction:
            await transaction.delete("users", {"id": 1})
            raise KeyError("missing")

    assert driver.connections[0].statements == ["BEGIN", "DELETE FROM `users` WHERE `id` = ?", "ROLLBACK"]


@pytest.mark.asyncio
async def test_context_manager_leaves_finished_transaction_alone() -> None:
    db, driver, _ = make_pool_database()

    async with await db.begin() as transaction:
        await transaction.rollback()

    assert driver.connections[0].statements == ["BEGIN", "ROLLBACK"]
