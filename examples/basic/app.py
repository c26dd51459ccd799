import asyncio

from autotransaction import AutoTransaction, transactional


class Bank:
    def __init__(self, auto: AutoTransaction):
        self.conn = auto.registry.resolve()
        self.transactions = auto.bind(self)

    @transactional(attempts=3)
    async def transfer(self, source: int, target: int, amount: int):
        await self.conn.execute(
            "UPDATE accounts SET balance = balance - $amount WHERE id = $id",
            params={"amount": amount, "id": source},
        )
        row = await self.conn.fetch_one(
            "SELECT balance FROM accounts WHERE id = $1", [source]
        )
        if row["balance"] < 0:
            raise ValueError(f"Account {source} has insufficient funds")
        await self.conn.execute(
            "UPDATE accounts SET balance = balance + $amount WHERE id = $id",
            params={"amount": amount, "id": target},
        )


async def run():
    auto = AutoTransaction(dsn="bank.db")
    await auto.connect()
    conn = auto.registry.resolve()
    await conn.execute(
        "CREATE TABLE IF NOT EXISTS accounts "
        "(id INTEGER PRIMARY KEY, balance INTEGER)"
    )
    await conn.execute("INSERT OR REPLACE INTO accounts VALUES (1, 100)")
    await conn.execute("INSERT OR REPLACE INTO accounts VALUES (2, 0)")

    bank = Bank(auto)
    await bank.transactions.call("transfer", 1, 2, 60)
    try:
        await bank.transactions.call("transfer", 1, 2, 60)
    except Exception as e:
        print(e)
    print(await conn.fetch_all("SELECT * FROM accounts"))

    await auto.disconnect()


asyncio.run(run())
