from dotenv import load_dotenv
import asyncio
import os

from mysql_extended import Database, QueryOptions, Transaction


async def main():
    # Load environment variables from .env file
    load_dotenv()

    # Build connection string from environment variables
    db_host = os.getenv('MYSQL_HOST', '127.0.0.1')
    db_port = os.getenv('MYSQL_PORT', '3306')
    db_name = os.getenv('MYSQL_DB', 'mysql_extended')
    db_user = os.getenv('MYSQL_USER', 'root')
    db_password = os.getenv('MYSQL_PASSWORD', 'password')

    connection_string = f"mysql://{db_user}:{db_password}@{db_host}:{db_port}/{db_name}"

    async with Database(connection_string) as db:
        print("Creating table 'sample_users'...")
        await db.query("DROP TABLE IF EXISTS sample_users")
        await db.query(
            "CREATE TABLE sample_users ("
            "id INT AUTO_INCREMENT PRIMARY KEY, "
            "name VARCHAR(255) NOT NULL, "
            "age INT NULL)"
        )

        print("Inserting sample data...")
        await db.insert(
            "sample_users",
            [
                {"name": "Alice", "age": 30},
                {"name": "Bob", "age": 25},
                {"name": "Charlie", "age": None},
            ],
        )

        # NULL values never overwrite stored ones on upsert
        await db.upsert("sample_users", {"id": 1, "name": "Alice", "age": None})

        async def rename_bob(tx: Transaction) -> int:
            await tx.update("sample_users", {"name": "Robert"}, {"name": "Bob"})
            await tx.insert("sample_users", {"name": "Dana", "age": 41})
            return await tx.get_last_insert_id()

        new_id = await db.transaction(rename_bob)
        print(f"Inserted Dana with id {new_id}")

        print("Users in database:")
        rows = await db.select("sample_users", options=QueryOptions(order=("id", "asc")))
        for row in rows:
            print(f"ID: {row['id']}, Name: {row['name']}, Age: {row['age']}")

        missing_age = await db.select("sample_users", {"age": None}, columns=["name"])
        print(f"Without age: {[row['name'] for row in missing_age]}")

        print("Dropping table 'sample_users'...")
        await db.query("DROP TABLE IF EXISTS sample_users")


if __name__ == "__main__":
    asyncio.run(main())
