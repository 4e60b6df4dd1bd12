"""Create tables for DATABASE_URL. Usage (from backend dir): python create_schema.py"""

import asyncio
import sys

from core.config import get_settings
from core.database import init_database, dispose_database, get_database_manager
from tools.schema_check import find_schema_mismatches


async def main() -> int:
    settings = get_settings()
    await init_database(settings.database_url)
    manager = get_database_manager()

    async with manager.engine.connect() as conn:
        problems = await conn.run_sync(find_schema_mismatches)
    if problems:
        for message in problems:
            print(f"Schema mismatch: {message}", file=sys.stderr)
        print("Delete the local database file and run this script again.", file=sys.stderr)
        await dispose_database()
        return 1

    await manager.create_schema()
    await dispose_database()
    print("schema ok")
    return 0


if __name__ == "__main__":
    sys.exit(asyncio.run(main()))
