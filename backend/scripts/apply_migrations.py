"""Apply the SQL files in infra/migrations in filename order.

Usage: python backend/scripts/apply_migrations.py [migration_filename ...]
"""

import asyncio
import os
import sys

BACKEND_DIR = os.path.dirname(os.path.dirname(os.path.abspath(__file__)))
MIGRATION_DIR = os.path.join(os.path.dirname(BACKEND_DIR), "infra", "migrations")

# Ensure backend path is in sys.path
if BACKEND_DIR not in sys.path:
    sys.path.append(BACKEND_DIR)

from celestia.infra.postgres import close_pool, get_pool


def pending_files(names):
    if names:
        return list(names)
    return sorted(f for f in os.listdir(MIGRATION_DIR) if f.endswith(".sql"))


async def apply_migrations(names):
    pool = await get_pool()
    try:
        for filename in pending_files(names):
            path = os.path.join(MIGRATION_DIR, filename)
            if not os.path.exists(path):
                print(f"Migration file not found: {path}")
                return 1
            print(f"Applying migration: {filename}")
            with open(path, "r") as f:
                sql = f.read()
            async with pool.acquire() as conn:
                async with conn.transaction():
                    await conn.execute(sql)
            print(f"Finished {filename}")
    finally:
        await close_pool()
    return 0


if __name__ == "__main__":
    if sys.platform == 'win32':
        asyncio.set_event_loop_policy(asyncio.WindowsSelectorEventLoopPolicy())
    sys.exit(asyncio.run(apply_migrations(sys.argv[1:])))
