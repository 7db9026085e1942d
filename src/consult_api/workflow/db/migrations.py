"""Database migrations for the consultation workflow.

All DDL is stored in schema.sql; every statement is IF NOT EXISTS (or guarded
by a duplicate_object handler) so running it on each startup is safe.
"""

from pathlib import Path
from typing import Iterable

import asyncpg
from loguru import logger

SCHEMA_NAME = "consult"


async def run_migrations(pool: asyncpg.Pool) -> None:
    """Execute schema.sql against the database.

    Parameters
    ----------
    pool : asyncpg.Pool
        Database connection pool

    Raises
    ------
    FileNotFoundError
        If schema.sql file not found
    asyncpg.PostgresError
        If a DDL statement fails
    """
    schema_path = Path(__file__).parent / "schema.sql"

    if not schema_path.exists():
        raise FileNotFoundError(f"Schema file not found: {schema_path}")

    schema_sql = schema_path.read_text(encoding="utf-8")
    logger.info(f"Loaded schema from {schema_path}")

    async with pool.acquire() as conn:
        try:
            await conn.execute(schema_sql)
        except asyncpg.PostgresError as e:
            logger.error(f"Migration failed: {e}")
            raise

    logger.info("Workflow database migrations completed successfully", schema=SCHEMA_NAME)


async def verify_schema(pool: asyncpg.Pool, required_tables: Iterable[str]) -> dict:
    """Verify that all required tables exist.

    Returns
    -------
    dict
        {
            "schema_exists": bool,
            "tables": list[str],
            "missing_tables": list[str],
            "all_present": bool
        }
    """
    required = sorted(required_tables)

    async with pool.acquire() as conn:
        schema_exists = await conn.fetchval(
            "SELECT EXISTS (SELECT 1 FROM information_schema.schemata WHERE schema_name = $1)",
            SCHEMA_NAME,
        )

        if not schema_exists:
            return {
                "schema_exists": False,
                "tables": [],
                "missing_tables": required,
                "all_present": False,
            }

        rows = await conn.fetch(
            """
            SELECT table_name
            FROM information_schema.tables
            WHERE table_schema = $1
            ORDER BY table_name
            """,
            SCHEMA_NAME,
        )
        existing = [row["table_name"] for row in rows]
        missing = [table for table in required if table not in existing]

        return {
            "schema_exists": True,
            "tables": existing,
            "missing_tables": missing,
            "all_present": len(missing) == 0,
        }


if __name__ == "__main__":
    """
    Standalone script to run migrations.

    Usage:
        python -m consult_api.workflow.db.migrations
    """
    import asyncio

    from consult_api.settings import Settings

    async def main():
        settings = Settings()

        if not settings.database_url:
            logger.error("DATABASE_URL not set")
            return 1

        pool = await asyncpg.create_pool(settings.database_url, min_size=1, max_size=2, command_timeout=60)
        try:
            await run_migrations(pool)
            from consult_api.workflow.db.pool import WorkflowDBPool

            verification = await verify_schema(pool, WorkflowDBPool.EXPECTED_TABLES)
            if verification["all_present"]:
                logger.info("All workflow tables present")
            else:
                logger.warning(f"Missing tables: {verification['missing_tables']}")
        finally:
            await pool.close()
        return 0

    raise SystemExit(asyncio.run(main()))
