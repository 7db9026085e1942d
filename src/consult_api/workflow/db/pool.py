"""
Workflow Database Connection Pool

Manages the asyncpg connection pool for the consultation workflow database.
Runs schema.sql on initialization (idempotent) and verifies the expected tables.

Schema Evolution:
-----------------
When adding/removing/renaming tables in schema.sql:
1. Update the schema.sql file with new DDL (keep it IF NOT EXISTS)
2. Update WorkflowDBPool.EXPECTED_TABLES with the new table names
"""

import json
from contextlib import asynccontextmanager
from typing import AsyncIterator
from typing import Optional

import asyncpg
from loguru import logger

from consult_api.workflow.db.migrations import run_migrations
from consult_api.workflow.db.migrations import verify_schema


async def _init_connection(conn: asyncpg.Connection) -> None:
    """Decode JSON/JSONB columns to Python objects on every pooled connection."""
    for type_name in ("json", "jsonb"):
        await conn.set_type_codec(type_name, encoder=json.dumps, decoder=json.loads, schema="pg_catalog")


class WorkflowDBPool:
    """Consultation workflow database connection pool manager."""

    # Expected tables in consult schema
    EXPECTED_TABLES = {
        "consultants",
        "tier_limits",
        "consultation_requests",
        "request_assignments",
        "request_transitions",
        "orders",
        "advisor_ratings",
    }

    def __init__(self, connection_string: str, min_size: int = 1, max_size: int = 10):
        """
        Initialize workflow DB pool.

        Args:
            connection_string: PostgreSQL connection string
            min_size: Minimum pooled connections
            max_size: Maximum pooled connections
        """
        self.connection_string = connection_string
        self.min_size = min_size
        self.max_size = max_size
        self.pool: Optional[asyncpg.Pool] = None
        self._pool_initialized = False

    async def initialize(self) -> None:
        """
        Initialize connection pool and run migrations.

        Raises:
            RuntimeError: If the pool cannot be validated or the schema is incomplete
        """
        if self._pool_initialized and self.pool is not None:
            logger.debug("Workflow DB pool already initialized")
            return

        try:
            logger.info("Initializing workflow database pool", min_size=self.min_size, max_size=self.max_size)

            self.pool = await asyncpg.create_pool(
                self.connection_string,
                min_size=self.min_size,
                max_size=self.max_size,
                command_timeout=60,  # Query timeout (60 seconds)
                timeout=15,  # Connection timeout (15 seconds)
                init=_init_connection,
            )

            # Validate pool connection
            async with self.pool.acquire() as conn:
                result = await conn.fetchval("SELECT 1")
                if result != 1:
                    raise RuntimeError("Pool validation query failed")

            logger.info("Workflow DB pool validated")

            await self._run_migrations()

            self._pool_initialized = True
            logger.success("Workflow database initialized successfully")

        except Exception as e:
            logger.error(f"Failed to initialize workflow DB pool: {e}")
            if self.pool:
                await self.pool.close()
                self.pool = None
            raise

    async def _run_migrations(self) -> None:
        """Execute schema.sql and verify that every expected table exists afterwards."""
        await run_migrations(self.pool)

        verification = await verify_schema(self.pool, self.EXPECTED_TABLES)
        if not verification["all_present"]:
            missing = verification["missing_tables"]
            logger.error(
                f"Consult schema is missing {len(missing)} table(s): {missing}",
                existing_tables=verification["tables"],
            )
            raise RuntimeError(f"Migration incomplete: missing tables {missing}")

        logger.success(f"All {len(self.EXPECTED_TABLES)} workflow tables verified successfully")

    async def close(self) -> None:
        """Close the connection pool gracefully."""
        if self.pool:
            logger.info("Closing workflow database pool")
            await self.pool.close()
            self.pool = None
            self._pool_initialized = False
            logger.info("Workflow DB pool closed")

    def acquire(self):
        """
        Acquire a database connection from the pool.

        Usage:
            async with pool.acquire() as conn:
                row = await conn.fetchrow("SELECT * FROM ...")
        """
        if not self.pool:
            raise RuntimeError("Workflow DB pool not initialized - call initialize() first")
        return self.pool.acquire()

    @asynccontextmanager
    async def transaction(self) -> AsyncIterator[asyncpg.Connection]:
        """
        Acquire a connection and open a transaction on it.

        Commits when the block exits normally and rolls back when it raises.

        Usage:
            async with pool.transaction() as conn:
                await conn.execute("UPDATE ...")
        """
        async with self.acquire() as conn:
            async with conn.transaction():
                yield conn

    async def health_check(self) -> bool:
        """
        Check if database connection is healthy.

        Returns:
            True if connection is healthy, False otherwise
        """
        try:
            if not self.pool:
                return False

            async with self.pool.acquire() as conn:
                result = await conn.fetchval("SELECT 1")
                return result == 1
        except (asyncpg.PostgresError, OSError) as e:
            logger.error(f"Workflow DB health check failed: {e}")
            return False
