"""
PostgreSQL Client Wrapper

asyncpg connection pool with endpoint resolution through ConfigManager.

Usage:
    from core.postgres_client import PostgresClientWrapper

    db = PostgresClientWrapper("purchase_service")
    await db.connect()

    async with db.acquire() as conn:
        rows = await conn.fetch("SELECT * FROM purchase.user_transactions WHERE user_id = $1", user_id)
"""

import logging
from contextlib import asynccontextmanager
from typing import Any, AsyncIterator, Dict, List, Optional

import asyncpg
from tenacity import retry, retry_if_exception_type, stop_after_attempt, wait_exponential

from core.config_manager import ConfigManager

logger = logging.getLogger(__name__)


class PostgresClientWrapper:
    """
    PostgreSQL pool wrapper.

    Provides:
    - host/port resolution via ConfigManager
    - retried pool creation at startup
    - connection acquisition as an async context manager
    """

    def __init__(
        self,
        service_name: str,
        config: Optional[ConfigManager] = None,
        host: Optional[str] = None,
        port: Optional[int] = None,
        database: Optional[str] = None,
    ):
        """
        Initialize PostgreSQL client wrapper.

        Args:
            service_name: Name of the service using this client
            config: ConfigManager (created for service_name if omitted)
            host: PostgreSQL host override
            port: PostgreSQL port override
            database: Database name override
        """
        self.service_name = service_name
        config = config or ConfigManager(service_name)
        infra = config.get_infra_config()

        discovered_host, discovered_port = config.discover_service(
            service_name="postgres_service",
            default_host=infra.postgres_host,
            default_port=infra.postgres_port,
            env_host_key="POSTGRES_HOST",
            env_port_key="POSTGRES_PORT",
        )

        self.host = host or discovered_host
        self.port = port or discovered_port
        self.database = database or infra.postgres_db
        self.username = infra.postgres_user
        self.password = infra.postgres_password
        self.min_size = infra.postgres_pool_min
        self.max_size = infra.postgres_pool_max

        self._pool: Optional[asyncpg.Pool] = None

        logger.info(f"PostgreSQL client initialized for {service_name}: {self.host}:{self.port}/{self.database}")

    @retry(
        stop=stop_after_attempt(5),
        wait=wait_exponential(multiplier=1, min=1, max=10),
        retry=retry_if_exception_type((OSError, asyncpg.PostgresError)),
        reraise=True,
    )
    async def connect(self) -> None:
        """Create the connection pool"""
        if self._pool is not None:
            return
        self._pool = await asyncpg.create_pool(
            host=self.host,
            port=self.port,
            user=self.username,
            password=self.password,
            database=self.database,
            min_size=self.min_size,
            max_size=self.max_size,
        )
        logger.info(f"PostgreSQL pool ready ({self.min_size}-{self.max_size} connections)")

    @property
    def pool(self) -> asyncpg.Pool:
        if self._pool is None:
            raise RuntimeError("PostgreSQL pool is not connected")
        return self._pool

    @asynccontextmanager
    async def acquire(self) -> AsyncIterator[asyncpg.Connection]:
        """Acquire a pooled connection"""
        async with self.pool.acquire() as conn:
            yield conn

    async def query_row(self, sql: str, params: Optional[List[Any]] = None) -> Optional[Dict[str, Any]]:
        """Execute query and return single row"""
        async with self.acquire() as conn:
            row = await conn.fetchrow(sql, *(params or []))
        return dict(row) if row else None

    async def health_check(self) -> bool:
        """Check database connectivity"""
        try:
            async with self.acquire() as conn:
                return await conn.fetchval("SELECT 1") == 1
        except Exception as e:
            logger.warning(f"PostgreSQL health check failed: {e}")
            return False

    async def close(self):
        """Close the pool"""
        if self._pool is not None:
            await self._pool.close()
            self._pool = None
            logger.info(f"PostgreSQL pool closed for {self.service_name}")


__all__ = ["PostgresClientWrapper"]
