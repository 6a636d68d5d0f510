"""
Transaction Repository

Data access layer for the purchase transaction ledger - PostgreSQL (asyncpg)
"""

import json
import logging
from typing import Optional, List, Dict, Any

import asyncpg

from core.postgres_client import PostgresClientWrapper
from .models import (
    BillingCycle, PaymentMethod, Transaction, TransactionStatus, TransactionType
)
from .protocols import (
    DuplicateOrderReferenceError,
    InvalidStateTransitionError,
    LedgerWriteError,
    PurchaseServiceError,
    TransactionNotFoundError,
)

logger = logging.getLogger(__name__)


class TransactionRepository:
    """Transaction ledger repository - PostgreSQL"""

    def __init__(self, db: PostgresClientWrapper, auto_migrate: bool = True):
        self.db = db
        self.auto_migrate = auto_migrate
        self.schema = "purchase"
        self.transactions_table = "user_transactions"

    @property
    def _table(self) -> str:
        return f"{self.schema}.{self.transactions_table}"

    async def initialize(self):
        """Connect and make sure the ledger table exists"""
        await self.db.connect()
        if self.auto_migrate:
            await self._ensure_schema()
        logger.info("Transaction repository initialized")

    async def _ensure_schema(self):
        statuses = ", ".join(f"'{s.value}'" for s in TransactionStatus)
        ddl = f'''
            CREATE SCHEMA IF NOT EXISTS {self.schema};

            CREATE TABLE IF NOT EXISTS {self._table} (
                id BIGSERIAL PRIMARY KEY,
                order_reference TEXT NOT NULL,
                user_id TEXT NOT NULL,
                transaction_type TEXT NOT NULL,
                plan_id TEXT NOT NULL,
                billing_cycle TEXT NOT NULL,
                amount NUMERIC(18, 2) NOT NULL CHECK (amount >= 0),
                tokens BIGINT NOT NULL CHECK (tokens >= 0),
                payment_method TEXT NOT NULL,
                status TEXT NOT NULL DEFAULT 'pending' CHECK (status IN ({statuses})),
                provider_trade_no TEXT,
                metadata JSONB NOT NULL DEFAULT '{{}}'::jsonb,
                created_at TIMESTAMPTZ NOT NULL DEFAULT NOW(),
                updated_at TIMESTAMPTZ NOT NULL DEFAULT NOW(),
                completed_at TIMESTAMPTZ,
                CONSTRAINT uq_user_transactions_order_reference UNIQUE (order_reference)
            );

            CREATE INDEX IF NOT EXISTS idx_user_transactions_user_created
                ON {self._table} (user_id, created_at DESC);
        '''
        async with self.db.acquire() as conn:
            await conn.execute(ddl)

    async def close(self):
        """Close repository connections"""
        await self.db.close()
        logger.info("Transaction repository connections closed")

    async def check_connection(self) -> bool:
        return await self.db.health_check()

    # ====================
    # Ledger writes
    # ====================

    async def create_transaction(self, transaction: Transaction) -> Transaction:
        """Insert a pending transaction; duplicate order references are rejected"""
        query = f'''
            INSERT INTO {self._table} (
                order_reference, user_id, transaction_type,
                plan_id, billing_cycle, amount, tokens,
                payment_method, status, provider_trade_no, metadata
            ) VALUES ($1, $2, $3, $4, $5, $6, $7, $8, $9, $10, $11::jsonb)
            RETURNING *
        '''
        params = [
            transaction.order_reference,
            transaction.user_id,
            transaction.transaction_type.value,
            transaction.plan_id,
            transaction.billing_cycle.value,
            transaction.amount,
            transaction.tokens,
            transaction.payment_method.value,
            transaction.status.value,
            transaction.provider_trade_no,
            json.dumps(transaction.metadata or {}),
        ]

        try:
            async with self.db.acquire() as conn:
                row = await conn.fetchrow(query, *params)
        except asyncpg.UniqueViolationError:
            logger.error(f"Duplicate order reference rejected by ledger: {transaction.order_reference}")
            raise DuplicateOrderReferenceError(transaction.order_reference)
        except (asyncpg.PostgresError, OSError) as e:
            logger.error(f"Error creating transaction {transaction.order_reference}: {e}", exc_info=True)
            raise LedgerWriteError(f"Failed to record transaction: {e}") from e

        if row is None:
            raise LedgerWriteError(f"Ledger returned no row for {transaction.order_reference}")
        return self._row_to_transaction(row)

    async def update_transaction_status(
        self,
        order_reference: str,
        status: TransactionStatus,
        provider_trade_no: Optional[str] = None,
    ) -> Transaction:
        """Apply a guarded pending -> terminal transition"""
        current = await self.get_transaction(order_reference)
        if current is None:
            raise TransactionNotFoundError(f"Transaction not found: {order_reference}")
        if current.status == status:
            # Replayed confirmation
            return current
        if not current.status.can_transition_to(status):
            raise InvalidStateTransitionError(order_reference, current.status, status)

        # Compare-and-set on the status that was read; concurrent confirmations cannot both apply
        query = f'''
            UPDATE {self._table}
            SET status = $2,
                provider_trade_no = COALESCE($3, provider_trade_no),
                updated_at = NOW(),
                completed_at = NOW()
            WHERE order_reference = $1 AND status = $4
            RETURNING *
        '''
        try:
            async with self.db.acquire() as conn:
                row = await conn.fetchrow(
                    query,
                    order_reference,
                    status.value,
                    provider_trade_no,
                    current.status.value,
                )
        except (asyncpg.PostgresError, OSError) as e:
            logger.error(f"Error updating transaction {order_reference}: {e}", exc_info=True)
            raise LedgerWriteError(f"Failed to update transaction: {e}") from e

        if row is not None:
            return self._row_to_transaction(row)

        # Lost the race to another writer
        latest = await self.get_transaction(order_reference)
        if latest is None:
            raise TransactionNotFoundError(f"Transaction not found: {order_reference}")
        if latest.status == status:
            return latest
        raise InvalidStateTransitionError(order_reference, latest.status, status)

    # ====================
    # Ledger reads
    # ====================

    async def get_transaction(self, order_reference: str) -> Optional[Transaction]:
        """Get transaction by order reference"""
        query = f'SELECT * FROM {self._table} WHERE order_reference = $1'
        try:
            async with self.db.acquire() as conn:
                row = await conn.fetchrow(query, order_reference)
        except (asyncpg.PostgresError, OSError) as e:
            logger.error(f"Error getting transaction {order_reference}: {e}")
            raise PurchaseServiceError(f"Failed to read transaction: {e}") from e

        return self._row_to_transaction(row) if row else None

    async def list_user_transactions(
        self,
        user_id: str,
        status: Optional[TransactionStatus] = None,
        limit: int = 50,
        offset: int = 0,
    ) -> List[Transaction]:
        """List a payer's transactions, newest first"""
        conditions = ["user_id = $1"]
        params: List[Any] = [user_id]
        if status is not None:
            params.append(status.value)
            conditions.append(f"status = ${len(params)}")

        params.extend([limit, offset])
        query = f'''
            SELECT * FROM {self._table}
            WHERE {" AND ".join(conditions)}
            ORDER BY created_at DESC, id DESC
            LIMIT ${len(params) - 1} OFFSET ${len(params)}
        '''
        try:
            async with self.db.acquire() as conn:
                rows = await conn.fetch(query, *params)
        except (asyncpg.PostgresError, OSError) as e:
            logger.error(f"Error listing transactions for {user_id}: {e}")
            raise PurchaseServiceError(f"Failed to list transactions: {e}") from e

        return [self._row_to_transaction(row) for row in rows]

    async def count_user_transactions(
        self,
        user_id: str,
        status: Optional[TransactionStatus] = None,
    ) -> int:
        """Count a payer's transactions, ignoring pagination"""
        conditions = ["user_id = $1"]
        params: List[Any] = [user_id]
        if status is not None:
            params.append(status.value)
            conditions.append(f"status = ${len(params)}")

        query = f'SELECT COUNT(*) FROM {self._table} WHERE {" AND ".join(conditions)}'
        try:
            async with self.db.acquire() as conn:
                count = await conn.fetchval(query, *params)
        except (asyncpg.PostgresError, OSError) as e:
            logger.error(f"Error counting transactions for {user_id}: {e}")
            raise PurchaseServiceError(f"Failed to count transactions: {e}") from e

        return int(count or 0)

    # ====================
    # Helpers
    # ====================

    def _row_to_transaction(self, row) -> Transaction:
        data: Dict[str, Any] = dict(row)
        metadata = data.get("metadata") or {}
        if isinstance(metadata, str):
            metadata = json.loads(metadata)

        return Transaction(
            id=data.get("id"),
            order_reference=data["order_reference"],
            user_id=data["user_id"],
            transaction_type=TransactionType(data["transaction_type"]),
            plan_id=data["plan_id"],
            billing_cycle=BillingCycle(data["billing_cycle"]),
            amount=data["amount"],
            tokens=data["tokens"],
            payment_method=PaymentMethod(data["payment_method"]),
            status=TransactionStatus(data["status"]),
            provider_trade_no=data.get("provider_trade_no"),
            metadata=metadata,
            created_at=data.get("created_at"),
            updated_at=data.get("updated_at"),
            completed_at=data.get("completed_at"),
        )


__all__ = ["TransactionRepository"]
