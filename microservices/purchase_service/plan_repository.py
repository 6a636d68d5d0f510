"""
Plan Catalog Repository

Read-only access to subscription plans - PostgreSQL (asyncpg)
"""

import logging
from typing import Optional

import asyncpg

from core.postgres_client import PostgresClientWrapper
from .models import SubscriptionPlan
from .protocols import PurchaseServiceError

logger = logging.getLogger(__name__)


class PlanCatalogRepository:
    """Subscription plan lookup backed by the ``subscription_plans`` table"""

    def __init__(self, db: PostgresClientWrapper):
        self.db = db
        self.schema = "purchase"
        self.plans_table = "subscription_plans"

    async def find_plan(self, plan_id: str) -> Optional[SubscriptionPlan]:
        """Get plan by ID (active or not)"""
        query = f'''
            SELECT plan_id, name, price, tokens, is_active
            FROM {self.schema}.{self.plans_table}
            WHERE plan_id = $1
        '''
        try:
            row = await self.db.query_row(query, [plan_id])
        except (asyncpg.PostgresError, OSError) as e:
            logger.error(f"Error looking up plan {plan_id}: {e}")
            raise PurchaseServiceError(f"Plan catalog unavailable: {e}") from e

        if not row:
            return None

        return SubscriptionPlan(
            plan_id=row["plan_id"],
            name=row["name"],
            price=row["price"],
            tokens=row["tokens"],
            is_active=row["is_active"],
        )


__all__ = ["PlanCatalogRepository"]
