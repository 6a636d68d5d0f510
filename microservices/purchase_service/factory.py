"""
Purchase Service Factory

Factory functions for creating service instances with real dependencies.
This is the ONLY place that imports I/O-dependent modules.

Usage:
    from .factory import create_purchase_service
    service = create_purchase_service(config, event_bus)
"""
from typing import Optional

from core.config_manager import ConfigManager

from .purchase_service import PurchaseService


def create_purchase_service(
    config: Optional[ConfigManager] = None,
    event_bus=None,
) -> PurchaseService:
    """
    Create PurchaseService with real dependencies.

    Plan catalog and ledger share one PostgreSQL pool; the payment provider
    is reached over HTTP. Use this in production, NOT in tests.

    Args:
        config: Configuration manager
        event_bus: Event bus for publishing events

    Returns:
        Configured PurchaseService instance
    """
    # Import real I/O modules here (not at module level)
    from core.postgres_client import PostgresClientWrapper
    from .clients import PaymentProviderClient
    from .plan_repository import PlanCatalogRepository
    from .transaction_repository import TransactionRepository

    config = config or ConfigManager("purchase_service")
    payment_config = config.get_payment_config()

    db = PostgresClientWrapper(service_name="purchase_service", config=config)

    return PurchaseService(
        plan_catalog=PlanCatalogRepository(db),
        repository=TransactionRepository(db),
        payment_provider=PaymentProviderClient(config=payment_config),
        event_bus=event_bus,
        payment_method=payment_config.payment_method,
        provider_timeout=payment_config.timeout,
    )
