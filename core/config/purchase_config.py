#!/usr/bin/env python3
"""Purchase service main configuration

Combines all sub-configs for the purchase microservice.
"""
from dataclasses import dataclass, field

from .infra_config import InfraConfig
from .logging_config import LoggingConfig
from .payment_config import PaymentProviderConfig
from .service_config import ServiceConfig


@dataclass
class PurchaseConfig:
    """Top-level settings"""
    service: ServiceConfig = field(default_factory=ServiceConfig)
    infra: InfraConfig = field(default_factory=InfraConfig)
    logging: LoggingConfig = field(default_factory=LoggingConfig)
    payment: PaymentProviderConfig = field(default_factory=PaymentProviderConfig)

    @classmethod
    def from_env(cls, service_name: str = "purchase_service") -> 'PurchaseConfig':
        return cls(
            service=ServiceConfig.from_env(service_name),
            infra=InfraConfig.from_env(),
            logging=LoggingConfig.from_env(),
            payment=PaymentProviderConfig.from_env(),
        )
