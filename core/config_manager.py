"""
Configuration Manager

Per-service access point to the modular configuration in ``core.config``.

Usage:
    from core.config_manager import ConfigManager

    config_manager = ConfigManager("purchase_service")
    service_config = config_manager.get_service_config()
    host, port = config_manager.discover_service(
        service_name="postgres_service",
        default_host="localhost",
        default_port=5432,
        env_host_key="POSTGRES_HOST",
        env_port_key="POSTGRES_PORT",
    )
"""

import logging
import os
from typing import Optional, Tuple

from core.config import (
    InfraConfig,
    LoggingConfig,
    PaymentProviderConfig,
    PurchaseConfig,
    ServiceConfig,
)

logger = logging.getLogger(__name__)


class ConfigManager:
    """Configuration access for a single microservice"""

    def __init__(self, service_name: str, config: Optional[PurchaseConfig] = None):
        self.service_name = service_name
        self.config = config or PurchaseConfig.from_env(service_name)

    def get_service_config(self) -> ServiceConfig:
        return self.config.service

    def get_infra_config(self) -> InfraConfig:
        return self.config.infra

    def get_logging_config(self) -> LoggingConfig:
        return self.config.logging

    def get_payment_config(self) -> PaymentProviderConfig:
        return self.config.payment

    def discover_service(
        self,
        service_name: str,
        default_host: str,
        default_port: int,
        env_host_key: Optional[str] = None,
        env_port_key: Optional[str] = None,
    ) -> Tuple[str, int]:
        """
        Resolve host/port for a dependency.

        Priority: environment variables -> defaults.

        Returns:
            (host, port) tuple
        """
        host = os.getenv(env_host_key) if env_host_key else None
        port_value = os.getenv(env_port_key) if env_port_key else None

        port = default_port
        if port_value:
            try:
                port = int(port_value)
            except ValueError:
                logger.warning(f"Invalid port '{port_value}' for {service_name}, using {default_port}")

        resolved_host = host or default_host
        logger.debug(f"Resolved {service_name} at {resolved_host}:{port}")
        return resolved_host, port


__all__ = ["ConfigManager"]
