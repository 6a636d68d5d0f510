#!/usr/bin/env python3
"""
Core Module for Microservices Architecture

Shared infrastructure for the purchase microservice.

COMPONENTS:
    - config/: modular dataclass configuration loaded from environment
    - config_manager.py: per-service configuration access and endpoint resolution
    - logger.py: service logging setup
    - postgres_client.py: asyncpg connection pool wrapper
    - nats_client.py: NATS JetStream event bus
    - auth_dependencies.py: FastAPI identity dependencies

USAGE:
    from core.config_manager import ConfigManager

    config = ConfigManager("purchase_service")
"""

from .config_manager import ConfigManager

__all__ = [
    "ConfigManager",
]

__version__ = "2.1.0"
