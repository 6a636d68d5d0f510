#!/usr/bin/env python3
"""Modular configuration system for the purchase service

Configuration hierarchy:
- service_config: identity, bind host and port of the running service
- infra_config: PostgreSQL and NATS endpoints
- payment_config: external payment provider endpoint and merchant credentials
- logging_config: logging configuration
"""
import os
from dotenv import load_dotenv
from .logging_config import LoggingConfig
from .infra_config import InfraConfig
from .payment_config import PaymentProviderConfig
from .service_config import ServiceConfig
from .purchase_config import PurchaseConfig

# Load environment file based on ENV
env = os.getenv("ENV") or os.getenv("ENVIRONMENT", "development")
env_files = {
    "development": "deployment/environments/dev.env",
    "dev": "deployment/environments/dev.env",
    "testing": "deployment/environments/test.env",
    "test": "deployment/environments/test.env",
    "staging": "deployment/environments/staging.env",
    "production": "deployment/environments/production.env",
}
env_file = env_files.get(env, "deployment/environments/dev.env")
load_dotenv(env_file, override=False)

# Create global settings instance
settings = PurchaseConfig.from_env()

def get_settings() -> PurchaseConfig:
    """Get global settings instance"""
    return settings

def reload_settings() -> PurchaseConfig:
    """Reload settings from environment"""
    global settings
    settings = PurchaseConfig.from_env()
    return settings

__all__ = [
    'PurchaseConfig',
    'get_settings',
    'reload_settings',
    'settings',
    'LoggingConfig',
    'InfraConfig',
    'PaymentProviderConfig',
    'ServiceConfig',
]
