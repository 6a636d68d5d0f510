"""
Service Logger Setup

Configures the root logger of a microservice from ``LoggingConfig``:
console output and an optional size-rotated log file.

Usage:
    from core.logger import setup_service_logger
    logger = setup_service_logger("purchase_service")
"""

import logging
import os
import sys
from logging.handlers import RotatingFileHandler
from typing import Optional

from core.config import LoggingConfig

_configured_services = set()


def setup_service_logger(
    service_name: str,
    config: Optional[LoggingConfig] = None,
) -> logging.Logger:
    """
    Configure logging for a service and return its logger.

    Args:
        service_name: Logger name, also used in the log file name
        config: Logging configuration (loaded from environment if omitted)

    Returns:
        Configured service logger
    """
    config = config or LoggingConfig.from_env()
    logger = logging.getLogger(service_name)

    if service_name in _configured_services:
        return logger

    level = getattr(logging, config.log_level.upper(), logging.INFO)
    formatter = logging.Formatter(config.log_format)

    root = logging.getLogger()
    root.setLevel(level)

    if config.enable_console:
        console_handler = logging.StreamHandler(sys.stdout)
        console_handler.setFormatter(formatter)
        root.addHandler(console_handler)

    if config.log_file:
        log_dir = os.path.dirname(config.log_file)
        if log_dir:
            os.makedirs(log_dir, exist_ok=True)
        file_handler = RotatingFileHandler(
            config.log_file,
            maxBytes=config.log_max_bytes,
            backupCount=config.log_backup_count,
        )
        file_handler.setFormatter(formatter)
        root.addHandler(file_handler)

    # Quiet noisy libraries
    logging.getLogger("httpx").setLevel(logging.WARNING)
    logging.getLogger("asyncio").setLevel(logging.WARNING)

    _configured_services.add(service_name)
    logger.info(f"Logging configured for {service_name} (level={config.log_level}, env={config.environment})")
    return logger


__all__ = ["setup_service_logger"]
