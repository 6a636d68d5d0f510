#!/usr/bin/env python3
"""Service identity configuration

Name, bind address and port of the running microservice.
"""
import os
from dataclasses import dataclass

def _bool(val: str) -> bool:
    return val.lower() == "true"

def _int(val: str, default: int) -> int:
    try:
        return int(val) if val else default
    except ValueError:
        return default


@dataclass
class ServiceConfig:
    """Running service settings"""
    service_name: str = "purchase_service"
    service_host: str = "0.0.0.0"
    service_port: int = 8230
    debug: bool = False

    @classmethod
    def from_env(cls, service_name: str = "purchase_service") -> 'ServiceConfig':
        """Load service configuration from environment variables"""
        prefix = service_name.upper()
        return cls(
            service_name=service_name,
            service_host=os.getenv(f"{prefix}_HOST") or os.getenv("SERVICE_HOST", "0.0.0.0"),
            service_port=_int(os.getenv(f"{prefix}_PORT") or os.getenv("SERVICE_PORT", "8230"), 8230),
            debug=_bool(os.getenv("DEBUG", "false")),
        )
