#!/usr/bin/env python3
"""Payment provider configuration

Endpoint, merchant credentials and call limits for the external payment
provider. Amounts sent to this provider are in major currency units (yuan),
see ``AmountUnit`` in the purchase service models.
"""
import os
from dataclasses import dataclass
from typing import Optional

def _float(val: str, default: float) -> float:
    try:
        return float(val) if val else default
    except ValueError:
        return default


@dataclass
class PaymentProviderConfig:
    """External payment provider settings"""
    provider_url: str = "https://pay.example.com"
    create_path: str = "/api/pay/create"
    merchant_id: str = ""
    merchant_key: str = ""
    notify_url: Optional[str] = None
    return_url: Optional[str] = None

    # Payment rail used for subscription purchases
    payment_method: str = "alipay"

    # Seconds; applied to the whole provider call
    timeout: float = 15.0

    @classmethod
    def from_env(cls) -> 'PaymentProviderConfig':
        """Load payment provider config from environment variables"""
        return cls(
            provider_url=os.getenv("PAYMENT_PROVIDER_URL", "https://pay.example.com"),
            create_path=os.getenv("PAYMENT_PROVIDER_CREATE_PATH", "/api/pay/create"),
            merchant_id=os.getenv("PAYMENT_MERCHANT_ID", ""),
            merchant_key=os.getenv("PAYMENT_MERCHANT_KEY", ""),
            notify_url=os.getenv("PAYMENT_NOTIFY_URL"),
            return_url=os.getenv("PAYMENT_RETURN_URL"),
            payment_method=os.getenv("PAYMENT_METHOD", "alipay"),
            timeout=_float(os.getenv("PAYMENT_PROVIDER_TIMEOUT", "15"), 15.0),
        )
