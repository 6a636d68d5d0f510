"""
Payment Provider Client for Purchase Service

HTTP client for the external payment provider (merchant API with signed
form parameters). Amounts are sent in major currency units.
"""

import hashlib
import hmac
import logging
from decimal import Decimal
from typing import Any, Dict, Optional

import httpx

from core.config.payment_config import PaymentProviderConfig
from ..models import AmountUnit, PaymentInstructions, PaymentMethod, ProviderAmount
from ..pricing import settle_amount
from ..protocols import PaymentProviderUnavailableError

logger = logging.getLogger(__name__)

SIGN_TYPE = "HMAC-SHA256"
# Keys excluded from the signed string
UNSIGNED_KEYS = ("sign", "sign_type")
SUCCESS_CODES = (1, 200, "1", "200", "success", "SUCCESS")


def _canonical_string(params: Dict[str, Any]) -> str:
    items = [
        (key, str(value))
        for key, value in params.items()
        if key not in UNSIGNED_KEYS and value is not None and str(value) != ""
    ]
    return "&".join(f"{key}={value}" for key, value in sorted(items))


def sign_params(params: Dict[str, Any], merchant_key: str) -> str:
    """HMAC-SHA256 hex digest of the sorted ``key=value`` string"""
    return hmac.new(
        merchant_key.encode("utf-8"),
        _canonical_string(params).encode("utf-8"),
        hashlib.sha256,
    ).hexdigest()


class PaymentProviderClient:
    """Client for the external payment provider"""

    expected_unit = AmountUnit.MAJOR

    def __init__(
        self,
        config: Optional[PaymentProviderConfig] = None,
        client: Optional[httpx.AsyncClient] = None,
    ):
        """
        Initialize payment provider client

        Args:
            config: Provider endpoint and merchant credentials
            client: Pre-built httpx client (tests pass one with a mock transport)
        """
        self.config = config or PaymentProviderConfig.from_env()
        self.base_url = self.config.provider_url.rstrip('/')
        self.client = client or httpx.AsyncClient(timeout=self.config.timeout)
        logger.info(f"PaymentProviderClient initialized with base_url: {self.base_url}")

    async def close(self):
        """Close HTTP client"""
        await self.client.aclose()

    async def __aenter__(self):
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        await self.close()

    @staticmethod
    def _format_amount(value: Decimal) -> str:
        return str(settle_amount(value))

    async def create_payment(
        self,
        order_reference: str,
        description: str,
        method: PaymentMethod,
        amount: ProviderAmount,
        payer_id: str,
    ) -> PaymentInstructions:
        """
        Request payment instructions for an order

        Args:
            order_reference: Merchant order number
            description: Human readable order name
            method: Payment rail
            amount: Amount in major units
            payer_id: Payer identity, passed back in notifications

        Returns:
            Provider payload (redirect URL, QR code, ...)
        """
        if amount.unit != self.expected_unit:
            raise ValueError(
                f"Payment provider expects {self.expected_unit.value} units, got {amount.unit.value}"
            )

        params: Dict[str, Any] = {
            "pid": self.config.merchant_id,
            "type": method.value,
            "out_trade_no": order_reference,
            "notify_url": self.config.notify_url,
            "return_url": self.config.return_url,
            "name": description,
            "money": self._format_amount(amount.value),
            "param": payer_id,
        }
        params = {k: v for k, v in params.items() if v is not None}
        params["sign"] = sign_params(params, self.config.merchant_key)
        params["sign_type"] = SIGN_TYPE

        url = f"{self.base_url}{self.config.create_path}"
        try:
            response = await self.client.post(url, data=params)
            response.raise_for_status()
            payload = response.json()
        except httpx.HTTPStatusError as e:
            logger.error(
                f"Payment provider rejected order {order_reference}: "
                f"{e.response.status_code} - {e.response.text}"
            )
            raise PaymentProviderUnavailableError(
                f"Payment provider returned {e.response.status_code}",
                status_code=e.response.status_code,
            ) from e
        except httpx.HTTPError as e:
            logger.error(f"Payment provider request failed for order {order_reference}: {e}")
            raise PaymentProviderUnavailableError(f"Payment provider unreachable: {e}") from e
        except ValueError as e:
            logger.error(f"Payment provider returned malformed body for order {order_reference}: {e}")
            raise PaymentProviderUnavailableError("Payment provider returned a malformed response") from e

        if not isinstance(payload, dict) or not payload:
            logger.error(f"Unexpected payment provider payload for order {order_reference}: {payload!r}")
            raise PaymentProviderUnavailableError("Payment provider returned a malformed response")

        code = payload.get("code")
        if code is not None and code not in SUCCESS_CODES:
            message = payload.get("msg") or payload.get("message") or "unknown error"
            logger.error(f"Payment provider refused order {order_reference}: code={code} msg={message}")
            raise PaymentProviderUnavailableError(f"Payment provider error: {message}")

        logger.info(f"Payment instructions created for order {order_reference}")
        return PaymentInstructions(order_reference=order_reference, payload=payload)

    def verify_notification(self, payload: Dict[str, Any]) -> bool:
        """Check the ``sign`` field of a provider notification"""
        signature = payload.get("sign")
        if not signature or not self.config.merchant_key:
            return False

        expected = sign_params(payload, self.config.merchant_key)
        return hmac.compare_digest(expected, str(signature).lower())


__all__ = ["PaymentProviderClient", "sign_params"]
