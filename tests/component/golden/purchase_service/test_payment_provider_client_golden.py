"""
Payment Provider Client - Component Tests (Golden)

The HTTP adapter against an in-process ``httpx.MockTransport``:
- Signed request parameters
- Failure mapping to PaymentProviderUnavailableError
- Notification signature verification
"""

from decimal import Decimal
from urllib.parse import parse_qs

import httpx
import pytest

from core.config.payment_config import PaymentProviderConfig
from microservices.purchase_service.clients import PaymentProviderClient, sign_params
from microservices.purchase_service.models import AmountUnit, PaymentMethod, ProviderAmount
from microservices.purchase_service.protocols import PaymentProviderUnavailableError

MERCHANT_KEY = "unit-test-key"


@pytest.fixture
def provider_config():
    return PaymentProviderConfig(
        provider_url="https://pay.test",
        merchant_id="1001",
        merchant_key=MERCHANT_KEY,
        notify_url="https://shop.test/api/v1/purchases/notify",
        return_url="https://shop.test/billing",
        timeout=5.0,
    )


def make_client(config, handler) -> PaymentProviderClient:
    http_client = httpx.AsyncClient(transport=httpx.MockTransport(handler))
    return PaymentProviderClient(config=config, client=http_client)


async def create(client: PaymentProviderClient, amount: Decimal = Decimal("200")):
    return await client.create_payment(
        order_reference="sub_1700000000000000000_user_1",
        description="Pro subscription (Yearly)",
        method=PaymentMethod.ALIPAY,
        amount=ProviderAmount(value=amount),
        payer_id="user_1",
    )


class TestCreatePayment:

    @pytest.mark.asyncio
    async def test_signed_form_request(self, provider_config):
        """Request carries merchant fields, major-unit money and a valid signature"""
        # Arrange
        captured = {}

        def handler(request: httpx.Request) -> httpx.Response:
            captured["url"] = str(request.url)
            captured["form"] = {k: v[0] for k, v in parse_qs(request.content.decode()).items()}
            return httpx.Response(200, json={"code": 1, "payurl": "https://pay.test/submit/abc"})

        client = make_client(provider_config, handler)

        # Act
        instructions = await create(client)
        await client.close()

        # Assert
        form = captured["form"]
        assert captured["url"] == "https://pay.test/api/pay/create"
        assert form["pid"] == "1001"
        assert form["type"] == "alipay"
        assert form["out_trade_no"] == "sub_1700000000000000000_user_1"
        assert form["money"] == "200.00"
        assert form["param"] == "user_1"
        assert form["sign_type"] == "HMAC-SHA256"
        assert form["sign"] == sign_params(form, MERCHANT_KEY)
        assert instructions.order_reference == "sub_1700000000000000000_user_1"
        assert instructions.payload["payurl"] == "https://pay.test/submit/abc"

    @pytest.mark.asyncio
    async def test_minor_units_refused(self, provider_config):
        """The adapter bills in major units only"""
        client = make_client(provider_config, lambda request: httpx.Response(200, json={"code": 1}))

        with pytest.raises(ValueError):
            await client.create_payment(
                order_reference="sub_1_user_1",
                description="Pro subscription (Monthly)",
                method=PaymentMethod.ALIPAY,
                amount=ProviderAmount(value=Decimal("2000"), unit=AmountUnit.MINOR),
                payer_id="user_1",
            )
        await client.close()

    @pytest.mark.asyncio
    async def test_server_error(self, provider_config):
        client = make_client(provider_config, lambda request: httpx.Response(503, text="maintenance"))

        with pytest.raises(PaymentProviderUnavailableError) as exc_info:
            await create(client)

        assert exc_info.value.status_code == 503
        await client.close()

    @pytest.mark.asyncio
    async def test_client_error(self, provider_config):
        client = make_client(provider_config, lambda request: httpx.Response(400, json={"msg": "bad pid"}))

        with pytest.raises(PaymentProviderUnavailableError):
            await create(client)
        await client.close()

    @pytest.mark.asyncio
    async def test_transport_error(self, provider_config):
        def handler(request):
            raise httpx.ConnectError("connection refused", request=request)

        client = make_client(provider_config, handler)

        with pytest.raises(PaymentProviderUnavailableError):
            await create(client)
        await client.close()

    @pytest.mark.asyncio
    async def test_malformed_body(self, provider_config):
        client = make_client(provider_config, lambda request: httpx.Response(200, text="<html>oops</html>"))

        with pytest.raises(PaymentProviderUnavailableError):
            await create(client)
        await client.close()

    @pytest.mark.asyncio
    async def test_error_code_in_body(self, provider_config):
        client = make_client(
            provider_config,
            lambda request: httpx.Response(200, json={"code": -1, "msg": "merchant disabled"}),
        )

        with pytest.raises(PaymentProviderUnavailableError):
            await create(client)
        await client.close()


class TestVerifyNotification:

    def test_valid_signature(self, provider_config):
        client = PaymentProviderClient(config=provider_config)
        payload = {"out_trade_no": "sub_1_user_1", "trade_status": "TRADE_SUCCESS", "money": "20.00"}
        payload["sign"] = sign_params(payload, MERCHANT_KEY)
        payload["sign_type"] = "HMAC-SHA256"

        assert client.verify_notification(payload) is True

    def test_tampered_payload(self, provider_config):
        client = PaymentProviderClient(config=provider_config)
        payload = {"out_trade_no": "sub_1_user_1", "trade_status": "TRADE_SUCCESS", "money": "20.00"}
        payload["sign"] = sign_params(payload, MERCHANT_KEY)
        payload["money"] = "0.01"

        assert client.verify_notification(payload) is False

    def test_missing_signature(self, provider_config):
        client = PaymentProviderClient(config=provider_config)
        assert client.verify_notification({"out_trade_no": "sub_1_user_1"}) is False
