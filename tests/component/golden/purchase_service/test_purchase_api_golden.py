"""
Purchase Service - API Tests (Golden)

HTTP contract of the FastAPI app with the service dependency overridden:
- Response envelopes and error codes
- Authentication headers
- Provider notification endpoint
"""

from decimal import Decimal

import pytest
from fastapi.testclient import TestClient

from .mocks import (
    MockPaymentProvider,
    MockPlanCatalog,
    MockTransactionRepository,
    PurchaseTestDataFactory,
)

from core.internal_service_auth import InternalServiceAuth
from microservices.purchase_service.main import ERROR_STATUS_CODES, app, get_purchase_service
from microservices.purchase_service.models import TransactionStatus
from microservices.purchase_service.protocols import (
    DuplicateOrderReferenceError,
    InvalidBillingCycleError,
    InvalidStateTransitionError,
    LedgerWriteError,
    NotificationVerificationError,
    OrderReferenceError,
    PaymentProviderUnavailableError,
    PlanNotFoundError,
    TransactionNotFoundError,
)
from microservices.purchase_service.purchase_service import PurchaseService


@pytest.fixture
def mock_repository():
    return MockTransactionRepository()


@pytest.fixture
def mock_provider():
    return MockPaymentProvider()


@pytest.fixture
def client(mock_repository, mock_provider):
    """TestClient against a service wired to in-memory doubles"""
    catalog = MockPlanCatalog()
    catalog.add_plan(PurchaseTestDataFactory.make_plan())
    service = PurchaseService(
        plan_catalog=catalog,
        repository=mock_repository,
        payment_provider=mock_provider,
    )
    app.dependency_overrides[get_purchase_service] = lambda: service
    yield TestClient(app)
    app.dependency_overrides.clear()


def user_headers(user_id: str):
    return {"X-User-Id": user_id}


class TestPurchaseEndpoint:
    """POST /api/v1/purchases/subscription"""

    def test_purchase_success(self, client, mock_repository):
        user_id = PurchaseTestDataFactory.make_user_id()

        response = client.post(
            "/api/v1/purchases/subscription",
            json={"planId": "pro", "billingCycle": "yearly"},
            headers=user_headers(user_id),
        )

        assert response.status_code == 200
        body = response.json()
        assert body["success"] is True
        assert body["paymentData"]["orderNo"] == mock_repository.transactions[0].order_reference
        assert "payurl" in body["paymentData"]
        assert mock_repository.transactions[0].amount == Decimal("200")

    def test_snake_case_body_accepted(self, client):
        response = client.post(
            "/api/v1/purchases/subscription",
            json={"plan_id": "pro", "billing_cycle": "monthly"},
            headers={"user-id": PurchaseTestDataFactory.make_user_id()},
        )

        assert response.status_code == 200

    def test_missing_identity_returns_401(self, client, mock_provider):
        response = client.post(
            "/api/v1/purchases/subscription",
            json={"planId": "pro", "billingCycle": "monthly"},
        )

        assert response.status_code == 401
        body = response.json()
        assert body["success"] is False
        assert body["error_code"] == "AUTHENTICATION_FAILED"
        mock_provider.create_payment.assert_not_called()

    def test_unknown_plan_returns_400(self, client, mock_repository):
        response = client.post(
            "/api/v1/purchases/subscription",
            json={"planId": "enterprise", "billingCycle": "monthly"},
            headers=user_headers(PurchaseTestDataFactory.make_user_id()),
        )

        assert response.status_code == 400
        body = response.json()
        assert body == {"success": False, "error": "Invalid subscription plan", "error_code": "PLAN_NOT_FOUND"}
        assert mock_repository.transactions == []

    def test_invalid_cycle_returns_400(self, client):
        response = client.post(
            "/api/v1/purchases/subscription",
            json={"planId": "pro", "billingCycle": "daily"},
            headers=user_headers(PurchaseTestDataFactory.make_user_id()),
        )

        assert response.status_code == 400
        assert response.json()["error_code"] == "INVALID_BILLING_CYCLE"

    def test_missing_fields_returns_400(self, client):
        response = client.post(
            "/api/v1/purchases/subscription",
            json={"planId": "pro"},
            headers=user_headers(PurchaseTestDataFactory.make_user_id()),
        )

        assert response.status_code == 400
        assert response.json()["error_code"] == "INVALID_REQUEST"

    def test_provider_failure_returns_502(self, client, mock_provider, mock_repository):
        mock_provider.error = PaymentProviderUnavailableError("provider returned 500", status_code=500)

        response = client.post(
            "/api/v1/purchases/subscription",
            json={"planId": "pro", "billingCycle": "monthly"},
            headers=user_headers(PurchaseTestDataFactory.make_user_id()),
        )

        assert response.status_code == 502
        body = response.json()
        assert body["error_code"] == "PAYMENT_PROVIDER_UNAVAILABLE"
        assert "provider returned 500" not in body["error"]
        assert mock_repository.transactions == []

    def test_ledger_failure_returns_500(self, client, mock_repository):
        mock_repository.set_insert_error(LedgerWriteError("disk full"))

        response = client.post(
            "/api/v1/purchases/subscription",
            json={"planId": "pro", "billingCycle": "monthly"},
            headers=user_headers(PurchaseTestDataFactory.make_user_id()),
        )

        assert response.status_code == 500
        body = response.json()
        assert body["error_code"] == "LEDGER_WRITE_FAILED"
        assert "disk full" not in body["error"]


class TestTransactionEndpoints:
    """Transaction reads and internal status updates"""

    def test_get_own_transaction(self, client, mock_repository):
        tx = PurchaseTestDataFactory.make_transaction()
        mock_repository.add_transaction(tx)

        response = client.get(
            f"/api/v1/purchases/transactions/{tx.order_reference}",
            headers=user_headers(tx.user_id),
        )

        assert response.status_code == 200
        assert response.json()["transaction"]["order_reference"] == tx.order_reference

    def test_get_other_users_transaction_returns_404(self, client, mock_repository):
        tx = PurchaseTestDataFactory.make_transaction()
        mock_repository.add_transaction(tx)

        response = client.get(
            f"/api/v1/purchases/transactions/{tx.order_reference}",
            headers=user_headers(PurchaseTestDataFactory.make_user_id()),
        )

        assert response.status_code == 404
        assert response.json()["error_code"] == "TRANSACTION_NOT_FOUND"

    def test_list_transactions_with_status_filter(self, client, mock_repository):
        user_id = PurchaseTestDataFactory.make_user_id()
        mock_repository.add_transaction(PurchaseTestDataFactory.make_transaction(user_id=user_id))
        mock_repository.add_transaction(
            PurchaseTestDataFactory.make_transaction(user_id=user_id, status=TransactionStatus.PAID)
        )

        response = client.get(
            "/api/v1/purchases/transactions",
            params={"status": "paid"},
            headers=user_headers(user_id),
        )

        assert response.status_code == 200
        body = response.json()
        assert body["total"] == 1
        assert body["transactions"][0]["status"] == "paid"

    def test_list_total_spans_all_pages(self, client, mock_repository):
        user_id = PurchaseTestDataFactory.make_user_id()
        for _ in range(3):
            mock_repository.add_transaction(PurchaseTestDataFactory.make_transaction(user_id=user_id))

        response = client.get(
            "/api/v1/purchases/transactions",
            params={"limit": 1, "offset": 1},
            headers=user_headers(user_id),
        )

        body = response.json()
        assert len(body["transactions"]) == 1
        assert body["total"] == 3
        assert body["offset"] == 1

    def test_status_update_requires_internal_service(self, client, mock_repository):
        tx = PurchaseTestDataFactory.make_transaction()
        mock_repository.add_transaction(tx)

        response = client.post(
            f"/api/v1/purchases/transactions/{tx.order_reference}/status",
            json={"status": "paid"},
            headers=user_headers(tx.user_id),
        )

        assert response.status_code == 401

    def test_internal_status_update(self, client, mock_repository):
        tx = PurchaseTestDataFactory.make_transaction()
        mock_repository.add_transaction(tx)

        response = client.post(
            f"/api/v1/purchases/transactions/{tx.order_reference}/status",
            json={"status": "expired", "reason": "stale"},
            headers=InternalServiceAuth.get_internal_service_headers(),
        )

        assert response.status_code == 200
        assert response.json()["transaction"]["status"] == "expired"

    def test_illegal_transition_returns_409(self, client, mock_repository):
        tx = PurchaseTestDataFactory.make_transaction(status=TransactionStatus.PAID)
        mock_repository.add_transaction(tx)

        response = client.post(
            f"/api/v1/purchases/transactions/{tx.order_reference}/status",
            json={"status": "pending"},
            headers=InternalServiceAuth.get_internal_service_headers(),
        )

        assert response.status_code == 409
        assert response.json()["error_code"] == "INVALID_STATE_TRANSITION"


class TestNotifyEndpoint:
    """POST /api/v1/purchases/notify"""

    def test_form_notification_marks_paid(self, client, mock_repository):
        tx = PurchaseTestDataFactory.make_transaction()
        mock_repository.add_transaction(tx)
        payload = PurchaseTestDataFactory.make_notification(tx.order_reference)

        response = client.post(
            "/api/v1/purchases/notify",
            content="&".join(f"{k}={v}" for k, v in payload.items()),
            headers={"Content-Type": "application/x-www-form-urlencoded"},
        )

        assert response.status_code == 200
        assert response.text == "success"
        assert mock_repository.transactions[0].status == TransactionStatus.PAID

    def test_json_notification_replay(self, client, mock_repository):
        tx = PurchaseTestDataFactory.make_transaction()
        mock_repository.add_transaction(tx)
        payload = PurchaseTestDataFactory.make_notification(tx.order_reference)

        first = client.post("/api/v1/purchases/notify", json=payload)
        second = client.post("/api/v1/purchases/notify", json=payload)

        assert first.status_code == 200
        assert second.status_code == 200

    def test_bad_signature_returns_400(self, client, mock_repository):
        tx = PurchaseTestDataFactory.make_transaction()
        mock_repository.add_transaction(tx)
        payload = PurchaseTestDataFactory.make_notification(tx.order_reference, merchant_key="forged")

        response = client.post("/api/v1/purchases/notify", json=payload)

        assert response.status_code == 400
        assert response.json()["error_code"] == "NOTIFICATION_REJECTED"
        assert mock_repository.transactions[0].status == TransactionStatus.PENDING

    def test_non_utf8_form_body_returns_400(self, client, mock_repository):
        tx = PurchaseTestDataFactory.make_transaction()
        mock_repository.add_transaction(tx)

        response = client.post(
            "/api/v1/purchases/notify",
            content=b"out_trade_no=\xff\xfe&sign=x",
            headers={"Content-Type": "application/x-www-form-urlencoded"},
        )

        assert response.status_code == 400
        assert response.json() == {
            "success": False,
            "error": "Notification rejected",
            "error_code": "NOTIFICATION_REJECTED",
        }
        assert mock_repository.transactions[0].status == TransactionStatus.PENDING

    def test_non_utf8_json_body_returns_400(self, client):
        response = client.post(
            "/api/v1/purchases/notify",
            content=b'{"out_trade_no": "\xff"}',
            headers={"Content-Type": "application/json"},
        )

        assert response.status_code == 400
        assert response.json()["error_code"] == "NOTIFICATION_REJECTED"


class TestHealthEndpoints:

    def test_health(self, client):
        response = client.get("/health")
        assert response.status_code == 200
        assert response.json()["status"] == "healthy"

    def test_detailed_health(self, client):
        response = client.get("/health/detailed")
        assert response.status_code == 200
        assert response.json()["database_connected"] is True


class TestErrorStatusMapping:
    """HTTP status is derived from each error's error_code"""

    @pytest.mark.parametrize("error_cls,expected", [
        (PlanNotFoundError, 400),
        (InvalidBillingCycleError, 400),
        (NotificationVerificationError, 400),
        (TransactionNotFoundError, 404),
        (InvalidStateTransitionError, 409),
        (PaymentProviderUnavailableError, 502),
        (LedgerWriteError, 500),
        (DuplicateOrderReferenceError, 500),
        (OrderReferenceError, 500),
    ])
    def test_error_code_status(self, error_cls, expected):
        status_code = ERROR_STATUS_CODES.get(error_cls.error_code, 500)
        assert status_code == expected
