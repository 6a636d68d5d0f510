"""
Purchase Microservice

Responsibilities:
- Subscription purchase (pricing, order reference, payment instructions)
- Transaction ledger with guarded status transitions
- Payment provider notifications
"""

import logging
from contextlib import asynccontextmanager
from datetime import datetime
from typing import Any, Dict, Optional
from urllib.parse import parse_qsl

import uvicorn
from fastapi import Depends, FastAPI, HTTPException, Query, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse, PlainTextResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from core.auth_dependencies import (
    is_internal_service_request,
    require_auth_or_internal_service,
    require_internal_service,
    require_user,
)
from core.config_manager import ConfigManager
from core.logger import setup_service_logger
from core.nats_client import get_event_bus

from .factory import create_purchase_service
from .models import (
    ErrorResponse,
    HealthResponse,
    PurchaseSubscriptionRequest,
    TransactionListResponse,
    TransactionResponse,
    TransactionStatus,
    TransactionStatusUpdateRequest,
)
from .protocols import PurchaseServiceError
from .purchase_service import PurchaseService
from .routes_registry import SERVICE_METADATA, get_route_summary

# Initialize configuration
config_manager = ConfigManager("purchase_service")
config = config_manager.get_service_config()

# Setup loggers
app_logger = setup_service_logger("purchase_service", config=config_manager.get_logging_config())
logger = app_logger

ERROR_STATUS_CODES = {
    "PLAN_NOT_FOUND": status.HTTP_400_BAD_REQUEST,
    "INVALID_BILLING_CYCLE": status.HTTP_400_BAD_REQUEST,
    "NOTIFICATION_REJECTED": status.HTTP_400_BAD_REQUEST,
    "TRANSACTION_NOT_FOUND": status.HTTP_404_NOT_FOUND,
    "INVALID_STATE_TRANSITION": status.HTTP_409_CONFLICT,
    "PAYMENT_PROVIDER_UNAVAILABLE": status.HTTP_502_BAD_GATEWAY,
}

# User-facing messages; details stay in the logs
ERROR_MESSAGES = {
    "PLAN_NOT_FOUND": "Invalid subscription plan",
    "INVALID_BILLING_CYCLE": "Invalid billing cycle",
    "NOTIFICATION_REJECTED": "Notification rejected",
    "TRANSACTION_NOT_FOUND": "Transaction not found",
    "INVALID_STATE_TRANSITION": "Transaction status cannot be changed",
    "PAYMENT_PROVIDER_UNAVAILABLE": "Payment provider unavailable, please try again later",
}
DEFAULT_ERROR_MESSAGE = "Failed to initialize subscription purchase"


class PurchaseMicroservice:
    """Purchase microservice core class"""

    def __init__(self):
        self.purchase_service: Optional[PurchaseService] = None
        self.event_bus = None

    async def initialize(self, event_bus=None):
        """Initialize the microservice"""
        try:
            self.event_bus = event_bus
            self.purchase_service = create_purchase_service(config=config_manager, event_bus=event_bus)
            await self.purchase_service.initialize()
            logger.info("Purchase microservice initialized successfully")
        except Exception as e:
            logger.error(f"Failed to initialize purchase microservice: {e}")
            raise

    async def shutdown(self):
        """Shutdown the microservice"""
        try:
            if self.purchase_service:
                await self.purchase_service.close()
            if self.event_bus:
                await self.event_bus.close()
                logger.info("Event bus closed")
            logger.info("Purchase microservice shutdown completed")
        except Exception as e:
            logger.error(f"Error during shutdown: {e}")


# Global microservice instance
purchase_microservice = PurchaseMicroservice()


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan management"""
    event_bus = None
    if config_manager.get_infra_config().nats_enabled:
        try:
            event_bus = await get_event_bus("purchase_service", config=config_manager)
            logger.info("Event bus initialized successfully")
        except Exception as e:
            logger.warning(
                f"Failed to initialize event bus: {e}. Continuing without event publishing."
            )
            event_bus = None

    await purchase_microservice.initialize(event_bus=event_bus)

    if event_bus and purchase_microservice.purchase_service:
        try:
            from .events import PurchaseEventHandlers

            event_handlers = PurchaseEventHandlers(purchase_microservice.purchase_service)
            handler_map = event_handlers.get_event_handler_map()

            for event_pattern, handler_func in handler_map.items():
                await event_bus.subscribe_to_events(
                    pattern=event_pattern, handler=handler_func
                )
                logger.info(f"Subscribed to {event_pattern} events")

            logger.info(f"Event handlers registered - Subscribed to {len(handler_map)} event types")
        except Exception as e:
            logger.warning(f"Failed to subscribe to events: {e}")

    route_summary = get_route_summary()
    logger.info(
        f"{SERVICE_METADATA['service_name']} v{SERVICE_METADATA['version']} serving "
        f"{route_summary['route_count']} routes under {route_summary['base_path']}"
    )

    yield

    await purchase_microservice.shutdown()


# Create FastAPI application
app = FastAPI(
    title="Purchase Service",
    description="Subscription purchase and transaction ledger microservice",
    version=SERVICE_METADATA["version"],
    lifespan=lifespan,
)


# Dependency injection
def get_purchase_service() -> PurchaseService:
    """Get purchase service instance"""
    if not purchase_microservice.purchase_service:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Purchase service not initialized",
        )
    return purchase_microservice.purchase_service


def _error_response(status_code: int, error: str, error_code: Optional[str]) -> JSONResponse:
    body = ErrorResponse(error=error, error_code=error_code)
    return JSONResponse(status_code=status_code, content=body.model_dump(exclude_none=True))


# ====================
# Exception Handlers
# ====================

@app.exception_handler(PurchaseServiceError)
async def purchase_error_handler(request: Request, exc: PurchaseServiceError):
    status_code = ERROR_STATUS_CODES.get(exc.error_code, status.HTTP_500_INTERNAL_SERVER_ERROR)
    if status_code >= 500:
        logger.error(f"{exc.error_code} on {request.url.path}: {exc}", exc_info=exc)
    else:
        logger.warning(f"{exc.error_code} on {request.url.path}: {exc}")
    return _error_response(
        status_code, ERROR_MESSAGES.get(exc.error_code, DEFAULT_ERROR_MESSAGE), exc.error_code
    )


@app.exception_handler(StarletteHTTPException)
async def http_exception_handler(request: Request, exc: StarletteHTTPException):
    if exc.status_code == status.HTTP_401_UNAUTHORIZED:
        return _error_response(exc.status_code, str(exc.detail), "AUTHENTICATION_FAILED")
    return _error_response(exc.status_code, str(exc.detail), None)


@app.exception_handler(RequestValidationError)
async def validation_error_handler(request: Request, exc: RequestValidationError):
    logger.warning(f"Invalid request on {request.url.path}: {exc.errors()}")
    return _error_response(status.HTTP_400_BAD_REQUEST, "Invalid request", "INVALID_REQUEST")


# ====================
# Health Endpoints
# ====================

@app.get("/health")
async def health_check():
    """Service health check"""
    return {
        "status": "healthy",
        "service": config.service_name,
        "port": config.service_port,
        "version": SERVICE_METADATA["version"],
        "timestamp": datetime.utcnow().isoformat(),
    }


@app.get("/health/detailed", response_model=HealthResponse)
async def detailed_health_check(
    purchase_service: PurchaseService = Depends(get_purchase_service),
):
    """Detailed health check"""
    health_data = await purchase_service.health_check()
    return HealthResponse(
        status=health_data["status"],
        service=config.service_name,
        port=config.service_port,
        version=SERVICE_METADATA["version"],
        timestamp=health_data["timestamp"],
        database_connected=health_data["database_connected"],
    )


# ====================
# Purchase Endpoints
# ====================

@app.post("/api/v1/purchases/subscription")
async def purchase_subscription(
    request: PurchaseSubscriptionRequest,
    user_id: str = Depends(require_user),
    purchase_service: PurchaseService = Depends(get_purchase_service),
):
    """Start a subscription purchase and return payment instructions"""
    result = await purchase_service.purchase(
        payer_id=user_id,
        plan_id=request.plan_id,
        billing_cycle=request.billing_cycle,
    )
    return {"success": True, "paymentData": result.payment_data}


@app.post("/api/v1/purchases/notify")
async def payment_notification(
    request: Request,
    purchase_service: PurchaseService = Depends(get_purchase_service),
):
    """Payment provider callback; replies with the plain ``success`` ack"""
    payload: Dict[str, Any] = dict(request.query_params)
    body = await request.body()
    if body:
        if request.headers.get("content-type", "").startswith("application/json"):
            try:
                json_body = await request.json()
            except ValueError:
                json_body = None
            if not isinstance(json_body, dict):
                return _error_response(status.HTTP_400_BAD_REQUEST, "Notification rejected", "NOTIFICATION_REJECTED")
            payload.update(json_body)
        else:
            try:
                form_body = body.decode("utf-8")
            except UnicodeDecodeError:
                logger.warning("Rejected payment notification with a non UTF-8 form body")
                return _error_response(status.HTTP_400_BAD_REQUEST, "Notification rejected", "NOTIFICATION_REJECTED")
            payload.update(parse_qsl(form_body, keep_blank_values=True))

    await purchase_service.apply_payment_notification(payload)
    return PlainTextResponse("success")


# ====================
# Transaction Endpoints
# ====================

@app.get("/api/v1/purchases/transactions", response_model=TransactionListResponse)
async def list_transactions(
    status_filter: Optional[TransactionStatus] = Query(None, alias="status"),
    limit: int = Query(50, ge=1, le=100),
    offset: int = Query(0, ge=0),
    user_id: str = Depends(require_user),
    purchase_service: PurchaseService = Depends(get_purchase_service),
):
    """List the caller's transactions"""
    return await purchase_service.list_user_transactions(
        user_id=user_id, status=status_filter, limit=limit, offset=offset
    )


@app.get("/api/v1/purchases/transactions/{order_reference}", response_model=TransactionResponse)
async def get_transaction(
    order_reference: str,
    user_id: str = Depends(require_auth_or_internal_service),
    purchase_service: PurchaseService = Depends(get_purchase_service),
):
    """Get a transaction by order reference"""
    transaction = await purchase_service.get_transaction(
        order_reference,
        requester_id=user_id,
        is_internal=is_internal_service_request(user_id),
    )
    return TransactionResponse(success=True, message="Transaction found", transaction=transaction)


@app.post("/api/v1/purchases/transactions/{order_reference}/status", response_model=TransactionResponse)
async def update_transaction_status(
    order_reference: str,
    request: TransactionStatusUpdateRequest,
    _service: str = Depends(require_internal_service),
    purchase_service: PurchaseService = Depends(get_purchase_service),
):
    """Move a pending transaction to a terminal status (internal services only)"""
    transaction = await purchase_service.update_transaction_status(
        order_reference,
        request.status,
        provider_trade_no=request.provider_trade_no,
        reason=request.reason,
    )
    return TransactionResponse(
        success=True,
        message=f"Transaction is {transaction.status.value}",
        transaction=transaction,
    )


if __name__ == "__main__":
    uvicorn.run(
        "microservices.purchase_service.main:app",
        host=config.service_host,
        port=config.service_port,
        reload=config.debug,
        log_level="info",
    )
