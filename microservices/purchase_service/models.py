"""
Purchase Service Data Models

Data models for subscription purchases and the transaction ledger.
"""

from enum import Enum
from typing import Optional, Dict, Any, List
from datetime import datetime
from decimal import Decimal
from pydantic import BaseModel, ConfigDict, Field, field_validator


# ====================
# Enum Types
# ====================

class BillingCycle(str, Enum):
    """Billing cycle"""
    MONTHLY = "monthly"
    YEARLY = "yearly"

    @property
    def label(self) -> str:
        return "Yearly" if self is BillingCycle.YEARLY else "Monthly"


class TransactionStatus(str, Enum):
    """Transaction lifecycle status"""
    PENDING = "pending"      # Created by the purchase flow, awaiting provider confirmation
    PAID = "paid"            # Provider confirmed payment
    FAILED = "failed"        # Provider reported failure
    EXPIRED = "expired"      # Never confirmed

    @property
    def is_terminal(self) -> bool:
        return self is not TransactionStatus.PENDING

    def can_transition_to(self, target: "TransactionStatus") -> bool:
        """Only pending -> paid/failed/expired is legal"""
        return self is TransactionStatus.PENDING and target.is_terminal


class TransactionType(str, Enum):
    """Transaction kind"""
    SUBSCRIPTION = "subscription"


class PaymentMethod(str, Enum):
    """Payment rails offered by the provider"""
    ALIPAY = "alipay"
    WXPAY = "wxpay"
    QQPAY = "qqpay"


class AmountUnit(str, Enum):
    """Unit of a monetary amount"""
    MAJOR = "major"          # yuan / dollars
    MINOR = "minor"          # fen / cents


# ====================
# Core Data Models
# ====================

class SubscriptionPlan(BaseModel):
    """Subscription plan as published by the plan catalog (read-only)"""
    model_config = ConfigDict(frozen=True)

    plan_id: str = Field(..., description="Plan identifier")
    name: str = Field(..., description="Display name")
    price: Decimal = Field(..., ge=0, description="Monthly base price, major currency unit")
    tokens: int = Field(..., ge=0, description="Monthly base token grant")
    is_active: bool = True


class PlanQuote(BaseModel):
    """Resolved purchase intent: what the payer is charged and granted"""
    model_config = ConfigDict(frozen=True)

    plan_id: str
    plan_name: str
    billing_cycle: BillingCycle
    amount: Decimal = Field(..., ge=0)
    tokens: int = Field(..., ge=0)


class ProviderAmount(BaseModel):
    """Monetary amount tagged with its unit at the payment provider boundary"""
    model_config = ConfigDict(frozen=True)

    value: Decimal = Field(..., ge=0)
    unit: AmountUnit = AmountUnit.MAJOR


class Transaction(BaseModel):
    """Ledger row for one purchase attempt"""
    id: Optional[int] = None
    order_reference: str = Field(..., min_length=1, description="Unique provider correlation key")

    # Payer
    user_id: str = Field(..., min_length=1)

    # What was bought
    transaction_type: TransactionType = TransactionType.SUBSCRIPTION
    plan_id: str
    billing_cycle: BillingCycle
    amount: Decimal = Field(..., ge=0)
    tokens: int = Field(..., ge=0)

    # Payment
    payment_method: PaymentMethod = PaymentMethod.ALIPAY
    status: TransactionStatus = TransactionStatus.PENDING
    provider_trade_no: Optional[str] = None

    # Metadata
    metadata: Dict[str, Any] = Field(default_factory=dict)
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None
    completed_at: Optional[datetime] = None


class PaymentInstructions(BaseModel):
    """Opaque provider payload the payer's client uses to pay (redirect URL, QR code, ...)"""
    order_reference: str
    payload: Dict[str, Any] = Field(default_factory=dict)


# ====================
# Request/Response Models
# ====================

class PurchaseSubscriptionRequest(BaseModel):
    """Request to purchase a subscription plan"""
    model_config = ConfigDict(populate_by_name=True)

    plan_id: str = Field(..., alias="planId", min_length=1)
    billing_cycle: str = Field(..., alias="billingCycle", min_length=1)


class PurchaseResponse(BaseModel):
    """Successful purchase: provider instructions merged with the order reference"""
    success: bool = True
    order_reference: str
    payment_data: Dict[str, Any] = Field(default_factory=dict)
    amount: Decimal
    tokens: int


class TransactionStatusUpdateRequest(BaseModel):
    """Request to move a transaction to a terminal status"""
    status: TransactionStatus
    provider_trade_no: Optional[str] = None
    reason: Optional[str] = None


class PaymentNotification(BaseModel):
    """Payment provider confirmation callback"""
    model_config = ConfigDict(populate_by_name=True)

    order_reference: str = Field(..., alias="out_trade_no", min_length=1)
    trade_status: str = Field(..., description="Provider status, e.g. TRADE_SUCCESS")
    provider_trade_no: Optional[str] = Field(default=None, alias="trade_no")
    amount: Optional[Decimal] = Field(default=None, alias="money")
    merchant_id: Optional[str] = Field(default=None, alias="pid")
    signature: Optional[str] = Field(default=None, alias="sign")

    @field_validator("trade_status")
    @classmethod
    def normalize_status(cls, v: str) -> str:
        return v.strip().upper()

    @property
    def target_status(self) -> Optional[TransactionStatus]:
        if self.trade_status in ("TRADE_SUCCESS", "TRADE_FINISHED", "SUCCESS", "PAID"):
            return TransactionStatus.PAID
        if self.trade_status in ("TRADE_CLOSED", "TRADE_FAILED", "FAILED"):
            return TransactionStatus.FAILED
        return None


class TransactionResponse(BaseModel):
    """Single transaction response"""
    success: bool
    message: str
    transaction: Optional[Transaction] = None


class TransactionListResponse(BaseModel):
    """List of transactions response"""
    success: bool
    message: str
    transactions: List[Transaction] = Field(default_factory=list)
    total: int = 0
    limit: int = 50
    offset: int = 0


# ====================
# System Models
# ====================

class HealthResponse(BaseModel):
    """Health check response"""
    status: str
    service: str
    port: int
    version: str
    timestamp: str
    database_connected: bool = False


class ErrorResponse(BaseModel):
    """Error response"""
    success: bool = False
    error: str
    error_code: Optional[str] = None
    details: Optional[Dict[str, Any]] = None
