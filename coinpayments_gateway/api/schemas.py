"""
Pydantic schemas for API request/response models.
"""
from decimal import Decimal
from typing import Any, Dict, Optional

from pydantic import AliasChoices, BaseModel, ConfigDict, Field


class CreatePaymentRequest(BaseModel):
    """Request schema for creating a payment.

    Presence of ``amount`` and ``email`` is checked by the payment service so
    that every creation failure is reported the same way.
    """

    amount: Optional[Decimal] = Field(default=None, description="Payment amount")
    currency: Optional[str] = Field(
        default=None, max_length=10, description="Currency code (defaults to configured currency)"
    )
    item_name: Optional[str] = Field(
        default=None,
        validation_alias=AliasChoices("item_name", "itemName"),
        description="Item description shown at checkout",
    )
    email: Optional[str] = Field(default=None, description="Buyer email")

    model_config = ConfigDict(
        json_schema_extra={
            "examples": [
                {
                    "amount": "10.50",
                    "currency": "USDT",
                    "item_name": "UniversalFileLab Subscription",
                    "email": "buyer@example.com",
                }
            ]
        }
    )


class IPNNotification(BaseModel):
    """Fields read from a verified IPN payload."""

    txn_id: str = Field(
        ...,
        min_length=1,
        validation_alias=AliasChoices("txn_id", "transactionId"),
        description="Processor transaction ID",
    )
    status: str = Field(..., min_length=1, description="Processor status value")
    merchant: Optional[str] = Field(default=None, description="Merchant ID the IPN is for")

    model_config = ConfigDict(extra="ignore", coerce_numbers_to_str=True)


class PaymentStatusResponse(BaseModel):
    """Response schema for a stored payment."""

    id: int = Field(..., description="Payment ID")
    txn_id: str = Field(..., description="Processor transaction ID")
    amount: str = Field(..., description="Payment amount")
    currency: str = Field(..., description="Currency code")
    status: str = Field(..., description="Payment status")
    email: Optional[str] = Field(default=None, description="Buyer email")
    created_at: Optional[str] = Field(default=None, description="Creation timestamp (ISO 8601)")


class ErrorResponse(BaseModel):
    """Generic error body."""

    error: str = Field(..., description="Error message")


class HealthCheckResponse(BaseModel):
    """Response schema for health checks."""

    status: str = Field(..., description="Overall health status (healthy/unhealthy)")
    checks: Optional[Dict[str, Any]] = Field(default=None, description="Individual service checks")
    message: Optional[str] = Field(default=None, description="Status message")
