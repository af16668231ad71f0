"""Payment event DTOs: the logical fields the engine consumes from the processor."""
from typing import Optional
from pydantic import BaseModel, Field, field_validator


class InvoicePaidDTO(BaseModel):
    """Fields of an ``invoice.paid`` event."""

    invoice_id: str = Field(..., min_length=1, description="Processor invoice ID (dedup key)")
    customer_id: str = Field(..., min_length=1, description="Processor customer ID")
    amount_paid_cents: int = Field(..., description="Amount actually paid, in cents")
    currency: str = Field("usd", min_length=3, max_length=3, description="ISO currency code")
    subscription_id: Optional[str] = Field(None, description="Subscription the invoice belongs to")
    charge_id: Optional[str] = Field(None, description="Charge that settled the invoice")
    product_id: Optional[str] = Field(None, description="Product of the first invoice line")
    affiliate_code: Optional[str] = Field(None, description="affiliate_code from invoice metadata")

    @field_validator('currency')
    @classmethod
    def normalize_currency(cls, v: str) -> str:
        """Currencies are stored lower-case."""
        return v.strip().lower()


class ChargeRefundedDTO(BaseModel):
    """Fields of a ``charge.refunded`` event."""

    charge_id: str = Field(..., min_length=1, description="Refunded charge ID")
    reason: Optional[str] = Field(None, max_length=500, description="Refund reason")


class CheckoutCompletedDTO(BaseModel):
    """Fields of a ``checkout.completed`` event."""

    customer_id: str = Field(..., min_length=1, description="Processor customer ID")
    user_id: Optional[str] = Field(None, description="External user ID (client reference)")
    affiliate_code: Optional[str] = Field(None, description="affiliate_code from session metadata")
