"""
Data Transfer Objects.

Pydantic models validate payment-event input; dataclasses carry operation
results back to callers.
"""

from core.dto.payment_events import (
    InvoicePaidDTO,
    ChargeRefundedDTO,
    CheckoutCompletedDTO,
)
from core.dto.results import (
    DeclineReason,
    AttributionResult,
    CommissionResult,
    CommissionReversal,
    SubCommissionResult,
    RecruitmentClickResult,
    RefereeDiscount,
    ConversionFunnel,
)

__all__ = [
    'InvoicePaidDTO',
    'ChargeRefundedDTO',
    'CheckoutCompletedDTO',
    'DeclineReason',
    'AttributionResult',
    'CommissionResult',
    'CommissionReversal',
    'SubCommissionResult',
    'RecruitmentClickResult',
    'RefereeDiscount',
    'ConversionFunnel',
]
