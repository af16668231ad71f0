"""
Payment event dispatch.

Maps the processor's event type strings onto a closed set of event kinds and
routes each to the engine inside its own unit of work. Handler failures are
logged and reported in the outcome, never raised: the transport would retry
a delivery whose side effects may already be visible elsewhere.
"""
import logging
from dataclasses import dataclass
from enum import Enum
from typing import Any, Optional

from pydantic import ValidationError as PydanticValidationError
from sqlalchemy.ext.asyncio import async_sessionmaker

from core.dto import ChargeRefundedDTO, CheckoutCompletedDTO, InvoicePaidDTO
from database.base import session_scope
from services.commissions import CommissionEngine
from services.referrals import ReferralTracker

logger = logging.getLogger(__name__)


class PaymentEventKind(str, Enum):
    """Payment events the engine reacts to."""
    INVOICE_PAID = "invoice.paid"
    CHARGE_REFUNDED = "charge.refunded"
    CHECKOUT_COMPLETED = "checkout.completed"
    UNKNOWN = "unknown"

    @classmethod
    def parse(cls, event_type: Optional[str]) -> "PaymentEventKind":
        """Resolve a processor event type; anything unrecognised is UNKNOWN."""
        event_type = EVENT_TYPE_ALIASES.get(event_type, event_type)
        try:
            return cls(event_type)
        except ValueError:
            return cls.UNKNOWN


EVENT_TYPE_ALIASES = {
    "checkout.session.completed": PaymentEventKind.CHECKOUT_COMPLETED.value,
}


@dataclass
class DispatchOutcome:
    """What happened to one delivered event."""
    kind: PaymentEventKind
    handled: bool
    detail: Optional[str] = None
    error: Optional[str] = None


class PaymentEventDispatcher:
    """Routes payment events to the commission engine and referral tracker."""

    def __init__(self, session_maker: Optional[async_sessionmaker] = None):
        self.session_maker = session_maker

    async def dispatch(self, event_type: Optional[str], payload: dict[str, Any]) -> DispatchOutcome:
        """
        Handle one payment event.

        Args:
            event_type: Processor event type string
            payload: Logical event fields

        Returns:
            DispatchOutcome; ``error`` is set when the handler failed
        """
        kind = PaymentEventKind.parse(event_type)
        if kind == PaymentEventKind.UNKNOWN:
            logger.info(f"Ignoring payment event '{event_type}'")
            return DispatchOutcome(kind=kind, handled=False, detail="ignored")

        try:
            async with session_scope(self.session_maker) as session:
                match kind:
                    case PaymentEventKind.INVOICE_PAID:
                        detail = await self._on_invoice_paid(session, payload)
                    case PaymentEventKind.CHARGE_REFUNDED:
                        detail = await self._on_charge_refunded(session, payload)
                    case PaymentEventKind.CHECKOUT_COMPLETED:
                        detail = await self._on_checkout_completed(session, payload)
        except PydanticValidationError as e:
            logger.warning(f"Invalid {kind.value} payload: {e.error_count()} errors", extra={"event_type": kind.value})
            return DispatchOutcome(kind=kind, handled=False, error="invalid payload")
        except Exception as e:
            logger.error(
                f"Error handling {kind.value} event: {e}",
                exc_info=True,
                extra={"event_type": kind.value},
            )
            return DispatchOutcome(kind=kind, handled=False, error=str(e))

        return DispatchOutcome(kind=kind, handled=True, detail=detail)

    @staticmethod
    async def _on_invoice_paid(session, payload: dict) -> str:
        dto = InvoicePaidDTO.model_validate(payload)
        result = await CommissionEngine(session).create_from_paid_invoice(**dto.model_dump())
        if result.created:
            return f"commission {result.commission_id} created"
        if result.duplicate:
            return f"commission {result.commission_id} already exists"
        return f"declined: {result.reason.value}"

    @staticmethod
    async def _on_charge_refunded(session, payload: dict) -> str:
        dto = ChargeRefundedDTO.model_validate(payload)
        reversal = await CommissionEngine(session).reverse_by_payment_charge(dto.charge_id, dto.reason)
        if reversal:
            return f"commission {reversal.commission_id} reversed"
        return "nothing to reverse"

    @staticmethod
    async def _on_checkout_completed(session, payload: dict) -> str:
        dto = CheckoutCompletedDTO.model_validate(payload)
        referral = await ReferralTracker(session).link_payment_customer(
            dto.customer_id,
            user_id=dto.user_id,
            affiliate_code=dto.affiliate_code,
        )
        if referral:
            return f"customer linked to referral {referral.id}"
        return "no referral linked"
