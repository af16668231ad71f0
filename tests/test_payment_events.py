"""Tests for payment event dispatch and the webhook endpoint."""
import pytest
from unittest.mock import AsyncMock, patch
from aiohttp.test_utils import TestClient, TestServer

from api.config import settings
from api.main import build_app
from database.models import CommissionStatus, ReferralStatus
from database.repositories import AffiliateRepository, CommissionRepository, ReferralRepository
from services.commissions import CommissionEngine
from services.payment_events import PaymentEventDispatcher, PaymentEventKind
from services.referrals import ReferralTracker


INVOICE = {
    "invoice_id": "in_1",
    "customer_id": "cus_jane",
    "amount_paid_cents": 10000,
    "currency": "USD",
    "charge_id": "ch_1",
}


async def _attributed_customer(session_maker, code="JOHN20"):
    async with session_maker() as session:
        tracker = ReferralTracker(session)
        await tracker.attribute_signup_by_code(code, "user_jane")
        await tracker.link_payment_customer("cus_jane", user_id="user_jane")
        await session.commit()


class TestPaymentEventKind:
    """Tests for event type parsing."""

    @pytest.mark.parametrize(
        "event_type,expected",
        [
            ("invoice.paid", PaymentEventKind.INVOICE_PAID),
            ("charge.refunded", PaymentEventKind.CHARGE_REFUNDED),
            ("checkout.completed", PaymentEventKind.CHECKOUT_COMPLETED),
            ("checkout.session.completed", PaymentEventKind.CHECKOUT_COMPLETED),
            ("customer.created", PaymentEventKind.UNKNOWN),
            (None, PaymentEventKind.UNKNOWN),
        ],
    )
    def test_parse(self, event_type, expected):
        assert PaymentEventKind.parse(event_type) == expected


class TestDispatcher:
    """Tests for PaymentEventDispatcher."""

    @pytest.mark.asyncio
    async def test_invoice_paid_creates_commission(self, session_maker, affiliate):
        """Paid invoice for an attributed customer is committed as one commission."""
        await _attributed_customer(session_maker)
        dispatcher = PaymentEventDispatcher(session_maker)

        outcome = await dispatcher.dispatch("invoice.paid", INVOICE)
        again = await dispatcher.dispatch("invoice.paid", INVOICE)

        assert outcome.handled
        assert "created" in outcome.detail
        assert "already exists" in again.detail

        async with session_maker() as session:
            commission = await CommissionRepository(session).get_by_invoice_id("in_1")
            assert commission.commission_amount_cents == 2000
            assert commission.currency == "usd"
            assert await CommissionRepository(session).count() == 1

    @pytest.mark.asyncio
    async def test_invoice_paid_declined(self, session_maker, affiliate):
        """Unattributed customers are acknowledged with a decline detail."""
        outcome = await PaymentEventDispatcher(session_maker).dispatch("invoice.paid", INVOICE)

        assert outcome.handled
        assert outcome.detail == "declined: no_attribution"

    @pytest.mark.asyncio
    async def test_charge_refunded_reverses(self, session_maker, affiliate):
        await _attributed_customer(session_maker)
        dispatcher = PaymentEventDispatcher(session_maker)
        await dispatcher.dispatch("invoice.paid", INVOICE)

        outcome = await dispatcher.dispatch("charge.refunded", {"charge_id": "ch_1", "reason": "duplicate"})
        unknown = await dispatcher.dispatch("charge.refunded", {"charge_id": "ch_other"})

        assert "reversed" in outcome.detail
        assert unknown.detail == "nothing to reverse"
        async with session_maker() as session:
            commission = await CommissionRepository(session).get_by_charge_id("ch_1")
            assert commission.status == CommissionStatus.REVERSED.value
            assert commission.reversal_reason == "duplicate"
            john = await AffiliateRepository(session).get_by_code("JOHN20")
            assert john.pending_commissions_cents == 0

    @pytest.mark.asyncio
    async def test_checkout_completed_links_customer(self, session_maker, affiliate):
        """Checkout with an affiliate code attributes the buyer."""
        outcome = await PaymentEventDispatcher(session_maker).dispatch(
            "checkout.session.completed",
            {"customer_id": "cus_new", "user_id": "user_new", "affiliate_code": "john20"},
        )

        assert outcome.kind == PaymentEventKind.CHECKOUT_COMPLETED
        assert outcome.handled
        async with session_maker() as session:
            referral = await ReferralRepository(session).get_by_payment_customer_id("cus_new")
            assert referral.user_id == "user_new"
            assert referral.status == ReferralStatus.SIGNED_UP.value

    @pytest.mark.asyncio
    async def test_unknown_event_ignored(self, session_maker):
        outcome = await PaymentEventDispatcher(session_maker).dispatch("customer.created", {"id": "cus_1"})

        assert outcome.kind == PaymentEventKind.UNKNOWN
        assert not outcome.handled
        assert outcome.detail == "ignored"

    @pytest.mark.asyncio
    async def test_invalid_payload(self, session_maker):
        """Missing required fields are reported, not raised."""
        outcome = await PaymentEventDispatcher(session_maker).dispatch("invoice.paid", {"customer_id": "cus_1"})

        assert not outcome.handled
        assert outcome.error == "invalid payload"

    @pytest.mark.asyncio
    async def test_handler_error_is_logged_and_rolled_back(self, session_maker, affiliate, caplog):
        """Failures inside a handler never escape and leave nothing behind."""
        await _attributed_customer(session_maker)

        with patch.object(
            CommissionEngine,
            "create_from_paid_invoice",
            AsyncMock(side_effect=RuntimeError("store unavailable")),
        ):
            outcome = await PaymentEventDispatcher(session_maker).dispatch("invoice.paid", INVOICE)

        assert not outcome.handled
        assert outcome.error == "store unavailable"
        assert "Error handling invoice.paid event" in caplog.text
        async with session_maker() as session:
            assert await CommissionRepository(session).count() == 0


class TestWebhookEndpoint:
    """Tests for the aiohttp webhook route."""

    @pytest.mark.asyncio
    async def test_webhook_acknowledges_events(self, session_maker, affiliate):
        await _attributed_customer(session_maker)

        async with TestClient(TestServer(build_app(session_maker))) as client:
            resp = await client.post(settings.webhook_path, json={"type": "invoice.paid", "data": INVOICE})
            assert resp.status == 200
            data = await resp.json()
            assert data["received"] is True
            assert data["kind"] == "invoice.paid"
            assert data["handled"] is True

            resp = await client.post(settings.webhook_path, json={"type": "payout.created", "data": {}})
            assert resp.status == 200
            assert (await resp.json())["detail"] == "ignored"

    @pytest.mark.asyncio
    async def test_webhook_handler_failure_still_200(self, session_maker):
        async with TestClient(TestServer(build_app(session_maker))) as client:
            resp = await client.post(settings.webhook_path, json={"type": "charge.refunded", "data": {}})
            assert resp.status == 200
            assert (await resp.json())["handled"] is False

    @pytest.mark.asyncio
    async def test_webhook_rejects_bad_body(self, session_maker):
        async with TestClient(TestServer(build_app(session_maker))) as client:
            resp = await client.post(settings.webhook_path, data="not json")
            assert resp.status == 400

            resp = await client.post(settings.webhook_path, json=["invoice.paid"])
            assert resp.status == 400

    @pytest.mark.asyncio
    async def test_health(self, session_maker):
        async with TestClient(TestServer(build_app(session_maker))) as client:
            resp = await client.get("/health")
            assert resp.status == 200
            assert (await resp.json())["status"] == "ok"
