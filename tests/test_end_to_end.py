"""Full attribution flow: click, signup, checkout, paid invoice, refund."""
import pytest

from database.models import CommissionStatus, ReferralStatus
from database.repositories import AffiliateRepository, CommissionRepository, ReferralRepository
from services.payment_events import PaymentEventDispatcher
from services.referrals import ReferralTracker


@pytest.mark.asyncio
async def test_click_to_commission(session_maker, affiliate):
    """JOHN20 at 20%: a 100.00 sale earns 20.00 and converts the referral."""
    async with session_maker() as session:
        tracker = ReferralTracker(session)
        token = await tracker.track_click("JOHN20", landing_page="/pricing")
        result = await tracker.attribute_signup(token, "user_jane")
        assert result.success
        await session.commit()

    dispatcher = PaymentEventDispatcher(session_maker)
    checkout = await dispatcher.dispatch("checkout.completed", {"customer_id": "cus_jane", "user_id": "user_jane"})
    paid = await dispatcher.dispatch(
        "invoice.paid",
        {
            "invoice_id": "in_100",
            "customer_id": "cus_jane",
            "amount_paid_cents": 10000,
            "currency": "usd",
            "subscription_id": "sub_1",
            "charge_id": "ch_100",
        },
    )
    assert checkout.handled
    assert paid.handled

    async with session_maker() as session:
        commissions = await CommissionRepository(session).get_all_by_affiliate(affiliate.id)
        assert len(commissions) == 1
        commission = commissions[0]
        assert commission.commission_amount_cents == 2000
        assert commission.sale_amount_cents == 10000
        assert commission.payment_number == 1
        assert commission.status == CommissionStatus.PENDING.value

        referral = await ReferralRepository(session).get_by_token(token)
        assert referral.status == ReferralStatus.CONVERTED.value
        assert referral.payment_customer_id == "cus_jane"

        john = await AffiliateRepository(session).get_by_code("JOHN20")
        assert (john.total_clicks, john.total_signups, john.total_conversions) == (1, 1, 1)
        assert john.total_revenue_cents == 10000
        assert john.total_commissions_cents == 2000
        assert john.pending_commissions_cents == 2000

    await dispatcher.dispatch("charge.refunded", {"charge_id": "ch_100"})

    async with session_maker() as session:
        commission = await CommissionRepository(session).get_by_invoice_id("in_100")
        assert commission.status == CommissionStatus.REVERSED.value
        john = await AffiliateRepository(session).get_by_code("JOHN20")
        assert john.total_commissions_cents == 0
        assert john.pending_commissions_cents == 0
        assert john.total_revenue_cents == 10000
