"""Tests for analytics service."""
import pytest

from core.exceptions import AffiliateNotFoundError
from database.models import EventType
from services.analytics import AnalyticsService
from services.commissions import CommissionEngine
from services.referrals import ReferralTracker


@pytest.mark.asyncio
async def test_funnel_empty(db_session, affiliate):
    """Fresh affiliate has zero rates, not a division error."""
    funnel = await AnalyticsService(db_session).get_conversion_funnel(affiliate.id)

    assert funnel.clicks == 0
    assert funnel.click_to_signup_rate == 0.0
    assert funnel.signup_to_conversion_rate == 0.0


@pytest.mark.asyncio
async def test_funnel_rates(db_session, affiliate):
    """Rates are percentages rounded to one decimal."""
    tracker = ReferralTracker(db_session)
    for _ in range(2):
        await tracker.track_click("JOHN20")
    await tracker.attribute_signup_by_code("JOHN20", "user_a")
    converted = await tracker.attribute_signup_by_code("JOHN20", "user_b")
    await tracker.attribute_signup_by_code("JOHN20", "user_c")
    await tracker.convert(converted.referral_id)

    funnel = await AnalyticsService(db_session).get_conversion_funnel(affiliate.id)

    assert (funnel.clicks, funnel.signups, funnel.conversions) == (5, 3, 1)
    assert funnel.click_to_signup_rate == 60.0
    assert funnel.signup_to_conversion_rate == 33.3


@pytest.mark.asyncio
async def test_funnel_unknown_affiliate(db_session):
    with pytest.raises(AffiliateNotFoundError):
        await AnalyticsService(db_session).get_conversion_funnel(404)


@pytest.mark.asyncio
async def test_event_log_follows_lifecycle(db_session, affiliate):
    """Click, signup, conversion, refund and payout each leave an event."""
    tracker = ReferralTracker(db_session)
    engine = CommissionEngine(db_session)
    token = await tracker.track_click("JOHN20")
    await tracker.attribute_signup(token, "user_jane")
    await tracker.link_payment_customer("cus_jane", user_id="user_jane")
    first = await engine.create_from_paid_invoice("in_1", "cus_jane", 10000, charge_id="ch_1", subscription_id="sub_1")
    await engine.approve(first.commission_id)
    await engine.mark_paid(first.commission_id, payout_reference="po_1")

    analytics = AnalyticsService(db_session)
    events = await analytics.get_recent_events(affiliate.id)
    assert {e.type for e in events} == {"click", "signup", "conversion", "payout"}

    conversion = (await analytics.get_recent_events(affiliate.id, EventType.CONVERSION))[0]
    assert conversion.event_metadata["invoice_id"] == "in_1"
    assert conversion.event_metadata["sale_amount_cents"] == 10000

    await engine.reverse_by_payment_charge("ch_1")
    refunds = await analytics.get_recent_events(affiliate.id, EventType.REFUND)
    assert len(refunds) == 1
    assert refunds[0].event_metadata["reason"] == "Charge refunded"


@pytest.mark.asyncio
async def test_recent_events_limit(db_session, affiliate):
    analytics = AnalyticsService(db_session)
    for i in range(5):
        await analytics.record_event(affiliate.id, EventType.CLICK, {"n": i})

    events = await analytics.get_recent_events(affiliate.id, limit=3)

    assert len(events) == 3
    assert events[0].event_metadata == {"n": 4}
