"""Tests for the sub-affiliate cascade."""
import pytest

from core.dto import DeclineReason
from core.exceptions import CommissionNotFoundError
from database.models import CommissionStatus
from database.repositories import CampaignRepository, SubAffiliateCommissionRepository
from services.commissions import CommissionEngine
from services.referrals import ReferralTracker
from services.sub_affiliates import SubAffiliateCascade, calculate_sub_commission


async def _recruit_sale(db_session, recruit_code, customer_id="cus_jane", invoice_id="in_1", charge_id="ch_1"):
    tracker = ReferralTracker(db_session)
    await tracker.attribute_signup_by_code(recruit_code, f"user_of_{customer_id}")
    await tracker.link_payment_customer(customer_id, user_id=f"user_of_{customer_id}")
    return await CommissionEngine(db_session).create_from_paid_invoice(
        invoice_id, customer_id, 10000, "usd", charge_id=charge_id
    )


def test_calculate_sub_commission():
    """Derived amount rounds half-up to whole cents."""
    assert calculate_sub_commission(2000, 10) == 200
    assert calculate_sub_commission(5, 10) == 1
    assert calculate_sub_commission(4, 10) == 0


@pytest.mark.asyncio
async def test_cascade_symmetry(db_session, make_affiliate):
    """Recruit's 2000-cent commission yields 200 cents for the parent; reversal restores zero."""
    parent = await make_affiliate(user_id="user_parent", code="PARENT")
    recruit = await make_affiliate(user_id="user_recruit", code="RECRUIT", referred_by_affiliate_id=parent.id)

    created = await _recruit_sale(db_session, "RECRUIT")

    assert created.commission_amount_cents == 2000
    sub_commission = await SubAffiliateCommissionRepository(db_session).get_by_source(created.commission_id)
    assert sub_commission.sub_commission_amount_cents == 200
    assert sub_commission.source_commission_amount_cents == 2000
    assert sub_commission.sub_commission_percent == 10
    assert sub_commission.sub_affiliate_id == recruit.id
    assert sub_commission.status == CommissionStatus.PENDING.value
    assert parent.total_sub_commissions_cents == 200
    assert parent.pending_sub_commissions_cents == 200

    await CommissionEngine(db_session).reverse_by_payment_charge("ch_1", "refund")

    assert sub_commission.status == CommissionStatus.REVERSED.value
    assert sub_commission.reversal_reason == "refund"
    assert parent.pending_sub_commissions_cents == 0
    assert parent.paid_sub_commissions_cents == 0


@pytest.mark.asyncio
async def test_cascade_is_one_per_source(db_session, make_affiliate):
    """Running the cascade again for the same source returns the existing record."""
    parent = await make_affiliate(user_id="user_parent", code="PARENT")
    await make_affiliate(user_id="user_recruit", code="RECRUIT", referred_by_affiliate_id=parent.id)
    created = await _recruit_sale(db_session, "RECRUIT")

    again = await SubAffiliateCascade(db_session).on_commission_created(created.commission_id)

    assert again.success
    assert again.sub_commission_amount_cents == 200
    assert parent.total_sub_commissions_cents == 200
    assert await SubAffiliateCommissionRepository(db_session).count() == 1


@pytest.mark.asyncio
async def test_no_parent_no_cascade(db_session, affiliate):
    """Affiliates without a recruiter generate no derived commission."""
    await ReferralTracker(db_session).attribute_signup_by_code("JOHN20", "user_jane")
    await ReferralTracker(db_session).link_payment_customer("cus_jane", user_id="user_jane")
    created = await CommissionEngine(db_session).create_from_paid_invoice("in_1", "cus_jane", 10000, "usd")

    result = await SubAffiliateCascade(db_session).on_commission_created(created.commission_id)

    assert not result.success
    assert result.reason == DeclineReason.NOT_A_SUB_AFFILIATE
    assert await SubAffiliateCommissionRepository(db_session).count() == 0


@pytest.mark.asyncio
async def test_parent_campaign_without_recruitment(db_session, make_affiliate):
    """Parent campaign decides whether a derived commission is paid."""
    plain = await CampaignRepository(db_session).create(
        name="Plain", slug="plain", commission_value=20, affiliate_recruitment_enabled=False,
    )
    parent = await make_affiliate(user_id="user_parent", code="PARENT", campaign_id=plain.id)
    await make_affiliate(user_id="user_recruit", code="RECRUIT", referred_by_affiliate_id=parent.id)

    created = await _recruit_sale(db_session, "RECRUIT")
    result = await SubAffiliateCascade(db_session).on_commission_created(created.commission_id)

    assert result.reason == DeclineReason.SUB_COMMISSION_NOT_ENABLED
    assert parent.total_sub_commissions_cents == 0


@pytest.mark.asyncio
async def test_tiny_commission_skipped(db_session, make_affiliate, campaign):
    """Derived amount rounding to zero creates nothing."""
    parent = await make_affiliate(user_id="user_parent", code="PARENT")
    recruit = await make_affiliate(user_id="user_recruit", code="RECRUIT", referred_by_affiliate_id=parent.id)
    recruit.custom_commission_type = "fixed"
    recruit.custom_commission_value = 4
    await db_session.flush()

    created = await _recruit_sale(db_session, "RECRUIT")

    assert created.commission_amount_cents == 4
    assert await SubAffiliateCommissionRepository(db_session).get_by_source(created.commission_id) is None
    assert parent.total_sub_commissions_cents == 0


@pytest.mark.asyncio
async def test_paid_mirror_and_paid_reversal(db_session, make_affiliate):
    """Payout moves the parent's share to paid; a later refund takes it from paid."""
    parent = await make_affiliate(user_id="user_parent", code="PARENT")
    await make_affiliate(user_id="user_recruit", code="RECRUIT", referred_by_affiliate_id=parent.id)
    created = await _recruit_sale(db_session, "RECRUIT")
    engine = CommissionEngine(db_session)

    await engine.approve(created.commission_id)
    sub_commission = await SubAffiliateCommissionRepository(db_session).get_by_source(created.commission_id)
    assert sub_commission.status == CommissionStatus.APPROVED.value

    await engine.mark_paid(created.commission_id)
    assert sub_commission.status == CommissionStatus.PAID.value
    assert parent.pending_sub_commissions_cents == 0
    assert parent.paid_sub_commissions_cents == 200

    await engine.reverse_by_payment_charge("ch_1")
    assert sub_commission.status == CommissionStatus.REVERSED.value
    assert parent.paid_sub_commissions_cents == 0
    assert parent.pending_sub_commissions_cents == 0


@pytest.mark.asyncio
async def test_reversal_without_derived_record_is_noop(db_session):
    """Nothing to mirror returns None."""
    assert await SubAffiliateCascade(db_session).on_commission_reversed(12345, "refund") is None


@pytest.mark.asyncio
async def test_unknown_source_commission_raises(db_session):
    """Trusted callers passing a bad id get an error."""
    with pytest.raises(CommissionNotFoundError):
        await SubAffiliateCascade(db_session).on_commission_created(12345)


@pytest.mark.asyncio
async def test_list_for_parent(db_session, make_affiliate):
    """Parent sees its derived commissions, filterable by status."""
    parent = await make_affiliate(user_id="user_parent", code="PARENT")
    await make_affiliate(user_id="user_recruit", code="RECRUIT", referred_by_affiliate_id=parent.id)
    await _recruit_sale(db_session, "RECRUIT", customer_id="cus_a", invoice_id="in_a", charge_id="ch_a")
    await _recruit_sale(db_session, "RECRUIT", customer_id="cus_b", invoice_id="in_b", charge_id="ch_b")
    await CommissionEngine(db_session).reverse_by_payment_charge("ch_b")

    cascade = SubAffiliateCascade(db_session)
    assert len(await cascade.list_for_parent(parent.id)) == 2
    assert len(await cascade.list_for_parent(parent.id, CommissionStatus.PENDING)) == 1
    assert parent.pending_sub_commissions_cents == 200
