"""Tests for the recruitment funnel."""
import pytest
from datetime import datetime, timedelta
from unittest.mock import patch

from core.dto import DeclineReason
from core.exceptions import AffiliateNotFoundError
from database.models import AffiliateStatus, RecruitmentReferralStatus
from database.repositories import RecruitmentReferralRepository
from services.affiliates import AffiliateRegistry
from services.recruitment import RecruitmentFunnel


T0 = datetime(2026, 3, 1, 12, 0, 0)


@pytest.mark.asyncio
async def test_recruitment_click(db_session, make_affiliate, campaign):
    """Click on a recruitment code creates a clicked recruitment referral."""
    campaign.recruitment_cookie_duration_days = 60
    await db_session.flush()
    recruiter = await make_affiliate(user_id="user_rec", code="RECR01", recruitment_code="JOINME")

    with patch("services.recruitment.utcnow", return_value=T0):
        result = await RecruitmentFunnel(db_session).track_recruitment_click("joinme", landing_page="/join")

    assert result.success
    referral = await RecruitmentReferralRepository(db_session).get_by_token(result.referral_token)
    assert referral.recruiting_affiliate_id == recruiter.id
    assert referral.status == RecruitmentReferralStatus.CLICKED.value
    assert referral.landing_page == "/join"
    assert referral.expires_at == T0 + timedelta(days=60)


@pytest.mark.asyncio
async def test_recruitment_cookie_falls_back_to_campaign_cookie(db_session, make_affiliate):
    """Without a recruitment cookie the general cookie duration applies."""
    await make_affiliate(user_id="user_rec", code="RECR01", recruitment_code="JOINME")

    with patch("services.recruitment.utcnow", return_value=T0):
        result = await RecruitmentFunnel(db_session).track_recruitment_click("JOINME")

    referral = await RecruitmentReferralRepository(db_session).get_by_token(result.referral_token)
    assert referral.expires_at == T0 + timedelta(days=30)


@pytest.mark.asyncio
async def test_recruitment_click_declines(db_session, make_affiliate, campaign):
    """Unknown code, unapproved recruiter and disabled recruitment decline."""
    funnel = RecruitmentFunnel(db_session)
    await make_affiliate(user_id="user_p", code="PEND01", recruitment_code="PENDREC", status=AffiliateStatus.PENDING)
    await make_affiliate(user_id="user_a", code="APPR01", recruitment_code="APPRREC")

    assert (await funnel.track_recruitment_click("UNKNOWN")).error == DeclineReason.INVALID_RECRUITMENT_CODE
    assert (await funnel.track_recruitment_click("PENDREC")).error == DeclineReason.AFFILIATE_NOT_APPROVED

    campaign.affiliate_recruitment_enabled = False
    await db_session.flush()
    assert (await funnel.track_recruitment_click("APPRREC")).error == DeclineReason.RECRUITMENT_NOT_ENABLED


@pytest.mark.asyncio
async def test_recruitment_cap(db_session, make_affiliate, campaign):
    """Cap of one: first click succeeds, registration fills the slot, next click declines."""
    campaign.max_sub_affiliates_per_affiliate = 1
    await db_session.flush()
    recruiter = await make_affiliate(user_id="user_rec", code="RECR01", recruitment_code="JOINME")
    funnel = RecruitmentFunnel(db_session)

    first = await funnel.track_recruitment_click("JOINME")
    assert first.success

    recruit = await AffiliateRegistry(db_session, recruitment=funnel).register(
        "user_new", recruitment_referral_token=first.referral_token
    )
    assert recruit.referred_by_affiliate_id == recruiter.id
    assert recruiter.total_recruits == 1

    second = await funnel.track_recruitment_click("JOINME")
    assert not second.success
    assert second.error == DeclineReason.MAX_SUB_AFFILIATES_REACHED


@pytest.mark.asyncio
async def test_pending_recruit_counts_against_cap(db_session, make_affiliate, campaign):
    """Cap uses total recruits, so an unapproved recruit still holds a slot."""
    campaign.max_sub_affiliates_per_affiliate = 2
    await db_session.flush()
    recruiter = await make_affiliate(user_id="user_rec", code="RECR01", recruitment_code="JOINME")
    funnel = RecruitmentFunnel(db_session)
    registry = AffiliateRegistry(db_session, recruitment=funnel)

    tokens = [(await funnel.track_recruitment_click("JOINME")).referral_token for _ in range(3)]
    await registry.register("user_a", recruitment_referral_token=tokens[0])
    await registry.register("user_b", recruitment_referral_token=tokens[1])
    late = await registry.register("user_c", recruitment_referral_token=tokens[2])

    assert recruiter.total_recruits == 2
    assert recruiter.active_recruits == 0
    assert late.referred_by_affiliate_id is None


@pytest.mark.asyncio
async def test_token_consumed_once(db_session, make_affiliate):
    """A recruitment token only attributes the first registration."""
    recruiter = await make_affiliate(user_id="user_rec", code="RECR01", recruitment_code="JOINME")
    funnel = RecruitmentFunnel(db_session)
    registry = AffiliateRegistry(db_session, recruitment=funnel)
    token = (await funnel.track_recruitment_click("JOINME")).referral_token

    first = await registry.register("user_a", recruitment_referral_token=token)
    second = await registry.register("user_b", recruitment_referral_token=token)

    assert first.referred_by_affiliate_id == recruiter.id
    assert second.referred_by_affiliate_id is None
    assert recruiter.total_recruits == 1

    referral = await RecruitmentReferralRepository(db_session).get_by_token(token)
    assert referral.status == RecruitmentReferralStatus.SIGNED_UP.value
    assert referral.recruited_affiliate_id == first.id


@pytest.mark.asyncio
async def test_expired_or_invalid_token_registers_unattributed(db_session, make_affiliate):
    """Registration still succeeds when the token is unusable."""
    recruiter = await make_affiliate(user_id="user_rec", code="RECR01", recruitment_code="JOINME")
    funnel = RecruitmentFunnel(db_session)
    registry = AffiliateRegistry(db_session, recruitment=funnel)

    with patch("services.recruitment.utcnow", return_value=T0):
        token = (await funnel.track_recruitment_click("JOINME")).referral_token

    with patch("services.recruitment.utcnow", return_value=T0 + timedelta(days=30)):
        expired = await registry.register("user_a", recruitment_referral_token=token)
    invalid = await registry.register("user_b", recruitment_referral_token="bogus")

    assert expired.referred_by_affiliate_id is None
    assert invalid.referred_by_affiliate_id is None
    assert recruiter.total_recruits == 0


@pytest.mark.asyncio
async def test_on_affiliate_approved_counts_active_recruit(db_session, make_affiliate):
    """Approval of a recruit bumps the parent's active recruits only."""
    recruiter = await make_affiliate(user_id="user_rec", code="RECR01", recruitment_code="JOINME")
    funnel = RecruitmentFunnel(db_session)
    registry = AffiliateRegistry(db_session, recruitment=funnel)
    token = (await funnel.track_recruitment_click("JOINME")).referral_token
    recruit = await registry.register("user_new", recruitment_referral_token=token)

    await registry.approve(recruit.id)

    assert recruiter.total_recruits == 1
    assert recruiter.active_recruits == 1
    referral = await RecruitmentReferralRepository(db_session).get_by_token(token)
    assert referral.status == RecruitmentReferralStatus.APPROVED.value
    assert referral.approved_at is not None
    assert [a.id for a in await registry.list_sub_affiliates(recruiter.id)] == [recruit.id]


@pytest.mark.asyncio
async def test_on_affiliate_approved_without_parent(db_session, make_affiliate):
    """No parent, nothing to count; unknown ids raise."""
    orphan = await make_affiliate(user_id="user_o", code="ORPH01", status=AffiliateStatus.PENDING)
    funnel = RecruitmentFunnel(db_session)

    assert await funnel.on_affiliate_approved(orphan.id) is False
    with pytest.raises(AffiliateNotFoundError):
        await funnel.on_affiliate_approved(999999)

