"""create_affiliate_tables

Revision ID: 7f3a9c2e4b10
Revises:
Create Date: 2026-01-12 10:00:00.000000+00:00

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision: str = '7f3a9c2e4b10'
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    # Campaigns
    op.create_table(
        'campaigns',
        sa.Column('id', sa.BigInteger(), autoincrement=True, nullable=False),
        sa.Column('name', sa.String(length=255), nullable=False),
        sa.Column('slug', sa.String(length=100), nullable=False),
        sa.Column('description', sa.Text(), nullable=True),
        sa.Column('is_active', sa.Boolean(), nullable=False, server_default='true'),
        sa.Column('is_default', sa.Boolean(), nullable=False, server_default='false'),
        sa.Column('commission_type', sa.String(length=20), nullable=False, comment='percentage/fixed'),
        sa.Column('commission_value', sa.Numeric(10, 2), nullable=False, comment='Percent (0-100) for percentage, cents for fixed'),
        sa.Column('commission_duration', sa.String(length=20), nullable=False, comment='lifetime/max_payments/max_months'),
        sa.Column('commission_duration_value', sa.Integer(), nullable=True, comment='Payment or month cap for limited durations'),
        sa.Column('cookie_duration_days', sa.Integer(), nullable=False, server_default='30'),
        sa.Column('min_payout_cents', sa.Integer(), nullable=False, server_default='5000'),
        sa.Column('payout_term', sa.String(length=10), nullable=False, server_default='NET-30'),
        sa.Column('allowed_products', sa.JSON(), nullable=True),
        sa.Column('excluded_products', sa.JSON(), nullable=True),
        sa.Column('referee_discount_type', sa.String(length=20), nullable=True),
        sa.Column('referee_discount_value', sa.Integer(), nullable=True),
        sa.Column('referee_coupon_id', sa.String(length=255), nullable=True),
        sa.Column('affiliate_recruitment_enabled', sa.Boolean(), nullable=False, server_default='false'),
        sa.Column('sub_affiliate_commission_percent', sa.Numeric(5, 2), nullable=True, comment="Share of a recruit's commission paid to the recruiter"),
        sa.Column('max_sub_affiliates_per_affiliate', sa.Integer(), nullable=True),
        sa.Column('recruitment_cookie_duration_days', sa.Integer(), nullable=True),
        sa.Column('created_at', sa.DateTime(), nullable=False),
        sa.Column('updated_at', sa.DateTime(), nullable=False),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index(op.f('ix_campaigns_slug'), 'campaigns', ['slug'], unique=True)
    op.create_index(op.f('ix_campaigns_is_active'), 'campaigns', ['is_active'], unique=False)
    op.create_index(op.f('ix_campaigns_is_default'), 'campaigns', ['is_default'], unique=False)

    # Affiliates
    op.create_table(
        'affiliates',
        sa.Column('id', sa.BigInteger(), autoincrement=True, nullable=False),
        sa.Column('user_id', sa.String(length=255), nullable=False),
        sa.Column('campaign_id', sa.BigInteger(), nullable=False),
        sa.Column('code', sa.String(length=50), nullable=False),
        sa.Column('recruitment_code', sa.String(length=50), nullable=True),
        sa.Column('display_name', sa.String(length=255), nullable=True),
        sa.Column('payout_email', sa.String(length=255), nullable=True),
        sa.Column('custom_commission_type', sa.String(length=20), nullable=True),
        sa.Column('custom_commission_value', sa.Numeric(10, 2), nullable=True),
        sa.Column('status', sa.String(length=20), nullable=False, comment='pending/approved/suspended/rejected'),
        sa.Column('total_clicks', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('total_signups', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('total_conversions', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('total_revenue_cents', sa.BigInteger(), nullable=False, server_default='0'),
        sa.Column('total_commissions_cents', sa.BigInteger(), nullable=False, server_default='0'),
        sa.Column('pending_commissions_cents', sa.BigInteger(), nullable=False, server_default='0'),
        sa.Column('paid_commissions_cents', sa.BigInteger(), nullable=False, server_default='0'),
        sa.Column('referred_by_affiliate_id', sa.BigInteger(), nullable=True, comment='Affiliate who recruited this one'),
        sa.Column('total_recruits', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('active_recruits', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('total_sub_commissions_cents', sa.BigInteger(), nullable=False, server_default='0'),
        sa.Column('pending_sub_commissions_cents', sa.BigInteger(), nullable=False, server_default='0'),
        sa.Column('paid_sub_commissions_cents', sa.BigInteger(), nullable=False, server_default='0'),
        sa.Column('created_at', sa.DateTime(), nullable=False),
        sa.Column('updated_at', sa.DateTime(), nullable=False),
        sa.PrimaryKeyConstraint('id'),
        sa.ForeignKeyConstraint(['campaign_id'], ['campaigns.id'], ondelete='RESTRICT'),
        sa.ForeignKeyConstraint(['referred_by_affiliate_id'], ['affiliates.id'], ondelete='SET NULL'),
    )
    op.create_index(op.f('ix_affiliates_user_id'), 'affiliates', ['user_id'], unique=True)
    op.create_index(op.f('ix_affiliates_campaign_id'), 'affiliates', ['campaign_id'], unique=False)
    op.create_index(op.f('ix_affiliates_code'), 'affiliates', ['code'], unique=True)
    op.create_index(op.f('ix_affiliates_recruitment_code'), 'affiliates', ['recruitment_code'], unique=True)
    op.create_index(op.f('ix_affiliates_status'), 'affiliates', ['status'], unique=False)
    op.create_index(op.f('ix_affiliates_referred_by_affiliate_id'), 'affiliates', ['referred_by_affiliate_id'], unique=False)

    # Referrals
    op.create_table(
        'referrals',
        sa.Column('id', sa.BigInteger(), autoincrement=True, nullable=False),
        sa.Column('referral_id', sa.String(length=64), nullable=False),
        sa.Column('affiliate_id', sa.BigInteger(), nullable=False, comment='Affiliate credited for this referral'),
        sa.Column('status', sa.String(length=20), nullable=False, comment='clicked/signed_up/converted/expired'),
        sa.Column('user_id', sa.String(length=255), nullable=True),
        sa.Column('payment_customer_id', sa.String(length=255), nullable=True),
        sa.Column('landing_page', sa.String(length=1024), nullable=False, server_default='/'),
        sa.Column('sub_id', sa.String(length=255), nullable=True, comment='Affiliate sub-tracking id'),
        sa.Column('clicked_at', sa.DateTime(), nullable=False),
        sa.Column('signed_up_at', sa.DateTime(), nullable=True),
        sa.Column('converted_at', sa.DateTime(), nullable=True),
        sa.Column('expires_at', sa.DateTime(), nullable=False, comment='Fixed at creation'),
        sa.PrimaryKeyConstraint('id'),
        sa.ForeignKeyConstraint(['affiliate_id'], ['affiliates.id'], ondelete='CASCADE'),
        sa.UniqueConstraint('user_id'),
    )
    op.create_index(op.f('ix_referrals_referral_id'), 'referrals', ['referral_id'], unique=True)
    op.create_index(op.f('ix_referrals_affiliate_id'), 'referrals', ['affiliate_id'], unique=False)
    op.create_index(op.f('ix_referrals_status'), 'referrals', ['status'], unique=False)
    op.create_index(op.f('ix_referrals_payment_customer_id'), 'referrals', ['payment_customer_id'], unique=False)
    op.create_index('ix_referrals_expires_at_status', 'referrals', ['expires_at', 'status'], unique=False)

    # Commissions
    op.create_table(
        'commissions',
        sa.Column('id', sa.BigInteger(), autoincrement=True, nullable=False),
        sa.Column('affiliate_id', sa.BigInteger(), nullable=False),
        sa.Column('referral_id', sa.BigInteger(), nullable=False),
        sa.Column('payment_customer_id', sa.String(length=255), nullable=False),
        sa.Column('invoice_id', sa.String(length=255), nullable=False),
        sa.Column('charge_id', sa.String(length=255), nullable=True),
        sa.Column('subscription_id', sa.String(length=255), nullable=True),
        sa.Column('product_id', sa.String(length=255), nullable=True),
        sa.Column('payment_number', sa.Integer(), nullable=True, comment='1-based payment sequence on the subscription'),
        sa.Column('sale_amount_cents', sa.BigInteger(), nullable=False),
        sa.Column('commission_amount_cents', sa.BigInteger(), nullable=False),
        sa.Column('commission_rate', sa.Numeric(10, 2), nullable=False),
        sa.Column('commission_type', sa.String(length=20), nullable=False),
        sa.Column('currency', sa.String(length=3), nullable=False, server_default='usd'),
        sa.Column('status', sa.String(length=20), nullable=False, comment='pending/approved/processing/paid/reversed'),
        sa.Column('due_at', sa.DateTime(), nullable=False, comment='Payout eligibility date'),
        sa.Column('payout_reference', sa.String(length=255), nullable=True),
        sa.Column('created_at', sa.DateTime(), nullable=False),
        sa.Column('approved_at', sa.DateTime(), nullable=True),
        sa.Column('paid_at', sa.DateTime(), nullable=True),
        sa.Column('reversed_at', sa.DateTime(), nullable=True),
        sa.Column('reversal_reason', sa.Text(), nullable=True),
        sa.PrimaryKeyConstraint('id'),
        sa.ForeignKeyConstraint(['affiliate_id'], ['affiliates.id'], ondelete='CASCADE'),
        sa.ForeignKeyConstraint(['referral_id'], ['referrals.id'], ondelete='CASCADE'),
    )
    op.create_index(op.f('ix_commissions_affiliate_id'), 'commissions', ['affiliate_id'], unique=False)
    op.create_index(op.f('ix_commissions_referral_id'), 'commissions', ['referral_id'], unique=False)
    op.create_index(op.f('ix_commissions_invoice_id'), 'commissions', ['invoice_id'], unique=True)
    op.create_index(op.f('ix_commissions_charge_id'), 'commissions', ['charge_id'], unique=False)
    op.create_index(op.f('ix_commissions_subscription_id'), 'commissions', ['subscription_id'], unique=False)
    op.create_index(op.f('ix_commissions_status'), 'commissions', ['status'], unique=False)
    op.create_index(op.f('ix_commissions_created_at'), 'commissions', ['created_at'], unique=False)

    # Sub-affiliate commissions
    op.create_table(
        'sub_affiliate_commissions',
        sa.Column('id', sa.BigInteger(), autoincrement=True, nullable=False),
        sa.Column('parent_affiliate_id', sa.BigInteger(), nullable=False, comment='Recruiting affiliate receiving the derived commission'),
        sa.Column('sub_affiliate_id', sa.BigInteger(), nullable=False),
        sa.Column('source_commission_id', sa.BigInteger(), nullable=False),
        sa.Column('source_commission_amount_cents', sa.BigInteger(), nullable=False),
        sa.Column('sub_commission_amount_cents', sa.BigInteger(), nullable=False),
        sa.Column('sub_commission_percent', sa.Numeric(5, 2), nullable=False),
        sa.Column('currency', sa.String(length=3), nullable=False, server_default='usd'),
        sa.Column('status', sa.String(length=20), nullable=False),
        sa.Column('due_at', sa.DateTime(), nullable=False),
        sa.Column('created_at', sa.DateTime(), nullable=False),
        sa.Column('paid_at', sa.DateTime(), nullable=True),
        sa.Column('reversed_at', sa.DateTime(), nullable=True),
        sa.Column('reversal_reason', sa.Text(), nullable=True),
        sa.PrimaryKeyConstraint('id'),
        sa.ForeignKeyConstraint(['parent_affiliate_id'], ['affiliates.id'], ondelete='CASCADE'),
        sa.ForeignKeyConstraint(['sub_affiliate_id'], ['affiliates.id'], ondelete='CASCADE'),
        sa.ForeignKeyConstraint(['source_commission_id'], ['commissions.id'], ondelete='CASCADE'),
        sa.UniqueConstraint('source_commission_id'),
    )
    op.create_index(op.f('ix_sub_affiliate_commissions_parent_affiliate_id'), 'sub_affiliate_commissions', ['parent_affiliate_id'], unique=False)
    op.create_index(op.f('ix_sub_affiliate_commissions_sub_affiliate_id'), 'sub_affiliate_commissions', ['sub_affiliate_id'], unique=False)
    op.create_index(op.f('ix_sub_affiliate_commissions_status'), 'sub_affiliate_commissions', ['status'], unique=False)

    # Recruitment referrals
    op.create_table(
        'recruitment_referrals',
        sa.Column('id', sa.BigInteger(), autoincrement=True, nullable=False),
        sa.Column('recruiting_affiliate_id', sa.BigInteger(), nullable=False),
        sa.Column('referral_id', sa.String(length=64), nullable=False),
        sa.Column('landing_page', sa.String(length=1024), nullable=False, server_default='/affiliates'),
        sa.Column('status', sa.String(length=20), nullable=False, comment='clicked/signed_up/approved'),
        sa.Column('recruited_affiliate_id', sa.BigInteger(), nullable=True),
        sa.Column('clicked_at', sa.DateTime(), nullable=False),
        sa.Column('signed_up_at', sa.DateTime(), nullable=True),
        sa.Column('approved_at', sa.DateTime(), nullable=True),
        sa.Column('expires_at', sa.DateTime(), nullable=False),
        sa.PrimaryKeyConstraint('id'),
        sa.ForeignKeyConstraint(['recruiting_affiliate_id'], ['affiliates.id'], ondelete='CASCADE'),
        sa.ForeignKeyConstraint(['recruited_affiliate_id'], ['affiliates.id'], ondelete='SET NULL'),
    )
    op.create_index(op.f('ix_recruitment_referrals_recruiting_affiliate_id'), 'recruitment_referrals', ['recruiting_affiliate_id'], unique=False)
    op.create_index(op.f('ix_recruitment_referrals_referral_id'), 'recruitment_referrals', ['referral_id'], unique=True)
    op.create_index(op.f('ix_recruitment_referrals_recruited_affiliate_id'), 'recruitment_referrals', ['recruited_affiliate_id'], unique=False)

    # Analytics events
    op.create_table(
        'affiliate_events',
        sa.Column('id', sa.BigInteger(), autoincrement=True, nullable=False),
        sa.Column('affiliate_id', sa.BigInteger(), nullable=False),
        sa.Column('type', sa.String(length=20), nullable=False),
        sa.Column('metadata', sa.JSON(), nullable=True),
        sa.Column('timestamp', sa.DateTime(), nullable=False),
        sa.PrimaryKeyConstraint('id'),
        sa.ForeignKeyConstraint(['affiliate_id'], ['affiliates.id'], ondelete='CASCADE'),
    )
    op.create_index(op.f('ix_affiliate_events_type'), 'affiliate_events', ['type'], unique=False)
    op.create_index('ix_affiliate_events_affiliate_timestamp', 'affiliate_events', ['affiliate_id', 'timestamp'], unique=False)


def downgrade() -> None:
    op.drop_index('ix_affiliate_events_affiliate_timestamp', table_name='affiliate_events')
    op.drop_index(op.f('ix_affiliate_events_type'), table_name='affiliate_events')
    op.drop_table('affiliate_events')

    op.drop_index(op.f('ix_recruitment_referrals_recruited_affiliate_id'), table_name='recruitment_referrals')
    op.drop_index(op.f('ix_recruitment_referrals_referral_id'), table_name='recruitment_referrals')
    op.drop_index(op.f('ix_recruitment_referrals_recruiting_affiliate_id'), table_name='recruitment_referrals')
    op.drop_table('recruitment_referrals')

    op.drop_index(op.f('ix_sub_affiliate_commissions_status'), table_name='sub_affiliate_commissions')
    op.drop_index(op.f('ix_sub_affiliate_commissions_sub_affiliate_id'), table_name='sub_affiliate_commissions')
    op.drop_index(op.f('ix_sub_affiliate_commissions_parent_affiliate_id'), table_name='sub_affiliate_commissions')
    op.drop_table('sub_affiliate_commissions')

    op.drop_index(op.f('ix_commissions_created_at'), table_name='commissions')
    op.drop_index(op.f('ix_commissions_status'), table_name='commissions')
    op.drop_index(op.f('ix_commissions_subscription_id'), table_name='commissions')
    op.drop_index(op.f('ix_commissions_charge_id'), table_name='commissions')
    op.drop_index(op.f('ix_commissions_invoice_id'), table_name='commissions')
    op.drop_index(op.f('ix_commissions_referral_id'), table_name='commissions')
    op.drop_index(op.f('ix_commissions_affiliate_id'), table_name='commissions')
    op.drop_table('commissions')

    op.drop_index('ix_referrals_expires_at_status', table_name='referrals')
    op.drop_index(op.f('ix_referrals_payment_customer_id'), table_name='referrals')
    op.drop_index(op.f('ix_referrals_status'), table_name='referrals')
    op.drop_index(op.f('ix_referrals_affiliate_id'), table_name='referrals')
    op.drop_index(op.f('ix_referrals_referral_id'), table_name='referrals')
    op.drop_table('referrals')

    op.drop_index(op.f('ix_affiliates_referred_by_affiliate_id'), table_name='affiliates')
    op.drop_index(op.f('ix_affiliates_status'), table_name='affiliates')
    op.drop_index(op.f('ix_affiliates_recruitment_code'), table_name='affiliates')
    op.drop_index(op.f('ix_affiliates_code'), table_name='affiliates')
    op.drop_index(op.f('ix_affiliates_campaign_id'), table_name='affiliates')
    op.drop_index(op.f('ix_affiliates_user_id'), table_name='affiliates')
    op.drop_table('affiliates')

    op.drop_index(op.f('ix_campaigns_is_default'), table_name='campaigns')
    op.drop_index(op.f('ix_campaigns_is_active'), table_name='campaigns')
    op.drop_index(op.f('ix_campaigns_slug'), table_name='campaigns')
    op.drop_table('campaigns')
