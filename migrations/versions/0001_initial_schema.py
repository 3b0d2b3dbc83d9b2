"""Initial Giya schema

Revision ID: 0001_initial_schema
Revises:
Create Date: 2026-10-16 09:00:00.000000

"""
from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision = '0001_initial_schema'
down_revision = None
branch_labels = None
depends_on = None


def upgrade():
    """Create users, profiles, loyalty, offer, affiliate and notification tables."""
    op.create_table(
        'users',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('email', sa.String(255), nullable=False),
        sa.Column('password_hash', sa.String(255), nullable=False),
        sa.Column('role', sa.String(20), nullable=False),
        sa.Column('is_active', sa.Boolean(), nullable=False),
        sa.Column('last_login_at', sa.DateTime(), nullable=True),
        sa.Column('created_at', sa.DateTime(), nullable=True),
        sa.Column('updated_at', sa.DateTime(), nullable=True),
        sa.PrimaryKeyConstraint('id')
    )
    op.create_index('ix_users_email', 'users', ['email'], unique=True)

    op.create_table(
        'customers',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('user_id', sa.Integer(), nullable=False),
        sa.Column('full_name', sa.String(255), nullable=False),
        sa.Column('nickname', sa.String(100), nullable=True),
        sa.Column('email', sa.String(255), nullable=True),
        sa.Column('phone_number', sa.String(20), nullable=True),
        sa.Column('date_of_birth', sa.Date(), nullable=True),
        sa.Column('profile_pic_url', sa.String(500), nullable=True),
        sa.Column('total_points', sa.Integer(), nullable=False),
        sa.Column('qr_code_data', sa.String(50), nullable=False),
        sa.Column('fcm_token', sa.String(500), nullable=True),
        sa.Column('created_at', sa.DateTime(), nullable=True),
        sa.Column('updated_at', sa.DateTime(), nullable=True),
        sa.CheckConstraint('total_points >= 0', name='ck_customers_total_points_non_negative'),
        sa.ForeignKeyConstraint(['user_id'], ['users.id'], ),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('user_id'),
        sa.UniqueConstraint('qr_code_data')
    )

    op.create_table(
        'influencers',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('user_id', sa.Integer(), nullable=False),
        sa.Column('full_name', sa.String(255), nullable=False),
        sa.Column('facebook_handle', sa.String(100), nullable=True),
        sa.Column('instagram_handle', sa.String(100), nullable=True),
        sa.Column('tiktok_handle', sa.String(100), nullable=True),
        sa.Column('twitter_handle', sa.String(100), nullable=True),
        sa.Column('total_commission_points', sa.Integer(), nullable=False),
        sa.Column('created_at', sa.DateTime(), nullable=True),
        sa.Column('updated_at', sa.DateTime(), nullable=True),
        sa.ForeignKeyConstraint(['user_id'], ['users.id'], ),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('user_id')
    )

    op.create_table(
        'businesses',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('user_id', sa.Integer(), nullable=False),
        sa.Column('business_name', sa.String(255), nullable=False),
        sa.Column('business_category', sa.String(100), nullable=False),
        sa.Column('description', sa.Text(), nullable=True),
        sa.Column('address', sa.String(500), nullable=False),
        sa.Column('gmaps_link', sa.String(500), nullable=True),
        sa.Column('phone_number', sa.String(20), nullable=True),
        sa.Column('profile_pic_url', sa.String(500), nullable=True),
        sa.Column('points_per_currency', sa.Integer(), nullable=False),
        sa.Column('approval_status', sa.String(20), nullable=False),
        sa.Column('is_active', sa.Boolean(), nullable=False),
        sa.Column('can_access_dashboard', sa.Boolean(), nullable=False),
        sa.Column('approved_at', sa.DateTime(), nullable=True),
        sa.Column('approved_by', sa.Integer(), nullable=True),
        sa.Column('rejection_reason', sa.Text(), nullable=True),
        sa.Column('suspended_at', sa.DateTime(), nullable=True),
        sa.Column('suspension_reason', sa.Text(), nullable=True),
        sa.Column('created_at', sa.DateTime(), nullable=True),
        sa.Column('updated_at', sa.DateTime(), nullable=True),
        sa.ForeignKeyConstraint(['user_id'], ['users.id'], ),
        sa.ForeignKeyConstraint(['approved_by'], ['users.id'], ),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('user_id')
    )
    op.create_index('ix_businesses_approval_status', 'businesses', ['approval_status'])

    op.create_table(
        'business_approval_logs',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('business_id', sa.Integer(), nullable=False),
        sa.Column('action', sa.String(20), nullable=False),
        sa.Column('from_status', sa.String(20), nullable=False),
        sa.Column('to_status', sa.String(20), nullable=False),
        sa.Column('reason', sa.Text(), nullable=True),
        sa.Column('performed_by', sa.Integer(), nullable=False),
        sa.Column('created_at', sa.DateTime(), nullable=True),
        sa.ForeignKeyConstraint(['business_id'], ['businesses.id'], ),
        sa.ForeignKeyConstraint(['performed_by'], ['users.id'], ),
        sa.PrimaryKeyConstraint('id')
    )
    op.create_index('ix_business_approval_logs_business_id', 'business_approval_logs', ['business_id'])

    # Punch cards
    op.create_table(
        'punch_cards',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('business_id', sa.Integer(), nullable=False),
        sa.Column('title', sa.String(255), nullable=False),
        sa.Column('description', sa.Text(), nullable=True),
        sa.Column('punches_required', sa.Integer(), nullable=False),
        sa.Column('reward_description', sa.String(500), nullable=False),
        sa.Column('is_active', sa.Boolean(), nullable=False),
        sa.Column('valid_from', sa.DateTime(), nullable=False),
        sa.Column('valid_until', sa.DateTime(), nullable=True),
        sa.Column('created_at', sa.DateTime(), nullable=True),
        sa.Column('updated_at', sa.DateTime(), nullable=True),
        sa.CheckConstraint('punches_required > 0', name='ck_punch_cards_punches_required_positive'),
        sa.ForeignKeyConstraint(['business_id'], ['businesses.id'], ),
        sa.PrimaryKeyConstraint('id')
    )
    op.create_index('ix_punch_cards_business_id', 'punch_cards', ['business_id'])

    op.create_table(
        'punch_card_customers',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('punch_card_id', sa.Integer(), nullable=False),
        sa.Column('customer_id', sa.Integer(), nullable=False),
        sa.Column('punches_count', sa.Integer(), nullable=False),
        sa.Column('is_completed', sa.Boolean(), nullable=False),
        sa.Column('completed_at', sa.DateTime(), nullable=True),
        sa.Column('last_punch_at', sa.DateTime(), nullable=True),
        sa.Column('created_at', sa.DateTime(), nullable=True),
        sa.Column('updated_at', sa.DateTime(), nullable=True),
        sa.CheckConstraint('punches_count >= 0', name='ck_punch_card_customers_count_non_negative'),
        sa.ForeignKeyConstraint(['punch_card_id'], ['punch_cards.id'], ),
        sa.ForeignKeyConstraint(['customer_id'], ['customers.id'], ),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('punch_card_id', 'customer_id', name='uq_punch_card_customer')
    )
    op.create_index('ix_punch_card_customers_punch_card_id', 'punch_card_customers', ['punch_card_id'])
    op.create_index('ix_punch_card_customers_customer_id', 'punch_card_customers', ['customer_id'])

    op.create_table(
        'punch_card_punches',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('punch_card_customer_id', sa.Integer(), nullable=False),
        sa.Column('validated_by', sa.Integer(), nullable=False),
        sa.Column('transaction_id', sa.String(100), nullable=True),
        sa.Column('created_at', sa.DateTime(), nullable=True),
        sa.ForeignKeyConstraint(['punch_card_customer_id'], ['punch_card_customers.id'], ),
        sa.ForeignKeyConstraint(['validated_by'], ['users.id'], ),
        sa.PrimaryKeyConstraint('id')
    )
    op.create_index('ix_punch_card_punches_punch_card_customer_id', 'punch_card_punches', ['punch_card_customer_id'])

    # Affiliate links come before receipts, which reference them
    op.create_table(
        'affiliate_links',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('influencer_id', sa.Integer(), nullable=False),
        sa.Column('business_id', sa.Integer(), nullable=False),
        sa.Column('unique_code', sa.String(12), nullable=False),
        sa.Column('commission_rate', sa.Numeric(5, 4), nullable=False),
        sa.Column('is_active', sa.Boolean(), nullable=False),
        sa.Column('click_count', sa.Integer(), nullable=False),
        sa.Column('created_at', sa.DateTime(), nullable=True),
        sa.ForeignKeyConstraint(['influencer_id'], ['influencers.id'], ),
        sa.ForeignKeyConstraint(['business_id'], ['businesses.id'], ),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('business_id', 'unique_code', name='uq_affiliate_link_business_code'),
        sa.UniqueConstraint('influencer_id', 'business_id', name='uq_affiliate_link_influencer_business')
    )
    op.create_index('ix_affiliate_links_influencer_id', 'affiliate_links', ['influencer_id'])
    op.create_index('ix_affiliate_links_business_id', 'affiliate_links', ['business_id'])
    op.create_index('ix_affiliate_links_unique_code', 'affiliate_links', ['unique_code'])

    op.create_table(
        'receipts',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('customer_id', sa.Integer(), nullable=False),
        sa.Column('business_id', sa.Integer(), nullable=False),
        sa.Column('image_url', sa.String(500), nullable=True),
        sa.Column('raw_text', sa.Text(), nullable=True),
        sa.Column('status', sa.String(20), nullable=False),
        sa.Column('ocr_data', sa.JSON(), nullable=True),
        sa.Column('total_amount', sa.Numeric(12, 2), nullable=True),
        sa.Column('currency_code', sa.String(3), nullable=True),
        sa.Column('points_earned', sa.Integer(), nullable=True),
        sa.Column('points_awarded', sa.Boolean(), nullable=False),
        sa.Column('failure_reason', sa.String(500), nullable=True),
        sa.Column('processed_at', sa.DateTime(), nullable=True),
        sa.Column('affiliate_link_id', sa.Integer(), nullable=True),
        sa.Column('created_at', sa.DateTime(), nullable=True),
        sa.Column('updated_at', sa.DateTime(), nullable=True),
        sa.ForeignKeyConstraint(['customer_id'], ['customers.id'], ),
        sa.ForeignKeyConstraint(['business_id'], ['businesses.id'], ),
        sa.ForeignKeyConstraint(['affiliate_link_id'], ['affiliate_links.id'], ),
        sa.PrimaryKeyConstraint('id')
    )
    op.create_index('ix_receipts_customer_id', 'receipts', ['customer_id'])
    op.create_index('ix_receipts_business_id', 'receipts', ['business_id'])
    op.create_index('ix_receipts_status', 'receipts', ['status'])

    op.create_table(
        'points_transactions',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('customer_id', sa.Integer(), nullable=False),
        sa.Column('business_id', sa.Integer(), nullable=False),
        sa.Column('receipt_id', sa.Integer(), nullable=True),
        sa.Column('amount_spent', sa.Numeric(12, 2), nullable=False),
        sa.Column('points_earned', sa.Integer(), nullable=False),
        sa.Column('source', sa.String(20), nullable=False),
        sa.Column('description', sa.String(500), nullable=True),
        sa.Column('awarded_by', sa.Integer(), nullable=True),
        sa.Column('created_at', sa.DateTime(), nullable=True),
        sa.ForeignKeyConstraint(['customer_id'], ['customers.id'], ),
        sa.ForeignKeyConstraint(['business_id'], ['businesses.id'], ),
        sa.ForeignKeyConstraint(['receipt_id'], ['receipts.id'], ),
        sa.ForeignKeyConstraint(['awarded_by'], ['users.id'], ),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('receipt_id')
    )
    op.create_index('ix_points_transactions_customer_id', 'points_transactions', ['customer_id'])
    op.create_index('ix_points_transactions_business_id', 'points_transactions', ['business_id'])
    op.create_index('ix_points_transactions_created_at', 'points_transactions', ['created_at'])

    # Rewards and redemptions
    op.create_table(
        'rewards',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('business_id', sa.Integer(), nullable=False),
        sa.Column('reward_name', sa.String(255), nullable=False),
        sa.Column('description', sa.Text(), nullable=True),
        sa.Column('points_required', sa.Integer(), nullable=False),
        sa.Column('terms', sa.Text(), nullable=True),
        sa.Column('image_url', sa.String(500), nullable=True),
        sa.Column('redemption_limit', sa.Integer(), nullable=True),
        sa.Column('redemption_count', sa.Integer(), nullable=False),
        sa.Column('is_active', sa.Boolean(), nullable=False),
        sa.Column('created_at', sa.DateTime(), nullable=True),
        sa.Column('updated_at', sa.DateTime(), nullable=True),
        sa.CheckConstraint('points_required > 0', name='ck_rewards_points_required_positive'),
        sa.ForeignKeyConstraint(['business_id'], ['businesses.id'], ),
        sa.PrimaryKeyConstraint('id')
    )
    op.create_index('ix_rewards_business_id', 'rewards', ['business_id'])

    op.create_table(
        'redemptions',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('customer_id', sa.Integer(), nullable=False),
        sa.Column('reward_id', sa.Integer(), nullable=False),
        sa.Column('business_id', sa.Integer(), nullable=False),
        sa.Column('points_redeemed', sa.Integer(), nullable=False),
        sa.Column('redemption_qr_code', sa.String(64), nullable=False),
        sa.Column('status', sa.String(20), nullable=False),
        sa.Column('validated_at', sa.DateTime(), nullable=True),
        sa.Column('validated_by', sa.Integer(), nullable=True),
        sa.Column('cancelled_at', sa.DateTime(), nullable=True),
        sa.Column('created_at', sa.DateTime(), nullable=True),
        sa.ForeignKeyConstraint(['customer_id'], ['customers.id'], ),
        sa.ForeignKeyConstraint(['reward_id'], ['rewards.id'], ),
        sa.ForeignKeyConstraint(['business_id'], ['businesses.id'], ),
        sa.ForeignKeyConstraint(['validated_by'], ['users.id'], ),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('redemption_qr_code')
    )
    op.create_index('ix_redemptions_customer_id', 'redemptions', ['customer_id'])
    op.create_index('ix_redemptions_business_id', 'redemptions', ['business_id'])

    # Deals
    op.create_table(
        'deals',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('business_id', sa.Integer(), nullable=False),
        sa.Column('title', sa.String(255), nullable=False),
        sa.Column('description', sa.Text(), nullable=True),
        sa.Column('image_url', sa.String(500), nullable=True),
        sa.Column('deal_type', sa.String(20), nullable=False),
        sa.Column('discount_percentage', sa.Numeric(5, 2), nullable=True),
        sa.Column('discount_value', sa.Numeric(12, 2), nullable=True),
        sa.Column('product_name', sa.String(255), nullable=True),
        sa.Column('original_price', sa.Numeric(12, 2), nullable=True),
        sa.Column('exclusive_price', sa.Numeric(12, 2), nullable=True),
        sa.Column('points_required', sa.Integer(), nullable=False),
        sa.Column('redemption_limit', sa.Integer(), nullable=True),
        sa.Column('redemption_count', sa.Integer(), nullable=False),
        sa.Column('validity_start', sa.DateTime(), nullable=True),
        sa.Column('validity_end', sa.DateTime(), nullable=True),
        sa.Column('is_active', sa.Boolean(), nullable=False),
        sa.Column('qr_code_data', sa.String(64), nullable=False),
        sa.Column('schedule_type', sa.String(20), nullable=False),
        sa.Column('start_time', sa.String(5), nullable=True),
        sa.Column('end_time', sa.String(5), nullable=True),
        sa.Column('active_days', sa.JSON(), nullable=True),
        sa.Column('created_at', sa.DateTime(), nullable=True),
        sa.Column('updated_at', sa.DateTime(), nullable=True),
        sa.ForeignKeyConstraint(['business_id'], ['businesses.id'], ),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('qr_code_data')
    )
    op.create_index('ix_deals_business_id', 'deals', ['business_id'])

    op.create_table(
        'deal_usages',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('deal_id', sa.Integer(), nullable=False),
        sa.Column('customer_id', sa.Integer(), nullable=False),
        sa.Column('business_id', sa.Integer(), nullable=False),
        sa.Column('points_used', sa.Integer(), nullable=False),
        sa.Column('validated_by', sa.Integer(), nullable=True),
        sa.Column('used_at', sa.DateTime(), nullable=True),
        sa.ForeignKeyConstraint(['deal_id'], ['deals.id'], ),
        sa.ForeignKeyConstraint(['customer_id'], ['customers.id'], ),
        sa.ForeignKeyConstraint(['business_id'], ['businesses.id'], ),
        sa.ForeignKeyConstraint(['validated_by'], ['users.id'], ),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('deal_id', 'customer_id', name='uq_deal_usage_customer')
    )
    op.create_index('ix_deal_usages_deal_id', 'deal_usages', ['deal_id'])
    op.create_index('ix_deal_usages_customer_id', 'deal_usages', ['customer_id'])

    op.create_table(
        'affiliate_conversions',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('affiliate_link_id', sa.Integer(), nullable=False),
        sa.Column('receipt_id', sa.Integer(), nullable=True),
        sa.Column('customer_id', sa.Integer(), nullable=False),
        sa.Column('conversion_type', sa.String(20), nullable=False),
        sa.Column('points_earned', sa.Integer(), nullable=False),
        sa.Column('commission_points', sa.Integer(), nullable=False),
        sa.Column('created_at', sa.DateTime(), nullable=True),
        sa.ForeignKeyConstraint(['affiliate_link_id'], ['affiliate_links.id'], ),
        sa.ForeignKeyConstraint(['receipt_id'], ['receipts.id'], ),
        sa.ForeignKeyConstraint(['customer_id'], ['customers.id'], ),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('receipt_id')
    )
    op.create_index('ix_affiliate_conversions_affiliate_link_id', 'affiliate_conversions', ['affiliate_link_id'])
    op.create_index('ix_affiliate_conversions_created_at', 'affiliate_conversions', ['created_at'])

    # Curated lists
    op.create_table(
        'curated_lists',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('title', sa.String(255), nullable=False),
        sa.Column('description', sa.Text(), nullable=True),
        sa.Column('category', sa.String(50), nullable=False),
        sa.Column('display_order', sa.Integer(), nullable=False),
        sa.Column('is_active', sa.Boolean(), nullable=False),
        sa.Column('created_by', sa.Integer(), nullable=False),
        sa.Column('created_at', sa.DateTime(), nullable=True),
        sa.Column('updated_at', sa.DateTime(), nullable=True),
        sa.ForeignKeyConstraint(['created_by'], ['users.id'], ),
        sa.PrimaryKeyConstraint('id')
    )

    op.create_table(
        'curated_list_items',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('curated_list_id', sa.Integer(), nullable=False),
        sa.Column('business_id', sa.Integer(), nullable=False),
        sa.Column('display_order', sa.Integer(), nullable=False),
        sa.Column('added_by', sa.Integer(), nullable=False),
        sa.Column('created_at', sa.DateTime(), nullable=True),
        sa.ForeignKeyConstraint(['curated_list_id'], ['curated_lists.id'], ),
        sa.ForeignKeyConstraint(['business_id'], ['businesses.id'], ),
        sa.ForeignKeyConstraint(['added_by'], ['users.id'], ),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('curated_list_id', 'business_id', name='uq_curated_list_business')
    )
    op.create_index('ix_curated_list_items_curated_list_id', 'curated_list_items', ['curated_list_id'])

    op.create_table(
        'notifications',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('user_id', sa.Integer(), nullable=False),
        sa.Column('title', sa.String(255), nullable=False),
        sa.Column('message', sa.Text(), nullable=False),
        sa.Column('type', sa.String(50), nullable=False),
        sa.Column('data', sa.JSON(), nullable=True),
        sa.Column('is_read', sa.Boolean(), nullable=False),
        sa.Column('read_at', sa.DateTime(), nullable=True),
        sa.Column('created_at', sa.DateTime(), nullable=True),
        sa.ForeignKeyConstraint(['user_id'], ['users.id'], ),
        sa.PrimaryKeyConstraint('id')
    )
    op.create_index('ix_notifications_user_id', 'notifications', ['user_id'])
    op.create_index('ix_notifications_created_at', 'notifications', ['created_at'])


def downgrade():
    """Drop all tables in reverse dependency order."""
    op.drop_table('notifications')
    op.drop_table('curated_list_items')
    op.drop_table('curated_lists')
    op.drop_table('affiliate_conversions')
    op.drop_table('deal_usages')
    op.drop_table('deals')
    op.drop_table('redemptions')
    op.drop_table('rewards')
    op.drop_table('points_transactions')
    op.drop_table('receipts')
    op.drop_table('affiliate_links')
    op.drop_table('punch_card_punches')
    op.drop_table('punch_card_customers')
    op.drop_table('punch_cards')
    op.drop_table('business_approval_logs')
    op.drop_table('businesses')
    op.drop_table('influencers')
    op.drop_table('customers')
    op.drop_table('users')
