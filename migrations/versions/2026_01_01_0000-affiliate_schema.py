"""Affiliate redirect schema

Revision ID: 001_affiliate
Revises:
Create Date: 2026-01-01 00:00:00.000000

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa
from sqlalchemy import inspect

# revision identifiers, used by Alembic.
revision: str = '001_affiliate'
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    """
    Create the affiliate schema:
    - affiliate_partners: partners and their attribution window
    - affiliate_links: short code mappings with status and expiry
    - affiliate_clicks: append-only click events
    - blocked_ips: addresses and ranges excluded from tracking
    """
    bind = op.get_bind()
    existing_tables = inspect(bind).get_table_names()

    if 'affiliate_partners' not in existing_tables:
        op.create_table(
            'affiliate_partners',
            sa.Column('id', sa.Integer(), nullable=False, autoincrement=True),
            sa.Column('name', sa.String(length=200), nullable=False),
            sa.Column('slug', sa.String(length=100), nullable=False),
            sa.Column('status', sa.String(length=20), nullable=False, server_default='active'),
            sa.Column('cookie_duration', sa.Integer(), nullable=True),
            sa.Column('created_at', sa.DateTime(timezone=True), nullable=False),
            sa.PrimaryKeyConstraint('id')
        )
        op.create_index('ix_affiliate_partners_slug', 'affiliate_partners', ['slug'], unique=True)

    if 'affiliate_links' not in existing_tables:
        op.create_table(
            'affiliate_links',
            sa.Column('id', sa.Integer(), nullable=False, autoincrement=True),
            sa.Column('short_code', sa.String(length=64), nullable=False),
            sa.Column('partner_id', sa.Integer(), nullable=False),
            sa.Column('product_id', sa.String(length=64), nullable=True),
            sa.Column('campaign_id', sa.String(length=64), nullable=True),
            sa.Column('original_url', sa.Text(), nullable=False),
            sa.Column('tracking_url', sa.Text(), nullable=True),
            sa.Column('short_url', sa.String(length=500), nullable=True),
            sa.Column('link_type', sa.String(length=20), nullable=False, server_default='product'),
            sa.Column('placement_type', sa.String(length=20), nullable=False, server_default='content'),
            sa.Column('utm_source', sa.String(length=100), nullable=True),
            sa.Column('utm_medium', sa.String(length=100), nullable=True),
            sa.Column('utm_campaign', sa.String(length=100), nullable=True),
            sa.Column('status', sa.String(length=20), nullable=False, server_default='active'),
            sa.Column('expires_at', sa.DateTime(timezone=True), nullable=True),
            sa.Column('total_clicks', sa.Integer(), nullable=False, server_default='0'),
            sa.Column('created_at', sa.DateTime(timezone=True), nullable=False),
            sa.ForeignKeyConstraint(['partner_id'], ['affiliate_partners.id']),
            sa.PrimaryKeyConstraint('id')
        )
        op.create_index('ix_affiliate_links_short_code', 'affiliate_links', ['short_code'], unique=True)
        op.create_index('ix_affiliate_links_partner_id', 'affiliate_links', ['partner_id'])
        op.create_index('ix_affiliate_links_status', 'affiliate_links', ['status'])

    if 'affiliate_clicks' not in existing_tables:
        op.create_table(
            'affiliate_clicks',
            sa.Column('id', sa.Integer(), nullable=False, autoincrement=True),
            sa.Column('click_id', sa.String(length=32), nullable=False),
            sa.Column('link_id', sa.Integer(), nullable=False),
            sa.Column('partner_id', sa.Integer(), nullable=False),
            sa.Column('product_id', sa.String(length=64), nullable=True),
            sa.Column('session_id', sa.String(length=128), nullable=False),
            sa.Column('ip_address', sa.String(length=45), nullable=False),
            sa.Column('user_agent', sa.String(length=500), nullable=True),
            sa.Column('referrer', sa.String(length=1000), nullable=True),
            sa.Column('country_code', sa.String(length=2), nullable=True),
            sa.Column('device_type', sa.String(length=20), nullable=True),
            sa.Column('browser', sa.String(length=50), nullable=True),
            sa.Column('os', sa.String(length=50), nullable=True),
            sa.Column('is_bot', sa.Boolean(), nullable=False, server_default=sa.false()),
            sa.Column('bot_type', sa.String(length=50), nullable=True),
            sa.Column('clicked_at', sa.DateTime(timezone=True), nullable=False),
            sa.ForeignKeyConstraint(['link_id'], ['affiliate_links.id']),
            sa.PrimaryKeyConstraint('id')
        )
        op.create_index('ix_affiliate_clicks_click_id', 'affiliate_clicks', ['click_id'], unique=True)
        op.create_index('ix_affiliate_clicks_link_id', 'affiliate_clicks', ['link_id'])
        op.create_index('ix_affiliate_clicks_partner_id', 'affiliate_clicks', ['partner_id'])
        op.create_index('ix_affiliate_clicks_is_bot', 'affiliate_clicks', ['is_bot'])
        op.create_index('ix_affiliate_clicks_clicked_at', 'affiliate_clicks', ['clicked_at'])
        op.create_index(
            'ix_affiliate_clicks_ip_link_time',
            'affiliate_clicks',
            ['ip_address', 'link_id', 'clicked_at']
        )
        op.create_index(
            'ix_affiliate_clicks_session_link_time',
            'affiliate_clicks',
            ['session_id', 'link_id', 'clicked_at']
        )

    if 'blocked_ips' not in existing_tables:
        op.create_table(
            'blocked_ips',
            sa.Column('id', sa.Integer(), nullable=False, autoincrement=True),
            sa.Column('ip_address', sa.String(length=64), nullable=False),
            sa.Column('reason', sa.String(length=500), nullable=True),
            sa.Column('blocked_at', sa.DateTime(timezone=True), nullable=False),
            sa.PrimaryKeyConstraint('id')
        )
        op.create_index('ix_blocked_ips_ip_address', 'blocked_ips', ['ip_address'], unique=True)


def downgrade() -> None:
    """Drop the affiliate schema (children first)."""
    op.drop_table('blocked_ips')
    op.drop_table('affiliate_clicks')
    op.drop_table('affiliate_links')
    op.drop_table('affiliate_partners')
