"""Initial migration

Revision ID: 001_initial
Revises:
Create Date: 2026-10-17 00:00:00.000000

"""
from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql

# revision identifiers, used by Alembic.
revision = '001_initial'
down_revision = None
branch_labels = None
depends_on = None


def upgrade() -> None:
    # Platforms table
    op.create_table(
        'platforms',
        sa.Column('id', sa.String(length=36), nullable=False),
        sa.Column('name', sa.String(length=32), nullable=False),
        sa.Column('display_name', sa.String(length=64), nullable=False),
        sa.Column('base_url', sa.Text(), nullable=False),
        sa.Column('is_active', sa.Boolean(), nullable=False),
        sa.Column('created_at', sa.DateTime(), nullable=False),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('name')
    )

    # Affiliate links table
    op.create_table(
        'affiliate_links',
        sa.Column('id', sa.String(length=36), nullable=False),
        sa.Column('product_id', sa.String(length=36), nullable=False),
        sa.Column('platform_id', sa.String(length=36), nullable=False),
        sa.Column('original_url', sa.Text(), nullable=False),
        sa.Column('shortened_url', sa.Text(), nullable=True),
        sa.Column('short_code', sa.String(length=64), nullable=True),
        sa.Column('commission_rate', sa.Numeric(precision=6, scale=4), nullable=False),
        sa.Column('is_active', sa.Boolean(), nullable=False),
        sa.Column('priority', sa.Integer(), nullable=False),
        sa.Column('version', sa.Integer(), nullable=False),
        sa.Column('created_at', sa.DateTime(), nullable=False),
        sa.Column('updated_at', sa.DateTime(), nullable=False),
        sa.PrimaryKeyConstraint('id'),
        sa.ForeignKeyConstraint(['platform_id'], ['platforms.id'], ),
        sa.UniqueConstraint('short_code')
    )
    op.create_index('ix_affiliate_links_original_url', 'affiliate_links', ['original_url'])
    op.create_index(
        'ix_affiliate_links_product_active', 'affiliate_links', ['product_id', 'is_active']
    )

    # Link analytics rollup
    op.create_table(
        'link_analytics',
        sa.Column('link_id', sa.String(length=36), nullable=False),
        sa.Column('total_clicks', sa.Integer(), nullable=False),
        sa.Column('total_conversions', sa.Integer(), nullable=False),
        sa.Column('total_revenue', sa.Numeric(precision=12, scale=2), nullable=False),
        sa.Column('updated_at', sa.DateTime(), nullable=False),
        sa.PrimaryKeyConstraint('link_id'),
        sa.ForeignKeyConstraint(['link_id'], ['affiliate_links.id'], ondelete='CASCADE')
    )

    # Click and conversion events (append-only)
    op.create_table(
        'click_events',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('link_id', sa.String(length=36), nullable=False),
        sa.Column('timestamp', sa.DateTime(), nullable=False),
        sa.Column('device', sa.String(length=32), nullable=True),
        sa.Column('country', sa.String(length=8), nullable=True),
        sa.Column('referrer', sa.Text(), nullable=True),
        sa.PrimaryKeyConstraint('id')
    )
    op.create_index('ix_click_events_link_timestamp', 'click_events', ['link_id', 'timestamp'])

    op.create_table(
        'conversion_events',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('link_id', sa.String(length=36), nullable=False),
        sa.Column('timestamp', sa.DateTime(), nullable=False),
        sa.Column('order_value', sa.Numeric(precision=12, scale=2), nullable=False),
        sa.PrimaryKeyConstraint('id')
    )
    op.create_index(
        'ix_conversion_events_link_timestamp', 'conversion_events', ['link_id', 'timestamp']
    )

    # Rotation configs, one per product
    op.create_table(
        'rotation_configs',
        sa.Column('product_id', sa.String(length=36), nullable=False),
        sa.Column('strategy', sa.String(length=32), nullable=False),
        sa.Column('weights', postgresql.JSONB(astext_type=sa.Text()), nullable=False),
        sa.Column('test_duration_days', sa.Integer(), nullable=False),
        sa.Column('traffic_split', sa.Float(), nullable=False),
        sa.Column('geo_targeting', postgresql.JSONB(astext_type=sa.Text()), nullable=False),
        sa.Column('device_targeting', postgresql.JSONB(astext_type=sa.Text()), nullable=False),
        sa.Column('version', sa.Integer(), nullable=False),
        sa.Column('created_at', sa.DateTime(), nullable=False),
        sa.Column('expires_at', sa.DateTime(), nullable=True),
        sa.Column('updated_at', sa.DateTime(), nullable=False),
        sa.PrimaryKeyConstraint('product_id')
    )


def downgrade() -> None:
    op.drop_table('rotation_configs')
    op.drop_index('ix_conversion_events_link_timestamp', table_name='conversion_events')
    op.drop_table('conversion_events')
    op.drop_index('ix_click_events_link_timestamp', table_name='click_events')
    op.drop_table('click_events')
    op.drop_table('link_analytics')
    op.drop_index('ix_affiliate_links_product_active', table_name='affiliate_links')
    op.drop_index('ix_affiliate_links_original_url', table_name='affiliate_links')
    op.drop_table('affiliate_links')
    op.drop_table('platforms')
