"""billing_baseline

Revision ID: a1c3e5f70b21
Revises: 
Create Date: 2026-10-17 09:12:04.118327

Production-safe migration: Only creates tables that don't exist yet.
"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa
from sqlalchemy import inspect


# revision identifiers, used by Alembic.
revision: str = 'a1c3e5f70b21'
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def table_exists(table_name: str) -> bool:
    """Check if a table exists in the database."""
    bind = op.get_bind()
    inspector = inspect(bind)
    return table_name in inspector.get_table_names()


def upgrade() -> None:
    """Create the tier catalog, subscription, pending subscription, event ledger and funnel tables."""
    if not table_exists('subscription_tiers'):
        op.create_table('subscription_tiers',
            sa.Column('id', sa.String(length=36), nullable=False),
            sa.Column('name', sa.String(), nullable=False),
            sa.Column('stripe_product_id', sa.String(), nullable=True),
            sa.Column('stripe_price_id_monthly', sa.String(), nullable=True),
            sa.Column('stripe_price_id_yearly', sa.String(), nullable=True),
            sa.Column('stripe_price_id_lifetime', sa.String(), nullable=True),
            sa.Column('price_monthly', sa.Numeric(precision=10, scale=2), nullable=False),
            sa.Column('price_yearly', sa.Numeric(precision=10, scale=2), nullable=False),
            sa.Column('price_lifetime', sa.Numeric(precision=10, scale=2), nullable=False),
            sa.Column('max_funnels', sa.Integer(), nullable=False),
            sa.Column('sort_order', sa.Integer(), nullable=False),
            sa.Column('is_active', sa.Boolean(), nullable=False),
            sa.Column('registration_token', sa.String(), nullable=True),
            sa.Column('created_at', sa.DateTime(), nullable=True),
            sa.Column('updated_at', sa.DateTime(), nullable=True),
            sa.PrimaryKeyConstraint('id'),
            sa.UniqueConstraint('stripe_price_id_monthly'),
            sa.UniqueConstraint('stripe_price_id_yearly'),
            sa.UniqueConstraint('stripe_price_id_lifetime'),
            sa.UniqueConstraint('registration_token')
        )
        op.create_index(op.f('ix_subscription_tiers_name'), 'subscription_tiers', ['name'], unique=True)

    if not table_exists('user_subscriptions'):
        op.create_table('user_subscriptions',
            sa.Column('user_id', sa.String(length=36), nullable=False),
            sa.Column('tier_id', sa.String(length=36), nullable=False),
            sa.Column('stripe_subscription_id', sa.String(), nullable=True),
            sa.Column('stripe_customer_id', sa.String(), nullable=True),
            sa.Column('status', sa.String(), nullable=False),
            sa.Column('current_period_start', sa.DateTime(), nullable=True),
            sa.Column('current_period_end', sa.DateTime(), nullable=True),
            sa.Column('cancel_at_period_end', sa.Boolean(), nullable=False),
            sa.Column('is_lifetime', sa.Boolean(), nullable=False),
            sa.Column('last_event_at', sa.DateTime(), nullable=True),
            sa.Column('created_at', sa.DateTime(), nullable=True),
            sa.Column('updated_at', sa.DateTime(), nullable=True),
            sa.ForeignKeyConstraint(['tier_id'], ['subscription_tiers.id'], ),
            sa.PrimaryKeyConstraint('user_id')
        )
        op.create_index(op.f('ix_user_subscriptions_stripe_customer_id'), 'user_subscriptions', ['stripe_customer_id'], unique=False)
        op.create_index(op.f('ix_user_subscriptions_stripe_subscription_id'), 'user_subscriptions', ['stripe_subscription_id'], unique=False)

    if not table_exists('pending_subscriptions'):
        op.create_table('pending_subscriptions',
            sa.Column('id', sa.String(length=36), nullable=False),
            sa.Column('stripe_session_id', sa.String(), nullable=False),
            sa.Column('tier_id', sa.String(length=36), nullable=False),
            sa.Column('stripe_subscription_id', sa.String(), nullable=True),
            sa.Column('stripe_customer_id', sa.String(), nullable=True),
            sa.Column('customer_email', sa.String(), nullable=True),
            sa.Column('status', sa.String(), nullable=False),
            sa.Column('linked_user_id', sa.String(length=36), nullable=True),
            sa.Column('linked_at', sa.DateTime(), nullable=True),
            sa.Column('expires_at', sa.DateTime(), nullable=False),
            sa.Column('created_at', sa.DateTime(), nullable=True),
            sa.ForeignKeyConstraint(['tier_id'], ['subscription_tiers.id'], ),
            sa.PrimaryKeyConstraint('id')
        )
        op.create_index(op.f('ix_pending_subscriptions_stripe_session_id'), 'pending_subscriptions', ['stripe_session_id'], unique=True)

    if not table_exists('stripe_events'):
        op.create_table('stripe_events',
            sa.Column('id', sa.Integer(), nullable=False),
            sa.Column('event_id', sa.String(), nullable=False),
            sa.Column('event_type', sa.String(), nullable=False),
            sa.Column('event_created', sa.DateTime(), nullable=True),
            sa.Column('outcome', sa.String(), nullable=False),
            sa.Column('processed_at', sa.DateTime(), nullable=True),
            sa.PrimaryKeyConstraint('id')
        )
        op.create_index(op.f('ix_stripe_events_event_id'), 'stripe_events', ['event_id'], unique=True)
        op.create_index(op.f('ix_stripe_events_id'), 'stripe_events', ['id'], unique=False)

    if not table_exists('funnels'):
        op.create_table('funnels',
            sa.Column('id', sa.String(length=36), nullable=False),
            sa.Column('user_id', sa.String(length=36), nullable=False),
            sa.Column('name', sa.String(), nullable=False),
            sa.Column('created_at', sa.DateTime(), nullable=True),
            sa.PrimaryKeyConstraint('id')
        )
        op.create_index(op.f('ix_funnels_user_id'), 'funnels', ['user_id'], unique=False)


def downgrade() -> None:
    """Drop the billing tables."""
    op.drop_index(op.f('ix_funnels_user_id'), table_name='funnels')
    op.drop_table('funnels')
    op.drop_index(op.f('ix_stripe_events_id'), table_name='stripe_events')
    op.drop_index(op.f('ix_stripe_events_event_id'), table_name='stripe_events')
    op.drop_table('stripe_events')
    op.drop_index(op.f('ix_pending_subscriptions_stripe_session_id'), table_name='pending_subscriptions')
    op.drop_table('pending_subscriptions')
    op.drop_index(op.f('ix_user_subscriptions_stripe_subscription_id'), table_name='user_subscriptions')
    op.drop_index(op.f('ix_user_subscriptions_stripe_customer_id'), table_name='user_subscriptions')
    op.drop_table('user_subscriptions')
    op.drop_index(op.f('ix_subscription_tiers_name'), table_name='subscription_tiers')
    op.drop_table('subscription_tiers')
