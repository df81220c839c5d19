"""create_members_and_stripe_mirror

Revision ID: 3b7c1e9a4d20
Revises:
Create Date: 2026-10-16 09:12:44.118305

Production-safe migration: Only creates tables that do not exist yet.
"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa
from sqlalchemy import inspect


# revision identifiers, used by Alembic.
revision: str = '3b7c1e9a4d20'
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def table_exists(table_name: str) -> bool:
    """Check if a table exists in the database."""
    bind = op.get_bind()
    inspector = inspect(bind)
    return table_name in inspector.get_table_names()


def upgrade() -> None:
    """Create members, labels and the Stripe customer/subscription mirror."""
    if not table_exists('members'):
        op.create_table('members',
            sa.Column('id', sa.Integer(), nullable=False),
            sa.Column('email', sa.String(length=191), nullable=False),
            sa.Column('name', sa.String(length=191), nullable=True),
            sa.Column('note', sa.Text(), nullable=True),
            sa.Column('subscribed', sa.Boolean(), nullable=False, server_default=sa.true()),
            sa.Column('geolocation', sa.String(length=2000), nullable=True),
            sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.text('(CURRENT_TIMESTAMP)'), nullable=False),
            sa.Column('updated_at', sa.DateTime(timezone=True), server_default=sa.text('(CURRENT_TIMESTAMP)'), nullable=True),
            sa.PrimaryKeyConstraint('id')
        )
        op.create_index(op.f('ix_members_id'), 'members', ['id'], unique=False)
        op.create_index(op.f('ix_members_email'), 'members', ['email'], unique=True)

    if not table_exists('labels'):
        op.create_table('labels',
            sa.Column('id', sa.Integer(), nullable=False),
            sa.Column('name', sa.String(length=191), nullable=False),
            sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.text('(CURRENT_TIMESTAMP)'), nullable=False),
            sa.PrimaryKeyConstraint('id'),
            sa.UniqueConstraint('name')
        )
        op.create_index(op.f('ix_labels_id'), 'labels', ['id'], unique=False)

    if not table_exists('members_labels'):
        op.create_table('members_labels',
            sa.Column('member_id', sa.Integer(), nullable=False),
            sa.Column('label_id', sa.Integer(), nullable=False),
            sa.ForeignKeyConstraint(['member_id'], ['members.id'], ondelete='CASCADE'),
            sa.ForeignKeyConstraint(['label_id'], ['labels.id'], ondelete='CASCADE'),
            sa.PrimaryKeyConstraint('member_id', 'label_id')
        )

    if not table_exists('members_stripe_customers'):
        op.create_table('members_stripe_customers',
            sa.Column('id', sa.Integer(), nullable=False),
            sa.Column('member_id', sa.Integer(), nullable=False),
            sa.Column('customer_id', sa.String(length=255), nullable=False),
            sa.Column('name', sa.String(length=191), nullable=True),
            sa.Column('email', sa.String(length=191), nullable=True),
            sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.text('(CURRENT_TIMESTAMP)'), nullable=False),
            sa.Column('updated_at', sa.DateTime(timezone=True), server_default=sa.text('(CURRENT_TIMESTAMP)'), nullable=True),
            sa.ForeignKeyConstraint(['member_id'], ['members.id'], ondelete='CASCADE'),
            sa.PrimaryKeyConstraint('id')
        )
        op.create_index(op.f('ix_members_stripe_customers_id'), 'members_stripe_customers', ['id'], unique=False)
        op.create_index(op.f('ix_members_stripe_customers_member_id'), 'members_stripe_customers', ['member_id'], unique=False)
        op.create_index(op.f('ix_members_stripe_customers_customer_id'), 'members_stripe_customers', ['customer_id'], unique=True)

    if not table_exists('members_stripe_customers_subscriptions'):
        op.create_table('members_stripe_customers_subscriptions',
            sa.Column('id', sa.Integer(), nullable=False),
            sa.Column('customer_id', sa.String(length=255), nullable=False),
            sa.Column('subscription_id', sa.String(length=255), nullable=False),
            sa.Column('status', sa.String(length=50), nullable=False),
            sa.Column('cancel_at_period_end', sa.Boolean(), nullable=False, server_default=sa.false()),
            sa.Column('cancellation_reason', sa.String(length=500), nullable=True),
            sa.Column('current_period_end', sa.DateTime(timezone=True), nullable=False),
            sa.Column('start_date', sa.DateTime(timezone=True), nullable=False),
            sa.Column('default_payment_card_last4', sa.String(length=4), nullable=True),
            sa.Column('plan_id', sa.String(length=255), nullable=False),
            sa.Column('plan_nickname', sa.String(length=50), nullable=False),
            sa.Column('plan_interval', sa.String(length=50), nullable=False),
            sa.Column('plan_amount', sa.Integer(), nullable=False),
            sa.Column('plan_currency', sa.String(length=3), nullable=False),
            sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.text('(CURRENT_TIMESTAMP)'), nullable=False),
            sa.Column('updated_at', sa.DateTime(timezone=True), server_default=sa.text('(CURRENT_TIMESTAMP)'), nullable=True),
            sa.ForeignKeyConstraint(['customer_id'], ['members_stripe_customers.customer_id'], ondelete='CASCADE'),
            sa.PrimaryKeyConstraint('id')
        )
        op.create_index(op.f('ix_members_stripe_customers_subscriptions_id'), 'members_stripe_customers_subscriptions', ['id'], unique=False)
        op.create_index(op.f('ix_members_stripe_customers_subscriptions_customer_id'), 'members_stripe_customers_subscriptions', ['customer_id'], unique=False)
        op.create_index(op.f('ix_members_stripe_customers_subscriptions_subscription_id'), 'members_stripe_customers_subscriptions', ['subscription_id'], unique=True)


def downgrade() -> None:
    """Drop all member tables in reverse dependency order."""
    op.drop_table('members_stripe_customers_subscriptions')
    op.drop_table('members_stripe_customers')
    op.drop_table('members_labels')
    op.drop_table('labels')
    op.drop_table('members')
