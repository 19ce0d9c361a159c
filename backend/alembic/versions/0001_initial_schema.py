"""Initial schema: users, categories, subscriptions, transactions, preferences

Revision ID: 0001_initial_schema
Revises:
Create Date: 2026-10-19

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql


# revision identifiers, used by Alembic.
revision: str = '0001_initial_schema'
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


UUID = postgresql.UUID(as_uuid=True)

OWNED_TABLES = ('subscriptions', 'transactions', 'notification_preferences')


def upgrade() -> None:
    """Create the Subie tables with per-user row level security."""

    op.create_table(
        'users',
        sa.Column('id', UUID, primary_key=True),
        sa.Column('email', sa.String(320), nullable=False),
        sa.Column('phone', sa.String(32)),
        sa.Column('first_name', sa.String(100)),
        sa.Column('last_name', sa.String(100)),
        sa.Column('avatar_url', sa.Text),
        sa.Column('email_verified', sa.Boolean, server_default='false', nullable=False),
        sa.Column('phone_verified', sa.Boolean, server_default='false', nullable=False),

        # App plan, written by the configured entitlement provider
        sa.Column('subscription_plan', sa.String(20), server_default='free', nullable=False),
        sa.Column('plan_expires_at', sa.DateTime(timezone=True)),

        sa.Column('sms_credits', sa.Integer, server_default='0', nullable=False),
        sa.Column('whatsapp_credits', sa.Integer, server_default='0', nullable=False),
        sa.Column('timezone', sa.String(64), server_default='UTC', nullable=False),
        sa.Column('currency', sa.String(3), server_default='USD', nullable=False),
        sa.Column('role', sa.String(20), server_default='user', nullable=False),

        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.Column('updated_at', sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.CheckConstraint("subscription_plan IN ('free', 'standard', 'premium')", name='ck_users_plan'),
        sa.CheckConstraint("role IN ('user', 'admin', 'moderator')", name='ck_users_role'),
    )
    op.create_index('ix_users_email', 'users', ['email'], unique=True)
    op.create_index('ix_users_subscription_plan', 'users', ['subscription_plan'])
    op.create_index('ix_users_role', 'users', ['role'])

    op.create_table(
        'subscription_categories',
        sa.Column('id', UUID, primary_key=True),
        sa.Column('name', sa.String(100), nullable=False, unique=True),
        sa.Column('description', sa.Text),
        sa.Column('icon', sa.String(50)),
        sa.Column('color', sa.String(20)),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
    )

    op.create_table(
        'subscriptions',
        sa.Column('id', UUID, primary_key=True),
        sa.Column('user_id', UUID, sa.ForeignKey('users.id', ondelete='CASCADE'), nullable=False),
        sa.Column('category_id', UUID, sa.ForeignKey('subscription_categories.id', ondelete='SET NULL')),
        sa.Column('name', sa.String(200), nullable=False),
        sa.Column('description', sa.Text),
        sa.Column('amount', sa.Numeric(12, 2), nullable=False),
        sa.Column('currency', sa.String(3), server_default='USD', nullable=False),

        # Schedule
        sa.Column('billing_cycle', sa.String(20), nullable=False),
        sa.Column('next_payment_date', sa.Date, nullable=False),
        sa.Column('last_payment_date', sa.Date),

        sa.Column('status', sa.String(20), server_default='active', nullable=False),
        sa.Column('auto_renew', sa.Boolean, server_default='true', nullable=False),
        sa.Column('reminder_days', sa.Integer, server_default='3', nullable=False),
        sa.Column('website_url', sa.Text),
        sa.Column('logo_url', sa.Text),
        sa.Column('notes', sa.Text),

        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.Column('updated_at', sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.CheckConstraint('amount > 0', name='ck_subscriptions_amount_positive'),
        sa.CheckConstraint('reminder_days >= 0', name='ck_subscriptions_reminder_days'),
        sa.CheckConstraint(
            "billing_cycle IN ('weekly', 'monthly', 'quarterly', 'semi_annual', 'annual')",
            name='ck_subscriptions_billing_cycle',
        ),
        sa.CheckConstraint(
            "status IN ('active', 'paused', 'cancelled', 'expired')",
            name='ck_subscriptions_status',
        ),
        sa.CheckConstraint(
            'last_payment_date IS NULL OR next_payment_date > last_payment_date',
            name='ck_subscriptions_schedule',
        ),
    )
    op.create_index('ix_subscriptions_user_id', 'subscriptions', ['user_id'])
    op.create_index('ix_subscriptions_category_id', 'subscriptions', ['category_id'])
    op.create_index('ix_subscriptions_next_payment_date', 'subscriptions', ['next_payment_date'])
    op.create_index('ix_subscriptions_status', 'subscriptions', ['status'])

    op.create_table(
        'transactions',
        sa.Column('id', UUID, primary_key=True),
        sa.Column('user_id', UUID, sa.ForeignKey('users.id', ondelete='CASCADE'), nullable=False),
        sa.Column('subscription_id', UUID, sa.ForeignKey('subscriptions.id', ondelete='SET NULL')),
        sa.Column('amount', sa.Numeric(12, 2), nullable=False),
        sa.Column('currency', sa.String(3), server_default='USD', nullable=False),
        sa.Column('status', sa.String(20), nullable=False),
        sa.Column('transaction_type', sa.String(30), nullable=False),
        sa.Column('external_transaction_id', sa.String),
        sa.Column('provider', sa.String(50)),
        sa.Column('description', sa.Text),
        sa.Column('processed_at', sa.DateTime(timezone=True)),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
    )
    op.create_index('ix_transactions_user_id', 'transactions', ['user_id'])
    op.create_index('ix_transactions_subscription_id', 'transactions', ['subscription_id'])
    op.create_index('ix_transactions_external_transaction_id', 'transactions', ['external_transaction_id'])
    op.create_index('ix_transactions_created_at', 'transactions', ['created_at'])

    op.create_table(
        'notification_preferences',
        sa.Column('user_id', UUID, sa.ForeignKey('users.id', ondelete='CASCADE'), primary_key=True),
        sa.Column('email_enabled', sa.Boolean, server_default='true', nullable=False),
        sa.Column('sms_enabled', sa.Boolean, server_default='false', nullable=False),
        sa.Column('whatsapp_enabled', sa.Boolean, server_default='false', nullable=False),
        sa.Column('push_enabled', sa.Boolean, server_default='true', nullable=False),
        sa.Column('reminder_days_default', sa.Integer, server_default='3', nullable=False),
        sa.Column('updated_at', sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
    )

    # Row level security: owners only, the service role manages everything
    for table in ('users',) + OWNED_TABLES:
        op.execute(f'ALTER TABLE {table} ENABLE ROW LEVEL SECURITY')
        op.execute(f"""
            CREATE POLICY "Service role manages {table}"
            ON {table} FOR ALL
            TO service_role
            USING (true)
            WITH CHECK (true)
        """)

    op.execute("""
        CREATE POLICY "Users manage own row"
        ON users FOR ALL
        TO authenticated
        USING (id = auth.uid())
        WITH CHECK (id = auth.uid())
    """)
    for table in OWNED_TABLES:
        op.execute(f"""
            CREATE POLICY "Users manage own {table}"
            ON {table} FOR ALL
            TO authenticated
            USING (user_id = auth.uid())
            WITH CHECK (user_id = auth.uid())
        """)

    op.execute('ALTER TABLE subscription_categories ENABLE ROW LEVEL SECURITY')
    op.execute("""
        CREATE POLICY "Anyone can read categories"
        ON subscription_categories FOR SELECT
        TO authenticated, anon
        USING (true)
    """)


def downgrade() -> None:
    """Drop all Subie tables."""

    op.drop_table('notification_preferences')
    op.drop_table('transactions')
    op.drop_table('subscriptions')
    op.drop_table('subscription_categories')
    op.drop_table('users')
