"""Initial migration - create ledger, subscription, giving link and notification tables

Revision ID: 001_initial
Revises: 
Create Date: 2026-10-18

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision: str = '001_initial'
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None

MONEY = sa.Numeric(12, 2)
RATE = sa.Numeric(6, 4)


def upgrade() -> None:
    # Lookup tables owned by the admin flows
    op.create_table(
        'churches',
        sa.Column('id', sa.String(36), primary_key=True),
        sa.Column('name', sa.String(255), nullable=False),
    )
    op.create_table(
        'funds',
        sa.Column('id', sa.String(36), primary_key=True),
        sa.Column('church_id', sa.String(36), sa.ForeignKey('churches.id'), nullable=False),
        sa.Column('code', sa.String(50), nullable=True),
        sa.Column('name', sa.String(255), nullable=False),
    )
    op.create_index('ix_funds_church_id', 'funds', ['church_id'])

    # Create recurring_givings table
    op.create_table(
        'recurring_givings',
        sa.Column('id', sa.String(36), primary_key=True),
        sa.Column('member_id', sa.String(36), nullable=False),
        sa.Column('church_id', sa.String(36), sa.ForeignKey('churches.id'), nullable=False),
        sa.Column('fund_id', sa.String(36), sa.ForeignKey('funds.id'), nullable=False),
        sa.Column('status', sa.String(20), nullable=False, server_default='PENDING_SETUP'),
        sa.Column('frequency', sa.Integer(), nullable=False, server_default='3'),
        sa.Column('cycles', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('cycles_completed', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('donation_amount', MONEY, nullable=False),
        sa.Column('platform_fee_amount', MONEY, nullable=False, server_default='0'),
        sa.Column('gross_amount', MONEY, nullable=False),
        sa.Column('currency', sa.String(3), nullable=False, server_default='ZAR'),
        sa.Column('payfast_token', sa.String(255), nullable=True, unique=True),
        sa.Column('setup_payment_intent_id', sa.String(36), nullable=True),
        sa.Column('last_charged_at', sa.DateTime(), nullable=True),
        sa.Column('cancelled_at', sa.DateTime(), nullable=True),
        sa.Column('created_at', sa.DateTime(), nullable=False),
        sa.Column('updated_at', sa.DateTime(), nullable=False),
    )
    op.create_index('ix_recurring_givings_church_status', 'recurring_givings', ['church_id', 'status'])
    op.create_index('ix_recurring_givings_member_created', 'recurring_givings', ['member_id', 'created_at'])

    # Create giving_links table
    op.create_table(
        'giving_links',
        sa.Column('id', sa.String(36), primary_key=True),
        sa.Column('token', sa.String(64), nullable=False, unique=True),
        sa.Column('requester_member_id', sa.String(36), nullable=False),
        sa.Column('church_id', sa.String(36), sa.ForeignKey('churches.id'), nullable=False),
        sa.Column('fund_id', sa.String(36), sa.ForeignKey('funds.id'), nullable=False),
        sa.Column('amount_type', sa.String(10), nullable=False, server_default='FIXED'),
        sa.Column('amount_fixed', MONEY, nullable=True),
        sa.Column('currency', sa.String(3), nullable=False, server_default='ZAR'),
        sa.Column('message', sa.String(500), nullable=True),
        sa.Column('status', sa.String(10), nullable=False, server_default='ACTIVE'),
        sa.Column('max_uses', sa.Integer(), nullable=False, server_default='1'),
        sa.Column('use_count', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('expires_at', sa.DateTime(), nullable=True),
        sa.Column('paid_at', sa.DateTime(), nullable=True),
        sa.Column('paid_payment_intent_id', sa.String(36), nullable=True),
        sa.Column('created_at', sa.DateTime(), nullable=False),
    )

    # Create payment_intents table
    op.create_table(
        'payment_intents',
        sa.Column('id', sa.String(36), primary_key=True),
        sa.Column('m_payment_id', sa.String(64), nullable=False, unique=True),
        sa.Column('church_id', sa.String(36), sa.ForeignKey('churches.id'), nullable=False),
        sa.Column('fund_id', sa.String(36), sa.ForeignKey('funds.id'), nullable=False),
        sa.Column('amount', MONEY, nullable=False),
        sa.Column('currency', sa.String(3), nullable=False, server_default='ZAR'),
        sa.Column('status', sa.String(20), nullable=False, server_default='PENDING'),
        sa.Column('platform_fee_amount', MONEY, nullable=True),
        sa.Column('platform_fee_pct', RATE, nullable=True),
        sa.Column('platform_fee_fixed', MONEY, nullable=True),
        sa.Column('amount_gross', MONEY, nullable=True),
        sa.Column('superadmin_cut_amount', MONEY, nullable=True),
        sa.Column('superadmin_cut_pct', RATE, nullable=True),
        sa.Column('recurring_giving_id', sa.String(36), sa.ForeignKey('recurring_givings.id'), nullable=True),
        sa.Column('recurring_cycle_no', sa.Integer(), nullable=True),
        sa.Column('giving_link_id', sa.String(36), sa.ForeignKey('giving_links.id'), nullable=True),
        sa.Column('on_behalf_of_member_id', sa.String(36), nullable=True),
        sa.Column('source', sa.String(20), nullable=True),
        sa.Column('channel', sa.String(20), nullable=False, server_default='app'),
        sa.Column('provider', sa.String(50), nullable=True),
        sa.Column('provider_payment_id', sa.String(255), nullable=True),
        sa.Column('item_name', sa.String(100), nullable=True),
        sa.Column('payer_name', sa.String(255), nullable=True),
        sa.Column('payer_phone', sa.String(50), nullable=True),
        sa.Column('payer_email', sa.String(255), nullable=True),
        sa.Column('payer_type', sa.String(20), nullable=False, server_default='member'),
        sa.Column('created_at', sa.DateTime(), nullable=False),
        sa.Column('updated_at', sa.DateTime(), nullable=False),
        sa.UniqueConstraint('recurring_giving_id', 'recurring_cycle_no', name='uq_payment_intents_recurring_cycle'),
    )
    op.create_index('ix_payment_intents_status', 'payment_intents', ['status'])
    op.create_index('ix_payment_intents_church_created', 'payment_intents', ['church_id', 'created_at'])

    # Create transactions table
    op.create_table(
        'transactions',
        sa.Column('id', sa.String(36), primary_key=True),
        sa.Column('payment_intent_id', sa.String(36), sa.ForeignKey('payment_intents.id'), nullable=False, unique=True),
        sa.Column('church_id', sa.String(36), sa.ForeignKey('churches.id'), nullable=False),
        sa.Column('fund_id', sa.String(36), sa.ForeignKey('funds.id'), nullable=False),
        sa.Column('amount', MONEY, nullable=False),
        sa.Column('platform_fee_amount', MONEY, nullable=False),
        sa.Column('platform_fee_pct', RATE, nullable=True),
        sa.Column('platform_fee_fixed', MONEY, nullable=True),
        sa.Column('gateway_fee_amount', MONEY, nullable=True),
        sa.Column('church_net_amount', MONEY, nullable=False),
        sa.Column('amount_gross', MONEY, nullable=False),
        sa.Column('superadmin_cut_amount', MONEY, nullable=False),
        sa.Column('superadmin_cut_pct', RATE, nullable=True),
        sa.Column('giving_link_id', sa.String(36), nullable=True),
        sa.Column('on_behalf_of_member_id', sa.String(36), nullable=True),
        sa.Column('recurring_giving_id', sa.String(36), nullable=True),
        sa.Column('recurring_cycle_no', sa.Integer(), nullable=True),
        sa.Column('payer_name', sa.String(255), nullable=True),
        sa.Column('payer_phone', sa.String(50), nullable=True),
        sa.Column('payer_email', sa.String(255), nullable=True),
        sa.Column('payer_type', sa.String(20), nullable=False, server_default='member'),
        sa.Column('reference', sa.String(64), nullable=False),
        sa.Column('channel', sa.String(20), nullable=False, server_default='app'),
        sa.Column('provider', sa.String(50), nullable=False, server_default='payfast'),
        sa.Column('provider_payment_id', sa.String(255), nullable=True),
        sa.Column('created_at', sa.DateTime(), nullable=False),
    )
    op.create_index('ix_transactions_provider_payment_id', 'transactions', ['provider_payment_id'])
    op.create_index('ix_transactions_church_created', 'transactions', ['church_id', 'created_at'])
    op.create_index('ix_transactions_recurring_giving', 'transactions', ['recurring_giving_id', 'created_at'])

    # Create notifications table
    op.create_table(
        'notifications',
        sa.Column('id', sa.String(36), primary_key=True),
        sa.Column('member_id', sa.String(36), nullable=False),
        sa.Column('type', sa.String(50), nullable=False),
        sa.Column('title', sa.String(255), nullable=False),
        sa.Column('body', sa.Text(), nullable=False),
        sa.Column('data_json', sa.Text(), nullable=True),
        sa.Column('created_at', sa.DateTime(), nullable=False),
    )
    op.create_index('ix_notifications_member_id', 'notifications', ['member_id'])


def downgrade() -> None:
    # Drop indexes
    op.drop_index('ix_notifications_member_id', table_name='notifications')

    op.drop_index('ix_transactions_recurring_giving', table_name='transactions')
    op.drop_index('ix_transactions_church_created', table_name='transactions')
    op.drop_index('ix_transactions_provider_payment_id', table_name='transactions')

    op.drop_index('ix_payment_intents_church_created', table_name='payment_intents')
    op.drop_index('ix_payment_intents_status', table_name='payment_intents')

    op.drop_index('ix_recurring_givings_member_created', table_name='recurring_givings')
    op.drop_index('ix_recurring_givings_church_status', table_name='recurring_givings')

    op.drop_index('ix_funds_church_id', table_name='funds')

    # Drop tables
    op.drop_table('notifications')
    op.drop_table('transactions')
    op.drop_table('payment_intents')
    op.drop_table('giving_links')
    op.drop_table('recurring_givings')
    op.drop_table('funds')
    op.drop_table('churches')
