"""initial salon schema

Revision ID: s0001
Revises:
Create Date: 2026-10-17 00:00:00.000000

Creates the salon POS schema from scratch:
- transactions: Invoices with JSON line items and the promotion snapshot
- promotions: Branch-scoped discount offers
- promotion_client_uses: usedBy set of one-time promotions
- promotion_redemptions: One row per sale that consumed a promotion
- deposits: End-of-day cash deposits and their classification
"""
from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision = 's0001'
down_revision = None
branch_labels = None
depends_on = None


def upgrade():
    # ============================================================================
    # transactions: Salon invoices (in_service -> paid -> voided)
    # ============================================================================
    op.create_table(
        'transactions',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('branch_id', sa.String(length=64), nullable=False),
        sa.Column('client_id', sa.String(length=64), nullable=True),
        sa.Column('client_name', sa.String(length=255), nullable=True),
        sa.Column('client_phone', sa.String(length=64), nullable=True),
        sa.Column('client_email', sa.String(length=255), nullable=True),
        sa.Column('transaction_type', sa.String(length=16), nullable=False),
        sa.Column('status', sa.String(length=16), nullable=False),
        sa.Column('services', sa.JSON(), nullable=False),
        sa.Column('products', sa.JSON(), nullable=False),
        sa.Column('subtotal', sa.Numeric(12, 2), nullable=False),
        sa.Column('discount', sa.Numeric(5, 2), nullable=False),
        sa.Column('applied_promotion', sa.JSON(), nullable=True),
        sa.Column('tax', sa.Numeric(12, 2), nullable=False),
        sa.Column('total', sa.Numeric(12, 2), nullable=False),
        sa.Column('payment_method', sa.String(length=16), nullable=True),
        sa.Column('amount_received', sa.Numeric(12, 2), nullable=True),
        sa.Column('change', sa.Numeric(12, 2), nullable=True),
        sa.Column('processed_at', sa.DateTime(), nullable=True),
        sa.Column('loyalty_points_earned', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('void_reason', sa.String(length=255), nullable=True),
        sa.Column('void_notes', sa.Text(), nullable=True),
        sa.Column('voided_by', sa.String(length=64), nullable=True),
        sa.Column('voided_at', sa.DateTime(), nullable=True),
        sa.Column('created_by', sa.String(length=64), nullable=True),
        sa.Column('notes', sa.Text(), nullable=True),
        sa.Column('created_at', sa.DateTime(), nullable=False),
        sa.Column('updated_at', sa.DateTime(), nullable=False),
        sa.Column('version_id', sa.Integer(), nullable=False),
        sa.PrimaryKeyConstraint('id'),
        sqlite_autoincrement=True
    )
    op.create_index('ix_transactions_branch_id', 'transactions', ['branch_id'])
    op.create_index('ix_transactions_client_id', 'transactions', ['client_id'])
    op.create_index('ix_transactions_status', 'transactions', ['status'])
    op.create_index('ix_transactions_created_at', 'transactions', ['created_at'])
    op.create_index('ix_transactions_branch_created', 'transactions', ['branch_id', 'created_at'])
    op.create_index('ix_transactions_branch_status', 'transactions', ['branch_id', 'status'])

    # ============================================================================
    # promotions: Discount offers (code unique per branch, stored uppercase)
    # ============================================================================
    op.create_table(
        'promotions',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('branch_id', sa.String(length=64), nullable=False),
        sa.Column('promotion_code', sa.String(length=64), nullable=False),
        sa.Column('title', sa.String(length=255), nullable=False),
        sa.Column('description', sa.Text(), nullable=True),
        sa.Column('discount_type', sa.String(length=16), nullable=False),
        sa.Column('discount_value', sa.Numeric(12, 2), nullable=False),
        sa.Column('applicable_to', sa.String(length=16), nullable=False),
        sa.Column('specific_services', sa.JSON(), nullable=False),
        sa.Column('specific_products', sa.JSON(), nullable=False),
        sa.Column('usage_type', sa.String(length=16), nullable=False),
        sa.Column('max_uses', sa.Integer(), nullable=True),
        sa.Column('usage_count', sa.Integer(), nullable=False),
        sa.Column('start_date', sa.DateTime(), nullable=False),
        sa.Column('end_date', sa.DateTime(), nullable=False),
        sa.Column('is_active', sa.Boolean(), nullable=False),
        sa.Column('created_by', sa.String(length=64), nullable=True),
        sa.Column('created_at', sa.DateTime(), nullable=False),
        sa.Column('updated_at', sa.DateTime(), nullable=False),
        sa.Column('version_id', sa.Integer(), nullable=False),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('branch_id', 'promotion_code', name='uq_promotions_branch_code'),
        sqlite_autoincrement=True
    )
    op.create_index('ix_promotions_branch_id', 'promotions', ['branch_id'])
    op.create_index('ix_promotions_is_active', 'promotions', ['is_active'])

    # ============================================================================
    # promotion_client_uses: One-time promotion usedBy set
    # ============================================================================
    op.create_table(
        'promotion_client_uses',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('promotion_id', sa.Integer(), nullable=False),
        sa.Column('client_id', sa.String(length=64), nullable=False),
        sa.Column('created_at', sa.DateTime(), nullable=False),
        sa.ForeignKeyConstraint(['promotion_id'], ['promotions.id']),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('promotion_id', 'client_id', name='uq_promotion_client_uses'),
        sqlite_autoincrement=True
    )
    op.create_index('ix_promotion_client_uses_promotion_id', 'promotion_client_uses', ['promotion_id'])

    # ============================================================================
    # promotion_redemptions: Per-sale consumption (idempotency key)
    # ============================================================================
    op.create_table(
        'promotion_redemptions',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('promotion_id', sa.Integer(), nullable=False),
        sa.Column('transaction_id', sa.Integer(), nullable=False),
        sa.Column('client_id', sa.String(length=64), nullable=True),
        sa.Column('discount_amount', sa.Numeric(12, 2), nullable=False),
        sa.Column('redeemed_at', sa.DateTime(), nullable=False),
        sa.ForeignKeyConstraint(['promotion_id'], ['promotions.id']),
        sa.ForeignKeyConstraint(['transaction_id'], ['transactions.id']),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('promotion_id', 'transaction_id', name='uq_promotion_redemptions_sale'),
        sqlite_autoincrement=True
    )
    op.create_index('ix_promotion_redemptions_promotion_id', 'promotion_redemptions', ['promotion_id'])
    op.create_index('ix_promotion_redemptions_transaction_id', 'promotion_redemptions', ['transaction_id'])

    # ============================================================================
    # deposits: End-of-day deposit submissions
    # ============================================================================
    op.create_table(
        'deposits',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('branch_id', sa.String(length=64), nullable=False),
        sa.Column('deposit_date', sa.Date(), nullable=False),
        sa.Column('amount', sa.Numeric(12, 2), nullable=False),
        sa.Column('daily_sales_total', sa.Numeric(12, 2), nullable=False),
        sa.Column('difference', sa.Numeric(12, 2), nullable=False),
        sa.Column('validation_status', sa.String(length=16), nullable=False),
        sa.Column('has_anomaly', sa.Boolean(), nullable=False),
        sa.Column('anomaly_description', sa.Text(), nullable=True),
        sa.Column('status', sa.String(length=16), nullable=False),
        sa.Column('bank_name', sa.String(length=255), nullable=True),
        sa.Column('account_number', sa.String(length=64), nullable=True),
        sa.Column('reference_number', sa.String(length=128), nullable=True),
        sa.Column('notes', sa.Text(), nullable=True),
        sa.Column('submitted_by', sa.String(length=64), nullable=False),
        sa.Column('submitted_at', sa.DateTime(), nullable=False),
        sa.Column('reviewed_by', sa.String(length=64), nullable=True),
        sa.Column('reviewed_at', sa.DateTime(), nullable=True),
        sa.Column('review_notes', sa.Text(), nullable=True),
        sa.Column('created_at', sa.DateTime(), nullable=False),
        sa.Column('updated_at', sa.DateTime(), nullable=False),
        sa.Column('version_id', sa.Integer(), nullable=False),
        sa.PrimaryKeyConstraint('id'),
        sqlite_autoincrement=True
    )
    op.create_index('ix_deposits_branch_id', 'deposits', ['branch_id'])
    op.create_index('ix_deposits_status', 'deposits', ['status'])
    op.create_index('ix_deposits_branch_date', 'deposits', ['branch_id', 'deposit_date'])


def downgrade():
    """Drop all tables (destructive operation)."""
    op.drop_table('deposits')
    op.drop_table('promotion_redemptions')
    op.drop_table('promotion_client_uses')
    op.drop_table('promotions')
    op.drop_table('transactions')
