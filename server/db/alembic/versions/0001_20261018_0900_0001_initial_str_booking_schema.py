"""Initial direct booking schema

Revision ID: 0001
Revises:
Create Date: 2026-10-18 09:00:00.000000

"""
from collections.abc import Sequence

import sqlalchemy as sa
from alembic import op

# revision identifiers, used by Alembic.
revision: str = '0001'
down_revision: str | None = None
branch_labels: str | Sequence[str] | None = None
depends_on: str | Sequence[str] | None = None


def _timestamps(updated: bool = True) -> list[sa.Column]:
    columns = [sa.Column('created_at', sa.DateTime(), server_default=sa.text('now()'), nullable=False)]
    if updated:
        columns.append(sa.Column('updated_at', sa.DateTime(), server_default=sa.text('now()'), nullable=False))
    return columns


def upgrade() -> None:
    """Upgrade database schema."""
    # Create properties table
    op.create_table('properties',
        sa.Column('id', sa.Integer(), autoincrement=True, nullable=False),
        sa.Column('name', sa.String(length=200), nullable=False),
        sa.Column('max_guests', sa.Integer(), nullable=False),
        sa.Column('nightly_rate', sa.Numeric(10, 2), nullable=False),
        sa.Column('cleaning_fee', sa.Numeric(10, 2), nullable=False),
        sa.Column('security_deposit', sa.Numeric(10, 2), nullable=False),
        sa.Column('tax_rate', sa.Numeric(6, 4), nullable=True),
        sa.Column('full_enabled', sa.Boolean(), nullable=False),
        sa.Column('two_enabled', sa.Boolean(), nullable=False),
        sa.Column('two_deposit_pct', sa.Numeric(5, 2), nullable=False),
        sa.Column('two_days_before', sa.Integer(), nullable=False),
        sa.Column('four_enabled', sa.Boolean(), nullable=False),
        sa.Column('four_deposit_min_pct', sa.Numeric(5, 2), nullable=False),
        sa.Column('check_in_time', sa.String(length=5), nullable=False),
        sa.Column('check_out_time', sa.String(length=5), nullable=False),
        sa.Column('address', sa.String(length=500), nullable=True),
        sa.Column('door_code', sa.String(length=64), nullable=True),
        sa.Column('wifi_password', sa.String(length=128), nullable=True),
        sa.Column('host_phone', sa.String(length=32), nullable=True),
        *_timestamps(),
        sa.CheckConstraint('length(name) > 0', name='ck_property_name_not_empty'),
        sa.CheckConstraint('nightly_rate >= 0', name='ck_property_nightly_rate_non_negative'),
        sa.CheckConstraint('cleaning_fee >= 0', name='ck_property_cleaning_fee_non_negative'),
        sa.CheckConstraint('security_deposit >= 0', name='ck_property_security_deposit_non_negative'),
        sa.CheckConstraint('two_days_before > 0', name='ck_property_two_days_before_positive'),
        sa.PrimaryKeyConstraint('id')
    )

    # Create los_discount_tiers table
    op.create_table('los_discount_tiers',
        sa.Column('id', sa.Integer(), autoincrement=True, nullable=False),
        sa.Column('property_id', sa.Integer(), nullable=False),
        sa.Column('min_nights', sa.Integer(), nullable=False),
        sa.Column('discount', sa.Numeric(5, 4), nullable=False),
        sa.CheckConstraint('min_nights >= 1', name='ck_los_tier_min_nights_positive'),
        sa.CheckConstraint('discount >= 0 AND discount <= 1', name='ck_los_tier_discount_fraction'),
        sa.ForeignKeyConstraint(['property_id'], ['properties.id'], ondelete='CASCADE'),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('property_id', 'min_nights', name='uq_los_tier_property_min_nights')
    )
    op.create_index(op.f('ix_los_discount_tiers_property_id'), 'los_discount_tiers', ['property_id'], unique=False)

    # Create bookings table
    op.create_table('bookings',
        sa.Column('id', sa.Integer(), autoincrement=True, nullable=False),
        sa.Column('code', sa.String(length=32), nullable=False),
        sa.Column('property_id', sa.Integer(), nullable=False),
        sa.Column('check_in', sa.Date(), nullable=False),
        sa.Column('check_out', sa.Date(), nullable=False),
        sa.Column('guests', sa.Integer(), nullable=False),
        sa.Column('status', sa.String(length=20), nullable=False),
        sa.Column('guest_name', sa.String(length=200), nullable=False),
        sa.Column('guest_email', sa.String(length=200), nullable=False),
        sa.Column('guest_phone', sa.String(length=32), nullable=True),
        sa.Column('payment_plan', sa.String(length=20), nullable=False),
        sa.Column('nightly_subtotal', sa.Numeric(10, 2), nullable=False),
        sa.Column('los_discount', sa.Numeric(10, 2), nullable=False),
        sa.Column('cleaning_fee', sa.Numeric(10, 2), nullable=False),
        sa.Column('security_deposit', sa.Numeric(10, 2), nullable=False),
        sa.Column('taxes', sa.Numeric(10, 2), nullable=False),
        sa.Column('total', sa.Numeric(10, 2), nullable=False),
        sa.Column('payment_customer_ref', sa.String(length=128), nullable=True),
        sa.Column('payment_method_ref', sa.String(length=128), nullable=True),
        sa.Column('transfers_processed', sa.Boolean(), nullable=False),
        sa.Column('cancellation_reason', sa.Text(), nullable=True),
        sa.Column('cancelled_at', sa.DateTime(), nullable=True),
        *_timestamps(),
        sa.CheckConstraint('check_out > check_in', name='ck_booking_dates_ordered'),
        sa.CheckConstraint('guests > 0', name='ck_booking_guests_positive'),
        sa.CheckConstraint('total >= 0', name='ck_booking_total_non_negative'),
        sa.CheckConstraint('length(guest_name) > 0', name='ck_booking_guest_name_not_empty'),
        sa.CheckConstraint('length(code) > 0', name='ck_booking_code_not_empty'),
        sa.ForeignKeyConstraint(['property_id'], ['properties.id'], ondelete='CASCADE'),
        sa.PrimaryKeyConstraint('id')
    )
    op.create_index(op.f('ix_bookings_code'), 'bookings', ['code'], unique=True)
    op.create_index(op.f('ix_bookings_status'), 'bookings', ['status'], unique=False)
    op.create_index('ix_bookings_property_dates', 'bookings', ['property_id', 'check_in', 'check_out'], unique=False)

    # Create payment_installments table
    op.create_table('payment_installments',
        sa.Column('id', sa.Integer(), autoincrement=True, nullable=False),
        sa.Column('booking_id', sa.Integer(), nullable=False),
        sa.Column('number', sa.Integer(), nullable=False),
        sa.Column('amount', sa.Numeric(10, 2), nullable=False),
        sa.Column('due_date', sa.Date(), nullable=False),
        sa.Column('status', sa.String(length=20), nullable=False),
        sa.Column('transaction_id', sa.String(length=128), nullable=True),
        sa.Column('failure_message', sa.Text(), nullable=True),
        sa.Column('attempts', sa.Integer(), server_default='0', nullable=False),
        sa.Column('paid_at', sa.DateTime(), nullable=True),
        *_timestamps(),
        sa.CheckConstraint('number >= 1', name='ck_installment_number_positive'),
        sa.CheckConstraint('amount >= 0', name='ck_installment_amount_non_negative'),
        sa.CheckConstraint("status IN ('pending', 'paid', 'failed')", name='ck_installment_status_valid'),
        sa.ForeignKeyConstraint(['booking_id'], ['bookings.id'], ondelete='CASCADE'),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('booking_id', 'number', name='uq_installment_booking_number')
    )
    op.create_index(op.f('ix_payment_installments_booking_id'), 'payment_installments', ['booking_id'], unique=False)
    op.create_index(op.f('ix_payment_installments_due_date'), 'payment_installments', ['due_date'], unique=False)

    # Create availability table
    op.create_table('availability',
        sa.Column('id', sa.Integer(), autoincrement=True, nullable=False),
        sa.Column('property_id', sa.Integer(), nullable=False),
        sa.Column('date', sa.Date(), nullable=False),
        sa.Column('status', sa.String(length=20), nullable=False),
        sa.Column('price_override', sa.Numeric(10, 2), nullable=True),
        sa.Column('booking_id', sa.Integer(), nullable=True),
        sa.Column('block_reason', sa.String(length=100), nullable=True),
        *_timestamps(),
        sa.CheckConstraint("status IN ('available', 'booked', 'blocked')", name='ck_availability_status_valid'),
        sa.CheckConstraint(
            'price_override IS NULL OR price_override >= 0',
            name='ck_availability_price_override_non_negative'
        ),
        sa.ForeignKeyConstraint(['property_id'], ['properties.id'], ondelete='CASCADE'),
        sa.ForeignKeyConstraint(['booking_id'], ['bookings.id'], ondelete='SET NULL'),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('property_id', 'date', name='uq_availability_property_date')
    )
    op.create_index(op.f('ix_availability_booking_id'), 'availability', ['booking_id'], unique=False)
    op.create_index('ix_availability_property_status', 'availability', ['property_id', 'status'], unique=False)

    # Create cohosts table
    op.create_table('cohosts',
        sa.Column('id', sa.Integer(), autoincrement=True, nullable=False),
        sa.Column('property_id', sa.Integer(), nullable=False),
        sa.Column('account_ref', sa.String(length=100), nullable=True),
        sa.Column('display_name', sa.String(length=200), nullable=True),
        sa.Column('email', sa.String(length=200), nullable=True),
        sa.Column('split_type', sa.String(length=20), nullable=False),
        sa.Column('split_value', sa.Numeric(10, 4), nullable=False),
        sa.Column('is_active', sa.Boolean(), nullable=False),
        *_timestamps(),
        sa.CheckConstraint("split_type IN ('percentage', 'fixed')", name='ck_cohost_split_type_valid'),
        sa.CheckConstraint('split_value >= 0', name='ck_cohost_split_value_non_negative'),
        sa.ForeignKeyConstraint(['property_id'], ['properties.id'], ondelete='CASCADE'),
        sa.PrimaryKeyConstraint('id')
    )
    op.create_index(op.f('ix_cohosts_property_id'), 'cohosts', ['property_id'], unique=False)

    # Create cohost_transfers table
    op.create_table('cohost_transfers',
        sa.Column('id', sa.Integer(), autoincrement=True, nullable=False),
        sa.Column('booking_id', sa.Integer(), nullable=False),
        sa.Column('cohost_id', sa.Integer(), nullable=False),
        sa.Column('amount', sa.Numeric(10, 2), nullable=False),
        sa.Column('status', sa.String(length=20), nullable=False),
        sa.Column('transfer_id', sa.String(length=128), nullable=True),
        sa.Column('error_message', sa.Text(), nullable=True),
        *_timestamps(),
        sa.CheckConstraint('amount >= 0', name='ck_cohost_transfer_amount_non_negative'),
        sa.CheckConstraint(
            "status IN ('pending', 'succeeded', 'failed')",
            name='ck_cohost_transfer_status_valid'
        ),
        sa.ForeignKeyConstraint(['booking_id'], ['bookings.id'], ondelete='CASCADE'),
        sa.ForeignKeyConstraint(['cohost_id'], ['cohosts.id'], ondelete='CASCADE'),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('booking_id', 'cohost_id', name='uq_cohost_transfer_booking_cohost')
    )
    op.create_index(op.f('ix_cohost_transfers_booking_id'), 'cohost_transfers', ['booking_id'], unique=False)

    # Create calendar_imports table
    op.create_table('calendar_imports',
        sa.Column('id', sa.Integer(), autoincrement=True, nullable=False),
        sa.Column('property_id', sa.Integer(), nullable=False),
        sa.Column('feed_url', sa.Text(), nullable=False),
        sa.Column('platform', sa.String(length=50), nullable=True),
        sa.Column('sync_status', sa.String(length=20), nullable=False),
        sa.Column('sync_message', sa.Text(), nullable=True),
        sa.Column('last_synced', sa.DateTime(), nullable=True),
        sa.Column('is_disabled', sa.Boolean(), nullable=False),
        *_timestamps(),
        sa.CheckConstraint('length(feed_url) > 0', name='ck_calendar_import_url_not_empty'),
        sa.CheckConstraint(
            "sync_status IN ('pending', 'running', 'success', 'error')",
            name='ck_calendar_import_status_valid'
        ),
        sa.ForeignKeyConstraint(['property_id'], ['properties.id'], ondelete='CASCADE'),
        sa.PrimaryKeyConstraint('id')
    )
    op.create_index(op.f('ix_calendar_imports_property_id'), 'calendar_imports', ['property_id'], unique=False)
    op.create_index(op.f('ix_calendar_imports_sync_status'), 'calendar_imports', ['sync_status'], unique=False)

    # Create scheduled_jobs table
    op.create_table('scheduled_jobs',
        sa.Column('id', sa.Integer(), autoincrement=True, nullable=False),
        sa.Column('kind', sa.String(length=32), nullable=False),
        sa.Column('run_at', sa.DateTime(), nullable=False),
        sa.Column('payload', sa.JSON(), nullable=False),
        sa.Column('status', sa.String(length=20), nullable=False),
        sa.Column('booking_id', sa.Integer(), nullable=True),
        sa.Column('attempts', sa.Integer(), nullable=False),
        sa.Column('last_error', sa.Text(), nullable=True),
        *_timestamps(),
        sa.CheckConstraint(
            "kind IN ('charge_installment', 'send_notification', 'process_transfers')",
            name='ck_scheduled_job_kind_valid'
        ),
        sa.CheckConstraint(
            "status IN ('pending', 'done', 'failed', 'cancelled')",
            name='ck_scheduled_job_status_valid'
        ),
        sa.CheckConstraint('attempts >= 0', name='ck_scheduled_job_attempts_non_negative'),
        sa.ForeignKeyConstraint(['booking_id'], ['bookings.id'], ondelete='CASCADE'),
        sa.PrimaryKeyConstraint('id')
    )
    op.create_index(op.f('ix_scheduled_jobs_booking_id'), 'scheduled_jobs', ['booking_id'], unique=False)
    op.create_index('ix_scheduled_jobs_status_run_at', 'scheduled_jobs', ['status', 'run_at'], unique=False)

    # Create idempotency_records table
    op.create_table('idempotency_records',
        sa.Column('id', sa.Integer(), autoincrement=True, nullable=False),
        sa.Column('idempotency_key', sa.String(length=255), nullable=False),
        sa.Column('method', sa.String(length=100), nullable=False),
        sa.Column('request_body_hash', sa.String(length=64), nullable=False),
        sa.Column('response_status_code', sa.Integer(), nullable=False),
        sa.Column('response_body', sa.Text(), nullable=False),
        sa.Column('response_headers', sa.Text(), nullable=True),
        sa.Column('expires_at', sa.DateTime(), nullable=False),
        *_timestamps(updated=False),
        sa.CheckConstraint('length(idempotency_key) > 0', name='ck_idempotency_key_not_empty'),
        sa.CheckConstraint('length(request_body_hash) = 64', name='ck_idempotency_hash_length'),
        sa.CheckConstraint(
            'response_status_code >= 100 AND response_status_code <= 599',
            name='ck_idempotency_status_code_valid'
        ),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('idempotency_key', 'method', name='uq_idempotency_key_method')
    )
    op.create_index(op.f('ix_idempotency_records_expires_at'), 'idempotency_records', ['expires_at'], unique=False)
    op.create_index(op.f('ix_idempotency_records_idempotency_key'), 'idempotency_records', ['idempotency_key'], unique=False)
    op.create_index(op.f('ix_idempotency_records_method'), 'idempotency_records', ['method'], unique=False)


def downgrade() -> None:
    """Downgrade database schema."""
    op.drop_table('idempotency_records')
    op.drop_table('scheduled_jobs')
    op.drop_table('calendar_imports')
    op.drop_table('cohost_transfers')
    op.drop_table('cohosts')
    op.drop_table('availability')
    op.drop_table('payment_installments')
    op.drop_table('bookings')
    op.drop_table('los_discount_tiers')
    op.drop_table('properties')
