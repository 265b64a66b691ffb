"""create synchronized entity tables

Revision ID: 20261018000000
Revises:
Create Date: 2026-10-18 00:00:00.000000

"""
from alembic import op
import sqlalchemy as sa

# revision identifiers, used by Alembic.
revision = '20261018000000'
down_revision = None
branch_labels = None
depends_on = None

TOMBSTONED_TABLES = (
    'receipts',
    'devices',
    'reminders',
    'household_bills',
    'documents',
    'subscriptions',
)


def _owned_columns():
    return [
        sa.Column('id', sa.String(128), nullable=False),
        sa.Column('user_id', sa.String(128), nullable=False),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False),
        sa.Column('updated_at', sa.DateTime(timezone=True), nullable=False),
    ]


def _tombstone_column():
    return sa.Column('is_deleted', sa.Boolean(), nullable=False, server_default=sa.false())


def upgrade():
    """Create the seven synchronized tables and their lookup indexes"""
    op.create_table(
        'receipts',
        *_owned_columns(),
        _tombstone_column(),
        sa.Column('merchant_name', sa.String(255), nullable=False),
        sa.Column('pib', sa.String(20), nullable=True),
        sa.Column('date', sa.Date(), nullable=True),
        sa.Column('time', sa.String(10), nullable=True),
        sa.Column('total_amount', sa.Numeric(12, 2), nullable=False),
        sa.Column('vat_amount', sa.Numeric(12, 2), nullable=True),
        sa.Column('items', sa.Text(), nullable=True),
        sa.Column('category', sa.String(50), nullable=True),
        sa.Column('tags', sa.Text(), nullable=True),
        sa.Column('notes', sa.Text(), nullable=True),
        sa.Column('qr_link', sa.Text(), nullable=True),
        sa.Column('image_url', sa.Text(), nullable=True),
        sa.Column('pdf_url', sa.Text(), nullable=True),
        sa.PrimaryKeyConstraint('id')
    )

    op.create_table(
        'devices',
        *_owned_columns(),
        _tombstone_column(),
        sa.Column('receipt_id', sa.String(128), nullable=True),
        sa.Column('brand', sa.String(100), nullable=False),
        sa.Column('model', sa.String(100), nullable=False),
        sa.Column('category', sa.String(50), nullable=True),
        sa.Column('serial_number', sa.String(100), nullable=True),
        sa.Column('image_url', sa.Text(), nullable=True),
        sa.Column('purchase_date', sa.Date(), nullable=True),
        sa.Column('warranty_duration', sa.Integer(), nullable=True),
        sa.Column('warranty_expiry', sa.Date(), nullable=True),
        sa.Column('warranty_terms', sa.Text(), nullable=True),
        sa.Column('status', sa.String(20), nullable=False, server_default='active'),
        sa.Column('service_center_name', sa.String(255), nullable=True),
        sa.Column('service_center_address', sa.String(500), nullable=True),
        sa.Column('service_center_phone', sa.String(50), nullable=True),
        sa.Column('service_center_hours', sa.String(255), nullable=True),
        sa.Column('attachments', sa.Text(), nullable=True),
        sa.Column('tags', sa.Text(), nullable=True),
        sa.PrimaryKeyConstraint('id')
    )

    op.create_table(
        'reminders',
        *_owned_columns(),
        _tombstone_column(),
        sa.Column('device_id', sa.String(128), nullable=False),
        sa.Column('type', sa.String(20), nullable=False, server_default='warranty'),
        sa.Column('days_before_expiry', sa.Integer(), nullable=False),
        sa.Column('status', sa.String(20), nullable=False, server_default='pending'),
        sa.Column('sent_at', sa.DateTime(timezone=True), nullable=True),
        sa.PrimaryKeyConstraint('id')
    )

    op.create_table(
        'household_bills',
        *_owned_columns(),
        _tombstone_column(),
        sa.Column('bill_type', sa.String(50), nullable=False),
        sa.Column('provider', sa.String(255), nullable=False),
        sa.Column('account_number', sa.String(50), nullable=True),
        sa.Column('amount', sa.Numeric(12, 2), nullable=False),
        sa.Column('billing_period_start', sa.Date(), nullable=True),
        sa.Column('billing_period_end', sa.Date(), nullable=True),
        sa.Column('due_date', sa.Date(), nullable=True),
        sa.Column('payment_date', sa.Date(), nullable=True),
        sa.Column('status', sa.String(20), nullable=False, server_default='pending'),
        sa.Column('consumption', sa.Text(), nullable=True),
        sa.Column('notes', sa.Text(), nullable=True),
        sa.PrimaryKeyConstraint('id')
    )

    op.create_table(
        'documents',
        *_owned_columns(),
        _tombstone_column(),
        sa.Column('type', sa.String(50), nullable=False),
        sa.Column('name', sa.String(255), nullable=False),
        sa.Column('file_url', sa.Text(), nullable=True),
        sa.Column('thumbnail_url', sa.Text(), nullable=True),
        sa.Column('expiry_date', sa.Date(), nullable=True),
        sa.Column('expiry_reminder_days', sa.Integer(), nullable=True),
        sa.Column('notes', sa.Text(), nullable=True),
        sa.Column('tags', sa.Text(), nullable=True),
        sa.PrimaryKeyConstraint('id')
    )

    op.create_table(
        'subscriptions',
        *_owned_columns(),
        _tombstone_column(),
        sa.Column('name', sa.String(255), nullable=False),
        sa.Column('provider', sa.String(255), nullable=False),
        sa.Column('category', sa.String(50), nullable=True),
        sa.Column('amount', sa.Numeric(12, 2), nullable=False),
        sa.Column('billing_cycle', sa.String(20), nullable=False),
        sa.Column('next_billing_date', sa.Date(), nullable=True),
        sa.Column('start_date', sa.Date(), nullable=True),
        sa.Column('cancel_url', sa.Text(), nullable=True),
        sa.Column('login_url', sa.Text(), nullable=True),
        sa.Column('notes', sa.Text(), nullable=True),
        sa.Column('is_active', sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column('reminder_days', sa.Integer(), nullable=False, server_default='3'),
        sa.Column('logo_url', sa.Text(), nullable=True),
        sa.PrimaryKeyConstraint('id')
    )

    # Settings are hard-deleted: no tombstone column
    op.create_table(
        'user_settings',
        *_owned_columns(),
        sa.Column('theme', sa.String(10), nullable=False, server_default='system'),
        sa.Column('language', sa.String(5), nullable=False, server_default='sr'),
        sa.Column('notifications_enabled', sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column('email_notifications', sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column('push_notifications', sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column('biometric_lock', sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column('warranty_expiry_threshold', sa.Integer(), nullable=False, server_default='30'),
        sa.Column('warranty_critical_threshold', sa.Integer(), nullable=False, server_default='7'),
        sa.Column('quiet_hours_start', sa.String(5), nullable=True),
        sa.Column('quiet_hours_end', sa.String(5), nullable=True),
        sa.PrimaryKeyConstraint('id')
    )

    # Create indexes
    for table in TOMBSTONED_TABLES:
        op.create_index(f'ix_{table}_user_id', table, ['user_id'])
        op.create_index(f'idx_{table}_user_deleted', table, ['user_id', 'is_deleted'])
        op.create_index(f'idx_{table}_user_updated', table, ['user_id', 'updated_at'])
    op.create_index('idx_devices_receipt', 'devices', ['receipt_id'])
    op.create_index('idx_reminders_device', 'reminders', ['device_id'])
    op.create_index('ix_user_settings_user_id', 'user_settings', ['user_id'])


def downgrade():
    """Drop the synchronized tables"""
    op.drop_index('ix_user_settings_user_id', table_name='user_settings')
    op.drop_index('idx_reminders_device', table_name='reminders')
    op.drop_index('idx_devices_receipt', table_name='devices')
    for table in TOMBSTONED_TABLES:
        op.drop_index(f'idx_{table}_user_updated', table_name=table)
        op.drop_index(f'idx_{table}_user_deleted', table_name=table)
        op.drop_index(f'ix_{table}_user_id', table_name=table)

    op.drop_table('user_settings')
    for table in reversed(TOMBSTONED_TABLES):
        op.drop_table(table)
