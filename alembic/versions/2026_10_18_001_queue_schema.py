"""Queue schema: branches, customers, queue entries, bookings, notifications, OTP codes

Revision ID: 001_queue_schema
Revises: 
Create Date: 2026-10-18

"""
from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql

# revision identifiers
revision = '001_queue_schema'
down_revision = None

QUEUE_STATUSES = ('waiting', 'called', 'seated', 'cancelled', 'completed')
BOOKING_STATUSES = ('pending', 'confirmed', 'cancelled', 'completed')


def upgrade():
    op.create_table(
        'branches',
        sa.Column('id', postgresql.UUID(as_uuid=True), primary_key=True),
        sa.Column('name', sa.String(255), nullable=False),
        sa.Column('address', sa.String(500), nullable=True),
        sa.Column('phone', sa.String(50), nullable=True),
        sa.Column('rooms_count', sa.Integer(), nullable=False, server_default='10'),
        sa.Column('expected_wait_time', sa.Integer(), nullable=False, server_default='15'),
        sa.Column('password_hash', sa.String(), nullable=True),
        sa.Column('created_at', sa.DateTime(), nullable=False),
        sa.Column('updated_at', sa.DateTime(), nullable=True),
        sa.Column('is_active', sa.Boolean(), nullable=False, server_default='true'),
    )
    op.create_index('ix_branches_name', 'branches', ['name'])
    op.create_index('ix_branches_is_active', 'branches', ['is_active'])

    op.create_table(
        'customers',
        sa.Column('id', postgresql.UUID(as_uuid=True), primary_key=True),
        sa.Column('name', sa.String(255), nullable=False),
        sa.Column('phone', sa.String(20), nullable=False),
        sa.Column('created_at', sa.DateTime(), nullable=False),
        sa.Column('updated_at', sa.DateTime(), nullable=True),
    )
    op.create_index('ix_customers_phone', 'customers', ['phone'], unique=True)

    op.create_table(
        'queue_entries',
        sa.Column('id', postgresql.UUID(as_uuid=True), primary_key=True),
        sa.Column('customer_id', postgresql.UUID(as_uuid=True), sa.ForeignKey('customers.id'), nullable=False),
        sa.Column('branch_id', postgresql.UUID(as_uuid=True), sa.ForeignKey('branches.id'), nullable=False),
        sa.Column('guests', sa.Integer(), nullable=False),
        sa.Column('wait_time', sa.Integer(), nullable=False),
        sa.Column(
            'status',
            sa.Enum(*QUEUE_STATUSES, name='queueentrystatus', native_enum=False, length=20),
            nullable=False,
        ),
        sa.Column('room_number', sa.Integer(), nullable=True),
        sa.Column('created_at', sa.DateTime(), nullable=False),
        sa.Column('updated_at', sa.DateTime(), nullable=False),
    )
    op.create_index('ix_queue_entries_customer_id', 'queue_entries', ['customer_id'])
    op.create_index('ix_queue_entries_branch_id', 'queue_entries', ['branch_id'])
    op.create_index('ix_queue_entries_status', 'queue_entries', ['status'])
    op.create_index('idx_queue_entry_branch_created', 'queue_entries', ['branch_id', 'created_at'])

    # At most one waiting/called/seated entry per customer
    op.create_index(
        'uq_queue_entry_active_customer',
        'queue_entries',
        ['customer_id'],
        unique=True,
        postgresql_where=sa.text("status IN ('waiting', 'called', 'seated')"),
    )
    # One seated party per room of a branch
    op.create_index(
        'uq_queue_entry_seated_room',
        'queue_entries',
        ['branch_id', 'room_number'],
        unique=True,
        postgresql_where=sa.text("status = 'seated'"),
    )

    op.create_table(
        'bookings',
        sa.Column('id', postgresql.UUID(as_uuid=True), primary_key=True),
        sa.Column('customer_id', postgresql.UUID(as_uuid=True), sa.ForeignKey('customers.id'), nullable=False),
        sa.Column('branch_id', postgresql.UUID(as_uuid=True), sa.ForeignKey('branches.id'), nullable=False),
        sa.Column('guests', sa.Integer(), nullable=False),
        sa.Column('booking_date', sa.Date(), nullable=False),
        sa.Column('booking_time', sa.Time(), nullable=False),
        sa.Column(
            'status',
            sa.Enum(*BOOKING_STATUSES, name='bookingstatus', native_enum=False, length=20),
            nullable=False,
        ),
        sa.Column('created_at', sa.DateTime(), nullable=False),
        sa.Column('updated_at', sa.DateTime(), nullable=True),
    )
    op.create_index('ix_bookings_customer_id', 'bookings', ['customer_id'])
    op.create_index('ix_bookings_branch_id', 'bookings', ['branch_id'])
    op.create_index('ix_bookings_booking_date', 'bookings', ['booking_date'])
    op.create_index('ix_bookings_status', 'bookings', ['status'])

    op.create_table(
        'notifications',
        sa.Column('id', postgresql.UUID(as_uuid=True), primary_key=True),
        sa.Column('phone', sa.String(20), nullable=False),
        sa.Column('message', sa.String(1000), nullable=False),
        sa.Column('status', sa.String(20), nullable=False),
        sa.Column('message_id', sa.String(100), nullable=True),
        sa.Column('error', sa.String(500), nullable=True),
        sa.Column('created_at', sa.DateTime(), nullable=False),
    )
    op.create_index('ix_notifications_phone', 'notifications', ['phone'])
    op.create_index('ix_notifications_created_at', 'notifications', ['created_at'])

    op.create_table(
        'otp_verifications',
        sa.Column('id', postgresql.UUID(as_uuid=True), primary_key=True),
        sa.Column('phone', sa.String(20), nullable=False),
        sa.Column('code', sa.String(10), nullable=False),
        sa.Column('verified', sa.Boolean(), nullable=False, server_default='false'),
        sa.Column('attempts', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('expires_at', sa.DateTime(), nullable=False),
        sa.Column('created_at', sa.DateTime(), nullable=False),
    )
    op.create_index('ix_otp_verifications_phone', 'otp_verifications', ['phone'])
    op.create_index('ix_otp_verifications_verified', 'otp_verifications', ['verified'])
    op.create_index('ix_otp_verifications_expires_at', 'otp_verifications', ['expires_at'])


def downgrade():
    op.drop_table('otp_verifications')
    op.drop_table('notifications')
    op.drop_table('bookings')
    op.drop_index('uq_queue_entry_seated_room', 'queue_entries')
    op.drop_index('uq_queue_entry_active_customer', 'queue_entries')
    op.drop_table('queue_entries')
    op.drop_table('customers')
    op.drop_table('branches')
