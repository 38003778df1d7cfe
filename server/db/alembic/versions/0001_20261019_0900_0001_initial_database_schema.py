"""Initial database schema

Revision ID: 0001
Revises:
Create Date: 2026-10-19 09:00:00.000000

"""
from collections.abc import Sequence

import sqlalchemy as sa
from alembic import op

# revision identifiers, used by Alembic.
revision: str = '0001'
down_revision: str | None = None
branch_labels: str | Sequence[str] | None = None
depends_on: str | Sequence[str] | None = None


def upgrade() -> None:
    """Upgrade database schema."""
    # Create hotels table
    op.create_table('hotels',
        sa.Column('id', sa.Integer(), autoincrement=True, nullable=False),
        sa.Column('name', sa.String(length=255), nullable=False),
        sa.Column('city', sa.String(length=128), nullable=True),
        sa.Column('email', sa.String(length=255), nullable=True),
        sa.Column('created_at', sa.DateTime(), server_default=sa.text('now()'), nullable=False),
        sa.CheckConstraint('length(name) > 0', name='ck_hotel_name_not_empty'),
        sa.PrimaryKeyConstraint('id')
    )

    # Create room_types table
    op.create_table('room_types',
        sa.Column('id', sa.Integer(), autoincrement=True, nullable=False),
        sa.Column('hotel_id', sa.Integer(), nullable=False),
        sa.Column('name', sa.String(length=128), nullable=False),
        sa.Column('capacity', sa.Integer(), nullable=False),
        sa.CheckConstraint('capacity > 0', name='ck_room_type_capacity_positive'),
        sa.ForeignKeyConstraint(['hotel_id'], ['hotels.id'], ondelete='CASCADE'),
        sa.PrimaryKeyConstraint('id')
    )
    op.create_index(op.f('ix_room_types_hotel_id'), 'room_types', ['hotel_id'], unique=False)

    # Create rooms table
    op.create_table('rooms',
        sa.Column('id', sa.Integer(), autoincrement=True, nullable=False),
        sa.Column('hotel_id', sa.Integer(), nullable=False),
        sa.Column('room_type_id', sa.Integer(), nullable=False),
        sa.Column('room_number', sa.String(length=32), nullable=False),
        sa.Column('is_available', sa.Boolean(), nullable=False),
        sa.ForeignKeyConstraint(['hotel_id'], ['hotels.id'], ondelete='CASCADE'),
        sa.ForeignKeyConstraint(['room_type_id'], ['room_types.id'], ondelete='RESTRICT'),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('hotel_id', 'room_number', name='uq_room_hotel_number')
    )
    op.create_index(op.f('ix_rooms_hotel_id'), 'rooms', ['hotel_id'], unique=False)
    op.create_index(op.f('ix_rooms_room_type_id'), 'rooms', ['room_type_id'], unique=False)

    # Create room_rates table
    op.create_table('room_rates',
        sa.Column('id', sa.Integer(), autoincrement=True, nullable=False),
        sa.Column('hotel_id', sa.Integer(), nullable=False),
        sa.Column('room_type_id', sa.Integer(), nullable=False),
        sa.Column('base_price', sa.Numeric(precision=10, scale=2), nullable=False),
        sa.Column('weekend_price', sa.Numeric(precision=10, scale=2), nullable=True),
        sa.Column('holiday_price', sa.Numeric(precision=10, scale=2), nullable=True),
        sa.Column('start_date', sa.Date(), nullable=True),
        sa.Column('end_date', sa.Date(), nullable=True),
        sa.CheckConstraint('base_price >= 0', name='ck_rate_base_price_non_negative'),
        sa.CheckConstraint('start_date IS NULL OR end_date > start_date', name='ck_rate_window_ordered'),
        sa.ForeignKeyConstraint(['hotel_id'], ['hotels.id'], ondelete='CASCADE'),
        sa.ForeignKeyConstraint(['room_type_id'], ['room_types.id'], ondelete='CASCADE'),
        sa.PrimaryKeyConstraint('id')
    )
    op.create_index(op.f('ix_room_rates_hotel_id'), 'room_rates', ['hotel_id'], unique=False)
    op.create_index(op.f('ix_room_rates_room_type_id'), 'room_rates', ['room_type_id'], unique=False)

    # Create reservations table
    op.create_table('reservations',
        sa.Column('id', sa.Integer(), autoincrement=True, nullable=False),
        sa.Column('reference_number', sa.String(length=32), nullable=False),
        sa.Column('client_id', sa.Integer(), nullable=False),
        sa.Column('created_by_user_id', sa.Integer(), nullable=True),
        sa.Column('hotel_id', sa.Integer(), nullable=False),
        sa.Column('check_in_date', sa.Date(), nullable=False),
        sa.Column('check_out_date', sa.Date(), nullable=False),
        sa.Column('total_amount', sa.Numeric(precision=10, scale=2), nullable=False),
        sa.Column('status', sa.String(length=20), nullable=False),
        sa.Column('actual_check_in_time', sa.DateTime(timezone=True), nullable=True),
        sa.Column('actual_check_out_time', sa.DateTime(timezone=True), nullable=True),
        sa.Column('cancelled_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('created_at', sa.DateTime(), server_default=sa.text('now()'), nullable=False),
        sa.Column('updated_at', sa.DateTime(), server_default=sa.text('now()'), nullable=False),
        sa.CheckConstraint('check_out_date > check_in_date', name='ck_reservation_dates_ordered'),
        sa.CheckConstraint('total_amount >= 0', name='ck_reservation_total_non_negative'),
        sa.ForeignKeyConstraint(['hotel_id'], ['hotels.id'], ondelete='RESTRICT'),
        sa.PrimaryKeyConstraint('id')
    )
    op.create_index(op.f('ix_reservations_reference_number'), 'reservations', ['reference_number'], unique=True)
    op.create_index(op.f('ix_reservations_client_id'), 'reservations', ['client_id'], unique=False)
    op.create_index(op.f('ix_reservations_hotel_id'), 'reservations', ['hotel_id'], unique=False)
    op.create_index(op.f('ix_reservations_check_in_date'), 'reservations', ['check_in_date'], unique=False)
    op.create_index(op.f('ix_reservations_check_out_date'), 'reservations', ['check_out_date'], unique=False)
    op.create_index(op.f('ix_reservations_status'), 'reservations', ['status'], unique=False)

    # Create reservation_rooms table
    op.create_table('reservation_rooms',
        sa.Column('id', sa.Integer(), autoincrement=True, nullable=False),
        sa.Column('reservation_id', sa.Integer(), nullable=False),
        sa.Column('room_id', sa.Integer(), nullable=False),
        sa.Column('room_type_id', sa.Integer(), nullable=False),
        sa.Column('rate_per_night', sa.Numeric(precision=10, scale=2), nullable=False),
        sa.CheckConstraint('rate_per_night >= 0', name='ck_reservation_room_rate_non_negative'),
        sa.ForeignKeyConstraint(['reservation_id'], ['reservations.id'], ondelete='CASCADE'),
        sa.ForeignKeyConstraint(['room_id'], ['rooms.id'], ondelete='RESTRICT'),
        sa.ForeignKeyConstraint(['room_type_id'], ['room_types.id'], ondelete='RESTRICT'),
        sa.PrimaryKeyConstraint('id')
    )
    op.create_index(op.f('ix_reservation_rooms_reservation_id'), 'reservation_rooms', ['reservation_id'], unique=False)
    op.create_index(op.f('ix_reservation_rooms_room_id'), 'reservation_rooms', ['room_id'], unique=False)

    # Create special_requests table
    op.create_table('special_requests',
        sa.Column('id', sa.Integer(), autoincrement=True, nullable=False),
        sa.Column('reservation_id', sa.Integer(), nullable=False),
        sa.Column('request_text', sa.Text(), nullable=False),
        sa.ForeignKeyConstraint(['reservation_id'], ['reservations.id'], ondelete='CASCADE'),
        sa.PrimaryKeyConstraint('id')
    )
    op.create_index(op.f('ix_special_requests_reservation_id'), 'special_requests', ['reservation_id'], unique=False)

    # Create consumption_items table
    op.create_table('consumption_items',
        sa.Column('id', sa.Integer(), autoincrement=True, nullable=False),
        sa.Column('reservation_id', sa.Integer(), nullable=False),
        sa.Column('item_name', sa.String(length=255), nullable=False),
        sa.Column('description', sa.Text(), nullable=True),
        sa.Column('quantity', sa.Integer(), nullable=False),
        sa.Column('unit_price', sa.Numeric(precision=10, scale=2), nullable=False),
        sa.Column('total_price', sa.Numeric(precision=10, scale=2), nullable=False),
        sa.Column('consumed_at', sa.DateTime(timezone=True), server_default=sa.text('now()'), nullable=False),
        sa.CheckConstraint('quantity > 0', name='ck_consumption_quantity_positive'),
        sa.CheckConstraint('unit_price >= 0', name='ck_consumption_unit_price_non_negative'),
        sa.CheckConstraint('length(item_name) > 0', name='ck_consumption_item_name_not_empty'),
        sa.ForeignKeyConstraint(['reservation_id'], ['reservations.id'], ondelete='CASCADE'),
        sa.PrimaryKeyConstraint('id')
    )
    op.create_index(op.f('ix_consumption_items_reservation_id'), 'consumption_items', ['reservation_id'], unique=False)

    # Create invoices table
    op.create_table('invoices',
        sa.Column('id', sa.Integer(), autoincrement=True, nullable=False),
        sa.Column('invoice_number', sa.String(length=32), nullable=False),
        sa.Column('reservation_id', sa.Integer(), nullable=False),
        sa.Column('client_id', sa.Integer(), nullable=False),
        sa.Column('hotel_id', sa.Integer(), nullable=False),
        sa.Column('subtotal_room_charges', sa.Numeric(precision=10, scale=2), nullable=False),
        sa.Column('subtotal_consumption_charges', sa.Numeric(precision=10, scale=2), nullable=False),
        sa.Column('taxes_amount', sa.Numeric(precision=10, scale=2), nullable=False),
        sa.Column('total_amount_due', sa.Numeric(precision=10, scale=2), nullable=False),
        sa.Column('status', sa.String(length=20), nullable=False),
        sa.Column('generated_at', sa.DateTime(timezone=True), server_default=sa.text('now()'), nullable=False),
        sa.CheckConstraint('total_amount_due >= 0', name='ck_invoice_total_non_negative'),
        sa.ForeignKeyConstraint(['reservation_id'], ['reservations.id'], ondelete='RESTRICT'),
        sa.ForeignKeyConstraint(['hotel_id'], ['hotels.id'], ondelete='RESTRICT'),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('reservation_id')
    )
    op.create_index(op.f('ix_invoices_invoice_number'), 'invoices', ['invoice_number'], unique=True)
    op.create_index(op.f('ix_invoices_client_id'), 'invoices', ['client_id'], unique=False)
    op.create_index(op.f('ix_invoices_hotel_id'), 'invoices', ['hotel_id'], unique=False)
    op.create_index(op.f('ix_invoices_status'), 'invoices', ['status'], unique=False)

    # Create invoice_items table
    op.create_table('invoice_items',
        sa.Column('id', sa.Integer(), autoincrement=True, nullable=False),
        sa.Column('invoice_id', sa.Integer(), nullable=False),
        sa.Column('position', sa.Integer(), nullable=False),
        sa.Column('item_type', sa.String(length=20), nullable=False),
        sa.Column('description', sa.String(length=255), nullable=False),
        sa.Column('quantity', sa.Integer(), nullable=False),
        sa.Column('unit_price', sa.Numeric(precision=10, scale=2), nullable=False),
        sa.Column('total_price', sa.Numeric(precision=10, scale=2), nullable=False),
        sa.ForeignKeyConstraint(['invoice_id'], ['invoices.id'], ondelete='CASCADE'),
        sa.PrimaryKeyConstraint('id')
    )
    op.create_index(op.f('ix_invoice_items_invoice_id'), 'invoice_items', ['invoice_id'], unique=False)


def downgrade() -> None:
    """Downgrade database schema."""
    op.drop_index(op.f('ix_invoice_items_invoice_id'), table_name='invoice_items')
    op.drop_table('invoice_items')

    op.drop_index(op.f('ix_invoices_status'), table_name='invoices')
    op.drop_index(op.f('ix_invoices_hotel_id'), table_name='invoices')
    op.drop_index(op.f('ix_invoices_client_id'), table_name='invoices')
    op.drop_index(op.f('ix_invoices_invoice_number'), table_name='invoices')
    op.drop_table('invoices')

    op.drop_index(op.f('ix_consumption_items_reservation_id'), table_name='consumption_items')
    op.drop_table('consumption_items')

    op.drop_index(op.f('ix_special_requests_reservation_id'), table_name='special_requests')
    op.drop_table('special_requests')

    op.drop_index(op.f('ix_reservation_rooms_room_id'), table_name='reservation_rooms')
    op.drop_index(op.f('ix_reservation_rooms_reservation_id'), table_name='reservation_rooms')
    op.drop_table('reservation_rooms')

    op.drop_index(op.f('ix_reservations_status'), table_name='reservations')
    op.drop_index(op.f('ix_reservations_check_out_date'), table_name='reservations')
    op.drop_index(op.f('ix_reservations_check_in_date'), table_name='reservations')
    op.drop_index(op.f('ix_reservations_hotel_id'), table_name='reservations')
    op.drop_index(op.f('ix_reservations_client_id'), table_name='reservations')
    op.drop_index(op.f('ix_reservations_reference_number'), table_name='reservations')
    op.drop_table('reservations')

    op.drop_index(op.f('ix_room_rates_room_type_id'), table_name='room_rates')
    op.drop_index(op.f('ix_room_rates_hotel_id'), table_name='room_rates')
    op.drop_table('room_rates')

    op.drop_index(op.f('ix_rooms_room_type_id'), table_name='rooms')
    op.drop_index(op.f('ix_rooms_hotel_id'), table_name='rooms')
    op.drop_table('rooms')

    op.drop_index(op.f('ix_room_types_hotel_id'), table_name='room_types')
    op.drop_table('room_types')

    op.drop_table('hotels')
