"""initial erp schema

Revision ID: 0001_initial_schema
Revises: 
Create Date: 2026-03-02
"""
from __future__ import annotations
from alembic import op
import sqlalchemy as sa

revision = '0001_initial_schema'
down_revision = None
branch_labels = None
depends_on = None


def _timestamps(*names):
    return [sa.Column(n, sa.DateTime(timezone=True), server_default=sa.func.now()) for n in names]


def upgrade():
    op.create_table('roles',
        sa.Column('id', sa.String(length=64), primary_key=True),
        sa.Column('label', sa.String(length=128), nullable=False),
        sa.Column('modules', sa.JSON(), nullable=True),
        sa.Column('description', sa.Text(), nullable=True),
        *_timestamps('created_at', 'updated_at')
    )

    op.create_table('users',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('name', sa.String(length=128), nullable=False),
        sa.Column('email', sa.String(length=128), nullable=False, unique=True),
        sa.Column('password_hash', sa.String(length=255), nullable=False),
        sa.Column('is_active', sa.Boolean(), nullable=True, server_default=sa.text('1')),
        sa.Column('custom_claims', sa.JSON(), nullable=True),
        *_timestamps('updated_at')
    )
    op.create_index('ix_users_email', 'users', ['email'])

    op.create_table('user_roles',
        sa.Column('user_id', sa.Integer(), sa.ForeignKey('users.id', ondelete='CASCADE'), primary_key=True),
        sa.Column('role_id', sa.String(length=64), nullable=False),
        sa.Column('role_label', sa.String(length=128), nullable=True),
        sa.Column('assigned_by', sa.String(length=128), nullable=False),
        sa.Column('assigned_at', sa.DateTime(timezone=True), nullable=False),
        sa.Column('user_email', sa.String(length=128), nullable=True),
        sa.Column('user_name', sa.String(length=128), nullable=True)
    )
    op.create_index('ix_user_roles_role_id', 'user_roles', ['role_id'])

    op.create_table('defaults',
        sa.Column('key', sa.String(length=64), primary_key=True),
        sa.Column('data', sa.JSON(), nullable=True),
        *_timestamps('updated_at')
    )

    op.create_table('materials',
        sa.Column('id', sa.String(length=6), primary_key=True),
        sa.Column('zone', sa.String(length=16), nullable=False),
        sa.Column('category', sa.String(length=16), nullable=False),
        sa.Column('subcategory', sa.String(length=16), nullable=False),
        sa.Column('category_number', sa.String(length=4), nullable=False),
        sa.Column('code', sa.String(length=64), nullable=False, unique=True),
        sa.Column('description', sa.Text(), nullable=False),
        sa.Column('min_stock', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('unit', sa.String(length=32), nullable=False),
        sa.Column('brand', sa.String(length=128), nullable=False, server_default='default'),
        sa.Column('supplier', sa.String(length=128), nullable=False, server_default='default'),
        sa.Column('created_by', sa.String(length=64), nullable=True),
        sa.Column('created_by_email', sa.String(length=128), nullable=True),
        *_timestamps('created_at', 'updated_at')
    )
    op.create_index('ix_materials_code', 'materials', ['code'])

    op.create_table('work_orders',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('order_type', sa.String(length=16), nullable=False),
        sa.Column('equipment', sa.String(length=128), nullable=True),
        sa.Column('mobile_unit', sa.String(length=64), nullable=True),
        sa.Column('description', sa.Text(), nullable=False),
        sa.Column('technicians', sa.JSON(), nullable=True),
        sa.Column('required_materials', sa.JSON(), nullable=True),
        sa.Column('state', sa.String(length=16), nullable=False, server_default='open'),
        sa.Column('state_used_audit', sa.Boolean(), nullable=False, server_default=sa.text('0')),
        sa.Column('created_by', sa.String(length=64), nullable=False),
        *_timestamps('created_at', 'updated_at')
    )
    op.create_index('ix_work_orders_order_type', 'work_orders', ['order_type'])
    op.create_index('ix_work_orders_state', 'work_orders', ['state'])

    op.create_table('inventory_moves',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('material_id', sa.String(length=6), sa.ForeignKey('materials.id'), nullable=False),
        sa.Column('qty', sa.Float(), nullable=False),
        sa.Column('effective_at', sa.DateTime(timezone=True), nullable=False),
        sa.Column('recorded_at', sa.DateTime(timezone=True), nullable=False),
        sa.Column('storage_location', sa.String(length=64), nullable=False),
        sa.Column('source', sa.String(length=16), nullable=False),
        sa.Column('source_id', sa.String(length=64), nullable=False),
        sa.Column('reason', sa.String(length=64), nullable=True),
        sa.Column('approved_by_email', sa.String(length=128), nullable=True),
        sa.Column('deleted', sa.Boolean(), nullable=False, server_default=sa.text('0')),
        sa.UniqueConstraint('material_id', 'source', 'source_id', name='uq_move_source')
    )
    op.create_index('ix_inventory_moves_material_id', 'inventory_moves', ['material_id'])
    op.create_index('ix_inventory_moves_effective_at', 'inventory_moves', ['effective_at'])

    op.create_table('inventory_stock',
        sa.Column('material_id', sa.String(length=6), sa.ForeignKey('materials.id'), primary_key=True),
        sa.Column('storage_location', sa.String(length=64), primary_key=True),
        sa.Column('quantity', sa.Float(), nullable=False, server_default='0'),
        sa.Column('last_entry', sa.DateTime(timezone=True), nullable=True),
        sa.Column('last_exit', sa.DateTime(timezone=True), nullable=True),
        sa.Column('last_modified', sa.DateTime(timezone=True), nullable=True)
    )

    op.create_table('inventory_daily_snapshots',
        sa.Column('material_id', sa.String(length=6), sa.ForeignKey('materials.id'), primary_key=True),
        sa.Column('day_key', sa.String(length=8), primary_key=True),
        sa.Column('opening', sa.JSON(), nullable=True),
        sa.Column('closing', sa.JSON(), nullable=True),
        *_timestamps('updated_at')
    )

    op.create_table('material_entries',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('material_id', sa.String(length=6), sa.ForeignKey('materials.id'), nullable=False),
        sa.Column('quantity', sa.Float(), nullable=False),
        sa.Column('storage_location', sa.String(length=64), nullable=False),
        sa.Column('entry_date', sa.DateTime(timezone=True), nullable=False),
        sa.Column('notes', sa.Text(), nullable=True),
        sa.Column('state', sa.String(length=16), nullable=False, server_default='pending'),
        sa.Column('created_by', sa.String(length=64), nullable=False),
        sa.Column('created_by_email', sa.String(length=128), nullable=True),
        sa.Column('accepted_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('accepted_by_email', sa.String(length=128), nullable=True),
        *_timestamps('updated_at')
    )
    op.create_index('ix_material_entries_material_id', 'material_entries', ['material_id'])
    op.create_index('ix_material_entries_state', 'material_entries', ['state'])

    op.create_table('material_exits',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('entry_type', sa.String(length=16), nullable=False),
        sa.Column('work_order_id', sa.Integer(), sa.ForeignKey('work_orders.id'), nullable=True),
        sa.Column('mobile_unit', sa.String(length=64), nullable=True),
        sa.Column('storage_location', sa.String(length=64), nullable=False),
        sa.Column('quantities', sa.JSON(), nullable=True),
        sa.Column('exit_date', sa.DateTime(timezone=True), nullable=False),
        sa.Column('notes', sa.Text(), nullable=True),
        sa.Column('state', sa.String(length=16), nullable=False, server_default='pending'),
        sa.Column('created_by', sa.String(length=64), nullable=False),
        sa.Column('created_by_email', sa.String(length=128), nullable=True),
        sa.Column('accepted_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('accepted_by_email', sa.String(length=128), nullable=True),
        *_timestamps('updated_at')
    )
    op.create_index('ix_material_exits_work_order_id', 'material_exits', ['work_order_id'])
    op.create_index('ix_material_exits_state', 'material_exits', ['state'])

    op.create_table('fuel_entries',
        sa.Column('id', sa.String(length=32), primary_key=True),
        sa.Column('status', sa.String(length=16), nullable=False, server_default='pending'),
        sa.Column('signature_token', sa.String(length=32), nullable=False),
        sa.Column('signature', sa.JSON(), nullable=True),
        sa.Column('signed_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('created_by', sa.String(length=64), nullable=False),
        sa.Column('created_by_email', sa.String(length=128), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False),
        sa.Column('completed_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('entry_date', sa.Date(), nullable=True),
        sa.Column('provider', sa.String(length=128), nullable=True),
        sa.Column('plate', sa.String(length=32), nullable=True),
        sa.Column('driver', sa.String(length=128), nullable=True),
        sa.Column('invoice', sa.String(length=64), nullable=True),
        sa.Column('invoiced_litres', sa.Float(), nullable=True),
        sa.Column('unload_time', sa.String(length=5), nullable=True),
        sa.Column('received_litres', sa.Float(), nullable=True),
        *_timestamps('updated_at')
    )
    op.create_index('ix_fuel_entries_status', 'fuel_entries', ['status'])
    op.create_index('ix_fuel_entries_created_by', 'fuel_entries', ['created_by'])

    op.create_table('fuel_load_days',
        sa.Column('id', sa.String(length=10), primary_key=True),
        sa.Column('day', sa.Date(), nullable=False, unique=True),
        sa.Column('totalizer_start', sa.Float(), nullable=True),
        sa.Column('totalizer_end', sa.Float(), nullable=True),
        *_timestamps('updated_at')
    )
    op.create_index('ix_fuel_load_days_day', 'fuel_load_days', ['day'])

    op.create_table('fuel_loads',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('day_id', sa.String(length=10), sa.ForeignKey('fuel_load_days.id', ondelete='CASCADE'), nullable=False),
        sa.Column('kind', sa.String(length=16), nullable=False),
        sa.Column('litres', sa.Float(), nullable=False),
        sa.Column('unit_number', sa.String(length=32), nullable=True),
        sa.Column('company', sa.String(length=128), nullable=True),
        sa.Column('plate', sa.String(length=32), nullable=True),
        sa.Column('driver', sa.String(length=128), nullable=True),
        sa.Column('load_time', sa.String(length=5), nullable=True),
        sa.Column('odometer', sa.Float(), nullable=True),
        sa.Column('hour_meter', sa.Float(), nullable=True),
        sa.Column('seal', sa.String(length=64), nullable=True),
        sa.Column('has_signature', sa.Boolean(), nullable=False, server_default=sa.text('0')),
        sa.Column('signature_svg', sa.Text(), nullable=True),
        sa.Column('created_by', sa.String(length=64), nullable=False),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False)
    )
    op.create_index('ix_fuel_loads_day_id', 'fuel_loads', ['day_id'])


def downgrade():
    for name in ('fuel_loads', 'fuel_load_days', 'fuel_entries', 'material_exits', 'material_entries',
                 'inventory_daily_snapshots', 'inventory_stock', 'inventory_moves', 'work_orders',
                 'materials', 'defaults', 'user_roles', 'users', 'roles'):
        op.drop_table(name)
