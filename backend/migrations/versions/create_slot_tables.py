"""create vendor settings, opening hours and slot demand tables

Revision ID: create_slot_tables
Revises:
Create Date: 2026-10-19
"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa


revision: str = 'create_slot_tables'
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    op.create_table(
        'vendor_settings',
        sa.Column('id', sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column('vendor_id', sa.String(64), nullable=False, unique=True),
        sa.Column('max_per_slot', sa.Integer(), nullable=False, server_default='10'),
        sa.Column('created_at', sa.DateTime(), nullable=True),
        sa.Column('updated_at', sa.DateTime(), nullable=True),
        sa.CheckConstraint('max_per_slot >= 0', name='ck_vendor_settings_max_per_slot'),
    )

    # Hours for exactly one date
    op.create_table(
        'date_overrides',
        sa.Column('id', sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column('vendor_id', sa.String(64), nullable=False),
        sa.Column('day', sa.Date(), nullable=False),
        sa.Column('is_closed', sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column('open_time', sa.Time(), nullable=False),
        sa.Column('close_time', sa.Time(), nullable=False),
        sa.Column('slot_minutes', sa.Integer(), nullable=False),
        sa.Column('created_at', sa.DateTime(), nullable=True),
        sa.Column('updated_at', sa.DateTime(), nullable=True),
        sa.UniqueConstraint('vendor_id', 'day', name='uq_date_override_vendor_day'),
        sa.CheckConstraint('slot_minutes > 0', name='ck_date_override_slot_minutes'),
    )

    # Hours from start_day onward; resolved by latest start_day <= date
    op.create_table(
        'standing_rules',
        sa.Column('id', sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column('vendor_id', sa.String(64), nullable=False),
        sa.Column('start_day', sa.Date(), nullable=False),
        sa.Column('is_closed', sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column('open_time', sa.Time(), nullable=False),
        sa.Column('close_time', sa.Time(), nullable=False),
        sa.Column('slot_minutes', sa.Integer(), nullable=False),
        sa.Column('created_at', sa.DateTime(), nullable=True),
        sa.Column('updated_at', sa.DateTime(), nullable=True),
        sa.UniqueConstraint('vendor_id', 'start_day', name='uq_standing_rule_vendor_start_day'),
        sa.CheckConstraint('slot_minutes > 0', name='ck_standing_rule_slot_minutes'),
    )

    op.create_table(
        'slot_demand',
        sa.Column('id', sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column('vendor_id', sa.String(64), nullable=False),
        sa.Column('day', sa.Date(), nullable=False),
        sa.Column('slot_time', sa.Time(), nullable=False),
        sa.Column('qty', sa.Integer(), nullable=False),
        sa.Column('created_at', sa.DateTime(), nullable=True),
        sa.Column('updated_at', sa.DateTime(), nullable=True),
        sa.UniqueConstraint('vendor_id', 'day', 'slot_time', name='uq_slot_demand_vendor_day_slot'),
        sa.CheckConstraint('qty > 0', name='ck_slot_demand_qty_positive'),
    )
    op.create_index('ix_slot_demand_vendor_day', 'slot_demand', ['vendor_id', 'day'])


def downgrade() -> None:
    op.drop_index('ix_slot_demand_vendor_day', table_name='slot_demand')
    op.drop_table('slot_demand')
    op.drop_table('standing_rules')
    op.drop_table('date_overrides')
    op.drop_table('vendor_settings')
