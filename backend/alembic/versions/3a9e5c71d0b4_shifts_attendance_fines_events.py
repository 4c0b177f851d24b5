"""shifts, attendance, fines, shift events, settings

Revision ID: 3a9e5c71d0b4
Revises:
Create Date: 2026-10-19

"""

from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa


revision: str = '3a9e5c71d0b4'
down_revision: Union[str, Sequence[str], None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    op.create_table(
        'settings',
        sa.Column('key', sa.String(length=64), nullable=False),
        sa.Column('value', sa.Text(), nullable=True),
        sa.PrimaryKeyConstraint('key'),
    )

    op.create_table(
        'shifts',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('guild_id', sa.String(length=32), nullable=False),
        sa.Column('user_id', sa.String(length=32), nullable=False),
        sa.Column('channel_id', sa.String(length=32), nullable=False),
        sa.Column('start_at', sa.DateTime(timezone=True), nullable=False),
        sa.Column('end_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('tz', sa.String(length=64), nullable=False),
        sa.Column('model', sa.String(length=100), nullable=True),
        sa.Column('voice_channel_id', sa.String(length=32), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False),
        sa.PrimaryKeyConstraint('id'),
        sqlite_autoincrement=True,
    )
    op.create_index(op.f('ix_shifts_user_id'), 'shifts', ['user_id'], unique=False)
    op.create_index(op.f('ix_shifts_channel_id'), 'shifts', ['channel_id'], unique=False)
    op.create_index(op.f('ix_shifts_start_at'), 'shifts', ['start_at'], unique=False)

    op.create_table(
        'attendance',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('user_id', sa.String(length=32), nullable=False),
        sa.Column('shift_id', sa.Integer(), nullable=False),
        sa.Column('clock_in_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('clock_out_at', sa.DateTime(timezone=True), nullable=True),
        sa.ForeignKeyConstraint(['shift_id'], ['shifts.id'], ondelete='CASCADE'),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index(op.f('ix_attendance_shift_id'), 'attendance', ['shift_id'], unique=False)

    op.create_table(
        'fines',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('guild_id', sa.String(length=32), nullable=False),
        sa.Column('user_id', sa.String(length=32), nullable=False),
        sa.Column('amount', sa.Float(), nullable=False),
        sa.Column('reason', sa.String(length=500), nullable=False),
        sa.Column('issued_at', sa.DateTime(timezone=True), nullable=False),
        sa.Column('shift_id', sa.Integer(), nullable=True),
        sa.Column('model', sa.String(length=100), nullable=True),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index(op.f('ix_fines_user_id'), 'fines', ['user_id'], unique=False)
    op.create_index('ix_fines_user_issued', 'fines', ['user_id', 'id'], unique=False)

    op.create_table(
        'shift_events',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('shift_id', sa.Integer(), nullable=False),
        sa.Column('kind', sa.String(length=16), nullable=False),
        sa.Column('fired_at', sa.DateTime(timezone=True), nullable=False),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('shift_id', 'kind', name='uq_shift_events_shift_kind'),
    )
    op.create_index(op.f('ix_shift_events_shift_id'), 'shift_events', ['shift_id'], unique=False)


def downgrade() -> None:
    op.drop_index(op.f('ix_shift_events_shift_id'), table_name='shift_events')
    op.drop_table('shift_events')

    op.drop_index('ix_fines_user_issued', table_name='fines')
    op.drop_index(op.f('ix_fines_user_id'), table_name='fines')
    op.drop_table('fines')

    op.drop_index(op.f('ix_attendance_shift_id'), table_name='attendance')
    op.drop_table('attendance')

    op.drop_index(op.f('ix_shifts_start_at'), table_name='shifts')
    op.drop_index(op.f('ix_shifts_channel_id'), table_name='shifts')
    op.drop_index(op.f('ix_shifts_user_id'), table_name='shifts')
    op.drop_table('shifts')

    op.drop_table('settings')
