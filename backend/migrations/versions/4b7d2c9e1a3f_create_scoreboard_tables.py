"""create user, field, game, game_statistics and universal_clock tables

Revision ID: 4b7d2c9e1a3f
Revises:
Create Date: 2026-10-19 15:40:00.000000

"""
from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision = '4b7d2c9e1a3f'
down_revision = None
branch_labels = None
depends_on = None


def upgrade():
    op.create_table(
        'user',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('username', sa.String(length=64), nullable=False),
        sa.Column('password_hash', sa.String(length=256), nullable=False),
    )
    op.create_index('ix_user_username', 'user', ['username'], unique=True)

    op.create_table(
        'field',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('name', sa.String(length=128), nullable=False),
        sa.Column('owner_id', sa.Integer(), sa.ForeignKey('user.id'), nullable=True),
        sa.Column('clock_synced', sa.Boolean(), nullable=False, server_default=sa.false()),
    )
    op.create_index('ix_field_owner_id', 'field', ['owner_id'])

    op.create_table(
        'game',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('home_team_name', sa.String(length=128), nullable=False),
        sa.Column('away_team_name', sa.String(length=128), nullable=False),
        sa.Column('field_id', sa.Integer(), sa.ForeignKey('field.id'), nullable=True),
        sa.Column('owner_id', sa.Integer(), sa.ForeignKey('user.id'), nullable=True),
        sa.Column('end_game', sa.Boolean(), nullable=False, server_default=sa.false()),
    )

    op.create_table(
        'game_statistics',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('game_id', sa.Integer(), sa.ForeignKey('game.id', ondelete='CASCADE'), nullable=False),
        sa.Column('home_score', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('away_score', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('home_stats', sa.Text(), nullable=True),
        sa.Column('away_stats', sa.Text(), nullable=True),
        sa.Column('quarter', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('minutes', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('seconds', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('running', sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column('actions', sa.Text(), nullable=True),
        sa.Column('version', sa.Integer(), nullable=False),
        sa.Column('updated_at', sa.DateTime(timezone=True), nullable=True),
    )
    op.create_index('ix_game_statistics_game_id', 'game_statistics', ['game_id'], unique=True)

    op.create_table(
        'universal_clock',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('owner_id', sa.Integer(), sa.ForeignKey('user.id'), nullable=False),
        sa.Column('quarter', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('minutes', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('seconds', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('running', sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column('last_updated', sa.DateTime(timezone=True), nullable=True),
        sa.Column('version', sa.Integer(), nullable=False),
    )
    op.create_index('ix_universal_clock_owner_id', 'universal_clock', ['owner_id'], unique=True)


def downgrade():
    op.drop_index('ix_universal_clock_owner_id', table_name='universal_clock')
    op.drop_table('universal_clock')
    op.drop_index('ix_game_statistics_game_id', table_name='game_statistics')
    op.drop_table('game_statistics')
    op.drop_table('game')
    op.drop_index('ix_field_owner_id', table_name='field')
    op.drop_table('field')
    op.drop_index('ix_user_username', table_name='user')
    op.drop_table('user')
