"""create user and match_result tables

Revision ID: 1a2b3c4d5e6f
Revises:
Create Date: 2026-10-16 10:00:00.000000

"""
from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision = '1a2b3c4d5e6f'
down_revision = None
branch_labels = None
depends_on = None


def upgrade():
    bind = op.get_bind()
    insp = sa.inspect(bind)
    existing_tables = set(insp.get_table_names())

    if 'user' not in existing_tables:
        op.create_table(
            'user',
            sa.Column('id', sa.Integer(), nullable=False),
            sa.Column('username', sa.String(length=64), nullable=False),
            sa.Column('password_hash', sa.String(length=256), nullable=False),
            sa.PrimaryKeyConstraint('id'),
        )
        op.create_index(op.f('ix_user_username'), 'user', ['username'], unique=True)

    if 'match_result' not in existing_tables:
        op.create_table(
            'match_result',
            sa.Column('id', sa.Integer(), nullable=False),
            sa.Column('game_id', sa.String(length=16), nullable=False),
            sa.Column('game_type', sa.String(length=32), nullable=False),
            sa.Column('players', sa.Text(), nullable=False),
            sa.Column('winner', sa.String(length=64), nullable=True),
            sa.Column('forfeited_by', sa.String(length=64), nullable=True),
            sa.Column('moves', sa.Text(), nullable=True),
            sa.Column('finished_at', sa.DateTime(), nullable=True),
            sa.PrimaryKeyConstraint('id'),
        )
        op.create_index(op.f('ix_match_result_game_id'), 'match_result', ['game_id'], unique=False)


def downgrade():
    bind = op.get_bind()
    insp = sa.inspect(bind)
    existing_tables = set(insp.get_table_names())

    if 'match_result' in existing_tables:
        op.drop_index(op.f('ix_match_result_game_id'), table_name='match_result')
        op.drop_table('match_result')
    if 'user' in existing_tables:
        op.drop_index(op.f('ix_user_username'), table_name='user')
        op.drop_table('user')
