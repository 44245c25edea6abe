"""create users, clubs, players, games, ratings and rating results

Revision ID: 1a7c3e9d5b20
Revises:
Create Date: 2025-09-02 10:00:00.000000

"""
from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision = '1a7c3e9d5b20'
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
            sa.Column('id', sa.Integer(), primary_key=True),
            sa.Column('username', sa.String(length=64), nullable=False),
            sa.Column('password_hash', sa.String(length=256), nullable=False),
        )
        op.create_index('ix_user_username', 'user', ['username'], unique=True)

    if 'federation' not in existing_tables:
        op.create_table(
            'federation',
            sa.Column('id', sa.Integer(), primary_key=True),
            sa.Column('name', sa.String(length=255), nullable=False),
            sa.Column('country', sa.String(length=64), nullable=True),
            sa.Column('city', sa.String(length=64), nullable=True),
        )

    if 'club' not in existing_tables:
        op.create_table(
            'club',
            sa.Column('id', sa.Integer(), primary_key=True),
            sa.Column('name', sa.String(length=255), nullable=False),
            sa.Column('country', sa.String(length=64), nullable=True),
            sa.Column('city', sa.String(length=64), nullable=True),
            sa.Column('federation_id', sa.Integer(), sa.ForeignKey('federation.id', ondelete='SET NULL'), nullable=True),
        )

    if 'player' not in existing_tables:
        op.create_table(
            'player',
            sa.Column('id', sa.Integer(), primary_key=True),
            sa.Column('name', sa.String(length=64), nullable=False),
            sa.Column('surname', sa.String(length=64), nullable=True),
            sa.Column('nickname', sa.String(length=64), nullable=True),
            sa.Column('club_id', sa.Integer(), sa.ForeignKey('club.id', ondelete='SET NULL'), nullable=True),
        )

    if 'game' not in existing_tables:
        op.create_table(
            'game',
            sa.Column('id', sa.Integer(), primary_key=True),
            sa.Column('name', sa.String(length=255), nullable=True),
            sa.Column('game_type', sa.String(length=32), nullable=False, server_default='classic_10'),
            sa.Column('outcome', sa.String(length=32), nullable=True),
            sa.Column('club_id', sa.Integer(), sa.ForeignKey('club.id', ondelete='SET NULL'), nullable=True),
            sa.Column('created_by_id', sa.Integer(), sa.ForeignKey('user.id'), nullable=True),
            sa.Column('created_at', sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
        )

    if 'game_player' not in existing_tables:
        op.create_table(
            'game_player',
            sa.Column('id', sa.Integer(), primary_key=True),
            sa.Column('game_id', sa.Integer(), sa.ForeignKey('game.id', ondelete='CASCADE'), nullable=False),
            sa.Column('player_id', sa.Integer(), sa.ForeignKey('player.id', ondelete='CASCADE'), nullable=False),
            sa.Column('role', sa.String(length=16), nullable=False),
            sa.Column('slot_number', sa.Integer(), nullable=False),
            sa.Column('fouls', sa.Integer(), nullable=False, server_default='0'),
            sa.Column('raw_bonus', sa.Text(), nullable=True),
            sa.UniqueConstraint('game_id', 'slot_number', name='uq_game_player_slot'),
            sa.UniqueConstraint('game_id', 'player_id', name='uq_game_player_player'),
        )
        op.create_index('ix_game_player_game_id', 'game_player', ['game_id'])
        op.create_index('ix_game_player_player_id', 'game_player', ['player_id'])

    if 'rating' not in existing_tables:
        op.create_table(
            'rating',
            sa.Column('id', sa.Integer(), primary_key=True),
            sa.Column('name', sa.String(length=255), nullable=False),
            sa.Column('description', sa.Text(), nullable=True),
            sa.Column('owner_id', sa.Integer(), sa.ForeignKey('user.id'), nullable=False),
            sa.Column('club_id', sa.Integer(), sa.ForeignKey('club.id', ondelete='SET NULL'), nullable=True),
            sa.Column('start_date', sa.DateTime(timezone=True), nullable=True),
            sa.Column('end_date', sa.DateTime(timezone=True), nullable=True),
            sa.Column('is_active', sa.Boolean(), nullable=False, server_default=sa.true()),
            sa.Column('results_stale', sa.Boolean(), nullable=False, server_default=sa.false()),
            sa.Column('results_updated_at', sa.DateTime(timezone=True), nullable=True),
            sa.Column('created_at', sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
            sa.Column('updated_at', sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
        )
        op.create_index('ix_rating_owner_id', 'rating', ['owner_id'])

    if 'rating_game' not in existing_tables:
        op.create_table(
            'rating_game',
            sa.Column('id', sa.Integer(), primary_key=True),
            sa.Column('rating_id', sa.Integer(), sa.ForeignKey('rating.id', ondelete='CASCADE'), nullable=False),
            sa.Column('game_id', sa.Integer(), sa.ForeignKey('game.id', ondelete='CASCADE'), nullable=False),
            sa.Column('added_at', sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
            sa.UniqueConstraint('rating_id', 'game_id', name='uq_rating_game'),
        )
        op.create_index('ix_rating_game_rating_id', 'rating_game', ['rating_id'])
        op.create_index('ix_rating_game_game_id', 'rating_game', ['game_id'])

    if 'rating_result' not in existing_tables:
        op.create_table(
            'rating_result',
            sa.Column('id', sa.Integer(), primary_key=True),
            sa.Column('rating_id', sa.Integer(), sa.ForeignKey('rating.id', ondelete='CASCADE'), nullable=False),
            sa.Column('player_id', sa.Integer(), sa.ForeignKey('player.id', ondelete='CASCADE'), nullable=False),
            sa.Column('points', sa.Numeric(10, 2), nullable=False, server_default='0'),
            sa.Column('games_played', sa.Integer(), nullable=False, server_default='0'),
            sa.Column('wins', sa.Integer(), nullable=False, server_default='0'),
            sa.Column('civilian_wins', sa.Integer(), nullable=False, server_default='0'),
            sa.Column('mafia_wins', sa.Integer(), nullable=False, server_default='0'),
            sa.Column('don_games', sa.Integer(), nullable=False, server_default='0'),
            sa.Column('sheriff_games', sa.Integer(), nullable=False, server_default='0'),
            sa.Column('first_outs', sa.Integer(), nullable=False, server_default='0'),
            sa.UniqueConstraint('rating_id', 'player_id', name='uq_rating_result_player'),
        )
        op.create_index('ix_rating_result_rating_id', 'rating_result', ['rating_id'])


def downgrade():
    for table in ('rating_result', 'rating_game', 'rating', 'game_player', 'game', 'player', 'club', 'federation', 'user'):
        op.drop_table(table)
