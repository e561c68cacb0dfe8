"""initial monopay schema: users, friends, games, players, ledger

Revision ID: a1c4e9d2b7f0
Revises:
Create Date: 2025-11-02 10:00:00.000000

"""
from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision = 'a1c4e9d2b7f0'
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
            sa.Column('uid', sa.String(length=10), nullable=False),
            sa.Column('username', sa.String(length=20), nullable=False),
            sa.Column('password_hash', sa.String(length=128), nullable=True),
            sa.Column('email', sa.String(length=254), nullable=True),
            sa.Column('display_name', sa.String(length=64), nullable=True),
            sa.Column('avatar', sa.String(length=512), nullable=True),
            sa.Column('google_id', sa.String(length=128), nullable=True, unique=True),
            sa.Column('apple_id', sa.String(length=128), nullable=True, unique=True),
            sa.Column('auth_provider', sa.String(length=16), nullable=False, server_default='local'),
            sa.Column('is_profile_complete', sa.Boolean(), nullable=False, server_default=sa.true()),
            sa.Column('games_played', sa.Integer(), nullable=False, server_default='0'),
            sa.Column('games_won', sa.Integer(), nullable=False, server_default='0'),
            sa.Column('total_earnings', sa.Integer(), nullable=False, server_default='0'),
            sa.Column('favorite_property', sa.String(length=64), nullable=True),
            sa.Column('longest_streak', sa.Integer(), nullable=False, server_default='0'),
            sa.Column('current_streak', sa.Integer(), nullable=False, server_default='0'),
            sa.Column('settings_json', sa.Text(), nullable=True),
            sa.Column('password_reset_token', sa.String(length=64), nullable=True),
            sa.Column('password_reset_expires', sa.DateTime(), nullable=True),
            sa.Column('created_at', sa.DateTime(), nullable=False),
            sa.Column('updated_at', sa.DateTime(), nullable=False),
        )
        op.create_index('ix_user_uid', 'user', ['uid'], unique=True)
        op.create_index('ix_user_username', 'user', ['username'], unique=True)
        op.create_index('ix_user_email', 'user', ['email'])
        op.create_index('ix_user_password_reset_token', 'user', ['password_reset_token'])

    if 'friendship' not in existing_tables:
        op.create_table(
            'friendship',
            sa.Column('user_id', sa.Integer(), sa.ForeignKey('user.id'), primary_key=True),
            sa.Column('friend_id', sa.Integer(), sa.ForeignKey('user.id'), primary_key=True),
        )

    if 'friend_request' not in existing_tables:
        op.create_table(
            'friend_request',
            sa.Column('id', sa.Integer(), primary_key=True),
            sa.Column('sender_id', sa.Integer(), sa.ForeignKey('user.id'), nullable=False),
            sa.Column('recipient_id', sa.Integer(), sa.ForeignKey('user.id'), nullable=False),
            sa.Column('sent_at', sa.DateTime(), nullable=False),
            sa.UniqueConstraint('sender_id', 'recipient_id', name='uq_friend_request_pair'),
        )
        op.create_index('ix_friend_request_sender_id', 'friend_request', ['sender_id'])
        op.create_index('ix_friend_request_recipient_id', 'friend_request', ['recipient_id'])

    if 'game_history' not in existing_tables:
        op.create_table(
            'game_history',
            sa.Column('id', sa.Integer(), primary_key=True),
            sa.Column('user_id', sa.Integer(), sa.ForeignKey('user.id'), nullable=False),
            sa.Column('game_code', sa.String(length=6), nullable=False),
            sa.Column('date', sa.DateTime(), nullable=False),
            sa.Column('players', sa.Integer(), nullable=False),
            sa.Column('result', sa.String(length=8), nullable=False),
            sa.Column('earnings', sa.Integer(), nullable=False, server_default='0'),
            sa.Column('edition', sa.String(length=32), nullable=False, server_default='Classic'),
        )
        op.create_index('ix_game_history_user_id', 'game_history', ['user_id'])

    if 'game' not in existing_tables:
        op.create_table(
            'game',
            sa.Column('id', sa.Integer(), primary_key=True),
            sa.Column('code', sa.String(length=6), nullable=False),
            sa.Column('name', sa.String(length=30), nullable=False),
            sa.Column('host_id', sa.Integer(), sa.ForeignKey('user.id'), nullable=False),
            sa.Column('max_players', sa.Integer(), nullable=False, server_default='8'),
            sa.Column('starting_balance', sa.Integer(), nullable=False, server_default='1500'),
            sa.Column('go_salary', sa.Integer(), nullable=False, server_default='200'),
            sa.Column('status', sa.String(length=16), nullable=False, server_default='waiting'),
            sa.Column('free_parking', sa.Boolean(), nullable=False, server_default=sa.false()),
            sa.Column('double_go_salary', sa.Boolean(), nullable=False, server_default=sa.false()),
            sa.Column('created_at', sa.DateTime(), nullable=False),
            sa.Column('started_at', sa.DateTime(), nullable=True),
            sa.Column('finished_at', sa.DateTime(), nullable=True),
        )
        op.create_index('ix_game_status', 'game', ['status'])
        # Codes only need to be unique among games that haven't finished
        op.create_index(
            'uq_game_code_active', 'game', ['code'], unique=True,
            sqlite_where=sa.text("status != 'finished'"),
            postgresql_where=sa.text("status != 'finished'"),
        )

    if 'player' not in existing_tables:
        op.create_table(
            'player',
            sa.Column('id', sa.Integer(), primary_key=True),
            sa.Column('game_id', sa.Integer(), sa.ForeignKey('game.id'), nullable=False),
            sa.Column('user_id', sa.Integer(), sa.ForeignKey('user.id'), nullable=False),
            sa.Column('balance', sa.Integer(), nullable=False),
            sa.Column('color', sa.String(length=16), nullable=False),
            sa.Column('is_ready', sa.Boolean(), nullable=False, server_default=sa.false()),
            sa.Column('is_host', sa.Boolean(), nullable=False, server_default=sa.false()),
            sa.Column('joined_at', sa.DateTime(), nullable=False),
            sa.UniqueConstraint('game_id', 'user_id', name='uq_player_game_user'),
        )
        op.create_index('ix_player_game_id', 'player', ['game_id'])
        op.create_index('ix_player_user_id', 'player', ['user_id'])

    if 'ledger_entry' not in existing_tables:
        op.create_table(
            'ledger_entry',
            sa.Column('id', sa.Integer(), primary_key=True),
            sa.Column('game_id', sa.Integer(), sa.ForeignKey('game.id'), nullable=False),
            sa.Column('from_user_id', sa.Integer(), sa.ForeignKey('user.id'), nullable=True),
            sa.Column('to_user_id', sa.Integer(), sa.ForeignKey('user.id'), nullable=True),
            sa.Column('amount', sa.Integer(), nullable=False),
            sa.Column('category', sa.String(length=32), nullable=False),
            sa.Column('description', sa.String(length=200), nullable=True),
            sa.Column('timestamp', sa.DateTime(), nullable=False),
        )
        op.create_index('ix_ledger_entry_game_id', 'ledger_entry', ['game_id'])


def downgrade():
    op.drop_table('ledger_entry')
    op.drop_table('player')
    op.drop_index('uq_game_code_active', table_name='game')
    op.drop_table('game')
    op.drop_table('game_history')
    op.drop_table('friend_request')
    op.drop_table('friendship')
    op.drop_table('user')
