"""initial_schema

Revision ID: 001_initial_schema
Revises:
Create Date: 2026-10-19 09:00:00.000000

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa

from arena.migrations.util import get_uuid_type


# revision identifiers, used by Alembic.
revision: str = '001_initial_schema'
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    uuid = get_uuid_type()

    op.create_table(
        'players',
        sa.Column('player_id', uuid, nullable=False),
        sa.Column('username', sa.String(length=80), nullable=False),
        sa.Column('email', sa.String(length=255), nullable=False),
        sa.Column('balance', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('total_wins', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('total_losses', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('total_earnings', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('is_admin', sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False),
        sa.PrimaryKeyConstraint('player_id'),
        sa.UniqueConstraint('username'),
        sa.UniqueConstraint('email'),
        sa.CheckConstraint('balance >= 0', name='ck_players_balance_non_negative'),
    )

    op.create_table(
        'challenges',
        sa.Column('challenge_id', uuid, nullable=False),
        sa.Column('game', sa.String(length=30), nullable=False),
        sa.Column('bet_amount', sa.Integer(), nullable=False),
        sa.Column('player_count', sa.Integer(), nullable=False),
        sa.Column('max_participants', sa.Integer(), nullable=False),
        sa.Column('participant_count', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('status', sa.String(length=20), nullable=False, server_default='pending'),
        sa.Column('challenger_id', uuid, nullable=False),
        sa.Column('accepter_id', uuid, nullable=True),
        sa.Column('is_admin_authored', sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column('scheduled_match_time', sa.DateTime(timezone=True), nullable=False),
        sa.Column('match_duration_minutes', sa.Integer(), nullable=False),
        sa.Column('duration_finalized', sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column('expires_at', sa.DateTime(timezone=True), nullable=False),
        sa.Column('match_fee', sa.Integer(), nullable=False),
        sa.Column('total_pot', sa.Integer(), nullable=False),
        sa.Column('fee_multiplier_bps', sa.Integer(), nullable=False),
        sa.Column('payout_multiplier_bps', sa.Integer(), nullable=False),
        sa.Column('payout_mode', sa.String(length=20), nullable=False),
        sa.Column('policy_version', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('admin_room_code', sa.String(length=64), nullable=True),
        sa.Column('room_code_provided_by', uuid, nullable=True),
        sa.Column('room_code_provided_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('winner_id', uuid, nullable=True),
        sa.Column('winner_screenshot', sa.String(length=500), nullable=True),
        sa.Column('admin_notes', sa.Text(), nullable=True),
        sa.Column('resolved_by', uuid, nullable=True),
        sa.Column('cancel_reason', sa.String(length=30), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False),
        sa.Column('accepted_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('started_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('completed_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('cancelled_at', sa.DateTime(timezone=True), nullable=True),
        sa.PrimaryKeyConstraint('challenge_id'),
        sa.ForeignKeyConstraint(['challenger_id'], ['players.player_id']),
        sa.ForeignKeyConstraint(['accepter_id'], ['players.player_id']),
        sa.ForeignKeyConstraint(['room_code_provided_by'], ['players.player_id']),
        sa.ForeignKeyConstraint(['winner_id'], ['players.player_id']),
        sa.ForeignKeyConstraint(['resolved_by'], ['players.player_id']),
        sa.CheckConstraint('bet_amount > 0', name='ck_challenges_bet_positive'),
        sa.CheckConstraint('participant_count <= max_participants', name='ck_challenges_roster_capacity'),
    )
    op.create_index('ix_challenges_challenger_id', 'challenges', ['challenger_id'])
    op.create_index('ix_challenges_status_game', 'challenges', ['status', 'game'])
    op.create_index('ix_challenges_status_expires', 'challenges', ['status', 'expires_at'])
    op.create_index('ix_challenges_challenger_status', 'challenges', ['challenger_id', 'status'])

    op.create_table(
        'challenge_participants',
        sa.Column('participant_id', uuid, nullable=False),
        sa.Column('challenge_id', uuid, nullable=False),
        sa.Column('player_id', uuid, nullable=False),
        sa.Column('joined_at', sa.DateTime(timezone=True), nullable=False),
        sa.Column('proof_screenshot', sa.String(length=500), nullable=True),
        sa.Column('proof_submitted_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('is_winner', sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column('payout_amount', sa.Integer(), nullable=True),
        sa.PrimaryKeyConstraint('participant_id'),
        sa.ForeignKeyConstraint(['challenge_id'], ['challenges.challenge_id'], ondelete='CASCADE'),
        sa.ForeignKeyConstraint(['player_id'], ['players.player_id']),
        sa.UniqueConstraint('challenge_id', 'player_id', name='uq_challenge_participants_challenge_player'),
    )
    op.create_index('ix_challenge_participants_challenge_id', 'challenge_participants', ['challenge_id'])
    op.create_index('ix_challenge_participants_player_id', 'challenge_participants', ['player_id'])

    op.create_table(
        'wallet_transactions',
        sa.Column('transaction_id', uuid, nullable=False),
        sa.Column('player_id', uuid, nullable=True),
        sa.Column('amount', sa.Integer(), nullable=False),
        sa.Column('type', sa.String(length=20), nullable=False),
        sa.Column('reference_id', uuid, nullable=True),
        sa.Column('balance_after', sa.Integer(), nullable=True),
        sa.Column('notes', sa.String(length=255), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False),
        sa.PrimaryKeyConstraint('transaction_id'),
        sa.ForeignKeyConstraint(['player_id'], ['players.player_id'], ondelete='RESTRICT'),
        sa.UniqueConstraint('player_id', 'reference_id', 'type', name='uq_wallet_transactions_player_reference_type'),
    )
    op.create_index('ix_wallet_transactions_player_id', 'wallet_transactions', ['player_id'])
    op.create_index('ix_wallet_transactions_type', 'wallet_transactions', ['type'])
    op.create_index('ix_wallet_transactions_reference_id', 'wallet_transactions', ['reference_id'])
    op.create_index('ix_wallet_transactions_created_at', 'wallet_transactions', ['created_at'])
    op.create_index('ix_wallet_transactions_player_created', 'wallet_transactions', ['player_id', 'created_at'])

    op.create_table(
        'system_config',
        sa.Column('key', sa.String(length=100), nullable=False),
        sa.Column('value', sa.Text(), nullable=False),
        sa.Column('value_type', sa.String(length=20), nullable=False),
        sa.Column('description', sa.Text(), nullable=True),
        sa.Column('category', sa.String(length=50), nullable=True),
        sa.Column('updated_at', sa.DateTime(timezone=True), nullable=False),
        sa.Column('updated_by', sa.String(length=100), nullable=True),
        sa.PrimaryKeyConstraint('key'),
    )


def downgrade() -> None:
    op.drop_table('system_config')
    op.drop_index('ix_wallet_transactions_player_created', table_name='wallet_transactions')
    op.drop_index('ix_wallet_transactions_created_at', table_name='wallet_transactions')
    op.drop_index('ix_wallet_transactions_reference_id', table_name='wallet_transactions')
    op.drop_index('ix_wallet_transactions_type', table_name='wallet_transactions')
    op.drop_index('ix_wallet_transactions_player_id', table_name='wallet_transactions')
    op.drop_table('wallet_transactions')
    op.drop_index('ix_challenge_participants_player_id', table_name='challenge_participants')
    op.drop_index('ix_challenge_participants_challenge_id', table_name='challenge_participants')
    op.drop_table('challenge_participants')
    op.drop_index('ix_challenges_challenger_status', table_name='challenges')
    op.drop_index('ix_challenges_status_expires', table_name='challenges')
    op.drop_index('ix_challenges_status_game', table_name='challenges')
    op.drop_index('ix_challenges_challenger_id', table_name='challenges')
    op.drop_table('challenges')
    op.drop_table('players')
