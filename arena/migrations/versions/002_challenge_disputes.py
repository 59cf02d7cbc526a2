"""challenge_disputes

Revision ID: 002_challenge_disputes
Revises: 001_initial_schema
Create Date: 2026-10-26 10:15:00.000000

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision: str = '002_challenge_disputes'
down_revision: Union[str, None] = '001_initial_schema'
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    # Participant-raised disputes on settled matches, batch mode for SQLite compatibility
    with op.batch_alter_table('challenges', schema=None) as batch_op:
        batch_op.add_column(sa.Column('is_disputed', sa.Boolean(), nullable=False, server_default=sa.false()))
        batch_op.add_column(sa.Column('dispute_reason', sa.Text(), nullable=True))
        batch_op.add_column(sa.Column('disputed_at', sa.DateTime(timezone=True), nullable=True))

    op.execute("UPDATE challenges SET status = 'in-progress' WHERE status = 'in_progress'")


def downgrade() -> None:
    op.execute("UPDATE challenges SET status = 'in_progress' WHERE status = 'in-progress'")

    with op.batch_alter_table('challenges', schema=None) as batch_op:
        batch_op.drop_column('disputed_at')
        batch_op.drop_column('dispute_reason')
        batch_op.drop_column('is_disputed')
