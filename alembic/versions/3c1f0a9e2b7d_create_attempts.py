"""create_attempts

Revision ID: 3c1f0a9e2b7d
Revises:
Create Date: 2026-10-18 10:12:40.118034

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision: str = '3c1f0a9e2b7d'
down_revision: Union[str, Sequence[str], None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    """Upgrade schema."""
    op.create_table('attempts',
        sa.Column('id', sa.String(64), nullable=False),
        sa.Column('test_id', sa.String(64), nullable=False),
        sa.Column('candidate_id', sa.String(64), nullable=False),
        sa.Column('started_at', sa.DateTime(timezone=True), nullable=False),
        sa.Column('completed_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('status', sa.String(20), nullable=False, server_default='in_progress'),
        sa.Column('score_percent', sa.Integer(), nullable=True),
        sa.Column('passed', sa.Boolean(), nullable=True),
        sa.Column('violation_count', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('question_count', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('answered_count', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('correct_count', sa.Integer(), nullable=False, server_default='0'),
        sa.PrimaryKeyConstraint('id')
    )
    op.create_index('ix_attempts_id', 'attempts', ['id'])
    op.create_index('ix_attempts_test_id', 'attempts', ['test_id'])
    op.create_index('ix_attempts_candidate_id', 'attempts', ['candidate_id'])
    op.create_index('ix_attempts_status', 'attempts', ['status'])

    op.create_table('attempt_answers',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('attempt_id', sa.String(64), nullable=False),
        sa.Column('source_question_id', sa.String(64), nullable=False),
        sa.Column('question_index', sa.Integer(), nullable=False),
        sa.Column('answer_index', sa.Integer(), nullable=True),
        sa.Column('is_correct', sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column('prompt', sa.Text(), nullable=False, server_default=''),
        sa.Column('options_json', sa.Text(), nullable=True),
        sa.Column('correct_option_index', sa.Integer(), nullable=False),
        sa.Column('weight', sa.Integer(), nullable=False, server_default='1'),
        sa.PrimaryKeyConstraint('id'),
        sa.ForeignKeyConstraint(['attempt_id'], ['attempts.id'], ondelete='CASCADE'),
        sa.UniqueConstraint('attempt_id', 'question_index', name='uq_attempt_position')
    )
    op.create_index('ix_attempt_answers_id', 'attempt_answers', ['id'])
    op.create_index('ix_attempt_answers_attempt_id', 'attempt_answers', ['attempt_id'])


def downgrade() -> None:
    """Downgrade schema."""
    op.drop_index('ix_attempt_answers_attempt_id', table_name='attempt_answers')
    op.drop_index('ix_attempt_answers_id', table_name='attempt_answers')
    op.drop_table('attempt_answers')
    op.drop_index('ix_attempts_status', table_name='attempts')
    op.drop_index('ix_attempts_candidate_id', table_name='attempts')
    op.drop_index('ix_attempts_test_id', table_name='attempts')
    op.drop_index('ix_attempts_id', table_name='attempts')
    op.drop_table('attempts')
