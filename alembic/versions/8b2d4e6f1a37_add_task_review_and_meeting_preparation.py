"""add task review, task distribution and meeting preparation

Revision ID: 8b2d4e6f1a37
Revises: 3f1c2a9b7d10
Create Date: 2026-10-19 09:41:07.512930

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision: str = '8b2d4e6f1a37'
down_revision: Union[str, None] = '3f1c2a9b7d10'
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade():
    op.add_column('tasks', sa.Column('parent_task_id', sa.Integer(), sa.ForeignKey('tasks.id'), nullable=True))
    op.add_column('tasks', sa.Column('vo_reviewed', sa.Boolean(), server_default=sa.false()))
    op.add_column('tasks', sa.Column('vo_reviewed_at', sa.DateTime(timezone=True), nullable=True))
    op.add_column('tasks', sa.Column('vo_reviewed_by', sa.Integer(), sa.ForeignKey('users.id'), nullable=True))
    op.add_column('tasks', sa.Column('vo_comment', sa.Text(), nullable=True))

    op.add_column('salary_reviews', sa.Column('proposed_increase', sa.Numeric(12, 2), nullable=True))
    op.add_column('salary_reviews', sa.Column('final_increase', sa.Numeric(12, 2), nullable=True))
    op.add_column('salary_reviews', sa.Column('updated_at', sa.DateTime(timezone=True), nullable=True))

    op.create_table(
        'salary_meeting_preparations',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('salary_review_id', sa.Integer(), sa.ForeignKey('salary_reviews.id'), nullable=False, unique=True),
        sa.Column('previous_agreements', sa.Text(), nullable=True),
        sa.Column('goals_achieved', sa.Text(), nullable=True),
        sa.Column('contribution_summary', sa.Text(), nullable=True),
        sa.Column('salary_statistics', sa.Text(), nullable=True),
        sa.Column('development_needs', sa.Text(), nullable=True),
        sa.Column('strengths_summary', sa.Text(), nullable=True),
        sa.Column('ai_generated_summary', sa.Text(), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.func.now()),
        sa.Column('updated_at', sa.DateTime(timezone=True), nullable=True),
    )


def downgrade():
    op.drop_table('salary_meeting_preparations')
    op.drop_column('salary_reviews', 'updated_at')
    op.drop_column('salary_reviews', 'final_increase')
    op.drop_column('salary_reviews', 'proposed_increase')
    op.drop_column('tasks', 'vo_comment')
    op.drop_column('tasks', 'vo_reviewed_by')
    op.drop_column('tasks', 'vo_reviewed_at')
    op.drop_column('tasks', 'vo_reviewed')
    op.drop_column('tasks', 'parent_task_id')
