"""initial schema

Revision ID: 3f1c2a9b7d10
Revises: 
Create Date: 2026-09-14 10:12:41.118203

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision: str = '3f1c2a9b7d10'
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    op.create_table(
        'org_units',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('name', sa.String(), nullable=False),
        sa.Column('description', sa.Text(), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.func.now()),
    )
    op.create_table(
        'users',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('email', sa.String(), nullable=False),
        sa.Column('full_name', sa.String(), nullable=True),
        sa.Column('hashed_password', sa.String(), nullable=False),
        sa.Column('role', sa.String(), nullable=False, server_default='station_manager'),
        sa.Column('org_unit_id', sa.Integer(), sa.ForeignKey('org_units.id'), nullable=True),
        sa.Column('is_active', sa.Boolean(), server_default=sa.true()),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.func.now()),
    )
    op.create_index('ix_users_email', 'users', ['email'], unique=True)
    op.create_table(
        'stations',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('name', sa.String(), nullable=False),
        sa.Column('org_unit_id', sa.Integer(), sa.ForeignKey('org_units.id'), nullable=False),
        sa.Column('address', sa.String(), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.func.now()),
    )
    op.create_table(
        'user_stations',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('user_id', sa.Integer(), sa.ForeignKey('users.id'), nullable=False),
        sa.Column('station_id', sa.Integer(), sa.ForeignKey('stations.id'), nullable=False),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.func.now()),
        sa.UniqueConstraint('user_id', 'station_id', name='uq_user_station'),
    )

    op.create_table(
        'annual_cycle_items',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('title', sa.String(), nullable=False),
        sa.Column('description', sa.Text(), nullable=True),
        sa.Column('month', sa.Integer(), nullable=True),
        sa.Column('category', sa.String(), nullable=False, server_default='other'),
        sa.Column('action_link', sa.String(), nullable=True),
        sa.Column('is_recurring', sa.Boolean(), server_default=sa.true()),
        sa.Column('year', sa.Integer(), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.func.now()),
    )
    op.create_table(
        'annual_task_completions',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('item_id', sa.Integer(), sa.ForeignKey('annual_cycle_items.id'), nullable=False),
        sa.Column('station_id', sa.Integer(), sa.ForeignKey('stations.id'), nullable=True),
        sa.Column('user_id', sa.Integer(), sa.ForeignKey('users.id'), nullable=True),
        sa.Column('year', sa.Integer(), nullable=False),
        sa.Column('status', sa.String(), nullable=False, server_default='completed'),
        sa.Column('completed_by', sa.Integer(), sa.ForeignKey('users.id'), nullable=False),
        sa.Column('completed_at', sa.DateTime(timezone=True), nullable=False),
        sa.UniqueConstraint('item_id', 'station_id', 'year', name='uq_completion_item_station_year'),
        sa.UniqueConstraint('item_id', 'user_id', 'year', name='uq_completion_item_user_year'),
        sa.CheckConstraint(
            '(station_id IS NOT NULL AND user_id IS NULL) OR (station_id IS NULL AND user_id IS NOT NULL)',
            name='ck_completion_single_target',
        ),
    )

    op.create_table(
        'tasks',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('title', sa.String(), nullable=False),
        sa.Column('description', sa.Text(), nullable=True),
        sa.Column('category', sa.String(), nullable=False),
        sa.Column('owner_type', sa.String(), nullable=False),
        sa.Column('org_unit_id', sa.Integer(), sa.ForeignKey('org_units.id'), nullable=True),
        sa.Column('station_id', sa.Integer(), sa.ForeignKey('stations.id'), nullable=True),
        sa.Column('created_by', sa.Integer(), sa.ForeignKey('users.id'), nullable=False),
        sa.Column('assigned_to', sa.Integer(), sa.ForeignKey('users.id'), nullable=True),
        sa.Column('year', sa.Integer(), nullable=False),
        sa.Column('start_month', sa.Integer(), nullable=True),
        sa.Column('end_month', sa.Integer(), nullable=True),
        sa.Column('is_recurring_monthly', sa.Boolean(), server_default=sa.false()),
        sa.Column('deadline_day', sa.Integer(), server_default='25'),
        sa.Column('status', sa.String(), server_default='not_started'),
        sa.Column('notes', sa.Text(), nullable=True),
        sa.Column('completed_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('completed_by', sa.Integer(), sa.ForeignKey('users.id'), nullable=True),
        sa.Column('annual_cycle_item_id', sa.Integer(), sa.ForeignKey('annual_cycle_items.id'), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.func.now()),
        sa.Column('updated_at', sa.DateTime(timezone=True), nullable=True),
    )
    op.create_table(
        'task_comments',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('task_id', sa.Integer(), sa.ForeignKey('tasks.id'), nullable=False),
        sa.Column('user_id', sa.Integer(), sa.ForeignKey('users.id'), nullable=False),
        sa.Column('content', sa.Text(), nullable=False),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.func.now()),
    )

    op.create_table(
        'salary_review_cycles',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('year', sa.Integer(), nullable=False),
        sa.Column('description', sa.Text(), nullable=True),
        sa.Column('status', sa.String(), nullable=False, server_default='planning'),
        sa.Column('start_date', sa.Date(), nullable=True),
        sa.Column('end_date', sa.Date(), nullable=True),
        sa.Column('created_by', sa.Integer(), sa.ForeignKey('users.id'), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.func.now()),
    )
    op.create_table(
        'employees',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('employee_number', sa.String(), nullable=True),
        sa.Column('first_name', sa.String(), nullable=False),
        sa.Column('last_name', sa.String(), nullable=False),
        sa.Column('email', sa.String(), nullable=True),
        sa.Column('category', sa.String(), nullable=False),
        sa.Column('station_id', sa.Integer(), sa.ForeignKey('stations.id'), nullable=False),
        sa.Column('manager_id', sa.Integer(), sa.ForeignKey('users.id'), nullable=False),
        sa.Column('employment_date', sa.Date(), nullable=True),
        sa.Column('current_salary', sa.Numeric(12, 2), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.func.now()),
    )
    op.create_table(
        'salary_reviews',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('cycle_id', sa.Integer(), sa.ForeignKey('salary_review_cycles.id'), nullable=False),
        sa.Column('employee_id', sa.Integer(), sa.ForeignKey('employees.id'), nullable=False),
        sa.Column('manager_id', sa.Integer(), sa.ForeignKey('users.id'), nullable=False),
        sa.Column('status', sa.String(), nullable=False, server_default='not_started'),
        sa.Column('is_particularly_skilled', sa.Boolean(), nullable=True),
        sa.Column('proposed_salary', sa.Numeric(12, 2), nullable=True),
        sa.Column('final_salary', sa.Numeric(12, 2), nullable=True),
        sa.Column('meeting_date', sa.Date(), nullable=True),
        sa.Column('meeting_notes', sa.Text(), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.func.now()),
        sa.Column('completed_at', sa.DateTime(timezone=True), nullable=True),
        sa.UniqueConstraint('employee_id', 'cycle_id', name='uq_review_employee_cycle'),
    )
    op.create_table(
        'salary_criteria_assessments',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('salary_review_id', sa.Integer(), sa.ForeignKey('salary_reviews.id'), nullable=False),
        sa.Column('criterion_key', sa.String(), nullable=True),
        sa.Column('sub_criterion_key', sa.String(), nullable=False),
        sa.Column('rating', sa.String(), nullable=False),
        sa.Column('evidence', sa.Text(), nullable=True),
        sa.Column('notes', sa.Text(), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.func.now()),
    )
    op.create_table(
        'particularly_skillful_assessments',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('salary_review_id', sa.Integer(), sa.ForeignKey('salary_reviews.id'), nullable=False),
        sa.Column('criterion_key', sa.String(), nullable=False),
        sa.Column('is_met', sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column('evidence', sa.Text(), nullable=True),
        sa.Column('notes', sa.Text(), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.func.now()),
    )

    op.create_table(
        'vo_cycle_budgets',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('cycle_id', sa.Integer(), sa.ForeignKey('salary_review_cycles.id'), nullable=False),
        sa.Column('org_unit_id', sa.Integer(), sa.ForeignKey('org_units.id'), nullable=False),
        sa.Column('total_budget', sa.Numeric(14, 2), nullable=False),
        sa.Column('created_by', sa.Integer(), sa.ForeignKey('users.id'), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.func.now()),
        sa.UniqueConstraint('cycle_id', 'org_unit_id', name='uq_budget_cycle_unit'),
    )
    op.create_table(
        'station_budget_allocations',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('budget_id', sa.Integer(), sa.ForeignKey('vo_cycle_budgets.id'), nullable=False),
        sa.Column('station_id', sa.Integer(), sa.ForeignKey('stations.id'), nullable=False),
        sa.Column('allocated_amount', sa.Numeric(14, 2), nullable=False, server_default='0'),
        sa.Column('notes', sa.Text(), nullable=True),
        sa.UniqueConstraint('budget_id', 'station_id', name='uq_allocation_budget_station'),
    )


def downgrade() -> None:
    op.drop_table('station_budget_allocations')
    op.drop_table('vo_cycle_budgets')
    op.drop_table('particularly_skillful_assessments')
    op.drop_table('salary_criteria_assessments')
    op.drop_table('salary_reviews')
    op.drop_table('employees')
    op.drop_table('salary_review_cycles')
    op.drop_table('task_comments')
    op.drop_table('tasks')
    op.drop_table('annual_task_completions')
    op.drop_table('annual_cycle_items')
    op.drop_table('user_stations')
    op.drop_table('stations')
    op.drop_index('ix_users_email', table_name='users')
    op.drop_table('users')
    op.drop_table('org_units')
