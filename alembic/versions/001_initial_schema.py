"""Initial schema: tenants, teams, issues and the issue audit trail.

Revision ID: 001
Revises:
Create Date: 2026-10-19

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql

# revision identifiers, used by Alembic.
revision: str = '001'
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    # Tenants and principals
    op.create_table(
        'organizations',
        sa.Column('id', postgresql.UUID(as_uuid=True), primary_key=True),
        sa.Column('name', sa.String(255), nullable=False),
        sa.Column('slug', sa.String(100), nullable=False, unique=True),
        sa.Column('created_at', sa.DateTime, nullable=False, server_default=sa.text('NOW()')),
    )
    op.create_index('idx_organizations_slug', 'organizations', ['slug'])

    op.create_table(
        'users',
        sa.Column('id', postgresql.UUID(as_uuid=True), primary_key=True),
        sa.Column('organization_id', postgresql.UUID(as_uuid=True), sa.ForeignKey('organizations.id', ondelete='CASCADE'), nullable=False),
        sa.Column('email', sa.String(255), nullable=False, unique=True),
        sa.Column('full_name', sa.String(255)),
        sa.Column('is_active', sa.Boolean, nullable=False, server_default=sa.true()),
        sa.Column('created_at', sa.DateTime, nullable=False, server_default=sa.text('NOW()')),
    )
    op.create_index('idx_users_organization', 'users', ['organization_id'])
    op.create_index('idx_users_email', 'users', ['email'])

    # Teams and memberships
    op.create_table(
        'teams',
        sa.Column('id', postgresql.UUID(as_uuid=True), primary_key=True),
        sa.Column('organization_id', postgresql.UUID(as_uuid=True), sa.ForeignKey('organizations.id', ondelete='CASCADE'), nullable=False),
        sa.Column('parent_team_id', postgresql.UUID(as_uuid=True), sa.ForeignKey('teams.id', ondelete='SET NULL')),
        sa.Column('name', sa.String(255), nullable=False),
        sa.Column('description', sa.Text),
        sa.Column('created_at', sa.DateTime, nullable=False, server_default=sa.text('NOW()')),
        sa.Column('updated_at', sa.DateTime, nullable=False, server_default=sa.text('NOW()')),
        sa.Column('deleted_at', sa.DateTime),
    )
    op.create_index('idx_teams_organization', 'teams', ['organization_id'])
    op.create_index('idx_teams_parent', 'teams', ['parent_team_id'])
    op.create_index('idx_teams_deleted_at', 'teams', ['deleted_at'])

    op.create_table(
        'team_members',
        sa.Column('id', postgresql.UUID(as_uuid=True), primary_key=True),
        sa.Column('team_id', postgresql.UUID(as_uuid=True), sa.ForeignKey('teams.id', ondelete='CASCADE'), nullable=False),
        sa.Column('user_id', postgresql.UUID(as_uuid=True), sa.ForeignKey('users.id', ondelete='CASCADE'), nullable=False),
        sa.Column('role', sa.Enum('manager', 'assistant', 'member', 'stakeholder', name='team_role'), nullable=False, server_default='member'),
        sa.Column('joined_at', sa.DateTime, nullable=False, server_default=sa.text('NOW()')),
        sa.UniqueConstraint('team_id', 'user_id', name='unique_team_user'),
    )
    op.create_index('idx_team_members_team', 'team_members', ['team_id'])
    op.create_index('idx_team_members_user', 'team_members', ['user_id'])
    op.create_index('idx_team_members_role', 'team_members', ['role'])

    # Workflow statuses (per organization)
    op.create_table(
        'issue_statuses',
        sa.Column('id', postgresql.UUID(as_uuid=True), primary_key=True),
        sa.Column('organization_id', postgresql.UUID(as_uuid=True), sa.ForeignKey('organizations.id', ondelete='CASCADE'), nullable=False),
        sa.Column('name', sa.String(100), nullable=False),
        sa.Column('position', sa.Integer, nullable=False),
        sa.Column('is_final', sa.Boolean, nullable=False, server_default=sa.false()),
        sa.Column('color', sa.String(7), nullable=False, server_default='#6B7280'),
        sa.Column('created_at', sa.DateTime, nullable=False, server_default=sa.text('NOW()')),
    )
    op.create_index('idx_issue_statuses_organization', 'issue_statuses', ['organization_id'])

    # Issues
    op.create_table(
        'issues',
        sa.Column('id', postgresql.UUID(as_uuid=True), primary_key=True),
        sa.Column('team_id', postgresql.UUID(as_uuid=True), sa.ForeignKey('teams.id', ondelete='CASCADE'), nullable=False),
        sa.Column('status_id', postgresql.UUID(as_uuid=True), sa.ForeignKey('issue_statuses.id', ondelete='SET NULL')),
        sa.Column('title', sa.String(500), nullable=False),
        sa.Column('description', sa.Text),
        sa.Column('priority', sa.Enum('LOW', 'NORMAL', 'HIGH', 'URGENT', name='issue_priority'), nullable=False, server_default='NORMAL'),
        sa.Column('deadline', sa.Date),
        sa.Column('created_by', postgresql.UUID(as_uuid=True), sa.ForeignKey('users.id', ondelete='SET NULL')),
        sa.Column('created_at', sa.DateTime, nullable=False, server_default=sa.text('NOW()')),
        sa.Column('updated_at', sa.DateTime, nullable=False, server_default=sa.text('NOW()')),
        sa.Column('deleted_at', sa.DateTime),
    )
    op.create_index('idx_issues_team', 'issues', ['team_id'])
    op.create_index('idx_issues_status', 'issues', ['status_id'])
    op.create_index('idx_issues_created_at', 'issues', ['created_at'], postgresql_ops={'created_at': 'DESC'})
    op.create_index('idx_issues_deleted_at', 'issues', ['deleted_at'])

    # Audit trail
    op.create_table(
        'issue_status_logs',
        sa.Column('id', postgresql.UUID(as_uuid=True), primary_key=True),
        sa.Column('issue_id', postgresql.UUID(as_uuid=True), sa.ForeignKey('issues.id', ondelete='CASCADE'), nullable=False),
        sa.Column('from_status_id', postgresql.UUID(as_uuid=True), sa.ForeignKey('issue_statuses.id', ondelete='SET NULL')),
        sa.Column('to_status_id', postgresql.UUID(as_uuid=True), sa.ForeignKey('issue_statuses.id', ondelete='SET NULL')),
        sa.Column('changed_by', postgresql.UUID(as_uuid=True), sa.ForeignKey('users.id', ondelete='SET NULL')),
        sa.Column('changed_at', sa.DateTime, nullable=False, server_default=sa.text('NOW()')),
    )
    op.create_index('idx_issue_status_logs_issue', 'issue_status_logs', ['issue_id'])
    op.create_index('idx_issue_status_logs_changed_at', 'issue_status_logs', ['changed_at'])

    op.create_table(
        'issue_hold_reasons',
        sa.Column('id', postgresql.UUID(as_uuid=True), primary_key=True),
        sa.Column('issue_id', postgresql.UUID(as_uuid=True), sa.ForeignKey('issues.id', ondelete='CASCADE'), nullable=False),
        sa.Column('reason', sa.Text, nullable=False),
        sa.Column('created_by', postgresql.UUID(as_uuid=True), sa.ForeignKey('users.id', ondelete='SET NULL')),
        sa.Column('created_at', sa.DateTime, nullable=False, server_default=sa.text('NOW()')),
        sa.Column('resolved_at', sa.DateTime),
        sa.Column('resolved_by', postgresql.UUID(as_uuid=True), sa.ForeignKey('users.id', ondelete='SET NULL')),
    )
    op.create_index('idx_issue_hold_reasons_issue', 'issue_hold_reasons', ['issue_id'])
    op.create_index('idx_issue_hold_reasons_resolved_at', 'issue_hold_reasons', ['resolved_at'])

    op.create_table(
        'issue_activities',
        sa.Column('id', postgresql.UUID(as_uuid=True), primary_key=True),
        sa.Column('issue_id', postgresql.UUID(as_uuid=True), sa.ForeignKey('issues.id', ondelete='CASCADE'), nullable=False),
        sa.Column('user_id', postgresql.UUID(as_uuid=True), sa.ForeignKey('users.id', ondelete='SET NULL')),
        sa.Column('activity_type', sa.Enum(
            'created', 'assigned', 'status_changed', 'priority_changed', 'commented', 'hold', 'resumed',
            name='activity_type'
        ), nullable=False),
        sa.Column('description', sa.Text, nullable=False, server_default=''),
        sa.Column('metadata', postgresql.JSONB, server_default='{}'),
        sa.Column('created_at', sa.DateTime, nullable=False, server_default=sa.text('NOW()')),
    )
    op.create_index('idx_issue_activities_issue', 'issue_activities', ['issue_id'])
    op.create_index('idx_issue_activities_type', 'issue_activities', ['activity_type'])
    op.create_index('idx_issue_activities_created_at', 'issue_activities', ['created_at'], postgresql_ops={'created_at': 'DESC'})

    op.create_table(
        'issue_assignments',
        sa.Column('id', postgresql.UUID(as_uuid=True), primary_key=True),
        sa.Column('issue_id', postgresql.UUID(as_uuid=True), sa.ForeignKey('issues.id', ondelete='CASCADE'), nullable=False),
        sa.Column('user_id', postgresql.UUID(as_uuid=True), sa.ForeignKey('users.id', ondelete='CASCADE'), nullable=False),
        sa.Column('start_date', sa.Date, nullable=False),
        sa.Column('end_date', sa.Date, nullable=False),
        sa.Column('assigned_at', sa.DateTime, nullable=False, server_default=sa.text('NOW()')),
        sa.Column('assigned_by', postgresql.UUID(as_uuid=True), sa.ForeignKey('users.id', ondelete='SET NULL')),
        sa.Column('is_active', sa.Boolean, nullable=False, server_default=sa.true()),
        sa.CheckConstraint('end_date >= start_date', name='valid_assignment_window'),
    )
    op.create_index('idx_issue_assignments_issue', 'issue_assignments', ['issue_id'])
    op.create_index('idx_issue_assignments_user', 'issue_assignments', ['user_id'])
    op.create_index('idx_issue_assignments_active', 'issue_assignments', ['is_active'])

    # Work log and comments
    op.create_table(
        'issue_work_logs',
        sa.Column('id', postgresql.UUID(as_uuid=True), primary_key=True),
        sa.Column('issue_id', postgresql.UUID(as_uuid=True), sa.ForeignKey('issues.id', ondelete='CASCADE'), nullable=False),
        sa.Column('user_id', postgresql.UUID(as_uuid=True), sa.ForeignKey('users.id', ondelete='CASCADE'), nullable=False),
        sa.Column('work_date', sa.Date, nullable=False),
        sa.Column('minutes_spent', sa.Integer, nullable=False),
        sa.Column('notes', sa.Text),
        sa.Column('created_at', sa.DateTime, nullable=False, server_default=sa.text('NOW()')),
        sa.CheckConstraint('minutes_spent > 0', name='positive_minutes_spent'),
    )
    op.create_index('idx_issue_work_logs_issue', 'issue_work_logs', ['issue_id'])
    op.create_index('idx_issue_work_logs_user', 'issue_work_logs', ['user_id'])

    op.create_table(
        'issue_comments',
        sa.Column('id', postgresql.UUID(as_uuid=True), primary_key=True),
        sa.Column('issue_id', postgresql.UUID(as_uuid=True), sa.ForeignKey('issues.id', ondelete='CASCADE'), nullable=False),
        sa.Column('user_id', postgresql.UUID(as_uuid=True), sa.ForeignKey('users.id', ondelete='CASCADE'), nullable=False),
        sa.Column('content', sa.Text, nullable=False),
        sa.Column('created_at', sa.DateTime, nullable=False, server_default=sa.text('NOW()')),
        sa.Column('updated_at', sa.DateTime, nullable=False, server_default=sa.text('NOW()')),
    )
    op.create_index('idx_issue_comments_issue', 'issue_comments', ['issue_id'])


def downgrade() -> None:
    # Drop tables
    op.drop_table('issue_comments')
    op.drop_table('issue_work_logs')
    op.drop_table('issue_assignments')
    op.drop_table('issue_activities')
    op.drop_table('issue_hold_reasons')
    op.drop_table('issue_status_logs')
    op.drop_table('issues')
    op.drop_table('issue_statuses')
    op.drop_table('team_members')
    op.drop_table('teams')
    op.drop_table('users')
    op.drop_table('organizations')

    # Drop enums
    op.execute('DROP TYPE IF EXISTS activity_type')
    op.execute('DROP TYPE IF EXISTS issue_priority')
    op.execute('DROP TYPE IF EXISTS team_role')
