"""Create tracker tables

Revision ID: 4c1e2d7a9b30
Revises:
Create Date: 2026-10-18 12:00:00.000000

"""
from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision = '4c1e2d7a9b30'
down_revision = None
branch_labels = None
depends_on = None


def _timestamps(updated=True):
    columns = [
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.text('(CURRENT_TIMESTAMP)'), nullable=True),
    ]
    if updated:
        columns.append(
            sa.Column('updated_at', sa.DateTime(timezone=True), server_default=sa.text('(CURRENT_TIMESTAMP)'), nullable=True)
        )
    return columns


def upgrade():
    op.create_table('users',
        sa.Column('id', sa.String(length=36), nullable=False),
        sa.Column('type', sa.String(length=30), nullable=False),
        sa.Column('login', sa.String(length=256), nullable=False),
        sa.Column('firstname', sa.String(length=30), nullable=False),
        sa.Column('lastname', sa.String(length=30), nullable=False),
        sa.Column('mail', sa.String(length=60), nullable=False),
        sa.Column('password_hash', sa.String(length=255), nullable=False),
        sa.Column('admin', sa.Boolean(), nullable=False),
        sa.Column('status', sa.Integer(), nullable=False),
        sa.Column('kind', sa.String(length=20), nullable=False),
        sa.Column('language', sa.String(length=5), nullable=True),
        sa.Column('mail_notification', sa.String(length=30), nullable=False),
        sa.Column('last_login_on', sa.DateTime(timezone=True), nullable=True),
        *_timestamps(),
        sa.PrimaryKeyConstraint('id')
    )
    op.create_index('ix_users_type_login', 'users', ['type', 'login'])
    op.create_table('group_users',
        sa.Column('group_id', sa.String(length=36), nullable=False),
        sa.Column('user_id', sa.String(length=36), nullable=False),
        sa.ForeignKeyConstraint(['group_id'], ['users.id'], ondelete='CASCADE'),
        sa.ForeignKeyConstraint(['user_id'], ['users.id'], ondelete='CASCADE'),
        sa.PrimaryKeyConstraint('group_id', 'user_id')
    )
    op.create_table('projects',
        sa.Column('id', sa.String(length=36), nullable=False),
        sa.Column('name', sa.String(length=255), nullable=False),
        sa.Column('identifier', sa.String(length=100), nullable=False),
        sa.Column('description', sa.Text(), nullable=True),
        sa.Column('is_public', sa.Boolean(), nullable=False),
        sa.Column('status', sa.Integer(), nullable=False),
        sa.Column('parent_id', sa.String(length=36), nullable=True),
        *_timestamps(),
        sa.ForeignKeyConstraint(['parent_id'], ['projects.id']),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('identifier')
    )
    op.create_table('enabled_modules',
        sa.Column('id', sa.String(length=36), nullable=False),
        sa.Column('project_id', sa.String(length=36), nullable=False),
        sa.Column('name', sa.String(length=255), nullable=False),
        sa.ForeignKeyConstraint(['project_id'], ['projects.id'], ondelete='CASCADE'),
        sa.PrimaryKeyConstraint('id')
    )
    op.create_table('roles',
        sa.Column('id', sa.String(length=36), nullable=False),
        sa.Column('name', sa.String(length=30), nullable=False),
        sa.Column('position', sa.Integer(), nullable=False),
        sa.Column('assignable', sa.Boolean(), nullable=False),
        sa.Column('builtin', sa.Integer(), nullable=False),
        sa.Column('permissions', sa.JSON(), nullable=False),
        *_timestamps(updated=False),
        sa.PrimaryKeyConstraint('id')
    )
    op.create_table('members',
        sa.Column('id', sa.String(length=36), nullable=False),
        sa.Column('principal_id', sa.String(length=36), nullable=False),
        sa.Column('project_id', sa.String(length=36), nullable=False),
        sa.Column('mail_notification', sa.Boolean(), nullable=False),
        sa.Column('inherited_from', sa.String(length=36), nullable=True),
        *_timestamps(updated=False),
        sa.ForeignKeyConstraint(['principal_id'], ['users.id'], ondelete='CASCADE'),
        sa.ForeignKeyConstraint(['project_id'], ['projects.id'], ondelete='CASCADE'),
        sa.ForeignKeyConstraint(['inherited_from'], ['members.id'], ondelete='CASCADE'),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('principal_id', 'project_id', name='uq_principal_project')
    )
    op.create_table('member_roles',
        sa.Column('id', sa.String(length=36), nullable=False),
        sa.Column('member_id', sa.String(length=36), nullable=False),
        sa.Column('role_id', sa.String(length=36), nullable=False),
        sa.Column('position', sa.Integer(), nullable=False),
        sa.Column('inherited_from', sa.String(length=36), nullable=True),
        sa.ForeignKeyConstraint(['member_id'], ['members.id'], ondelete='CASCADE'),
        sa.ForeignKeyConstraint(['role_id'], ['roles.id'], ondelete='CASCADE'),
        sa.ForeignKeyConstraint(['inherited_from'], ['member_roles.id'], ondelete='CASCADE'),
        sa.PrimaryKeyConstraint('id')
    )
    op.create_table('trackers',
        sa.Column('id', sa.String(length=36), nullable=False),
        sa.Column('name', sa.String(length=30), nullable=False),
        sa.Column('position', sa.Integer(), nullable=False),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('name')
    )
    op.create_table('issue_statuses',
        sa.Column('id', sa.String(length=36), nullable=False),
        sa.Column('name', sa.String(length=30), nullable=False),
        sa.Column('is_closed', sa.Boolean(), nullable=False),
        sa.Column('is_default', sa.Boolean(), nullable=False),
        sa.Column('position', sa.Integer(), nullable=False),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('name')
    )
    op.create_table('issue_priorities',
        sa.Column('id', sa.String(length=36), nullable=False),
        sa.Column('name', sa.String(length=30), nullable=False),
        sa.Column('position', sa.Integer(), nullable=False),
        sa.Column('is_default', sa.Boolean(), nullable=False),
        sa.Column('active', sa.Boolean(), nullable=False),
        sa.PrimaryKeyConstraint('id')
    )
    op.create_table('issue_categories',
        sa.Column('id', sa.String(length=36), nullable=False),
        sa.Column('project_id', sa.String(length=36), nullable=False),
        sa.Column('name', sa.String(length=30), nullable=False),
        sa.Column('assigned_to_id', sa.String(length=36), nullable=True),
        sa.ForeignKeyConstraint(['project_id'], ['projects.id'], ondelete='CASCADE'),
        sa.ForeignKeyConstraint(['assigned_to_id'], ['users.id']),
        sa.PrimaryKeyConstraint('id')
    )
    op.create_table('versions',
        sa.Column('id', sa.String(length=36), nullable=False),
        sa.Column('project_id', sa.String(length=36), nullable=False),
        sa.Column('name', sa.String(length=60), nullable=False),
        sa.Column('effective_date', sa.Date(), nullable=True),
        sa.Column('sharing', sa.String(length=20), nullable=False),
        sa.ForeignKeyConstraint(['project_id'], ['projects.id'], ondelete='CASCADE'),
        sa.PrimaryKeyConstraint('id')
    )
    op.create_table('issues',
        sa.Column('id', sa.String(length=36), nullable=False),
        sa.Column('project_id', sa.String(length=36), nullable=False),
        sa.Column('tracker_id', sa.String(length=36), nullable=False),
        sa.Column('status_id', sa.String(length=36), nullable=False),
        sa.Column('priority_id', sa.String(length=36), nullable=True),
        sa.Column('category_id', sa.String(length=36), nullable=True),
        sa.Column('fixed_version_id', sa.String(length=36), nullable=True),
        sa.Column('author_id', sa.String(length=36), nullable=False),
        sa.Column('assigned_to_id', sa.String(length=36), nullable=True),
        sa.Column('subject', sa.String(length=255), nullable=False),
        sa.Column('description', sa.Text(), nullable=True),
        sa.Column('is_private', sa.Boolean(), nullable=False),
        *_timestamps(),
        sa.ForeignKeyConstraint(['project_id'], ['projects.id']),
        sa.ForeignKeyConstraint(['tracker_id'], ['trackers.id']),
        sa.ForeignKeyConstraint(['status_id'], ['issue_statuses.id']),
        sa.ForeignKeyConstraint(['priority_id'], ['issue_priorities.id']),
        sa.ForeignKeyConstraint(['category_id'], ['issue_categories.id']),
        sa.ForeignKeyConstraint(['fixed_version_id'], ['versions.id']),
        sa.ForeignKeyConstraint(['author_id'], ['users.id']),
        sa.ForeignKeyConstraint(['assigned_to_id'], ['users.id']),
        sa.PrimaryKeyConstraint('id')
    )
    op.create_index('ix_issues_project_id', 'issues', ['project_id'])
    op.create_table('journals',
        sa.Column('id', sa.Integer(), autoincrement=True, nullable=False),
        sa.Column('journaled_type', sa.String(length=50), nullable=False),
        sa.Column('journaled_id', sa.String(length=36), nullable=False),
        sa.Column('user_id', sa.String(length=36), nullable=True),
        sa.Column('version', sa.Integer(), nullable=False),
        sa.Column('notes', sa.Text(), nullable=True),
        sa.Column('changed_data', sa.JSON(), nullable=False),
        *_timestamps(updated=False),
        sa.ForeignKeyConstraint(['user_id'], ['users.id']),
        sa.PrimaryKeyConstraint('id')
    )
    op.create_index('ix_journals_journaled', 'journals', ['journaled_type', 'journaled_id'])
    op.create_table('watchers',
        sa.Column('id', sa.String(length=36), nullable=False),
        sa.Column('watchable_type', sa.String(length=50), nullable=False),
        sa.Column('watchable_id', sa.String(length=36), nullable=False),
        sa.Column('user_id', sa.String(length=36), nullable=False),
        *_timestamps(updated=False),
        sa.ForeignKeyConstraint(['user_id'], ['users.id'], ondelete='CASCADE'),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('watchable_type', 'watchable_id', 'user_id', name='uq_watcher')
    )
    op.create_index('ix_watchers_watchable', 'watchers', ['watchable_type', 'watchable_id'])
    op.create_table('wikis',
        sa.Column('id', sa.String(length=36), nullable=False),
        sa.Column('project_id', sa.String(length=36), nullable=False),
        sa.Column('start_page', sa.String(length=255), nullable=False),
        sa.ForeignKeyConstraint(['project_id'], ['projects.id'], ondelete='CASCADE'),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('project_id')
    )
    op.create_table('wiki_pages',
        sa.Column('id', sa.String(length=36), nullable=False),
        sa.Column('wiki_id', sa.String(length=36), nullable=False),
        sa.Column('title', sa.String(length=255), nullable=False),
        *_timestamps(updated=False),
        sa.ForeignKeyConstraint(['wiki_id'], ['wikis.id'], ondelete='CASCADE'),
        sa.PrimaryKeyConstraint('id')
    )
    op.create_table('wiki_contents',
        sa.Column('id', sa.String(length=36), nullable=False),
        sa.Column('page_id', sa.String(length=36), nullable=False),
        sa.Column('author_id', sa.String(length=36), nullable=True),
        sa.Column('text', sa.Text(), nullable=False),
        sa.Column('comments', sa.String(length=255), nullable=True),
        sa.Column('version', sa.Integer(), nullable=False),
        sa.Column('updated_at', sa.DateTime(timezone=True), server_default=sa.text('(CURRENT_TIMESTAMP)'), nullable=True),
        sa.ForeignKeyConstraint(['page_id'], ['wiki_pages.id'], ondelete='CASCADE'),
        sa.ForeignKeyConstraint(['author_id'], ['users.id']),
        sa.PrimaryKeyConstraint('id')
    )
    op.create_table('time_entry_activities',
        sa.Column('id', sa.String(length=36), nullable=False),
        sa.Column('name', sa.String(length=30), nullable=False),
        sa.Column('position', sa.Integer(), nullable=False),
        sa.Column('is_default', sa.Boolean(), nullable=False),
        sa.Column('active', sa.Boolean(), nullable=False),
        sa.PrimaryKeyConstraint('id')
    )
    op.create_table('time_entries',
        sa.Column('id', sa.String(length=36), nullable=False),
        sa.Column('project_id', sa.String(length=36), nullable=False),
        sa.Column('issue_id', sa.String(length=36), nullable=True),
        sa.Column('user_id', sa.String(length=36), nullable=False),
        sa.Column('activity_id', sa.String(length=36), nullable=False),
        sa.Column('hours', sa.Float(), nullable=False),
        sa.Column('comments', sa.String(length=255), nullable=True),
        sa.Column('spent_on', sa.Date(), nullable=False),
        sa.Column('tyear', sa.Integer(), nullable=False),
        sa.Column('tmonth', sa.Integer(), nullable=False),
        sa.Column('tweek', sa.Integer(), nullable=False),
        *_timestamps(),
        sa.ForeignKeyConstraint(['project_id'], ['projects.id']),
        sa.ForeignKeyConstraint(['issue_id'], ['issues.id'], ondelete='SET NULL'),
        sa.ForeignKeyConstraint(['user_id'], ['users.id']),
        sa.ForeignKeyConstraint(['activity_id'], ['time_entry_activities.id']),
        sa.PrimaryKeyConstraint('id')
    )
    op.create_index('ix_time_entries_project_spent_on', 'time_entries', ['project_id', 'spent_on'])
    op.create_table('tokens',
        sa.Column('id', sa.String(length=36), nullable=False),
        sa.Column('user_id', sa.String(length=36), nullable=False),
        sa.Column('action', sa.String(length=30), nullable=False),
        sa.Column('value', sa.String(length=40), nullable=False),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False),
        sa.ForeignKeyConstraint(['user_id'], ['users.id'], ondelete='CASCADE'),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('value')
    )


def downgrade():
    op.drop_table('tokens')
    op.drop_index('ix_time_entries_project_spent_on', table_name='time_entries')
    op.drop_table('time_entries')
    op.drop_table('time_entry_activities')
    op.drop_table('wiki_contents')
    op.drop_table('wiki_pages')
    op.drop_table('wikis')
    op.drop_index('ix_watchers_watchable', table_name='watchers')
    op.drop_table('watchers')
    op.drop_index('ix_journals_journaled', table_name='journals')
    op.drop_table('journals')
    op.drop_index('ix_issues_project_id', table_name='issues')
    op.drop_table('issues')
    op.drop_table('versions')
    op.drop_table('issue_categories')
    op.drop_table('issue_priorities')
    op.drop_table('issue_statuses')
    op.drop_table('trackers')
    op.drop_table('member_roles')
    op.drop_table('members')
    op.drop_table('roles')
    op.drop_table('enabled_modules')
    op.drop_table('projects')
    op.drop_table('group_users')
    op.drop_index('ix_users_type_login', table_name='users')
    op.drop_table('users')
