"""create_activity_pipeline_tables

Revision ID: 3f2a9c1d7b10
Revises:
Create Date: 2026-10-18 09:12:44.210318

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision: str = '3f2a9c1d7b10'
down_revision: Union[str, Sequence[str], None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    """Upgrade schema."""
    # Canonical activity log
    op.create_table(
        'activities',
        sa.Column('id', sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column('org_id', sa.String(255), nullable=False),
        sa.Column('source', sa.String(20), nullable=False),
        sa.Column('activity_type', sa.String(50), nullable=False),
        sa.Column('actor_email', sa.String(255), nullable=False),
        sa.Column('actor_identity_id', sa.Integer(), nullable=True),
        sa.Column('project_alias', sa.String(255), nullable=False),
        sa.Column('project_id', sa.String(36), nullable=True),
        sa.Column('timestamp', sa.DateTime(timezone=True), nullable=False),
        sa.Column('metadata_json', sa.JSON(), nullable=False),
        sa.Column('source_ref_id', sa.String(512), nullable=False),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False),
        sa.UniqueConstraint('source', 'source_ref_id', name='uq_activity_source_ref'),
    )
    op.create_index('ix_activities_org_id', 'activities', ['org_id'])
    op.create_index('ix_activities_actor_email', 'activities', ['actor_email'])
    op.create_index('ix_activities_org_time', 'activities', ['org_id', 'timestamp'])
    op.create_index('ix_activities_actor_time', 'activities', ['actor_email', 'timestamp'])
    op.create_index('ix_activities_project_alias_source', 'activities', ['project_alias', 'source'])
    op.create_index('ix_activities_project_id_source', 'activities', ['project_id', 'source'])

    # Identities
    op.create_table(
        'identities',
        sa.Column('id', sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column('primary_email', sa.String(255), nullable=False, unique=True),
        sa.Column('display_name', sa.String(255), nullable=False),
        sa.Column('org_id', sa.String(255), nullable=False),
        sa.Column('default_project_id', sa.String(36), nullable=True),
        sa.Column('github_login', sa.String(255), nullable=True),
        sa.Column('github_id', sa.String(50), nullable=True),
        sa.Column('slack_user_id', sa.String(50), nullable=True),
        sa.Column('slack_team_id', sa.String(50), nullable=True),
        sa.Column('jira_account_id', sa.String(255), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False),
        sa.Column('updated_at', sa.DateTime(timezone=True), nullable=False),
    )
    op.create_index('ix_identities_org_id', 'identities', ['org_id'])
    op.create_index('ix_identities_github_login', 'identities', ['github_login'])
    op.create_index('ix_identities_slack_user_id', 'identities', ['slack_user_id'])
    op.create_index('ix_identities_jira_account_id', 'identities', ['jira_account_id'])

    op.create_table(
        'identity_alternate_emails',
        sa.Column('id', sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column('identity_id', sa.Integer(), sa.ForeignKey('identities.id', ondelete='CASCADE'), nullable=False),
        sa.Column('email', sa.String(255), nullable=False),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False),
        sa.UniqueConstraint('identity_id', 'email', name='uq_identity_alternate_email'),
    )
    op.create_index('ix_identity_alternate_emails_identity_id', 'identity_alternate_emails', ['identity_id'])
    op.create_index('ix_identity_alternate_emails_email', 'identity_alternate_emails', ['email'])

    # Projects and their per-source aliases
    op.create_table(
        'projects',
        sa.Column('id', sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column('project_id', sa.String(36), nullable=False, unique=True),
        sa.Column('name', sa.String(255), nullable=False),
        sa.Column('description', sa.Text(), nullable=True),
        sa.Column('org_id', sa.String(255), nullable=False),
        sa.Column('is_active', sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False),
        sa.Column('updated_at', sa.DateTime(timezone=True), nullable=False),
    )
    op.create_index('ix_projects_org_id', 'projects', ['org_id'])
    op.create_index('ix_projects_is_active', 'projects', ['is_active'])

    op.create_table(
        'project_aliases',
        sa.Column('id', sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column(
            'project_id',
            sa.String(36),
            sa.ForeignKey('projects.project_id', ondelete='CASCADE'),
            nullable=False,
        ),
        sa.Column('source', sa.String(20), nullable=False),
        sa.Column('alias', sa.String(255), nullable=False),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False),
        sa.UniqueConstraint('source', 'alias', name='uq_project_alias_source'),
    )
    op.create_index('ix_project_aliases_project_id', 'project_aliases', ['project_id'])

    # Per-source transformer state
    op.create_table(
        'transform_states',
        sa.Column('id', sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column('source', sa.String(20), nullable=False, unique=True),
        sa.Column('is_running', sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column('run_started_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('last_run_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('last_success_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('last_error', sa.Text(), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False),
        sa.Column('updated_at', sa.DateTime(timezone=True), nullable=False),
    )
    op.create_index('ix_transform_states_is_running', 'transform_states', ['is_running'])

    # Summarizer output
    op.create_table(
        'insights',
        sa.Column('id', sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column('org_id', sa.String(255), nullable=False),
        sa.Column('category', sa.String(50), nullable=False),
        sa.Column('persona', sa.String(20), nullable=False),
        sa.Column('title', sa.String(500), nullable=False),
        sa.Column('body', sa.Text(), nullable=False),
        sa.Column('confidence', sa.Float(), nullable=False),
        sa.Column('related_metric', sa.String(255), nullable=True),
        sa.Column('related_project_id', sa.String(255), nullable=True),
        sa.Column('related_email', sa.String(255), nullable=True),
        sa.Column('sources', sa.JSON(), nullable=False),
        sa.Column('generated_at', sa.DateTime(timezone=True), nullable=False),
        sa.Column('expires_at', sa.DateTime(timezone=True), nullable=True),
    )
    op.create_index('ix_insights_org_id', 'insights', ['org_id'])
    op.create_index('ix_insights_related_project_id', 'insights', ['related_project_id'])
    op.create_index('ix_insights_related_email', 'insights', ['related_email'])
    op.create_index('ix_insights_org_generated', 'insights', ['org_id', 'generated_at'])
    op.create_index('ix_insights_org_persona_generated', 'insights', ['org_id', 'persona', 'generated_at'])

    # Raw tables written by the ingestion jobs
    op.create_table(
        'email_metadata',
        sa.Column('id', sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column('org_id', sa.String(255), nullable=True),
        sa.Column('user_email', sa.String(255), nullable=True),
        sa.Column('message_id', sa.String(512), nullable=False, unique=True),
        sa.Column('sender', sa.String(255), nullable=True),
        sa.Column('receivers', sa.JSON(), nullable=False),
        sa.Column('subject', sa.Text(), nullable=True),
        sa.Column('body', sa.Text(), nullable=True),
        sa.Column('timestamp', sa.BigInteger(), nullable=True),
        sa.Column('thread_id', sa.String(255), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=True),
    )
    op.create_index('ix_email_metadata_org_id', 'email_metadata', ['org_id'])
    op.create_index('ix_email_metadata_timestamp', 'email_metadata', ['timestamp'])

    op.create_table(
        'slack_messages',
        sa.Column('id', sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column('event_id', sa.String(255), nullable=False, unique=True),
        sa.Column('team_id', sa.String(50), nullable=True),
        sa.Column('user_id', sa.String(50), nullable=True),
        sa.Column('user_name', sa.String(255), nullable=True),
        sa.Column('email', sa.String(255), nullable=True),
        sa.Column('channel_id', sa.String(50), nullable=True),
        sa.Column('text', sa.Text(), nullable=True),
        sa.Column('timestamp', sa.Float(), nullable=True),
        sa.Column('thread_ts', sa.Float(), nullable=True),
        sa.Column('mentions', sa.JSON(), nullable=False),
        sa.Column('attachments', sa.JSON(), nullable=False),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=True),
    )
    op.create_index('ix_slack_messages_team_id', 'slack_messages', ['team_id'])
    op.create_index('ix_slack_messages_timestamp', 'slack_messages', ['timestamp'])

    op.create_table(
        'jira_issues',
        sa.Column('id', sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column('workspace', sa.String(255), nullable=True),
        sa.Column('ticket', sa.String(50), nullable=False, unique=True),
        sa.Column('assignee', sa.String(255), nullable=True),
        sa.Column('assignee_email', sa.String(255), nullable=True),
        sa.Column('assignee_account_id', sa.String(255), nullable=True),
        sa.Column('reporter', sa.String(255), nullable=True),
        sa.Column('reporter_email', sa.String(255), nullable=True),
        sa.Column('status', sa.String(100), nullable=True),
        sa.Column('priority', sa.String(50), nullable=True),
        sa.Column('issue_type', sa.String(50), nullable=True),
        sa.Column('labels', sa.JSON(), nullable=False),
        sa.Column('components', sa.JSON(), nullable=False),
        sa.Column('status_changes', sa.JSON(), nullable=False),
        sa.Column('worklogs', sa.JSON(), nullable=False),
        sa.Column('assigned_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('updated_at', sa.DateTime(timezone=True), nullable=True),
    )
    op.create_index('ix_jira_issues_workspace', 'jira_issues', ['workspace'])
    op.create_index('ix_jira_issues_updated_at', 'jira_issues', ['updated_at'])

    op.create_table(
        'github_webhook_events',
        sa.Column('id', sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column('event_type', sa.String(100), nullable=False),
        sa.Column('event_action', sa.String(100), nullable=True),
        sa.Column('installation_id', sa.BigInteger(), nullable=True),
        sa.Column('repository_id', sa.BigInteger(), nullable=True),
        sa.Column('repository_full_name', sa.String(255), nullable=True),
        sa.Column('sender_id', sa.BigInteger(), nullable=True),
        sa.Column('sender_login', sa.String(255), nullable=True),
        sa.Column('payload', sa.JSON(), nullable=False),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=True),
    )
    op.create_index('ix_github_webhook_events_installation_id', 'github_webhook_events', ['installation_id'])
    op.create_index('ix_github_webhook_events_created_at', 'github_webhook_events', ['created_at'])

    op.create_table(
        'github_users',
        sa.Column('id', sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column('github_id', sa.BigInteger(), nullable=True),
        sa.Column('login', sa.String(255), nullable=False, unique=True),
        sa.Column('name', sa.String(255), nullable=True),
        sa.Column('email', sa.String(255), nullable=True),
        sa.Column('installation_id', sa.BigInteger(), nullable=True),
    )


def downgrade() -> None:
    """Downgrade schema."""
    op.drop_table('github_users')
    op.drop_index('ix_github_webhook_events_created_at', table_name='github_webhook_events')
    op.drop_index('ix_github_webhook_events_installation_id', table_name='github_webhook_events')
    op.drop_table('github_webhook_events')
    op.drop_index('ix_jira_issues_updated_at', table_name='jira_issues')
    op.drop_index('ix_jira_issues_workspace', table_name='jira_issues')
    op.drop_table('jira_issues')
    op.drop_index('ix_slack_messages_timestamp', table_name='slack_messages')
    op.drop_index('ix_slack_messages_team_id', table_name='slack_messages')
    op.drop_table('slack_messages')
    op.drop_index('ix_email_metadata_timestamp', table_name='email_metadata')
    op.drop_index('ix_email_metadata_org_id', table_name='email_metadata')
    op.drop_table('email_metadata')

    op.drop_index('ix_insights_org_persona_generated', table_name='insights')
    op.drop_index('ix_insights_org_generated', table_name='insights')
    op.drop_index('ix_insights_related_email', table_name='insights')
    op.drop_index('ix_insights_related_project_id', table_name='insights')
    op.drop_index('ix_insights_org_id', table_name='insights')
    op.drop_table('insights')

    op.drop_index('ix_transform_states_is_running', table_name='transform_states')
    op.drop_table('transform_states')

    op.drop_index('ix_project_aliases_project_id', table_name='project_aliases')
    op.drop_table('project_aliases')
    op.drop_index('ix_projects_is_active', table_name='projects')
    op.drop_index('ix_projects_org_id', table_name='projects')
    op.drop_table('projects')

    op.drop_index('ix_identity_alternate_emails_email', table_name='identity_alternate_emails')
    op.drop_index('ix_identity_alternate_emails_identity_id', table_name='identity_alternate_emails')
    op.drop_table('identity_alternate_emails')
    op.drop_index('ix_identities_jira_account_id', table_name='identities')
    op.drop_index('ix_identities_slack_user_id', table_name='identities')
    op.drop_index('ix_identities_github_login', table_name='identities')
    op.drop_index('ix_identities_org_id', table_name='identities')
    op.drop_table('identities')

    op.drop_index('ix_activities_project_id_source', table_name='activities')
    op.drop_index('ix_activities_project_alias_source', table_name='activities')
    op.drop_index('ix_activities_actor_time', table_name='activities')
    op.drop_index('ix_activities_org_time', table_name='activities')
    op.drop_index('ix_activities_actor_email', table_name='activities')
    op.drop_index('ix_activities_org_id', table_name='activities')
    op.drop_table('activities')
