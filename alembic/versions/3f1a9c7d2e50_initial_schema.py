"""Initial schema: leads, audits, drafts, queue, suppression, monitoring

Revision ID: 3f1a9c7d2e50
Revises:
Create Date: 2026-10-19 10:00:00.000000

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision: str = '3f1a9c7d2e50'
down_revision: Union[str, Sequence[str], None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None

NOW = sa.text('(CURRENT_TIMESTAMP)')


def upgrade() -> None:
    """Upgrade schema."""
    # ── Outreach pipeline ───────────────────────────────────────────────
    op.create_table('leads',
        sa.Column('id', sa.Integer(), autoincrement=True, nullable=False),
        sa.Column('first_name', sa.Text(), nullable=True),
        sa.Column('last_name', sa.Text(), nullable=True),
        sa.Column('email', sa.Text(), nullable=False),
        sa.Column('company_name', sa.Text(), nullable=True),
        sa.Column('website_url', sa.Text(), nullable=True),
        sa.Column('phone', sa.Text(), nullable=True),
        sa.Column('message', sa.Text(), nullable=True),
        sa.Column('booked_consult', sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column('calendly_event_uri', sa.Text(), nullable=True),
        sa.Column('status', sa.Text(), nullable=False, server_default='new'),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=NOW, nullable=True),
        sa.Column('updated_at', sa.DateTime(timezone=True), server_default=NOW, nullable=True),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('calendly_event_uri'),
    )
    op.create_index('ix_leads_email', 'leads', ['email'])

    op.create_table('site_audits',
        sa.Column('id', sa.Integer(), autoincrement=True, nullable=False),
        sa.Column('lead_id', sa.Integer(), nullable=False),
        sa.Column('url', sa.Text(), nullable=False),
        sa.Column('performance', sa.Integer(), nullable=True),
        sa.Column('accessibility', sa.Integer(), nullable=True),
        sa.Column('seo', sa.Integer(), nullable=True),
        sa.Column('best_practices', sa.Integer(), nullable=True),
        sa.Column('lcp', sa.Float(), nullable=True),
        sa.Column('cls', sa.Float(), nullable=True),
        sa.Column('inp', sa.Float(), nullable=True),
        sa.Column('raw_json', sa.JSON(), nullable=True),
        sa.Column('insights', sa.JSON(), nullable=True),
        sa.Column('is_latest', sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column('audit_run_at', sa.DateTime(timezone=True), server_default=NOW, nullable=True),
        sa.ForeignKeyConstraint(['lead_id'], ['leads.id'], ondelete='CASCADE'),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index('ix_site_audits_lead_latest', 'site_audits', ['lead_id', 'is_latest'])
    op.create_index('ix_site_audits_url_run_at', 'site_audits', ['url', 'audit_run_at'])

    op.create_table('email_drafts',
        sa.Column('id', sa.Integer(), autoincrement=True, nullable=False),
        sa.Column('lead_id', sa.Integer(), nullable=False),
        sa.Column('template', sa.Text(), nullable=False),
        sa.Column('subject', sa.Text(), nullable=False),
        sa.Column('body', sa.Text(), nullable=False),
        sa.Column('edited_body', sa.Text(), nullable=True),
        sa.Column('status', sa.Text(), nullable=False, server_default='draft'),
        sa.Column('provider_message_id', sa.Text(), nullable=True),
        sa.Column('generated_at', sa.DateTime(timezone=True), server_default=NOW, nullable=True),
        sa.Column('sent_at', sa.DateTime(timezone=True), nullable=True),
        sa.ForeignKeyConstraint(['lead_id'], ['leads.id'], ondelete='CASCADE'),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index('ix_email_drafts_lead_id', 'email_drafts', ['lead_id'])

    op.create_table('lead_processing_queue',
        sa.Column('id', sa.Integer(), autoincrement=True, nullable=False),
        sa.Column('lead_id', sa.Integer(), nullable=False),
        sa.Column('status', sa.Text(), nullable=False, server_default='scheduled'),
        sa.Column('scheduled_send_at', sa.DateTime(timezone=True), nullable=False),
        sa.Column('email_draft_id', sa.Integer(), nullable=True),
        sa.Column('suppressed', sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column('error_message', sa.Text(), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=NOW, nullable=True),
        sa.Column('processed_at', sa.DateTime(timezone=True), nullable=True),
        sa.ForeignKeyConstraint(['lead_id'], ['leads.id'], ondelete='CASCADE'),
        sa.ForeignKeyConstraint(['email_draft_id'], ['email_drafts.id'], ondelete='SET NULL'),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index('ix_queue_status_scheduled', 'lead_processing_queue', ['status', 'scheduled_send_at'])

    op.create_table('email_suppression',
        sa.Column('id', sa.Integer(), autoincrement=True, nullable=False),
        sa.Column('email', sa.Text(), nullable=False),
        sa.Column('reason', sa.Text(), nullable=True),
        sa.Column('source', sa.Text(), nullable=True),
        sa.Column('suppressed_at', sa.DateTime(timezone=True), server_default=NOW, nullable=True),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('email'),
    )

    op.create_table('daily_send_stats',
        sa.Column('id', sa.Integer(), autoincrement=True, nullable=False),
        sa.Column('day', sa.Date(), nullable=False),
        sa.Column('emails_sent', sa.Integer(), nullable=False, server_default='0'),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('day'),
    )

    op.create_table('email_events',
        sa.Column('id', sa.Integer(), autoincrement=True, nullable=False),
        sa.Column('provider_message_id', sa.Text(), nullable=False),
        sa.Column('email_draft_id', sa.Integer(), nullable=True),
        sa.Column('lead_id', sa.Integer(), nullable=True),
        sa.Column('event_type', sa.Text(), nullable=False),
        sa.Column('recipient', sa.Text(), nullable=True),
        sa.Column('payload', sa.JSON(), nullable=True),
        sa.Column('received_at', sa.DateTime(timezone=True), server_default=NOW, nullable=True),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index('ix_email_events_provider_message_id', 'email_events', ['provider_message_id'])

    # ── Site monitoring ─────────────────────────────────────────────────
    op.create_table('monitored_sites',
        sa.Column('id', sa.Integer(), autoincrement=True, nullable=False),
        sa.Column('site_key', sa.Text(), nullable=False),
        sa.Column('site_name', sa.Text(), nullable=False),
        sa.Column('primary_domain', sa.Text(), nullable=False),
        sa.Column('environment', sa.Text(), nullable=False, server_default='production'),
        sa.Column('status', sa.Text(), nullable=False, server_default='active'),
        sa.Column('subscription_tier', sa.Text(), nullable=False, server_default='none'),
        sa.Column('client_email', sa.Text(), nullable=True),
        sa.Column('internal_email', sa.Text(), nullable=True),
        sa.Column('secret', sa.Text(), nullable=True),
        sa.Column('trial_ends_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('cms_table', sa.Text(), nullable=True),
        sa.Column('forms_table', sa.Text(), nullable=True),
        sa.Column('last_deploy_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('deploy_suppression_minutes', sa.Integer(), nullable=False, server_default='10'),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=NOW, nullable=True),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('site_key'),
    )

    op.create_table('health_checks',
        sa.Column('id', sa.Integer(), autoincrement=True, nullable=False),
        sa.Column('site_id', sa.Integer(), nullable=False),
        sa.Column('check_type', sa.Text(), nullable=False),
        sa.Column('target', sa.Text(), nullable=False),
        sa.Column('timeout_ms', sa.Integer(), nullable=False, server_default='10000'),
        sa.Column('expected_status', sa.Integer(), nullable=True),
        sa.Column('enabled', sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.ForeignKeyConstraint(['site_id'], ['monitored_sites.id'], ondelete='CASCADE'),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index('ix_health_checks_site_id', 'health_checks', ['site_id'])

    op.create_table('health_events',
        sa.Column('id', sa.Integer(), autoincrement=True, nullable=False),
        sa.Column('site_id', sa.Integer(), nullable=False),
        sa.Column('check_id', sa.Integer(), nullable=True),
        sa.Column('check_type', sa.Text(), nullable=False),
        sa.Column('result', sa.Text(), nullable=False),
        sa.Column('latency_ms', sa.Integer(), nullable=True),
        sa.Column('http_status', sa.Integer(), nullable=True),
        sa.Column('error_message', sa.Text(), nullable=True),
        sa.Column('raw_payload', sa.JSON(), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=NOW, nullable=True),
        sa.ForeignKeyConstraint(['site_id'], ['monitored_sites.id'], ondelete='CASCADE'),
        sa.ForeignKeyConstraint(['check_id'], ['health_checks.id'], ondelete='SET NULL'),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index('ix_health_events_site_created', 'health_events', ['site_id', 'created_at'])

    op.create_table('incidents',
        sa.Column('id', sa.Integer(), autoincrement=True, nullable=False),
        sa.Column('site_id', sa.Integer(), nullable=False),
        sa.Column('severity', sa.Text(), nullable=False),
        sa.Column('status', sa.Text(), nullable=False, server_default='open'),
        sa.Column('title', sa.Text(), nullable=False),
        sa.Column('description', sa.Text(), nullable=True),
        sa.Column('trigger_check_type', sa.Text(), nullable=True),
        sa.Column('trigger_event_ids', sa.JSON(), nullable=True),
        sa.Column('opened_at', sa.DateTime(timezone=True), server_default=NOW, nullable=True),
        sa.Column('resolved_at', sa.DateTime(timezone=True), nullable=True),
        sa.ForeignKeyConstraint(['site_id'], ['monitored_sites.id'], ondelete='CASCADE'),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index('ix_incidents_site_id', 'incidents', ['site_id'])

    op.create_table('notifications',
        sa.Column('id', sa.Integer(), autoincrement=True, nullable=False),
        sa.Column('incident_id', sa.Integer(), nullable=False),
        sa.Column('site_id', sa.Integer(), nullable=False),
        sa.Column('recipient', sa.Text(), nullable=False),
        sa.Column('channel', sa.Text(), nullable=False, server_default='email'),
        sa.Column('recipient_address', sa.Text(), nullable=True),
        sa.Column('subject', sa.Text(), nullable=True),
        sa.Column('body', sa.Text(), nullable=True),
        sa.Column('delivered', sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column('delivery_error', sa.Text(), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=NOW, nullable=True),
        sa.ForeignKeyConstraint(['incident_id'], ['incidents.id'], ondelete='CASCADE'),
        sa.ForeignKeyConstraint(['site_id'], ['monitored_sites.id'], ondelete='CASCADE'),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index('ix_notifications_incident_id', 'notifications', ['incident_id'])

    op.create_table('monthly_reports',
        sa.Column('id', sa.Integer(), autoincrement=True, nullable=False),
        sa.Column('site_id', sa.Integer(), nullable=False),
        sa.Column('report_month', sa.Date(), nullable=False),
        sa.Column('uptime_percentage', sa.Float(), nullable=False, server_default='100'),
        sa.Column('total_checks', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('incidents_sev1', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('incidents_sev2', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('incidents_sev3', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('status', sa.Text(), nullable=False),
        sa.Column('summary_bullets', sa.JSON(), nullable=True),
        sa.Column('recipient_email', sa.Text(), nullable=True),
        sa.Column('sent_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=NOW, nullable=True),
        sa.ForeignKeyConstraint(['site_id'], ['monitored_sites.id'], ondelete='CASCADE'),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('site_id', 'report_month', name='uq_monthly_report_site_month'),
    )


def downgrade() -> None:
    """Downgrade schema."""
    op.drop_table('monthly_reports')
    op.drop_index('ix_notifications_incident_id', 'notifications')
    op.drop_table('notifications')
    op.drop_index('ix_incidents_site_id', 'incidents')
    op.drop_table('incidents')
    op.drop_index('ix_health_events_site_created', 'health_events')
    op.drop_table('health_events')
    op.drop_index('ix_health_checks_site_id', 'health_checks')
    op.drop_table('health_checks')
    op.drop_table('monitored_sites')
    op.drop_index('ix_email_events_provider_message_id', 'email_events')
    op.drop_table('email_events')
    op.drop_table('daily_send_stats')
    op.drop_table('email_suppression')
    op.drop_index('ix_queue_status_scheduled', 'lead_processing_queue')
    op.drop_table('lead_processing_queue')
    op.drop_index('ix_email_drafts_lead_id', 'email_drafts')
    op.drop_table('email_drafts')
    op.drop_index('ix_site_audits_url_run_at', 'site_audits')
    op.drop_index('ix_site_audits_lead_latest', 'site_audits')
    op.drop_table('site_audits')
    op.drop_index('ix_leads_email', 'leads')
    op.drop_table('leads')
