"""Baseline migration - users, messaging, meetings, billing, notifications

Revision ID: 0001_baseline
Revises:
Create Date: 2026-10-19

Creates every CareerBridge table.
"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision: str = '0001_baseline'
down_revision: Union[str, Sequence[str], None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def _timestamps(updated: bool = False) -> list[sa.Column]:
    columns = [
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
    ]
    if updated:
        columns.append(
            sa.Column('updated_at', sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False)
        )
    return columns


def upgrade() -> None:
    """Create all tables."""

    # ==========================================================================
    # Users & profiles
    # ==========================================================================
    op.create_table(
        'users',
        sa.Column('id', sa.Uuid(), primary_key=True),
        sa.Column('email', sa.String(255), nullable=False, unique=True),
        sa.Column('name', sa.String(255), nullable=False),
        sa.Column('role', sa.String(20), nullable=False),
        sa.Column('credits', sa.Integer(), server_default=sa.text('0'), nullable=False),
        sa.Column('strikes', sa.Integer(), server_default=sa.text('0'), nullable=False),
        sa.Column('is_banned', sa.Boolean(), server_default=sa.text('false'), nullable=False),
        *_timestamps(updated=True),
        sa.CheckConstraint('credits >= 0', name='ck_users_credits_non_negative'),
        sa.CheckConstraint('strikes >= 0 AND strikes <= 2', name='ck_users_strikes_range'),
    )
    op.create_index('idx_users_role', 'users', ['role'])

    op.create_table(
        'student_profiles',
        sa.Column('id', sa.Uuid(), sa.ForeignKey('users.id', ondelete='CASCADE'), primary_key=True),
        sa.Column('university', sa.String(255)),
        sa.Column('nationality', sa.String(100)),
        sa.Column('languages', sa.JSON(), nullable=False),
        sa.Column('desired_industry', sa.String(255)),
        sa.Column('compliance_agreed', sa.Boolean(), server_default=sa.text('false'), nullable=False),
        sa.Column('compliance_agreed_at', sa.DateTime(timezone=True)),
        sa.Column('compliance_status', sa.String(20), server_default='pending', nullable=False),
        sa.Column('compliance_documents', sa.JSON(), nullable=False),
        sa.Column('compliance_submitted_at', sa.DateTime(timezone=True)),
        sa.Column('compliance_reviewed_at', sa.DateTime(timezone=True)),
    )

    op.create_table(
        'obog_profiles',
        sa.Column('id', sa.Uuid(), sa.ForeignKey('users.id', ondelete='CASCADE'), primary_key=True),
        sa.Column('obog_type', sa.String(50)),
        sa.Column('university', sa.String(255)),
        sa.Column('company_name', sa.String(255)),
        sa.Column('nationality', sa.String(100)),
        sa.Column('languages', sa.JSON(), nullable=False),
        sa.Column('topics', sa.JSON(), nullable=False),
        sa.Column('one_line_message', sa.String(500)),
    )

    op.create_table(
        'company_profiles',
        sa.Column('id', sa.Uuid(), sa.ForeignKey('users.id', ondelete='CASCADE'), primary_key=True),
        sa.Column('company_name', sa.String(255), nullable=False),
        sa.Column('overview', sa.Text()),
        sa.Column('work_location', sa.String(255)),
    )

    # ==========================================================================
    # Companies & Corporate-OB
    # ==========================================================================
    op.create_table(
        'companies',
        sa.Column('id', sa.Uuid(), primary_key=True),
        sa.Column('name', sa.String(255), nullable=False),
        sa.Column('industry', sa.String(255)),
        sa.Column('website', sa.String(500)),
        sa.Column('logo_url', sa.String(500)),
        sa.Column('stripe_customer_id', sa.String(255)),
        *_timestamps(updated=True),
    )

    op.create_table(
        'corporate_obs',
        sa.Column('id', sa.Uuid(), primary_key=True),
        sa.Column('user_id', sa.Uuid(), sa.ForeignKey('users.id', ondelete='CASCADE'), nullable=False),
        sa.Column('company_id', sa.Uuid(), sa.ForeignKey('companies.id', ondelete='CASCADE'), nullable=False),
        sa.Column('is_verified', sa.Boolean(), server_default=sa.text('false'), nullable=False),
        *_timestamps(),
        sa.UniqueConstraint('user_id', 'company_id', name='uq_corporate_obs_user_company'),
    )

    # ==========================================================================
    # Messaging
    # ==========================================================================
    op.create_table(
        'threads',
        sa.Column('id', sa.Uuid(), primary_key=True),
        sa.Column('participant_a_id', sa.Uuid(), sa.ForeignKey('users.id'), nullable=False),
        sa.Column('participant_b_id', sa.Uuid(), sa.ForeignKey('users.id'), nullable=False),
        *_timestamps(),
        sa.Column('last_message_at', sa.DateTime(timezone=True)),
        sa.UniqueConstraint('participant_a_id', 'participant_b_id', name='uq_threads_participants'),
        sa.CheckConstraint('participant_a_id <> participant_b_id', name='ck_threads_distinct_participants'),
    )
    op.create_index('idx_threads_participant_b', 'threads', ['participant_b_id'])

    op.create_table(
        'messages',
        sa.Column('id', sa.Uuid(), primary_key=True),
        sa.Column('thread_id', sa.Uuid(), sa.ForeignKey('threads.id', ondelete='CASCADE'), nullable=False),
        sa.Column('sender_id', sa.Uuid(), sa.ForeignKey('users.id'), nullable=False),
        sa.Column('recipient_id', sa.Uuid(), sa.ForeignKey('users.id'), nullable=False),
        sa.Column('content', sa.JSON(), nullable=False),
        sa.Column('read_at', sa.DateTime(timezone=True)),
        *_timestamps(),
    )
    op.create_index('idx_messages_thread_created', 'messages', ['thread_id', 'created_at'])
    op.create_index('idx_messages_recipient_unread', 'messages', ['recipient_id', 'read_at'])

    # ==========================================================================
    # Meetings
    # ==========================================================================
    op.create_table(
        'meetings',
        sa.Column('id', sa.Uuid(), primary_key=True),
        sa.Column('thread_id', sa.Uuid(), sa.ForeignKey('threads.id', ondelete='CASCADE'), nullable=False, unique=True),
        sa.Column('student_id', sa.Uuid(), sa.ForeignKey('users.id'), nullable=False),
        sa.Column('obog_id', sa.Uuid(), sa.ForeignKey('users.id'), nullable=False),
        sa.Column('booking_date_time', sa.DateTime(timezone=True)),
        sa.Column('meeting_url', sa.String(500)),
        sa.Column('status', sa.String(20), nullable=False),
        sa.Column('meeting_status', sa.String(20), nullable=False),
        sa.Column('student_post_status', sa.String(20)),
        sa.Column('student_post_status_at', sa.DateTime(timezone=True)),
        sa.Column('obog_post_status', sa.String(20)),
        sa.Column('obog_post_status_at', sa.DateTime(timezone=True)),
        sa.Column('requires_review', sa.Boolean(), server_default=sa.text('false'), nullable=False),
        sa.Column('cancelled_by', sa.Uuid(), sa.ForeignKey('users.id')),
        sa.Column('cancelled_at', sa.DateTime(timezone=True)),
        *_timestamps(updated=True),
    )

    op.create_table(
        'meeting_operation_logs',
        sa.Column('id', sa.Uuid(), primary_key=True),
        sa.Column('meeting_id', sa.Uuid(), sa.ForeignKey('meetings.id', ondelete='CASCADE'), nullable=False),
        sa.Column('user_id', sa.Uuid(), sa.ForeignKey('users.id'), nullable=False),
        sa.Column('operation_type', sa.String(50), nullable=False),
        sa.Column('old_value', sa.JSON()),
        sa.Column('new_value', sa.JSON()),
        *_timestamps(),
    )
    op.create_index('idx_meeting_ops_meeting', 'meeting_operation_logs', ['meeting_id', 'created_at'])

    # ==========================================================================
    # Billing
    # ==========================================================================
    op.create_table(
        'charges',
        sa.Column('id', sa.Uuid(), primary_key=True),
        sa.Column('message_id', sa.Uuid(), sa.ForeignKey('messages.id'), nullable=False),
        sa.Column('user_id', sa.Uuid(), sa.ForeignKey('users.id'), nullable=False),
        sa.Column('company_id', sa.Uuid(), sa.ForeignKey('companies.id')),
        sa.Column('amount', sa.Integer(), nullable=False),
        sa.Column('currency', sa.String(3), nullable=False),
        sa.Column('provider_charge_id', sa.String(255)),
        sa.Column('status', sa.String(30), nullable=False),
        sa.Column('failure_reason', sa.String(255)),
        *_timestamps(),
    )
    op.create_index('idx_charges_user_created', 'charges', ['user_id', 'created_at'])

    op.create_table(
        'credit_transactions',
        sa.Column('id', sa.Uuid(), primary_key=True),
        sa.Column('user_id', sa.Uuid(), sa.ForeignKey('users.id', ondelete='CASCADE'), nullable=False),
        sa.Column('delta', sa.Integer(), nullable=False),
        sa.Column('reason', sa.String(30), nullable=False),
        sa.Column('reference', sa.String(255)),
        *_timestamps(),
    )
    op.create_index('idx_credit_tx_user_created', 'credit_transactions', ['user_id', 'created_at'])

    op.create_table(
        'processed_webhook_events',
        sa.Column('event_id', sa.String(255), primary_key=True),
        sa.Column('event_type', sa.String(100), nullable=False),
        *_timestamps(),
    )

    # ==========================================================================
    # Moderation
    # ==========================================================================
    op.create_table(
        'reports',
        sa.Column('id', sa.Uuid(), primary_key=True),
        sa.Column('reporter_id', sa.Uuid(), sa.ForeignKey('users.id'), nullable=False),
        sa.Column('reported_user_id', sa.Uuid(), sa.ForeignKey('users.id')),
        sa.Column('report_type', sa.String(20), nullable=False),
        sa.Column('reason', sa.String(255), nullable=False),
        sa.Column('description', sa.Text(), nullable=False),
        sa.Column('status', sa.String(20), nullable=False),
        sa.Column('admin_notes', sa.Text()),
        *_timestamps(updated=True),
    )
    op.create_index('idx_reports_status_created', 'reports', ['status', 'created_at'])

    # ==========================================================================
    # Notifications
    # ==========================================================================
    op.create_table(
        'notifications',
        sa.Column('id', sa.Uuid(), primary_key=True),
        sa.Column('user_id', sa.Uuid(), sa.ForeignKey('users.id', ondelete='CASCADE'), nullable=False),
        sa.Column('type', sa.String(50), nullable=False),
        sa.Column('title', sa.String(255), nullable=False),
        sa.Column('body', sa.Text()),
        sa.Column('link', sa.String(500)),
        sa.Column('read_at', sa.DateTime(timezone=True)),
        *_timestamps(),
    )
    op.create_index('idx_notif_user_unread', 'notifications', ['user_id', 'read_at', 'created_at'])

    op.create_table(
        'notification_settings',
        sa.Column('user_id', sa.Uuid(), sa.ForeignKey('users.id', ondelete='CASCADE'), primary_key=True),
        sa.Column('email_notifications_enabled', sa.Boolean(), nullable=False),
        sa.Column('notification_email', sa.String(255)),
        sa.Column('notification_frequency', sa.String(20), nullable=False),
        sa.Column('email_message_notifications', sa.Boolean(), nullable=False),
        sa.Column('email_meeting_notifications', sa.Boolean(), nullable=False),
        sa.Column('email_application_updates', sa.Boolean(), nullable=False),
        sa.Column('updated_at', sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
    )

    op.create_table(
        'email_notification_queue',
        sa.Column('id', sa.Uuid(), primary_key=True),
        sa.Column('user_id', sa.Uuid(), sa.ForeignKey('users.id', ondelete='CASCADE'), nullable=False),
        sa.Column('email_address', sa.String(255), nullable=False),
        sa.Column('subject', sa.String(255), nullable=False),
        sa.Column('html_content', sa.Text(), nullable=False),
        sa.Column('text_content', sa.Text(), nullable=False),
        sa.Column('scheduled_send_at', sa.DateTime(timezone=True), nullable=False),
        sa.Column('sent_at', sa.DateTime(timezone=True)),
        sa.Column('attempts', sa.Integer(), nullable=False),
        sa.Column('last_error', sa.Text()),
        *_timestamps(),
    )
    op.create_index('idx_email_queue_due', 'email_notification_queue', ['sent_at', 'scheduled_send_at'])


def downgrade() -> None:
    for table in (
        'email_notification_queue',
        'notification_settings',
        'notifications',
        'reports',
        'processed_webhook_events',
        'credit_transactions',
        'charges',
        'meeting_operation_logs',
        'meetings',
        'messages',
        'threads',
        'corporate_obs',
        'companies',
        'company_profiles',
        'obog_profiles',
        'student_profiles',
        'users',
    ):
        op.drop_table(table)
