"""Initial schema: users, sessions, clinical records, plans, notifications

Revision ID: 001_initial_schema
Revises:
Create Date: 2026-10-18

Creates:
1. users / therapists / clients
2. therapy_sessions
3. therapist_impressions and ai_analyses (one per session)
4. risk_flags (audit trail, never deleted)
5. treatment_plans and treatment_plan_versions
6. notifications
"""

from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql

# revision identifiers, used by Alembic.
revision = '001_initial_schema'
down_revision = None
branch_labels = None
depends_on = None


def _timestamps() -> list[sa.Column]:
    return [
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
        sa.Column('updated_at', sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
    ]


def upgrade() -> None:
    op.create_table(
        'users',
        sa.Column('id', sa.Uuid(), primary_key=True),
        sa.Column('email', sa.String(255), nullable=False, unique=True),
        sa.Column('role', sa.String(20), nullable=False),
        *_timestamps(),
    )

    op.create_table(
        'therapists',
        sa.Column('id', sa.Uuid(), primary_key=True),
        sa.Column('user_id', sa.Uuid(), sa.ForeignKey('users.id', ondelete='CASCADE'), nullable=False, unique=True),
        sa.Column('license_number', sa.String(100), nullable=True),
        sa.Column('specialty', sa.String(255), nullable=True),
        *_timestamps(),
    )

    op.create_table(
        'clients',
        sa.Column('id', sa.Uuid(), primary_key=True),
        sa.Column('user_id', sa.Uuid(), sa.ForeignKey('users.id', ondelete='CASCADE'), nullable=False, unique=True),
        sa.Column('therapist_id', sa.Uuid(), sa.ForeignKey('therapists.id'), nullable=False),
        sa.Column('display_name', sa.String(100), nullable=False),
        *_timestamps(),
    )
    op.create_index('ix_clients_therapist_id', 'clients', ['therapist_id'])

    op.create_table(
        'therapy_sessions',
        sa.Column('id', sa.Uuid(), primary_key=True),
        sa.Column('therapist_id', sa.Uuid(), sa.ForeignKey('therapists.id'), nullable=False),
        sa.Column('client_id', sa.Uuid(), sa.ForeignKey('clients.id', ondelete='CASCADE'), nullable=False),
        sa.Column('session_date', sa.DateTime(timezone=True), nullable=False),
        sa.Column('transcript', sa.Text(), nullable=False, server_default=''),
        sa.Column('status', sa.String(30), nullable=False, server_default='TRANSCRIPT_UPLOADED'),
        sa.Column('therapist_summary', sa.Text(), nullable=True),
        sa.Column('client_summary', sa.Text(), nullable=True),
        *_timestamps(),
    )
    op.create_index('ix_therapy_sessions_therapist_id', 'therapy_sessions', ['therapist_id'])
    op.create_index('ix_therapy_sessions_client_id', 'therapy_sessions', ['client_id'])

    op.create_table(
        'therapist_impressions',
        sa.Column('id', sa.Uuid(), primary_key=True),
        sa.Column('session_id', sa.Uuid(), sa.ForeignKey('therapy_sessions.id', ondelete='CASCADE'), nullable=False, unique=True),
        sa.Column('concerns', postgresql.JSONB(), nullable=False),
        sa.Column('highlights', postgresql.JSONB(), nullable=False),
        sa.Column('themes', postgresql.JSONB(), nullable=False),
        sa.Column('goals', postgresql.JSONB(), nullable=False),
        sa.Column('diagnoses', postgresql.JSONB(), nullable=True),
        sa.Column('modalities', postgresql.JSONB(), nullable=True),
        sa.Column('risk_observations', postgresql.JSONB(), nullable=False),
        sa.Column('strengths', postgresql.JSONB(), nullable=False),
        sa.Column('session_quality', postgresql.JSONB(), nullable=True),
        *_timestamps(),
    )

    op.create_table(
        'ai_analyses',
        sa.Column('id', sa.Uuid(), primary_key=True),
        sa.Column('session_id', sa.Uuid(), sa.ForeignKey('therapy_sessions.id', ondelete='CASCADE'), nullable=False, unique=True),
        sa.Column('concerns', postgresql.JSONB(), nullable=False),
        sa.Column('themes', postgresql.JSONB(), nullable=False),
        sa.Column('goals', postgresql.JSONB(), nullable=False),
        sa.Column('interventions', postgresql.JSONB(), nullable=False),
        sa.Column('homework', postgresql.JSONB(), nullable=False),
        sa.Column('strengths', postgresql.JSONB(), nullable=False),
        sa.Column('risk_indicators', postgresql.JSONB(), nullable=False),
        sa.Column('raw_output', postgresql.JSONB(), nullable=True),
        sa.Column('model_version', sa.String(100), nullable=True),
        sa.Column('risk_detection_degraded', sa.Boolean(), nullable=False, server_default=sa.false()),
        *_timestamps(),
    )

    op.create_table(
        'risk_flags',
        sa.Column('id', sa.Uuid(), primary_key=True),
        sa.Column('session_id', sa.Uuid(), sa.ForeignKey('therapy_sessions.id', ondelete='CASCADE'), nullable=False),
        sa.Column('risk_type', sa.String(50), nullable=False),
        sa.Column('severity', sa.String(20), nullable=False),
        sa.Column('excerpt', sa.Text(), nullable=False),
        sa.Column('keyword', sa.String(100), nullable=True),
        sa.Column('acknowledged', sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column('acknowledged_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('acknowledged_by', sa.Uuid(), sa.ForeignKey('therapists.id'), nullable=True),
        *_timestamps(),
    )
    op.create_index('ix_risk_flags_session_id', 'risk_flags', ['session_id'])

    op.create_table(
        'treatment_plans',
        sa.Column('id', sa.Uuid(), primary_key=True),
        sa.Column('client_id', sa.Uuid(), sa.ForeignKey('clients.id', ondelete='CASCADE'), nullable=False, unique=True),
        sa.Column('current_version_id', sa.Uuid(), nullable=True),
        *_timestamps(),
    )

    op.create_table(
        'treatment_plan_versions',
        sa.Column('id', sa.Uuid(), primary_key=True),
        sa.Column('treatment_plan_id', sa.Uuid(), sa.ForeignKey('treatment_plans.id', ondelete='CASCADE'), nullable=False),
        sa.Column('version_number', sa.Integer(), nullable=False),
        sa.Column('source_session_id', sa.Uuid(), sa.ForeignKey('therapy_sessions.id', ondelete='SET NULL'), nullable=True),
        sa.Column('therapist_content', postgresql.JSONB(), nullable=False),
        sa.Column('client_content', postgresql.JSONB(), nullable=True),
        sa.Column('status', sa.String(20), nullable=False, server_default='DRAFT'),
        sa.Column('edited_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('approved_at', sa.DateTime(timezone=True), nullable=True),
        *_timestamps(),
        sa.UniqueConstraint('treatment_plan_id', 'version_number', name='uq_plan_version_number'),
    )

    op.create_table(
        'notifications',
        sa.Column('id', sa.Uuid(), primary_key=True),
        sa.Column('user_id', sa.Uuid(), sa.ForeignKey('users.id', ondelete='CASCADE'), nullable=False),
        sa.Column('type', sa.String(40), nullable=False),
        sa.Column('title', sa.String(255), nullable=False),
        sa.Column('message', sa.Text(), nullable=False),
        sa.Column('link', sa.String(500), nullable=True),
        sa.Column('read', sa.Boolean(), nullable=False, server_default=sa.false()),
        *_timestamps(),
    )
    op.create_index('ix_notifications_user_id_read', 'notifications', ['user_id', 'read'])


def downgrade() -> None:
    op.drop_index('ix_notifications_user_id_read', table_name='notifications')
    op.drop_table('notifications')
    op.drop_table('treatment_plan_versions')
    op.drop_table('treatment_plans')
    op.drop_index('ix_risk_flags_session_id', table_name='risk_flags')
    op.drop_table('risk_flags')
    op.drop_table('ai_analyses')
    op.drop_table('therapist_impressions')
    op.drop_index('ix_therapy_sessions_client_id', table_name='therapy_sessions')
    op.drop_index('ix_therapy_sessions_therapist_id', table_name='therapy_sessions')
    op.drop_table('therapy_sessions')
    op.drop_index('ix_clients_therapist_id', table_name='clients')
    op.drop_table('clients')
    op.drop_table('therapists')
    op.drop_table('users')
