"""Baseline migration - team, registry, demands and audit tables

Revision ID: 0001_baseline
Revises: 
Create Date: 2026-10-19

Cross-entity references are plain UUID columns (no foreign keys):
timeline rows and audit entries outlive the records they describe.
"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision: str = '0001_baseline'
down_revision: Union[str, Sequence[str], None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def _soft_delete_columns() -> list[sa.Column]:
    return [
        sa.Column('is_pending_deletion', sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column('deletion_reason', sa.Text(), nullable=True),
        sa.Column('deleted_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('deleted_by', sa.Uuid(), nullable=True),
    ]


def upgrade() -> None:
    """Create all tables."""

    # ==========================================================================
    # Team
    # ==========================================================================
    op.create_table(
        'users',
        sa.Column('id', sa.Uuid(), primary_key=True),
        sa.Column('name', sa.String(255), nullable=False),
        sa.Column('email', sa.String(255), nullable=False, unique=True),
        sa.Column('username', sa.String(100), nullable=True, unique=True),
        sa.Column('phone', sa.String(30), nullable=True),
        sa.Column('role', sa.String(20), nullable=False),
        sa.Column('status', sa.String(20), nullable=False),
        sa.Column('avatar_url', sa.String(500), nullable=True),
        sa.Column('sectors', sa.JSON(), nullable=False),
        sa.Column('password_hash', sa.String(255), nullable=True),
        sa.Column('token_version', sa.Integer(), nullable=False, server_default='1'),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False),
        sa.Column('updated_at', sa.DateTime(timezone=True), nullable=False),
    )

    op.create_table(
        'categories',
        sa.Column('id', sa.Uuid(), primary_key=True),
        sa.Column('name', sa.String(100), nullable=False, unique=True),
        sa.Column('color', sa.String(7), nullable=False),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False),
    )

    # ==========================================================================
    # Constituents
    # ==========================================================================
    op.create_table(
        'constituents',
        sa.Column('id', sa.Uuid(), primary_key=True),
        sa.Column('name', sa.String(100), nullable=False),
        sa.Column('document', sa.String(20), nullable=False, server_default=''),
        sa.Column('mobile_phone', sa.String(20), nullable=False, server_default=''),
        sa.Column('email', sa.String(255), nullable=True),
        sa.Column('birth_date', sa.Date(), nullable=True),
        sa.Column('gender', sa.String(10), nullable=True),
        sa.Column('voter_title', sa.String(20), nullable=True),
        sa.Column('electoral_zone', sa.String(10), nullable=True),
        sa.Column('electoral_section', sa.String(10), nullable=True),
        sa.Column('address', sa.JSON(), nullable=False),
        sa.Column('geo', sa.JSON(), nullable=True),
        sa.Column('tags', sa.JSON(), nullable=False),
        sa.Column('is_leadership', sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column('leadership_type', sa.String(20), nullable=True),
        sa.Column('notes', sa.Text(), nullable=True),
        sa.Column('responsible_user_id', sa.String(36), nullable=False, server_default=''),
        sa.Column('created_by', sa.Uuid(), nullable=True),
        sa.Column('updated_by', sa.Uuid(), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False),
        sa.Column('updated_at', sa.DateTime(timezone=True), nullable=False),
        *_soft_delete_columns(),
    )
    op.create_index('idx_constituents_pending', 'constituents', ['is_pending_deletion'])
    op.create_index('idx_constituents_responsible', 'constituents', ['responsible_user_id'])
    op.create_index('idx_constituents_document', 'constituents', ['document'])

    # ==========================================================================
    # Demands and timeline
    # ==========================================================================
    op.create_table(
        'demands',
        sa.Column('id', sa.Uuid(), primary_key=True),
        sa.Column('protocol', sa.String(20), nullable=False, unique=True),
        sa.Column('constituent_id', sa.Uuid(), nullable=False),
        sa.Column('category_id', sa.Uuid(), nullable=True),
        sa.Column('assigned_to_user_id', sa.Uuid(), nullable=True),
        sa.Column('title', sa.String(150), nullable=False),
        sa.Column('description', sa.Text(), nullable=False, server_default=''),
        sa.Column('priority', sa.String(10), nullable=False),
        sa.Column('status', sa.String(30), nullable=False),
        sa.Column('deadline', sa.Date(), nullable=True),
        sa.Column('attachments', sa.JSON(), nullable=False),
        sa.Column('external_sector', sa.String(255), nullable=True),
        sa.Column('protocol_external', sa.String(100), nullable=True),
        sa.Column('protocol_date', sa.Date(), nullable=True),
        sa.Column('external_link', sa.String(500), nullable=True),
        sa.Column('last_action_label', sa.Text(), nullable=True),
        sa.Column('last_user_name', sa.String(255), nullable=True),
        sa.Column('created_by', sa.Uuid(), nullable=True),
        sa.Column('updated_by', sa.Uuid(), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False),
        sa.Column('updated_at', sa.DateTime(timezone=True), nullable=False),
        *_soft_delete_columns(),
    )
    op.create_index('idx_demands_pending', 'demands', ['is_pending_deletion'])
    op.create_index('idx_demands_constituent', 'demands', ['constituent_id'])
    op.create_index('idx_demands_status', 'demands', ['status'])

    op.create_table(
        'timeline_events',
        sa.Column('id', sa.Uuid(), primary_key=True),
        sa.Column('parent_id', sa.Uuid(), nullable=False),
        sa.Column('sequence', sa.Integer(), nullable=False),
        sa.Column('user_id', sa.Uuid(), nullable=True),
        sa.Column('user_name', sa.String(255), nullable=False),
        sa.Column('type', sa.String(30), nullable=False),
        sa.Column('description', sa.Text(), nullable=False),
        sa.Column('metadata', sa.JSON(), nullable=False),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False),
    )
    op.create_index('idx_timeline_parent_sequence', 'timeline_events', ['parent_id', 'sequence'])

    # ==========================================================================
    # Audit log (append-only)
    # ==========================================================================
    op.create_table(
        'audit_logs',
        sa.Column('id', sa.Uuid(), primary_key=True),
        sa.Column('timestamp', sa.DateTime(timezone=True), nullable=False),
        sa.Column('action', sa.String(30), nullable=False),
        sa.Column('module', sa.String(30), nullable=False),
        sa.Column('entity_id', sa.String(64), nullable=False),
        sa.Column('actor', sa.JSON(), nullable=False),
        sa.Column('changes', sa.JSON(), nullable=True),
        sa.Column('meta', sa.JSON(), nullable=True),
    )
    op.create_index('idx_audit_timestamp', 'audit_logs', ['timestamp'])
    op.create_index('idx_audit_entity_timestamp', 'audit_logs', ['entity_id', 'timestamp'])
    op.create_index('idx_audit_module_timestamp', 'audit_logs', ['module', 'timestamp'])


def downgrade() -> None:
    """Drop all tables."""
    op.drop_table('audit_logs')
    op.drop_table('timeline_events')
    op.drop_table('demands')
    op.drop_table('constituents')
    op.drop_table('categories')
    op.drop_table('users')
