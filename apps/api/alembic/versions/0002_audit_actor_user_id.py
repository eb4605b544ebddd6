"""Index audit entries by actor

Revision ID: 0002_audit_actor_user_id
Revises: 0001_baseline
Create Date: 2026-10-19

Copies actor.user_id out of the JSON snapshot into its own column so
per-user audit reads are a bounded, indexed query.
"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision: str = '0002_audit_actor_user_id'
down_revision: Union[str, Sequence[str], None] = '0001_baseline'
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    """Add actor_user_id and backfill it from existing snapshots."""
    with op.batch_alter_table('audit_logs') as batch_op:
        batch_op.add_column(sa.Column('actor_user_id', sa.String(36), nullable=True))

    audit_logs = sa.table(
        'audit_logs',
        sa.column('id', sa.Uuid()),
        sa.column('actor', sa.JSON()),
        sa.column('actor_user_id', sa.String(36)),
    )
    conn = op.get_bind()
    rows = conn.execute(sa.select(audit_logs.c.id, audit_logs.c.actor)).all()
    for entry_id, actor in rows:
        user_id = (actor or {}).get('user_id')
        if not user_id:
            continue
        conn.execute(
            audit_logs.update()
            .where(audit_logs.c.id == entry_id)
            .values(actor_user_id=str(user_id))
        )

    op.create_index('idx_audit_actor_timestamp', 'audit_logs', ['actor_user_id', 'timestamp'])


def downgrade() -> None:
    """Drop actor_user_id."""
    op.drop_index('idx_audit_actor_timestamp', table_name='audit_logs')
    with op.batch_alter_table('audit_logs') as batch_op:
        batch_op.drop_column('actor_user_id')
