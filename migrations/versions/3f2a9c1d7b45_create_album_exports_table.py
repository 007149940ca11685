"""create_album_exports_table

Revision ID: 3f2a9c1d7b45
Revises:
Create Date: 2026-10-19 09:00:00.000000

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa
import sqlmodel


# revision identifiers, used by Alembic.
revision: str = '3f2a9c1d7b45'
down_revision: Union[str, Sequence[str], None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None

export_job_status = sa.Enum(
    'queued', 'processing', 'ready', 'failed', 'expired', 'cancelled',
    name='exportjobstatus',
)


def upgrade() -> None:
    """Upgrade schema."""
    op.create_table('album_exports',
    sa.Column('id', sqlmodel.sql.sqltypes.AutoString(), nullable=False),
    sa.Column('album_id', sqlmodel.sql.sqltypes.AutoString(), nullable=False),
    sa.Column('requested_by', sqlmodel.sql.sqltypes.AutoString(), nullable=True),
    sa.Column('photo_ids', sa.JSON(), nullable=True),
    sa.Column('status', export_job_status, nullable=False),
    sa.Column('total_photos', sa.Integer(), nullable=False),
    sa.Column('processed_photos', sa.Integer(), nullable=False),
    sa.Column('failed_photos', sa.Integer(), nullable=False, server_default='0'),
    sa.Column('total_bytes', sa.BigInteger(), nullable=False),
    sa.Column('processed_bytes', sa.BigInteger(), nullable=False),
    sa.Column('eta_seconds', sa.Integer(), nullable=True),
    sa.Column('percent', sa.Integer(), nullable=True),
    sa.Column('object_key', sqlmodel.sql.sqltypes.AutoString(), nullable=False),
    sa.Column('download_url', sqlmodel.sql.sqltypes.AutoString(), nullable=True),
    sa.Column('checksum', sqlmodel.sql.sqltypes.AutoString(), nullable=True),
    sa.Column('archive_bytes', sa.BigInteger(), nullable=True),
    sa.Column('expires_at', sa.DateTime(timezone=True), nullable=True),
    sa.Column('error', sqlmodel.sql.sqltypes.AutoString(), nullable=True),
    sa.Column('created_at', sa.DateTime(timezone=True), nullable=False),
    sa.Column('started_at', sa.DateTime(timezone=True), nullable=True),
    sa.Column('completed_at', sa.DateTime(timezone=True), nullable=True),
    sa.PrimaryKeyConstraint('id')
    )
    op.create_index(op.f('ix_album_exports_album_id'), 'album_exports', ['album_id'], unique=False)
    op.create_index(op.f('ix_album_exports_requested_by'), 'album_exports', ['requested_by'], unique=False)
    op.create_index(op.f('ix_album_exports_status'), 'album_exports', ['status'], unique=False)
    op.create_index(op.f('ix_album_exports_expires_at'), 'album_exports', ['expires_at'], unique=False)
    op.create_index(op.f('ix_album_exports_created_at'), 'album_exports', ['created_at'], unique=False)
    # Serves the duplicate lookup on enqueue
    op.create_index('ix_album_exports_dedup', 'album_exports', ['album_id', 'total_photos', 'total_bytes', 'status'], unique=False)


def downgrade() -> None:
    """Downgrade schema."""
    op.drop_index('ix_album_exports_dedup', table_name='album_exports')
    op.drop_index(op.f('ix_album_exports_created_at'), table_name='album_exports')
    op.drop_index(op.f('ix_album_exports_expires_at'), table_name='album_exports')
    op.drop_index(op.f('ix_album_exports_status'), table_name='album_exports')
    op.drop_index(op.f('ix_album_exports_requested_by'), table_name='album_exports')
    op.drop_index(op.f('ix_album_exports_album_id'), table_name='album_exports')
    op.drop_table('album_exports')
    export_job_status.drop(op.get_bind(), checkfirst=True)
