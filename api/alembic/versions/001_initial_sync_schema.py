"""initial_sync_schema

Revision ID: 001
Revises:
Create Date: 2026-10-19 10:00:00.000000

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision: str = '001'
down_revision: Union[str, Sequence[str], None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    """Upgrade schema."""
    bind = op.get_bind()
    inspector = sa.inspect(bind)

    if not inspector.has_table('listings'):
        op.create_table('listings',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('title', sa.String(length=255), nullable=False),
        sa.Column('remote_record_id', sa.String(length=64), nullable=True),
        sa.Column('sync_enabled', sa.Boolean(), nullable=False),
        sa.Column('fields', sa.JSON(), nullable=False),
        sa.Column('modified_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('last_synced_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('synced_fields', sa.JSON(), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=True),
        sa.PrimaryKeyConstraint('id')
        )
        op.create_index(op.f('ix_listings_id'), 'listings', ['id'], unique=False)
        op.create_index(op.f('ix_listings_remote_record_id'), 'listings', ['remote_record_id'], unique=True)
        op.create_index(op.f('ix_listings_sync_enabled'), 'listings', ['sync_enabled'], unique=False)
        op.create_index(op.f('ix_listings_modified_at'), 'listings', ['modified_at'], unique=False)

    if not inspector.has_table('listing_attachments'):
        op.create_table('listing_attachments',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('listing_id', sa.Integer(), nullable=True),
        sa.Column('field_name', sa.String(length=100), nullable=False),
        sa.Column('filename', sa.String(length=255), nullable=False),
        sa.Column('mime_type', sa.String(length=100), nullable=False),
        sa.Column('byte_size', sa.BigInteger(), nullable=False),
        sa.Column('storage_path', sa.Text(), nullable=False),
        sa.Column('public_url', sa.Text(), nullable=False),
        sa.Column('position', sa.Integer(), nullable=False),
        sa.Column('width', sa.Integer(), nullable=True),
        sa.Column('height', sa.Integer(), nullable=True),
        sa.Column('remote_attachment_id', sa.String(length=64), nullable=True),
        sa.Column('sync_source', sa.String(length=50), nullable=True),
        sa.Column('synced_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=True),
        sa.ForeignKeyConstraint(['listing_id'], ['listings.id'], ondelete='SET NULL'),
        sa.PrimaryKeyConstraint('id')
        )
        op.create_index(op.f('ix_listing_attachments_id'), 'listing_attachments', ['id'], unique=False)
        op.create_index(op.f('ix_listing_attachments_listing_id'), 'listing_attachments', ['listing_id'], unique=False)
        op.create_index(
            op.f('ix_listing_attachments_remote_attachment_id'), 'listing_attachments', ['remote_attachment_id'], unique=False
        )
        op.create_index(op.f('ix_listing_attachments_sync_source'), 'listing_attachments', ['sync_source'], unique=False)

    if not inspector.has_table('sync_checkpoints'):
        op.create_table('sync_checkpoints',
        sa.Column('direction', sa.String(length=50), nullable=False),
        sa.Column('last_sync_at', sa.DateTime(timezone=True), nullable=False),
        sa.Column('updated_at', sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=True),
        sa.PrimaryKeyConstraint('direction')
        )

    if not inspector.has_table('sync_history'):
        op.create_table('sync_history',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('timestamp', sa.DateTime(timezone=True), nullable=False),
        sa.Column('direction', sa.String(length=50), nullable=False),
        sa.Column('trigger', sa.String(length=50), nullable=False),
        sa.Column('status', sa.String(length=50), nullable=False),
        sa.Column('duration_s', sa.Float(), nullable=False),
        sa.Column('records_processed', sa.Integer(), nullable=False),
        sa.Column('stats', sa.JSON(), nullable=False),
        sa.Column('error', sa.Text(), nullable=True),
        sa.PrimaryKeyConstraint('id')
        )
        op.create_index(op.f('ix_sync_history_id'), 'sync_history', ['id'], unique=False)
        op.create_index(op.f('ix_sync_history_timestamp'), 'sync_history', ['timestamp'], unique=False)

    if not inspector.has_table('system_settings'):
        op.create_table('system_settings',
        sa.Column('key', sa.String(length=255), nullable=False),
        sa.Column('value', sa.JSON(), nullable=True),
        sa.Column('description', sa.Text(), nullable=True),
        sa.Column('updated_at', sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=True),
        sa.PrimaryKeyConstraint('key')
        )


def downgrade() -> None:
    """Downgrade schema."""
    bind = op.get_bind()
    inspector = sa.inspect(bind)

    for table in ('system_settings', 'sync_history', 'sync_checkpoints', 'listing_attachments', 'listings'):
        if inspector.has_table(table):
            op.drop_table(table)
