"""initial content store: profiles, content_items, embedding_jobs, webhook_verifications

Revision ID: a1c3e5f7b9d2
Revises:
Create Date: 2026-10-01 00:00:00.000000

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql

# revision identifiers, used by Alembic.
revision: str = 'a1c3e5f7b9d2'
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def _timestamps() -> list[sa.Column]:
    return [
        sa.Column('id', sa.Integer(), autoincrement=True, nullable=False, comment='Auto-incrementing primary key'),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False, comment='Timestamp when record was created (UTC)'),
        sa.Column('updated_at', sa.DateTime(timezone=True), nullable=False, comment='Timestamp when record was last updated (UTC)'),
    ]


def upgrade() -> None:
    """
    Creates the content store:
    1. profiles - tenants, one Notion database each
    2. content_items - normalized pages, with a 768-d embedding column
    3. embedding_jobs - embedding run ledger
    4. webhook_verifications - verification token audit log
    """
    op.execute('CREATE EXTENSION IF NOT EXISTS vector')

    # ================================
    # profiles
    # ================================
    op.create_table(
        'profiles',
        *_timestamps(),
        sa.Column('url_param', sa.String(length=100), nullable=True, comment='Public URL slug for the profile'),
        sa.Column('display_name', sa.String(length=255), nullable=True, comment='Human readable name'),
        sa.Column('notion_database_id', sa.String(length=64), nullable=True, comment='Notion database id as entered by the user (hyphens optional)'),
        sa.Column('notion_api_key', sa.String(length=255), nullable=True, comment='Notion integration secret'),
        sa.Column('notion_webhook_verification_token', sa.String(length=500), nullable=True, comment='Latest webhook verification token received for this profile'),
        sa.Column('notes', sa.Text(), nullable=True),
        sa.PrimaryKeyConstraint('id', name=op.f('pk_profiles')),
        sa.UniqueConstraint('url_param', name=op.f('uq_profiles_url_param')),
    )

    # ================================
    # content_items
    # ================================
    op.create_table(
        'content_items',
        *_timestamps(),
        sa.Column('profile_id', sa.Integer(), nullable=False, comment='Owning profile'),
        sa.Column('notion_page_id', sa.String(length=64), nullable=True, comment='Canonical Notion page id (lowercase, no hyphens)'),
        sa.Column('notion_url', sa.String(length=2000), nullable=True, comment='Notion page URL; fallback upsert key'),
        sa.Column('title', sa.String(length=500), nullable=False),
        sa.Column('description', sa.Text(), nullable=True),
        sa.Column('category', sa.String(length=255), nullable=True),
        sa.Column('tags', postgresql.JSONB(astext_type=sa.Text()), nullable=False),
        sa.Column('start_date', sa.String(length=50), nullable=True, comment='Date property as given by Notion (ISO date or datetime)'),
        sa.Column('end_date', sa.String(length=50), nullable=True),
        sa.Column('content', postgresql.JSONB(astext_type=sa.Text()), nullable=False, comment='Ordered ContentBlock tree'),
        sa.Column('cover_image_url', sa.String(length=2000), nullable=True),
        sa.Column('preview_image_url', sa.String(length=2000), nullable=True, comment='First image of the page, in document order'),
        sa.Column('notion_created_time', sa.DateTime(timezone=True), nullable=True),
        sa.Column('notion_last_edited_time', sa.DateTime(timezone=True), nullable=True),
        sa.Column('status', sa.String(length=20), nullable=False),
        sa.Column('visitor_count', sa.Integer(), nullable=False),
        sa.Column('embedded_at', sa.DateTime(timezone=True), nullable=True),
        sa.ForeignKeyConstraint(['profile_id'], ['profiles.id'], name=op.f('fk_content_items_profile_id_profiles'), ondelete='CASCADE'),
        sa.PrimaryKeyConstraint('id', name=op.f('pk_content_items')),
        sa.UniqueConstraint('profile_id', 'notion_page_id', name='uq_profile_notion_page'),
    )
    op.execute('ALTER TABLE content_items ADD COLUMN embedding vector(768)')

    op.create_index(op.f('ix_content_items_profile_id'), 'content_items', ['profile_id'])
    op.create_index(op.f('ix_content_items_status'), 'content_items', ['status'])
    # Embedding selection: active items of a profile changed since a cutoff
    op.create_index(
        'ix_content_items_profile_status_updated',
        'content_items',
        ['profile_id', 'status', 'updated_at'],
    )
    op.execute("""
        CREATE INDEX ix_content_items_embedding_hnsw
        ON content_items
        USING hnsw (embedding vector_cosine_ops)
        WITH (m = 16, ef_construction = 64)
    """)

    # ================================
    # embedding_jobs
    # ================================
    op.create_table(
        'embedding_jobs',
        *_timestamps(),
        sa.Column('profile_id', sa.Integer(), nullable=False),
        sa.Column('status', sa.String(length=20), nullable=False),
        sa.Column('started_at', sa.DateTime(timezone=True), nullable=False, comment='When the item selection was taken'),
        sa.Column('completed_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('total_items', sa.Integer(), nullable=False),
        sa.Column('items_processed', sa.Integer(), nullable=False),
        sa.Column('item_ids', postgresql.JSONB(astext_type=sa.Text()), nullable=False, comment='ContentItem ids selected for this job, in processing order'),
        sa.Column('error', sa.Text(), nullable=True),
        sa.ForeignKeyConstraint(['profile_id'], ['profiles.id'], name=op.f('fk_embedding_jobs_profile_id_profiles'), ondelete='CASCADE'),
        sa.PrimaryKeyConstraint('id', name=op.f('pk_embedding_jobs')),
    )
    op.create_index(op.f('ix_embedding_jobs_profile_id'), 'embedding_jobs', ['profile_id'])
    op.create_index(op.f('ix_embedding_jobs_status'), 'embedding_jobs', ['status'])

    # ================================
    # webhook_verifications
    # ================================
    op.create_table(
        'webhook_verifications',
        *_timestamps(),
        sa.Column('profile_id', sa.Integer(), nullable=True, comment='Resolved profile, NULL when the request could not be attributed'),
        sa.Column('verification_token', sa.String(length=500), nullable=False, comment='Challenge string or subscription verification token'),
        sa.Column('challenge_type', sa.String(length=50), nullable=False, comment='url_verification or verification_token'),
        sa.Column('received_at', sa.DateTime(timezone=True), nullable=False),
        sa.Column('payload', postgresql.JSONB(astext_type=sa.Text()), nullable=True),
        sa.ForeignKeyConstraint(['profile_id'], ['profiles.id'], name=op.f('fk_webhook_verifications_profile_id_profiles'), ondelete='SET NULL'),
        sa.PrimaryKeyConstraint('id', name=op.f('pk_webhook_verifications')),
    )
    op.create_index(op.f('ix_webhook_verifications_profile_id'), 'webhook_verifications', ['profile_id'])


def downgrade() -> None:
    op.drop_index(op.f('ix_webhook_verifications_profile_id'), table_name='webhook_verifications')
    op.drop_table('webhook_verifications')

    op.drop_index(op.f('ix_embedding_jobs_status'), table_name='embedding_jobs')
    op.drop_index(op.f('ix_embedding_jobs_profile_id'), table_name='embedding_jobs')
    op.drop_table('embedding_jobs')

    op.execute('DROP INDEX IF EXISTS ix_content_items_embedding_hnsw')
    op.drop_index('ix_content_items_profile_status_updated', table_name='content_items')
    op.drop_index(op.f('ix_content_items_status'), table_name='content_items')
    op.drop_index(op.f('ix_content_items_profile_id'), table_name='content_items')
    op.drop_table('content_items')

    op.drop_table('profiles')
