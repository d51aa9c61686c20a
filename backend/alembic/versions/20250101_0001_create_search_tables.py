"""Create search index, search log, content suggestion and trend tables

Revision ID: search_0001
Revises:
Create Date: 2025-01-01 00:00:00.000000

"""
from alembic import op
import sqlalchemy as sa
from pgvector.sqlalchemy import Vector


# revision identifiers, used by Alembic.
revision = 'search_0001'
down_revision = None
branch_labels = None
depends_on = None

EMBEDDING_DIMENSIONS = 768


def upgrade() -> None:
    op.execute("CREATE EXTENSION IF NOT EXISTS vector")

    op.create_table('search_index',
        sa.Column('id', sa.String(), nullable=False),
        sa.Column('content_type', sa.String(length=32), nullable=False),
        sa.Column('content_id', sa.String(), nullable=False),
        sa.Column('title', sa.String(length=200), server_default='', nullable=False),
        sa.Column('content', sa.Text(), server_default='', nullable=False),
        sa.Column('embedding', Vector(EMBEDDING_DIMENSIONS), nullable=False),
        sa.Column('metadata', sa.JSON(), nullable=False),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.text('now()'), nullable=True),
        sa.Column('updated_at', sa.DateTime(timezone=True), server_default=sa.text('now()'), nullable=True),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('content_type', 'content_id', name='uq_search_index_content')
    )
    op.create_index('idx_search_index_content_type', 'search_index', ['content_type'])

    # Cosine-distance ANN index for vector search
    op.execute(
        "CREATE INDEX idx_search_index_embedding ON search_index "
        "USING hnsw (embedding vector_cosine_ops)"
    )
    # Must match the expression used by full-text search
    op.execute(
        "CREATE INDEX idx_search_index_content_fts ON search_index "
        "USING gin (to_tsvector('portuguese', content))"
    )

    op.create_table('search_logs',
        sa.Column('id', sa.String(), nullable=False),
        sa.Column('user_id', sa.String(), nullable=True),
        sa.Column('query', sa.Text(), nullable=False),
        sa.Column('results_count', sa.Integer(), nullable=False),
        sa.Column('filters', sa.JSON(), nullable=True),
        sa.Column('latency_ms', sa.Integer(), nullable=False),
        sa.Column('no_results', sa.Boolean(), nullable=False),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.text('now()'), nullable=True),
        sa.PrimaryKeyConstraint('id')
    )
    op.create_index('idx_search_logs_created_at', 'search_logs', ['created_at'])

    op.create_table('content_suggestions',
        sa.Column('id', sa.String(), nullable=False),
        sa.Column('term', sa.String(), nullable=False),
        sa.Column('normalized_term', sa.String(), nullable=False),
        sa.Column('search_count', sa.Integer(), nullable=False),
        sa.Column('priority_score', sa.Float(), nullable=False),
        sa.Column('status', sa.String(length=20), nullable=False),
        sa.Column('last_searched_at', sa.DateTime(timezone=True), server_default=sa.text('now()'), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.text('now()'), nullable=True),
        sa.PrimaryKeyConstraint('id')
    )
    op.create_index('idx_content_suggestions_status_priority', 'content_suggestions', ['status', 'priority_score'])
    op.create_index('uq_content_suggestions_normalized_term', 'content_suggestions', ['normalized_term'], unique=True)

    op.create_table('search_trends',
        sa.Column('id', sa.String(), nullable=False),
        sa.Column('period', sa.String(length=20), nullable=False),
        sa.Column('period_start', sa.DateTime(timezone=True), nullable=False),
        sa.Column('period_end', sa.DateTime(timezone=True), nullable=False),
        sa.Column('top_queries', sa.JSON(), nullable=False),
        sa.Column('no_result_queries', sa.JSON(), nullable=False),
        sa.Column('avg_latency_ms', sa.Integer(), nullable=False),
        sa.Column('total_searches', sa.Integer(), nullable=False),
        sa.Column('success_rate', sa.Float(), nullable=False),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.text('now()'), nullable=True),
        sa.PrimaryKeyConstraint('id')
    )


def downgrade() -> None:
    op.drop_table('search_trends')
    op.drop_index('uq_content_suggestions_normalized_term', table_name='content_suggestions')
    op.drop_index('idx_content_suggestions_status_priority', table_name='content_suggestions')
    op.drop_table('content_suggestions')
    op.drop_index('idx_search_logs_created_at', table_name='search_logs')
    op.drop_table('search_logs')
    op.execute("DROP INDEX IF EXISTS idx_search_index_content_fts")
    op.execute("DROP INDEX IF EXISTS idx_search_index_embedding")
    op.drop_index('idx_search_index_content_type', table_name='search_index')
    op.drop_table('search_index')
