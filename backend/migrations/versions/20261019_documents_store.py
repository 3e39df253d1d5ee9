"""document store

Revision ID: d0c5t0re0001
Revises:
Create Date: 2026-10-19 00:00:00.000000

Creates the single `documents` table backing the entity store:
- collection + doc_id address one flat JSON document
- revision counts writes (no optimistic locking)
"""
from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision = 'd0c5t0re0001'
down_revision = None
branch_labels = None
depends_on = None


def upgrade():
    """
    WHY: categories, products, suppliers and orders are all documents in one
    table; the collection name partitions them.
    """
    op.create_table(
        'documents',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('collection', sa.String(length=64), nullable=False),
        sa.Column('doc_id', sa.String(length=64), nullable=False),
        sa.Column('body', sa.JSON(), nullable=False),
        sa.Column('revision', sa.Integer(), nullable=False, server_default='1'),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False,
                  server_default=sa.text('CURRENT_TIMESTAMP')),
        sa.Column('updated_at', sa.DateTime(timezone=True), nullable=False,
                  server_default=sa.text('CURRENT_TIMESTAMP')),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('collection', 'doc_id', name='uq_documents_collection_doc'),
        sqlite_autoincrement=True
    )
    op.create_index('ix_documents_collection', 'documents', ['collection'], unique=False)


def downgrade():
    op.drop_index('ix_documents_collection', table_name='documents')
    op.drop_table('documents')
