"""Create document, queue, result, analysis and resume state tables

Revision ID: 0001_initial
Revises:
Create Date: 2026-10-19

"""
from alembic import op
import sqlalchemy as sa

# revision identifiers, used by Alembic.
revision = '0001_initial'
down_revision = None
branch_labels = None
depends_on = None


def upgrade():
    op.create_table(
        'documents',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('owner_id', sa.String(length=255), nullable=False),
        sa.Column('stored_filename', sa.String(length=255), nullable=False),
        sa.Column('original_filename', sa.String(length=255), nullable=False),
        sa.Column('file_path', sa.String(length=1000), nullable=False),
        sa.Column('file_size_bytes', sa.Integer(), nullable=False),
        sa.Column('mime_type', sa.String(length=100), nullable=False),
        sa.Column('document_kind', sa.String(length=50), nullable=False),
        sa.Column('is_active', sa.Boolean(), nullable=False),
        sa.Column('processing_status', sa.String(length=50), nullable=False),
        sa.Column('processing_error', sa.Text(), nullable=True),
        sa.Column('uploaded_at', sa.DateTime(timezone=True), nullable=False),
        sa.Column('processed_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('updated_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('deleted_at', sa.DateTime(timezone=True), nullable=True),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('stored_filename'),
    )
    op.create_index('ix_documents_id', 'documents', ['id'])
    op.create_index('ix_documents_owner_id', 'documents', ['owner_id'])
    op.create_index(
        'uq_documents_one_active_per_owner',
        'documents',
        ['owner_id', 'document_kind'],
        unique=True,
        sqlite_where=sa.text('is_active = 1'),
        postgresql_where=sa.text('is_active'),
    )

    op.create_table(
        'document_assets',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('document_id', sa.Integer(), nullable=False),
        sa.Column('asset_type', sa.String(length=50), nullable=False),
        sa.Column('page_number', sa.Integer(), nullable=True),
        sa.Column('asset_index', sa.Integer(), nullable=False),
        sa.Column('file_path', sa.String(length=1000), nullable=False),
        sa.Column('file_size_bytes', sa.Integer(), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False),
        sa.ForeignKeyConstraint(['document_id'], ['documents.id'], ondelete='CASCADE'),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index('ix_document_assets_id', 'document_assets', ['id'])
    op.create_index('ix_document_assets_document_id', 'document_assets', ['document_id'])

    op.create_table(
        'document_processing_queue',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('document_id', sa.Integer(), nullable=False),
        sa.Column('status', sa.String(length=50), nullable=False),
        sa.Column('priority', sa.Integer(), nullable=False),
        sa.Column('processing_options', sa.JSON(), nullable=False),
        sa.Column('retry_count', sa.Integer(), nullable=False),
        sa.Column('last_error', sa.Text(), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False),
        sa.Column('started_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('completed_at', sa.DateTime(timezone=True), nullable=True),
        sa.ForeignKeyConstraint(['document_id'], ['documents.id'], ondelete='CASCADE'),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index('ix_document_processing_queue_id', 'document_processing_queue', ['id'])
    op.create_index('ix_document_processing_queue_document_id', 'document_processing_queue', ['document_id'])
    op.create_index(
        'ix_queue_status_priority_created',
        'document_processing_queue',
        ['status', 'priority', 'created_at'],
    )
    op.create_index(
        'uq_queue_one_outstanding_per_document',
        'document_processing_queue',
        ['document_id'],
        unique=True,
        sqlite_where=sa.text("status IN ('queued', 'processing')"),
        postgresql_where=sa.text("status IN ('queued', 'processing')"),
    )

    op.create_table(
        'document_processing_results',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('document_id', sa.Integer(), nullable=False),
        sa.Column('extracted_text', sa.Text(), nullable=True),
        sa.Column('text_length', sa.Integer(), nullable=False),
        sa.Column('word_count', sa.Integer(), nullable=False),
        sa.Column('line_count', sa.Integer(), nullable=False),
        sa.Column('text_file_path', sa.String(length=1000), nullable=True),
        sa.Column('pdf_total_pages', sa.Integer(), nullable=True),
        sa.Column('pdf_title', sa.String(length=500), nullable=True),
        sa.Column('pdf_author', sa.String(length=500), nullable=True),
        sa.Column('pdf_creator', sa.String(length=500), nullable=True),
        sa.Column('pdf_producer', sa.String(length=500), nullable=True),
        sa.Column('pdf_metadata', sa.JSON(), nullable=True),
        sa.Column('screenshot_paths', sa.JSON(), nullable=True),
        sa.Column('images', sa.JSON(), nullable=True),
        sa.Column('tables', sa.JSON(), nullable=True),
        sa.Column('contact_info', sa.JSON(), nullable=True),
        sa.Column('warnings', sa.JSON(), nullable=True),
        sa.Column('processing_time_ms', sa.Integer(), nullable=True),
        sa.Column('processed_at', sa.DateTime(timezone=True), nullable=False),
        sa.ForeignKeyConstraint(['document_id'], ['documents.id'], ondelete='CASCADE'),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index('ix_document_processing_results_id', 'document_processing_results', ['id'])
    op.create_index(
        'ix_document_processing_results_document_id',
        'document_processing_results',
        ['document_id'],
        unique=True,
    )

    op.create_table(
        'resume_analysis',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('document_id', sa.Integer(), nullable=False),
        sa.Column('contact_info', sa.JSON(), nullable=True),
        sa.Column('skills', sa.JSON(), nullable=True),
        sa.Column('quality_score', sa.Integer(), nullable=True),
        sa.Column('ats_score', sa.Integer(), nullable=True),
        sa.Column('aesthetic_score', sa.Integer(), nullable=True),
        sa.Column('recommendations', sa.JSON(), nullable=True),
        sa.Column('strengths', sa.JSON(), nullable=True),
        sa.Column('improvements', sa.JSON(), nullable=True),
        sa.Column('aesthetic_assessment', sa.Text(), nullable=True),
        sa.Column('model', sa.String(length=255), nullable=True),
        sa.Column('raw_response', sa.JSON(), nullable=True),
        sa.Column('analyzed_at', sa.DateTime(timezone=True), nullable=False),
        sa.ForeignKeyConstraint(['document_id'], ['documents.id'], ondelete='CASCADE'),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index('ix_resume_analysis_id', 'resume_analysis', ['id'])
    op.create_index('ix_resume_analysis_document_id', 'resume_analysis', ['document_id'], unique=True)

    op.create_table(
        'user_resume_processing_state',
        sa.Column('owner_id', sa.String(length=255), nullable=False),
        sa.Column('active_document_id', sa.Integer(), nullable=True),
        sa.Column('has_parsed_resume', sa.Boolean(), nullable=False),
        sa.Column('document_filename', sa.String(length=255), nullable=True),
        sa.Column('document_original_filename', sa.String(length=255), nullable=True),
        sa.Column('document_file_size_bytes', sa.Integer(), nullable=True),
        sa.Column('document_uploaded_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('pdf_title', sa.String(length=500), nullable=True),
        sa.Column('pdf_author', sa.String(length=500), nullable=True),
        sa.Column('pdf_creator', sa.String(length=500), nullable=True),
        sa.Column('pdf_producer', sa.String(length=500), nullable=True),
        sa.Column('pdf_total_pages', sa.Integer(), nullable=True),
        sa.Column('extracted_text', sa.Text(), nullable=True),
        sa.Column('text_length', sa.Integer(), nullable=True),
        sa.Column('word_count', sa.Integer(), nullable=True),
        sa.Column('line_count', sa.Integer(), nullable=True),
        sa.Column('screenshot_path', sa.String(length=1000), nullable=True),
        sa.Column('processed_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('processing_completed_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False),
        sa.Column('updated_at', sa.DateTime(timezone=True), nullable=True),
        sa.ForeignKeyConstraint(['active_document_id'], ['documents.id'], ondelete='SET NULL'),
        sa.PrimaryKeyConstraint('owner_id'),
    )


def downgrade():
    op.drop_table('user_resume_processing_state')
    op.drop_index('ix_resume_analysis_document_id', table_name='resume_analysis')
    op.drop_index('ix_resume_analysis_id', table_name='resume_analysis')
    op.drop_table('resume_analysis')
    op.drop_index('ix_document_processing_results_document_id', table_name='document_processing_results')
    op.drop_index('ix_document_processing_results_id', table_name='document_processing_results')
    op.drop_table('document_processing_results')
    op.drop_index('uq_queue_one_outstanding_per_document', table_name='document_processing_queue')
    op.drop_index('ix_queue_status_priority_created', table_name='document_processing_queue')
    op.drop_index('ix_document_processing_queue_document_id', table_name='document_processing_queue')
    op.drop_index('ix_document_processing_queue_id', table_name='document_processing_queue')
    op.drop_table('document_processing_queue')
    op.drop_index('ix_document_assets_document_id', table_name='document_assets')
    op.drop_index('ix_document_assets_id', table_name='document_assets')
    op.drop_table('document_assets')
    op.drop_index('uq_documents_one_active_per_owner', table_name='documents')
    op.drop_index('ix_documents_owner_id', table_name='documents')
    op.drop_index('ix_documents_id', table_name='documents')
    op.drop_table('documents')
