"""create_generation_tables

Revision ID: 3f1c2a9d4b7e
Revises:
Create Date: 2026-10-17 09:00:00.000000

"""
from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql


# revision identifiers, used by Alembic.
revision = '3f1c2a9d4b7e'
down_revision = None
branch_labels = None
depends_on = None


def _json():
    return postgresql.JSONB(astext_type=sa.Text())


def upgrade() -> None:
    # Template catalog (read-only for the generation engine)
    op.create_table(
        'tenants',
        sa.Column('id', sa.String(64), primary_key=True),
        sa.Column('name', sa.String(255), nullable=False),
        sa.Column('default_theme_id', sa.String(64), nullable=True),
        sa.Column('created_at', sa.TIMESTAMP(timezone=True), nullable=False),
    )
    op.create_table(
        'themes',
        sa.Column('id', sa.String(64), primary_key=True),
        sa.Column('tenant_id', sa.String(64), sa.ForeignKey('tenants.id'), nullable=False),
        sa.Column('name', sa.String(255), nullable=False),
        sa.Column('document_styles', _json(), nullable=False),
        sa.Column('page_settings', _json(), nullable=True),
        sa.Column('block_style_presets', _json(), nullable=False),
        sa.Column('created_at', sa.TIMESTAMP(timezone=True), nullable=False),
    )
    op.create_index('ix_themes_tenant_id', 'themes', ['tenant_id'])

    op.create_table(
        'document_templates',
        sa.Column('id', sa.String(64), primary_key=True),
        sa.Column('tenant_id', sa.String(64), sa.ForeignKey('tenants.id'), nullable=False),
        sa.Column('name', sa.String(255), nullable=False),
        sa.Column('theme_id', sa.String(64), nullable=True),
        sa.Column('document_styles', _json(), nullable=True),
        sa.Column('page_settings', _json(), nullable=True),
        sa.Column('created_at', sa.TIMESTAMP(timezone=True), nullable=False),
    )
    op.create_index('ix_document_templates_tenant_id', 'document_templates', ['tenant_id'])

    op.create_table(
        'template_variants',
        sa.Column('id', sa.String(64), primary_key=True),
        sa.Column('tenant_id', sa.String(64), nullable=False),
        sa.Column('template_id', sa.String(64), sa.ForeignKey('document_templates.id'), nullable=False),
        sa.Column('title', sa.String(255), nullable=True),
        sa.Column('attributes', _json(), nullable=False),
        sa.Column('is_default', sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column('created_at', sa.TIMESTAMP(timezone=True), nullable=False),
    )
    op.create_index('ix_template_variants_tenant_id', 'template_variants', ['tenant_id'])
    op.create_index('ix_template_variants_template_id', 'template_variants', ['template_id'])

    op.create_table(
        'template_versions',
        sa.Column('id', sa.String(64), primary_key=True),
        sa.Column('tenant_id', sa.String(64), nullable=False),
        sa.Column('template_id', sa.String(64), sa.ForeignKey('document_templates.id'), nullable=False),
        sa.Column('variant_id', sa.String(64), sa.ForeignKey('template_variants.id'), nullable=False),
        sa.Column('version_number', sa.Integer(), nullable=False),
        sa.Column('template_model', _json(), nullable=False),
        sa.Column('theme_id', sa.String(64), nullable=True),
        sa.Column('status', sa.String(20), nullable=False),
        sa.Column('created_at', sa.TIMESTAMP(timezone=True), nullable=False),
        sa.Column('published_at', sa.TIMESTAMP(timezone=True), nullable=True),
    )
    op.create_index('ix_template_versions_tenant_id', 'template_versions', ['tenant_id'])
    op.create_index('ix_template_versions_variant_id', 'template_versions', ['variant_id'])

    op.create_table(
        'environments',
        sa.Column('id', sa.String(64), primary_key=True),
        sa.Column('tenant_id', sa.String(64), sa.ForeignKey('tenants.id'), nullable=False),
        sa.Column('name', sa.String(255), nullable=False),
        sa.Column('description', sa.Text(), nullable=True),
        sa.Column('created_at', sa.TIMESTAMP(timezone=True), nullable=False),
    )
    op.create_index('ix_environments_tenant_id', 'environments', ['tenant_id'])

    op.create_table(
        'environment_activations',
        sa.Column('environment_id', sa.String(64), sa.ForeignKey('environments.id'), nullable=False),
        sa.Column('variant_id', sa.String(64), sa.ForeignKey('template_variants.id'), nullable=False),
        sa.Column('tenant_id', sa.String(64), nullable=False),
        sa.Column('version_id', sa.String(64), sa.ForeignKey('template_versions.id'), nullable=False),
        sa.Column('activated_at', sa.TIMESTAMP(timezone=True), nullable=False),
        sa.PrimaryKeyConstraint('environment_id', 'variant_id'),
    )
    op.create_index('ix_environment_activations_tenant_id', 'environment_activations', ['tenant_id'])

    # Generation queue
    op.create_table(
        'document_generation_batches',
        sa.Column('id', sa.Uuid(), primary_key=True),
        sa.Column('tenant_id', sa.String(64), nullable=False),
        sa.Column('total_count', sa.Integer(), nullable=False),
        sa.Column('created_at', sa.TIMESTAMP(timezone=True), nullable=False),
    )
    op.create_index('ix_document_generation_batches_tenant_id', 'document_generation_batches', ['tenant_id'])

    op.create_table(
        'document_generation_requests',
        sa.Column('id', sa.Uuid(), primary_key=True),
        sa.Column('batch_id', sa.Uuid(), sa.ForeignKey('document_generation_batches.id'), nullable=True),
        sa.Column('tenant_id', sa.String(64), nullable=False),
        sa.Column('template_id', sa.String(64), nullable=False),
        sa.Column('variant_id', sa.String(64), nullable=False),
        sa.Column('version_id', sa.String(64), nullable=True),
        sa.Column('environment_id', sa.String(64), nullable=True),
        sa.Column('data', _json(), nullable=False),
        sa.Column('filename', sa.String(255), nullable=True),
        sa.Column('correlation_id', sa.String(255), nullable=True),
        sa.Column('created_by', sa.String(255), nullable=True),
        sa.Column('document_id', sa.Uuid(), nullable=True),
        sa.Column('status', sa.String(20), nullable=False),
        sa.Column('claimed_by', sa.String(255), nullable=True),
        sa.Column('claimed_at', sa.TIMESTAMP(timezone=True), nullable=True),
        sa.Column('error_message', sa.Text(), nullable=True),
        sa.Column('created_at', sa.TIMESTAMP(timezone=True), nullable=False),
        sa.Column('started_at', sa.TIMESTAMP(timezone=True), nullable=True),
        sa.Column('completed_at', sa.TIMESTAMP(timezone=True), nullable=True),
        sa.Column('expires_at', sa.TIMESTAMP(timezone=True), nullable=True),
        sa.CheckConstraint(
            '(version_id IS NULL) <> (environment_id IS NULL)',
            name='ck_generation_request_version_xor_environment',
        ),
    )
    op.create_index('ix_document_generation_requests_batch_id', 'document_generation_requests', ['batch_id'])
    op.create_index('ix_document_generation_requests_correlation_id', 'document_generation_requests', ['correlation_id'])
    op.create_index('ix_generation_requests_status_created', 'document_generation_requests', ['status', 'created_at'])
    op.create_index('ix_generation_requests_tenant_created', 'document_generation_requests', ['tenant_id', 'created_at'])
    # Claim scans only look at the pending tail
    op.create_index(
        'ix_generation_requests_pending',
        'document_generation_requests',
        ['created_at'],
        postgresql_where=sa.text("status = 'PENDING'"),
    )

    op.create_table(
        'documents',
        sa.Column('id', sa.Uuid(), primary_key=True),
        sa.Column('tenant_id', sa.String(64), nullable=False),
        sa.Column('template_id', sa.String(64), nullable=False),
        sa.Column('variant_id', sa.String(64), nullable=False),
        sa.Column('version_id', sa.String(64), nullable=False),
        sa.Column('generation_request_id', sa.Uuid(), nullable=True),
        sa.Column('filename', sa.String(255), nullable=False),
        sa.Column('correlation_id', sa.String(255), nullable=True),
        sa.Column('created_by', sa.String(255), nullable=True),
        sa.Column('content_type', sa.String(100), nullable=False),
        sa.Column('size_bytes', sa.BigInteger(), nullable=False),
        sa.Column('storage_key', sa.String(512), nullable=False),
        sa.Column('created_at', sa.TIMESTAMP(timezone=True), nullable=False),
    )
    op.create_index('ix_documents_template_id', 'documents', ['template_id'])
    op.create_index('ix_documents_correlation_id', 'documents', ['correlation_id'])
    op.create_index('ix_documents_tenant_created', 'documents', ['tenant_id', 'created_at'])


def downgrade() -> None:
    op.drop_table('documents')
    op.drop_table('document_generation_requests')
    op.drop_table('document_generation_batches')
    op.drop_table('environment_activations')
    op.drop_table('environments')
    op.drop_table('template_versions')
    op.drop_table('template_variants')
    op.drop_table('document_templates')
    op.drop_table('themes')
    op.drop_table('tenants')
