"""initial_schema

Revision ID: 3f9a1c2d7e41
Revises:
Create Date: 2026-10-17 10:00:00.000000

"""
from typing import Sequence, Union

import sqlalchemy as sa
from alembic import op
from sqlalchemy.dialects import postgresql


# revision identifiers, used by Alembic.
revision: str = '3f9a1c2d7e41'
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None

connector_provider = postgresql.ENUM('zendesk', 'snowflake', name='connector_provider', create_type=False)
sync_status = postgresql.ENUM('idle', 'running', 'succeeded', 'errored', name='sync_status', create_type=False)
node_permission = postgresql.ENUM('read', 'none', 'inherited', name='node_permission', create_type=False)


def _timestamps() -> list[sa.Column]:
    return [
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.text('now()'), nullable=False),
        sa.Column('updated_at', sa.DateTime(timezone=True), server_default=sa.text('now()'), nullable=False),
    ]


def _connector_fk() -> sa.Column:
    return sa.Column(
        'connector_id', sa.Integer(), sa.ForeignKey('connectors.id', ondelete='CASCADE'), nullable=False
    )


def upgrade() -> None:
    bind = op.get_bind()
    connector_provider.create(bind, checkfirst=True)
    sync_status.create(bind, checkfirst=True)
    node_permission.create(bind, checkfirst=True)

    op.create_table('connectors',
        sa.Column('id', sa.Integer(), autoincrement=True, nullable=False),
        sa.Column('type', connector_provider, nullable=False),
        sa.Column('connection_id', sa.String(), nullable=False),
        sa.Column('workspace_id', sa.String(), nullable=False),
        sa.Column('workspace_api_key', sa.String(), nullable=False),
        sa.Column('data_source_id', sa.String(), nullable=False),
        sa.Column('paused_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('sync_status', sync_status, nullable=False),
        sa.Column('error_type', sa.String(), nullable=True),
        sa.Column('last_sync_start_time', sa.DateTime(timezone=True), nullable=True),
        sa.Column('last_sync_finish_time', sa.DateTime(timezone=True), nullable=True),
        sa.Column('last_sync_success_time', sa.DateTime(timezone=True), nullable=True),
        *_timestamps(),
        sa.PrimaryKeyConstraint('id')
    )
    op.create_index(op.f('ix_connectors_workspace_id'), 'connectors', ['workspace_id'], unique=False)

    # Zendesk
    op.create_table('zendesk_configurations',
        sa.Column('id', sa.Integer(), autoincrement=True, nullable=False),
        sa.Column('connector_id', sa.Integer(), sa.ForeignKey('connectors.id', ondelete='CASCADE'), nullable=False),
        sa.Column('subdomain', sa.String(), nullable=False),
        sa.Column('retention_period_days', sa.Integer(), nullable=False),
        *_timestamps(),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('connector_id')
    )
    op.create_table('zendesk_timestamp_cursors',
        sa.Column('id', sa.Integer(), autoincrement=True, nullable=False),
        sa.Column('connector_id', sa.Integer(), sa.ForeignKey('connectors.id', ondelete='CASCADE'), nullable=False),
        sa.Column('timestamp_cursor', sa.DateTime(timezone=True), nullable=False),
        *_timestamps(),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('connector_id')
    )
    op.create_table('zendesk_brands',
        sa.Column('id', sa.Integer(), autoincrement=True, nullable=False),
        _connector_fk(),
        sa.Column('brand_id', sa.BigInteger(), nullable=False),
        sa.Column('name', sa.String(), nullable=False),
        sa.Column('url', sa.String(), nullable=False),
        sa.Column('subdomain', sa.String(), nullable=False),
        sa.Column('has_help_center', sa.Boolean(), nullable=False),
        sa.Column('help_center_permission', node_permission, nullable=False),
        sa.Column('tickets_permission', node_permission, nullable=False),
        sa.Column('last_upserted_at', sa.DateTime(timezone=True), nullable=True),
        *_timestamps(),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('connector_id', 'brand_id')
    )
    op.create_table('zendesk_categories',
        sa.Column('id', sa.Integer(), autoincrement=True, nullable=False),
        _connector_fk(),
        sa.Column('brand_id', sa.BigInteger(), nullable=False),
        sa.Column('category_id', sa.BigInteger(), nullable=False),
        sa.Column('name', sa.String(), nullable=False),
        sa.Column('url', sa.String(), nullable=False),
        sa.Column('description', sa.Text(), nullable=True),
        sa.Column('permission', node_permission, nullable=False),
        sa.Column('last_upserted_at', sa.DateTime(timezone=True), nullable=True),
        *_timestamps(),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('connector_id', 'brand_id', 'category_id')
    )
    op.create_table('zendesk_articles',
        sa.Column('id', sa.Integer(), autoincrement=True, nullable=False),
        _connector_fk(),
        sa.Column('brand_id', sa.BigInteger(), nullable=False),
        sa.Column('category_id', sa.BigInteger(), nullable=False),
        sa.Column('section_id', sa.BigInteger(), nullable=True),
        sa.Column('article_id', sa.BigInteger(), nullable=False),
        sa.Column('name', sa.String(), nullable=False),
        sa.Column('url', sa.String(), nullable=False),
        sa.Column('permission', node_permission, nullable=False),
        sa.Column('last_upserted_at', sa.DateTime(timezone=True), nullable=True),
        *_timestamps(),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('connector_id', 'brand_id', 'article_id')
    )
    op.create_index(op.f('ix_zendesk_articles_category_id'), 'zendesk_articles', ['category_id'], unique=False)
    op.create_table('zendesk_tickets',
        sa.Column('id', sa.Integer(), autoincrement=True, nullable=False),
        _connector_fk(),
        sa.Column('brand_id', sa.BigInteger(), nullable=False),
        sa.Column('ticket_id', sa.BigInteger(), nullable=False),
        sa.Column('subject', sa.String(), nullable=False),
        sa.Column('url', sa.String(), nullable=False),
        sa.Column('ticket_updated_at', sa.DateTime(timezone=True), nullable=False),
        sa.Column('permission', node_permission, nullable=False),
        sa.Column('last_upserted_at', sa.DateTime(timezone=True), nullable=True),
        *_timestamps(),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('connector_id', 'brand_id', 'ticket_id')
    )

    # Remote databases
    op.create_table('remote_databases',
        sa.Column('id', sa.Integer(), autoincrement=True, nullable=False),
        _connector_fk(),
        sa.Column('internal_id', sa.String(), nullable=False),
        sa.Column('name', sa.String(), nullable=False),
        sa.Column('permission', node_permission, nullable=False),
        *_timestamps(),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('connector_id', 'internal_id')
    )
    op.create_table('remote_schemas',
        sa.Column('id', sa.Integer(), autoincrement=True, nullable=False),
        _connector_fk(),
        sa.Column('internal_id', sa.String(), nullable=False),
        sa.Column('name', sa.String(), nullable=False),
        sa.Column('database_name', sa.String(), nullable=False),
        sa.Column('permission', node_permission, nullable=False),
        *_timestamps(),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('connector_id', 'internal_id')
    )
    op.create_table('remote_tables',
        sa.Column('id', sa.Integer(), autoincrement=True, nullable=False),
        _connector_fk(),
        sa.Column('internal_id', sa.String(), nullable=False),
        sa.Column('name', sa.String(), nullable=False),
        sa.Column('schema_name', sa.String(), nullable=False),
        sa.Column('database_name', sa.String(), nullable=False),
        sa.Column('permission', node_permission, nullable=False),
        sa.Column('last_upserted_at', sa.DateTime(timezone=True), nullable=True),
        *_timestamps(),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('connector_id', 'internal_id')
    )

    for table in (
        'zendesk_brands', 'zendesk_categories', 'zendesk_articles', 'zendesk_tickets',
        'remote_databases', 'remote_schemas', 'remote_tables',
    ):
        op.create_index(op.f(f'ix_{table}_connector_id'), table, ['connector_id'], unique=False)


def downgrade() -> None:
    for table in (
        'remote_tables', 'remote_schemas', 'remote_databases',
        'zendesk_tickets', 'zendesk_articles', 'zendesk_categories', 'zendesk_brands',
    ):
        op.drop_index(op.f(f'ix_{table}_connector_id'), table_name=table)
        op.drop_table(table)
    op.drop_table('zendesk_timestamp_cursors')
    op.drop_table('zendesk_configurations')
    op.drop_index(op.f('ix_connectors_workspace_id'), table_name='connectors')
    op.drop_table('connectors')

    bind = op.get_bind()
    node_permission.drop(bind, checkfirst=True)
    sync_status.drop(bind, checkfirst=True)
    connector_provider.drop(bind, checkfirst=True)
