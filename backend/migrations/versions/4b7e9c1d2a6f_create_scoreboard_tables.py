"""create operator, snapshot, backup, category map and interop log tables

Revision ID: 4b7e9c1d2a6f
Revises:
Create Date: 2026-10-18 00:00:00
"""

from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision = '4b7e9c1d2a6f'
down_revision = None
branch_labels = None
depends_on = None


def upgrade():
    bind = op.get_bind()
    existing_tables = set(sa.inspect(bind).get_table_names())

    if 'operator' not in existing_tables:
        op.create_table(
            'operator',
            sa.Column('id', sa.Integer(), primary_key=True),
            sa.Column('username', sa.String(length=64), nullable=False),
            sa.Column('password_hash', sa.String(length=256), nullable=False),
        )
        op.create_index('ix_operator_username', 'operator', ['username'], unique=True)

    if 'scoreboard_snapshot' not in existing_tables:
        op.create_table(
            'scoreboard_snapshot',
            sa.Column('id', sa.Integer(), primary_key=True),
            sa.Column('state', sa.Text(), nullable=False),
            sa.Column('updated_at', sa.DateTime(), nullable=False),
        )

    if 'state_backup' not in existing_tables:
        op.create_table(
            'state_backup',
            sa.Column('id', sa.Integer(), primary_key=True),
            sa.Column('name', sa.String(length=128), nullable=False),
            sa.Column('state', sa.Text(), nullable=False),
            sa.Column('created_at', sa.DateTime(), nullable=False),
        )
        op.create_index('ix_state_backup_created_at', 'state_backup', ['created_at'])

    if 'category_mapping' not in existing_tables:
        op.create_table(
            'category_mapping',
            sa.Column('id', sa.Integer(), primary_key=True),
            sa.Column('category', sa.String(length=128), nullable=False),
            sa.Column('round_type', sa.String(length=32), nullable=False),
        )
        op.create_index('ix_category_mapping_category', 'category_mapping', ['category'], unique=True)

    if 'interop_log_entry' not in existing_tables:
        op.create_table(
            'interop_log_entry',
            sa.Column('id', sa.Integer(), primary_key=True),
            sa.Column('kind', sa.String(length=32), nullable=False),
            sa.Column('ok', sa.Boolean(), nullable=False),
            sa.Column('payload', sa.Text(), nullable=True),
            sa.Column('created_at', sa.DateTime(), nullable=False),
        )


def downgrade():
    op.drop_table('interop_log_entry')
    op.drop_index('ix_category_mapping_category', table_name='category_mapping')
    op.drop_table('category_mapping')
    op.drop_index('ix_state_backup_created_at', table_name='state_backup')
    op.drop_table('state_backup')
    op.drop_table('scoreboard_snapshot')
    op.drop_index('ix_operator_username', table_name='operator')
    op.drop_table('operator')
