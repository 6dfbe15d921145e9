"""create pool_ticket table for the shared ticket pool

Revision ID: 5c7e9a1d2b30
Revises:
Create Date: 2026-10-19 09:00:00.000000

"""
from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision = '5c7e9a1d2b30'
down_revision = None
branch_labels = None
depends_on = None


def upgrade():
    bind = op.get_bind()
    insp = sa.inspect(bind)

    # db.create_all() (pool-seed / POOL_AUTOSEED) may have created it already
    if 'pool_ticket' in set(insp.get_table_names()):
        return

    op.create_table(
        'pool_ticket',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('layout', sa.Text(), nullable=False),
        sa.PrimaryKeyConstraint('id'),
    )


def downgrade():
    bind = op.get_bind()
    insp = sa.inspect(bind)
    if 'pool_ticket' in set(insp.get_table_names()):
        op.drop_table('pool_ticket')
