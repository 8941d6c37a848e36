"""create_user_records

Revision ID: 3c1e7a9d2b40
Revises:
Create Date: 2026-10-16 09:12:40.118302

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision: str = '3c1e7a9d2b40'
down_revision: Union[str, Sequence[str], None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    """Upgrade schema."""
    op.create_table('user_records',
        sa.Column('id', sa.Integer(), autoincrement=True, nullable=False),
        sa.Column('identity', sa.String(length=64), nullable=False),
        sa.Column('last_request_timestamp', sa.DateTime(timezone=True), nullable=True),
        sa.Column('requests_made', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('tier', sa.Enum('FREE', 'PAID', 'BANNED', name='user_tier', native_enum=False, length=16), nullable=False, server_default='FREE'),
        sa.Column('premium_expiration', sa.DateTime(timezone=True), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False, server_default=sa.text('(CURRENT_TIMESTAMP)')),
        sa.PrimaryKeyConstraint('id')
    )
    op.create_index('ix_user_records_identity', 'user_records', ['identity'], unique=True)


def downgrade() -> None:
    """Downgrade schema."""
    op.drop_index('ix_user_records_identity', table_name='user_records')
    op.drop_table('user_records')
