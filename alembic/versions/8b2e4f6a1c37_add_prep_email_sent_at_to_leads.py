"""Add prep_email_sent_at to leads

Revision ID: 8b2e4f6a1c37
Revises: 3f1a9c7d2e50
Create Date: 2026-10-19 16:00:00.000000

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision: str = '8b2e4f6a1c37'
down_revision: Union[str, None] = '3f1a9c7d2e50'
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    op.add_column('leads', sa.Column('prep_email_sent_at', sa.DateTime(timezone=True), nullable=True))


def downgrade() -> None:
    op.drop_column('leads', 'prep_email_sent_at')
