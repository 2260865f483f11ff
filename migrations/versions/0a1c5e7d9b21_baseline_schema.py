"""baseline schema

Revision ID: 0a1c5e7d9b21
Revises:
Create Date: 2026-10-19 10:00:00.000000

"""
from typing import Sequence, Union

from alembic import op
from sqlmodel import SQLModel

import storefront.schema.full_schema  # noqa: F401

# revision identifiers, used by Alembic.
revision: str = '0a1c5e7d9b21'
down_revision: Union[str, Sequence[str], None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    """Create every table of the current models. Later revisions are autogenerated diffs."""
    SQLModel.metadata.create_all(bind=op.get_bind())


def downgrade() -> None:
    """Drop every table."""
    SQLModel.metadata.drop_all(bind=op.get_bind())
