"""001_initial_schema

Revision ID: 001
Revises:
Create Date: 2026-10-18 10:00:00.000000

Creates the training scheduler schema from the current models:
- players, courts
- training_sessions (partial unique index: one ACTIVE session per tenant)
- check_ins, matches, match_players, match_results
- statistics_snapshots
"""
from typing import Sequence, Union

from alembic import op

# revision identifiers, used by Alembic.
revision: str = '001'
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    """Create all tables from scratch."""
    from rundeklar.database.db import Base
    from rundeklar.database import models  # noqa: F401

    bind = op.get_bind()
    Base.metadata.create_all(bind=bind, checkfirst=True)


def downgrade() -> None:
    """Drop all tables."""
    from rundeklar.database.db import Base
    from rundeklar.database import models  # noqa: F401

    bind = op.get_bind()
    Base.metadata.drop_all(bind=bind, checkfirst=True)
