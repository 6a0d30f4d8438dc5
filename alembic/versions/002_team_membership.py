"""Team membership: join codes and captains.

Adds the join code and captain columns to teams so participants can
create, join and leave teams through the API.

Revision ID: 002_team_membership
Revises: 001_baseline
Create Date: 2026-10-17
"""

from collections.abc import Sequence

import sqlalchemy as sa

from alembic import op

revision: str = "002_team_membership"
down_revision: str | None = "001_baseline"
branch_labels: str | Sequence[str] | None = None
depends_on: str | Sequence[str] | None = None


def upgrade() -> None:
    """Add join code and captain columns to teams."""
    op.add_column("teams", sa.Column("join_code", sa.String(16), nullable=True))
    op.add_column("teams", sa.Column("captain_uid", sa.String(128), nullable=True))
    op.create_index("uq_teams_join_code", "teams", ["join_code"], unique=True)
    op.create_index("ix_users_team_id", "users", ["team_id"])


def downgrade() -> None:
    """Drop team membership columns."""
    op.drop_index("ix_users_team_id", table_name="users")
    op.drop_index("uq_teams_join_code", table_name="teams")
    op.drop_column("teams", "captain_uid")
    op.drop_column("teams", "join_code")
