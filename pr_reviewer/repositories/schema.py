# type: ignore
# pyright: reportMissingImports=false, reportGeneralTypeErrors=false
"""
Relational schema — four tables, portable across PostgreSQL and SQLite.
Queries live in sql_repository.py; this module only declares the shape.
"""

from sqlalchemy import (
    Boolean,
    Column,
    DateTime,
    Enum,
    ForeignKey,
    Index,
    Integer,
    MetaData,
    String,
    Table,
)
from sqlalchemy.engine import Engine

metadata = MetaData()

teams = Table(
    "teams",
    metadata,
    Column("team_id", Integer, primary_key=True, autoincrement=True),
    Column("team_name", String(100), nullable=False, unique=True),
    Column("is_active", Boolean, nullable=False, default=True),
)

users = Table(
    "users",
    metadata,
    Column("user_id", String(100), primary_key=True),
    Column("username", String(255), nullable=False, unique=True),
    Column("team_id", Integer, ForeignKey("teams.team_id"), nullable=False),
    Column("is_active", Boolean, nullable=False, default=True),
    Column("created_at", DateTime(timezone=True), nullable=True),
    Index("idx_users_team_id", "team_id"),
)

pull_requests = Table(
    "pull_requests",
    metadata,
    Column("pr_id", String(100), primary_key=True),
    Column("pr_name", String(255), nullable=False),
    Column("author_id", String(100), ForeignKey("users.user_id"), nullable=False),
    Column("status", Enum("OPEN", "MERGED", name="pr_status"), nullable=False, default="OPEN"),
    Column("created_at", DateTime(timezone=True), nullable=False),
    Column("merged_at", DateTime(timezone=True), nullable=True),
    Index("idx_pr_author_id", "author_id"),
    Index("idx_pr_status", "status"),
)

review_assignments = Table(
    "review_assignments",
    metadata,
    Column("pr_id", String(100), ForeignKey("pull_requests.pr_id", ondelete="CASCADE"),
           primary_key=True),
    Column("user_id", String(100), ForeignKey("users.user_id", ondelete="CASCADE"),
           primary_key=True),
    Index("idx_assignments_user_id", "user_id"),
)


def create_schema(engine: Engine) -> None:
    metadata.create_all(engine)
