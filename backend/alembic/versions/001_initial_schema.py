"""Initial schema: users, movies, seats with version stamp and FK behaviours.

Revision ID: 001
Revises: None
Create Date: 2026-10-19
"""
from typing import Sequence, Union
from alembic import op
import sqlalchemy as sa

revision: str = "001"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    op.create_table(
        "users",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("email", sa.String(255), nullable=False),
        sa.Column("name", sa.String(255), nullable=False),
    )
    op.create_index("ix_users_id", "users", ["id"])
    op.create_index("ix_users_email", "users", ["email"], unique=True)

    op.create_table(
        "movies",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("name", sa.String(255), nullable=False),
        sa.UniqueConstraint("name", name="uq_movies_name"),
    )
    op.create_index("ix_movies_id", "movies", ["id"])

    op.create_table(
        "seats",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        # A movie with seats cannot be deleted
        sa.Column(
            "movie_id",
            sa.Integer(),
            sa.ForeignKey("movies.id", name="fk_seats_movie_id_movies", ondelete="RESTRICT"),
            nullable=False,
        ),
        # Deleting a user frees its seats instead of deleting them
        sa.Column(
            "user_id",
            sa.Integer(),
            sa.ForeignKey("users.id", name="fk_seats_user_id_users", ondelete="SET NULL"),
            nullable=True,
        ),
        sa.Column("version", sa.Integer(), nullable=False, server_default=sa.text("0")),
        sa.CheckConstraint("version >= 0", name="ck_seats_version_non_negative"),
    )
    op.create_index("ix_seats_user_id", "seats", ["user_id"])
    # "First free seat of movie M" is the optimistic read phase; only unclaimed
    # rows are indexed, so the index shrinks as the movie sells out.
    op.create_index(
        "ix_seats_movie_unclaimed",
        "seats",
        ["movie_id", "id"],
        postgresql_where=sa.text("user_id IS NULL"),
    )


def downgrade() -> None:
    op.drop_table("seats")
    op.drop_table("movies")
    op.drop_table("users")
