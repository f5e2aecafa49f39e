"""
Seat model: the contended row.

Key design decisions:
- `user_id` NULL means unclaimed; a claim is a single UPDATE of this row
- `version` starts at 0 and moves by exactly 1 per successful claim
- Partial index on unclaimed seats per movie keeps the "first free seat"
  read cheap as a movie fills up
"""

from sqlalchemy import Column, Integer, ForeignKey, Index, CheckConstraint
from sqlalchemy.orm import relationship

from seat_claims.db.base import Base


class Seat(Base):
    __tablename__ = "seats"

    id = Column(Integer, primary_key=True)
    movie_id = Column(Integer, ForeignKey("movies.id", ondelete="RESTRICT"), nullable=False)
    user_id = Column(Integer, ForeignKey("users.id", ondelete="SET NULL"), nullable=True, index=True)

    # Version stamp for optimistic concurrency control
    version = Column(Integer, nullable=False, default=0, server_default="0")

    movie = relationship("Movie", back_populates="seats")
    claimed_by = relationship("User", back_populates="seats")

    __table_args__ = (
        CheckConstraint("version >= 0", name="version_non_negative"),
        Index(
            "ix_seats_movie_unclaimed",
            "movie_id",
            "id",
            postgresql_where=user_id.is_(None),
        ),
    )

    def __repr__(self) -> str:
        return f"<Seat(id={self.id}, movie={self.movie_id}, user={self.user_id}, v={self.version})>"
