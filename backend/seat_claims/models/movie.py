"""
Movie model: the class of seats a claim picks from.
"""

from sqlalchemy import Column, Integer, String
from sqlalchemy.orm import relationship

from seat_claims.db.base import Base


class Movie(Base):
    __tablename__ = "movies"

    id = Column(Integer, primary_key=True, index=True)
    name = Column(String(255), unique=True, nullable=False)

    # Deletion is refused by the FK (ON DELETE RESTRICT) while seats remain
    seats = relationship("Seat", back_populates="movie", passive_deletes="all")

    def __repr__(self) -> str:
        return f"<Movie(id={self.id}, name={self.name})>"
