"""
User model: the owner a seat claim points at.
"""

from sqlalchemy import Column, Integer, String
from sqlalchemy.orm import relationship

from seat_claims.db.base import Base


class User(Base):
    __tablename__ = "users"

    id = Column(Integer, primary_key=True, index=True)
    email = Column(String(255), unique=True, index=True, nullable=False)
    name = Column(String(255), nullable=False)

    # passive_deletes: the database nulls seats.user_id itself (ON DELETE SET NULL)
    seats = relationship("Seat", back_populates="claimed_by", passive_deletes=True)

    def __repr__(self) -> str:
        return f"<User(id={self.id}, email={self.email})>"
