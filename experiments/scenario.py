"""
Shared setup for the claim demos.

Seeds the "Hidden Figures" scenario: one movie, one seat (id 1, version 0),
and users Alice, Sorcha and Ellen. Against PostgreSQL the tables are
recreated from the ORM metadata at DATABASE_URL; with --memory everything
runs in-process.
"""

import argparse
from dataclasses import dataclass
from typing import Optional

from sqlalchemy import delete

from seat_claims.core.config import get_settings
from seat_claims.core.logging import setup_logging
from seat_claims.db.base import Base
from seat_claims.db.session import Database
from seat_claims.models import Movie, Seat, User
from seat_claims.stores.interfaces import SeatStore
from seat_claims.stores.memory import InMemorySeatStore
from seat_claims.stores.sqlalchemy_store import SqlAlchemySeatStore

MOVIE_NAME = "Hidden Figures"
USERS = [
    ("alice@example.com", "Alice"),
    ("sorcha@example.com", "Sorcha"),
    ("ellen@example.com", "Ellen"),
]


@dataclass
class Demo:
    store: SeatStore
    movie_id: int
    seat_id: int
    users: dict
    database: Optional[Database] = None

    def name_of(self, user_id: Optional[int]) -> str:
        for name, uid in self.users.items():
            if uid == user_id:
                return name
        return "nobody"


def parse_args(description: str) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description=description)
    parser.add_argument(
        "--memory",
        action="store_true",
        help="use the in-process store instead of PostgreSQL",
    )
    return parser.parse_args()


def print_header(text: str):
    print("\n" + "="*70)
    print(f"  {text}")
    print("="*70)


async def seed(memory: bool) -> Demo:
    setup_logging()
    if memory:
        return _seed_memory()
    return await _seed_database()


def _seed_memory() -> Demo:
    store = InMemorySeatStore(latency=0.001)
    movie_id = store.add_movie(MOVIE_NAME)
    users = {name: store.add_user(email, name) for email, name in USERS}
    seat_id = store.add_seat(movie_id, seat_id=1)
    return Demo(store, movie_id, seat_id, users)


async def _seed_database() -> Demo:
    database = Database.from_settings(get_settings())
    async with database.engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    async with database.session() as session:
        async with session.begin():
            await session.execute(delete(Seat))
            await session.execute(delete(Movie))
            await session.execute(delete(User))
            movie = Movie(name=MOVIE_NAME)
            people = [User(email=email, name=name) for email, name in USERS]
            session.add(movie)
            session.add_all(people)
            await session.flush()
            session.add(Seat(id=1, movie_id=movie.id, version=0))
        users = {person.name: person.id for person in people}
        movie_id = movie.id

    return Demo(SqlAlchemySeatStore(database), movie_id, 1, users, database)


async def show_seat(demo: Demo, label: str = "Final seat"):
    seat = await demo.store.get_seat(demo.seat_id)
    print(f"{label}: id={seat.id} owner={demo.name_of(seat.user_id)} version={seat.version}")
