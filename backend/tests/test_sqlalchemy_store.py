"""
Tests for the SQLAlchemy store's driver error translation. No database needed.
"""

import pytest
from prometheus_client import REGISTRY
from sqlalchemy.exc import DBAPIError, OperationalError

from seat_claims.domain.errors import LockNotGrantedError, SerializationConflictError, StoreError
from seat_claims.stores.sqlalchemy_store import translate_error

CLAIM_SQL = "UPDATE seats SET user_id=$1, version=(seats.version + $2) WHERE seats.id = $3"


class DriverError(Exception):
    """asyncpg-style adapted error carrying the SQLSTATE."""

    def __init__(self, sqlstate):
        super().__init__(f"SQLSTATE {sqlstate}")
        self.sqlstate = sqlstate


class Psycopg2Error(Exception):
    """psycopg2-style error exposing the SQLSTATE as pgcode only."""

    def __init__(self, pgcode):
        super().__init__(f"SQLSTATE {pgcode}")
        self.pgcode = pgcode


def db_error(orig, cls=DBAPIError):
    return cls(CLAIM_SQL, {}, orig)


def store_error_count(operation: str) -> float:
    return REGISTRY.get_sample_value("store_errors_total", {"operation": operation}) or 0.0


@pytest.mark.parametrize(
    "sqlstate,expected",
    [
        ("55P03", LockNotGrantedError),  # lock_not_available
        ("57014", LockNotGrantedError),  # query_canceled
        ("40001", SerializationConflictError),  # serialization_failure
        ("40P01", SerializationConflictError),  # deadlock_detected
        ("23503", StoreError),  # foreign_key_violation
        ("08006", StoreError),  # connection_failure
    ],
)
def test_sqlstate_inside_transaction(sqlstate, expected):
    error = translate_error(
        db_error(DriverError(sqlstate)), "claim_if_version", seat_id=1, in_transaction=True
    )

    assert type(error) is expected
    if expected is not StoreError:
        assert error.seat_id == 1


@pytest.mark.parametrize("sqlstate", ["55P03", "57014", "40001", "40P01", "23503"])
def test_everything_is_store_error_outside_transaction(sqlstate):
    error = translate_error(db_error(DriverError(sqlstate)), "claim_if_version", seat_id=1)

    assert type(error) is StoreError
    assert error.operation == "claim_if_version"


@pytest.mark.parametrize(
    "pgcode,expected",
    [
        ("55P03", LockNotGrantedError),
        ("40001", SerializationConflictError),
        ("23505", StoreError),
    ],
)
def test_pgcode_is_read_when_sqlstate_is_missing(pgcode, expected):
    error = translate_error(
        db_error(Psycopg2Error(pgcode), OperationalError), "lock_seat", seat_id=3, in_transaction=True
    )

    assert type(error) is expected


def test_error_without_sqlstate_is_store_error():
    error = translate_error(
        db_error(Exception("server closed the connection")), "transaction", in_transaction=True
    )

    assert type(error) is StoreError
    assert error.operation == "transaction"


def test_connection_error_is_store_error():
    error = translate_error(ConnectionRefusedError("connect failed"), "get_seat", in_transaction=True)

    assert type(error) is StoreError
    assert "connect failed" in str(error)


def test_only_store_errors_are_counted():
    before = store_error_count("lock_seat")

    translate_error(db_error(DriverError("55P03")), "lock_seat", in_transaction=True)
    assert store_error_count("lock_seat") == before

    translate_error(db_error(DriverError("23503")), "lock_seat", in_transaction=True)
    assert store_error_count("lock_seat") == before + 1
