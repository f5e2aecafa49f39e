"""
Locust Load Test Suite

Many users race for a small pool of seats through both claim endpoints.
The API has no write endpoints for users, movies or seats, so seed the
database first (e.g. `python experiments/occ_race.py` leaves movie 1 with
seat 1) and point the test at it:

  LOAD_MOVIE_ID=1 LOAD_SEAT_IDS=1,2,3 LOAD_USER_IDS=1,2,3 locust -f locustfile.py

Run scenarios:
  locust -f locustfile.py --tags optimistic   # Version-stamp race
  locust -f locustfile.py --tags pessimistic  # Row-lock race
  locust -f locustfile.py --tags edge         # Test bad input
  locust -f locustfile.py                     # All tests
"""

import os
import random
from locust import HttpUser, task, between, tag, events

MOVIE_ID = int(os.environ.get("LOAD_MOVIE_ID", "1"))
SEAT_IDS = [int(s) for s in os.environ.get("LOAD_SEAT_IDS", "1").split(",")]
USER_IDS = [int(u) for u in os.environ.get("LOAD_USER_IDS", "1,2,3").split(",")]

# Claim outcomes that are a correct answer under contention
EXPECTED = {
    201: "success",
    409: "conflict",
    410: "exhausted",
    423: "timeout",
}

WINS = {"optimistic": 0, "pessimistic": 0}


def check_claim(resp, strategy: str):
    if resp.status_code in EXPECTED:
        if resp.status_code == 201:
            WINS[strategy] += 1
        resp.success()
    else:
        resp.failure(f"Unexpected: {resp.status_code}")


@events.test_start.add_listener
def on_test_start(environment, **kwargs):
    print("\n" + "="*60)
    print(f"SETUP: movie {MOVIE_ID}, seats {SEAT_IDS}, users {USER_IDS}")
    print("="*60)


@events.test_stop.add_listener
def on_test_stop(environment, **kwargs):
    """Each seat can be won once, whatever the strategy."""
    total = sum(WINS.values())
    print("\n" + "="*60)
    print(f"Claims won: {WINS}  (✓ {total <= len(SEAT_IDS)})")
    print("="*60)


class OptimisticUser(HttpUser):
    """
    TEST 1: Version stamp - many users, few seats

    Run: locust -f locustfile.py --tags optimistic -u 100 -r 50 --run-time 30s

    After test, verify:
      SELECT id, user_id, version FROM seats WHERE movie_id = X;
    Every claimed seat should have version 1
    """
    wait_time = between(0, 0.1)

    @tag("optimistic")
    @task
    def claim_any_seat(self):
        with self.client.post("/api/v1/claims/optimistic",
            json={"movie_id": MOVIE_ID, "user_id": random.choice(USER_IDS)},
            catch_response=True
        ) as resp:
            check_claim(resp, "optimistic")


class PessimisticUser(HttpUser):
    """
    TEST 2: Row lock - many users, one seat at a time

    Run: locust -f locustfile.py --tags pessimistic -u 100 -r 50 --run-time 30s

    Compare against TEST 1:
      - P95/P99 latency (lock waits)
      - 423 rate at low timeout_ms
    """
    wait_time = between(0, 0.1)

    @tag("pessimistic")
    @task(3)
    def claim_specific_seat(self):
        with self.client.post("/api/v1/claims/pessimistic",
            json={"seat_id": random.choice(SEAT_IDS), "user_id": random.choice(USER_IDS)},
            name="/api/v1/claims/pessimistic",
            catch_response=True
        ) as resp:
            check_claim(resp, "pessimistic")

    @tag("pessimistic")
    @task(1)
    def claim_with_short_timeout(self):
        with self.client.post("/api/v1/claims/pessimistic",
            json={
                "seat_id": random.choice(SEAT_IDS),
                "user_id": random.choice(USER_IDS),
                "lock_mode": "select_for_update",
                "timeout_ms": 50,
            },
            name="/api/v1/claims/pessimistic [50ms]",
            catch_response=True
        ) as resp:
            check_claim(resp, "pessimistic")

    @tag("pessimistic", "read")
    @task(1)
    def read_seat(self):
        self.client.get(f"/api/v1/seats/{random.choice(SEAT_IDS)}",
            name="/api/v1/seats/{id}")


class EdgeCaseUser(HttpUser):
    """
    TEST 3: Edge cases - Bad input handling

    Run: locust -f locustfile.py --tags edge -u 20 -r 5 --run-time 30s

    System should NOT crash, return proper error codes.
    """
    wait_time = between(0.5, 1.5)

    @tag("edge")
    @task
    def unknown_movie(self):
        """Claim for a movie with no seats."""
        with self.client.post("/api/v1/claims/optimistic",
            json={"movie_id": 999999, "user_id": random.choice(USER_IDS)},
            catch_response=True
        ) as resp:
            if resp.status_code == 410:
                resp.success()
            else:
                resp.failure(f"Expected 410, got {resp.status_code}")

    @tag("edge")
    @task
    def unknown_seat(self):
        with self.client.get("/api/v1/seats/999999",
            name="/api/v1/seats/{id}",
            catch_response=True
        ) as resp:
            if resp.status_code == 404:
                resp.success()
            else:
                resp.failure(f"Expected 404, got {resp.status_code}")

    @tag("edge")
    @task
    def zero_timeout(self):
        with self.client.post("/api/v1/claims/pessimistic",
            json={"seat_id": 1, "user_id": 1, "timeout_ms": 0},
            catch_response=True
        ) as resp:
            if resp.status_code == 422:
                resp.success()
            else:
                resp.failure(f"Expected 422, got {resp.status_code}")

    @tag("edge")
    @task
    def malformed_json(self):
        """Send garbage data."""
        with self.client.post("/api/v1/claims/optimistic",
            data="not json at all",
            catch_response=True
        ) as resp:
            if resp.status_code in [400, 422]:
                resp.success()
            else:
                resp.failure(f"Expected 400/422, got {resp.status_code}")
