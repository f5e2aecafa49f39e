#!/usr/bin/env python3
"""
Lock-hold demo: T1 claims the seat under its row lock and keeps the
transaction open for 6 s of "business logic". T2 asks for the same seat
0.5 s later, blocks on the lock, and once T1 commits re-checks the row and
reports ConflictAfterWait. Both use a 7 s timeout.

While T1 holds, the seat's committed state and the lock table are printed:
pg_locks against PostgreSQL, the waiter count with --memory.

Usage:
    python experiments/lock_hold.py            # against DATABASE_URL
    python experiments/lock_hold.py --memory   # in-process store
"""

import asyncio
import time

from sqlalchemy import text

from scenario import Demo, parse_args, print_header, seed, show_seat

from seat_claims.domain.outcomes import IsolationLevel
from seat_claims.services.pessimistic import attempt_claim_locked

HOLD_SECONDS = 6.0
TIMEOUT_MS = 7000
T2_DELAY = 0.5

PG_LOCKS_SQL = text(
    """
    SELECT l.pid, l.locktype, l.mode, l.granted
    FROM pg_locks l
    WHERE l.relation = 'seats'::regclass
    ORDER BY l.granted DESC, l.pid
    """
)


async def dump_locks(demo: Demo):
    if demo.database is None:
        print(f"Waiters on seat {demo.seat_id}: {demo.store.lock_waiters(demo.seat_id)}")
        return

    async with demo.database.session() as session:
        rows = (await session.execute(PG_LOCKS_SQL)).all()
    print(f"{'pid':>7}  {'locktype':10} {'mode':18} granted")
    for row in rows:
        print(f"{row.pid:>7}  {row.locktype:10} {row.mode:18} {row.granted}")


async def timed_claim(demo: Demo, name: str, started: float):
    print(f"[{time.perf_counter() - started:5.2f}s] {name} requests seat {demo.seat_id}")
    hold = HOLD_SECONDS if name == "T1" else 0.0
    user_id = demo.users["Sorcha"] if name == "T1" else demo.users["Ellen"]
    outcome = await attempt_claim_locked(
        demo.store,
        demo.seat_id,
        user_id,
        isolation_level=IsolationLevel.READ_COMMITTED,
        timeout_ms=TIMEOUT_MS,
        hold_seconds=hold,
    )
    print(f"[{time.perf_counter() - started:5.2f}s] {name} -> {outcome}")
    return outcome


async def main():
    args = parse_args("Hold a seat's row lock while a second claim waits")
    demo = await seed(args.memory)

    print_header(f"LOCK HOLD: T1 holds {HOLD_SECONDS:.0f}s, T2 starts {T2_DELAY}s later")
    started = time.perf_counter()
    t1 = asyncio.create_task(timed_claim(demo, "T1", started))
    await asyncio.sleep(T2_DELAY)
    t2 = asyncio.create_task(timed_claim(demo, "T2", started))

    await asyncio.sleep(1.0)
    print(f"\n[{time.perf_counter() - started:5.2f}s] While T1 holds the lock:")
    await show_seat(demo, "Committed seat")
    await dump_locks(demo)
    print()

    await asyncio.gather(t1, t2)
    print()
    await show_seat(demo)
    await demo.store.close()
    print("="*70 + "\n")

if __name__ == "__main__":
    asyncio.run(main())
