#!/usr/bin/env python3
"""
Version-stamp race: two users go for the last seat at the same moment.

Run 1 (unguarded): each reads the seat, then writes itself in using
whatever version is current at write time. Both writes land, both users are
told they got the seat, and the first claim is silently overwritten.

Run 2 (version stamp): each writes only if the version it read is still
current. Exactly one write lands; the other sees a Conflict.

Usage:
    python experiments/occ_race.py            # against DATABASE_URL
    python experiments/occ_race.py --memory   # in-process store
"""

import asyncio

from scenario import parse_args, print_header, seed, show_seat

from seat_claims.domain.outcomes import Claimed, Conflict
from seat_claims.services.optimistic import attempt_claim


async def unguarded_claim(store, movie_id: int, user_id: int) -> bool:
    """Read-then-write with no check that the read is still true."""
    seat = await store.find_available(movie_id)
    if seat is None:
        return False
    await asyncio.sleep(0.01)  # think time between read and write
    current = await store.get_seat(seat.id)
    return await store.claim_if_version(seat.id, current.version, user_id) == 1


async def run_unguarded(memory: bool):
    print_header("UNGUARDED READ-THEN-WRITE")
    demo = await seed(memory)
    sorcha, ellen = demo.users["Sorcha"], demo.users["Ellen"]

    results = await asyncio.gather(
        unguarded_claim(demo.store, demo.movie_id, sorcha),
        unguarded_claim(demo.store, demo.movie_id, ellen),
    )

    print(f"Sorcha told she got the seat: {results[0]}")
    print(f"Ellen told she got the seat:  {results[1]}")
    await show_seat(demo)
    if all(results):
        print("Lost update: two confirmations, one seat.")
    await demo.store.close()


async def run_version_stamp(memory: bool):
    print_header("VERSION STAMP (OPTIMISTIC)")
    demo = await seed(memory)
    sorcha, ellen = demo.users["Sorcha"], demo.users["Ellen"]

    outcomes = await asyncio.gather(
        attempt_claim(demo.store, demo.movie_id, sorcha),
        attempt_claim(demo.store, demo.movie_id, ellen),
    )

    for name, outcome in zip(("Sorcha", "Ellen"), outcomes):
        print(f"{name:7} -> {outcome}")
    await show_seat(demo)

    claimed = sum(isinstance(o, Claimed) for o in outcomes)
    conflicts = sum(isinstance(o, Conflict) for o in outcomes)
    print(f"Claimed: {claimed}  Conflict: {conflicts}  (✓ {claimed == 1})")
    await demo.store.close()


async def main():
    args = parse_args("Race two optimistic claims for one seat")
    await run_unguarded(args.memory)
    await run_version_stamp(args.memory)
    print("="*70 + "\n")

if __name__ == "__main__":
    asyncio.run(main())
