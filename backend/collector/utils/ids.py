"""Surrogate key generation."""
import random
import time

# Random offsets per microsecond tick
ID_SPREAD = 1000


def generate_id() -> int:
    """Return a new row id.

    Wall-clock microseconds scaled by ``ID_SPREAD`` plus a random offset below
    it, so ids sort by creation time and stay under 2**63 until the year 2262.
    Collisions are possible only between calls in the same microsecond.
    """
    return time.time_ns() // 1000 * ID_SPREAD + random.randrange(ID_SPREAD)
