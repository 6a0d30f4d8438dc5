"""Level curve.

Level grows with the square root of total XP: level 2 at 200 XP, level 3 at
800 XP, level 4 at 1800 XP.
"""

from __future__ import annotations

import math

XP_PER_LEVEL_UNIT = 200
SOLVE_XP_MULTIPLIER = 2


def compute_level(total_xp: int) -> int:
    """Level for a total XP amount: ``1 + floor(sqrt(xp / 200))``."""
    if total_xp <= 0:
        return 1
    return 1 + math.isqrt(total_xp // XP_PER_LEVEL_UNIT)


def xp_for_level(level: int) -> int:
    """Minimum total XP needed to reach ``level``."""
    if level <= 1:
        return 0
    return XP_PER_LEVEL_UNIT * (level - 1) ** 2


def solve_xp(points: int) -> int:
    return points * SOLVE_XP_MULTIPLIER
