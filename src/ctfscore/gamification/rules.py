"""Badge criteria.

Each rule is a predicate over a ``BadgeContext`` snapshot. Rules that depend
on the solving moment (``speed_demon``, ``night_owl``) only match when the
context comes from a live solve.
"""

from __future__ import annotations

from collections.abc import Callable, Mapping
from dataclasses import dataclass, field

NIGHT_OWL_END_HOUR = 5

CATEGORY_BADGES: dict[str, tuple[str, int]] = {
    "WEB": ("web_master", 5),
    "CRYPTO": ("crypto_breaker", 5),
    "FORENSICS": ("forensics_expert", 5),
}


@dataclass(frozen=True)
class BadgeContext:
    solves_total: int
    solves_by_category: Mapping[str, int] = field(default_factory=dict)
    in_team: bool = False
    first_attempt: bool = False
    local_hour: int | None = None

    @property
    def categories_count(self) -> int:
        return sum(1 for count in self.solves_by_category.values() if count > 0)


def _category_rule(category: str, needed: int) -> Callable[[BadgeContext], bool]:
    return lambda ctx: ctx.solves_by_category.get(category, 0) >= needed


BADGE_RULES: dict[str, Callable[[BadgeContext], bool]] = {
    "first_solve": lambda ctx: ctx.solves_total >= 1,
    "five_solves": lambda ctx: ctx.solves_total >= 5,
    "ten_solves": lambda ctx: ctx.solves_total >= 10,
    "twenty_solves": lambda ctx: ctx.solves_total >= 20,
    "three_categories": lambda ctx: ctx.categories_count >= 3,
    "five_categories": lambda ctx: ctx.categories_count >= 5,
    "team_player": lambda ctx: ctx.in_team and ctx.solves_total >= 2,
    **{key: _category_rule(category, needed) for category, (key, needed) in CATEGORY_BADGES.items()},
    "speed_demon": lambda ctx: ctx.first_attempt,
    "night_owl": lambda ctx: ctx.local_hour is not None and 0 <= ctx.local_hour < NIGHT_OWL_END_HOUR,
}


def eligible_badges(ctx: BadgeContext, earned: set[str] | None = None) -> list[str]:
    """Badge keys whose criteria hold and that are not already earned, in rule order."""
    earned = earned or set()
    return [key for key, rule in BADGE_RULES.items() if key not in earned and rule(ctx)]
