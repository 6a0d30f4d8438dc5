"""Default badge catalog."""

from __future__ import annotations

import logging

from sqlalchemy.ext.asyncio import AsyncSession

from ctfscore.db.models import Badge
from ctfscore.db.upsert import upsert

logger = logging.getLogger(__name__)

DEFAULT_BADGES: list[dict] = [
    # Solve milestones
    {
        "key": "first_solve",
        "name": "First Blood",
        "description": "Solve your first challenge",
        "icon": "\U0001fa78",
        "rarity": "common",
        "xp_reward": 50,
        "sort_order": 1,
    },
    {
        "key": "five_solves",
        "name": "Pentakill",
        "description": "Solve 5 challenges",
        "icon": "⚔️",
        "rarity": "common",
        "xp_reward": 100,
        "sort_order": 2,
    },
    {
        "key": "ten_solves",
        "name": "Veteran Hacker",
        "description": "Solve 10 challenges",
        "icon": "\U0001f396️",
        "rarity": "rare",
        "xp_reward": 200,
        "sort_order": 3,
    },
    {
        "key": "twenty_solves",
        "name": "Elite Operator",
        "description": "Solve 20 challenges",
        "icon": "\U0001f480",
        "rarity": "epic",
        "xp_reward": 500,
        "sort_order": 4,
    },
    # Breadth
    {
        "key": "three_categories",
        "name": "Versatile",
        "description": "Solve challenges in 3 different categories",
        "icon": "\U0001f500",
        "rarity": "rare",
        "xp_reward": 150,
        "sort_order": 5,
    },
    {
        "key": "five_categories",
        "name": "Full-Spectrum",
        "description": "Solve challenges in 5 different categories",
        "icon": "\U0001f308",
        "rarity": "epic",
        "xp_reward": 300,
        "sort_order": 6,
    },
    {
        "key": "team_player",
        "name": "Team Player",
        "description": "Solve 2+ challenges while in a team",
        "icon": "\U0001f91d",
        "rarity": "common",
        "xp_reward": 75,
        "sort_order": 7,
    },
    # Category specialists
    {
        "key": "web_master",
        "name": "Web Master",
        "description": "Solve 5 WEB challenges",
        "icon": "\U0001f310",
        "rarity": "rare",
        "xp_reward": 200,
        "sort_order": 8,
    },
    {
        "key": "crypto_breaker",
        "name": "Crypto Breaker",
        "description": "Solve 5 CRYPTO challenges",
        "icon": "\U0001f510",
        "rarity": "rare",
        "xp_reward": 200,
        "sort_order": 9,
    },
    {
        "key": "forensics_expert",
        "name": "Forensics Expert",
        "description": "Solve 5 FORENSICS challenges",
        "icon": "\U0001f50d",
        "rarity": "rare",
        "xp_reward": 200,
        "sort_order": 10,
    },
    # Style
    {
        "key": "speed_demon",
        "name": "Speed Demon",
        "description": "Solve a challenge on first attempt",
        "icon": "⚡",
        "rarity": "common",
        "xp_reward": 50,
        "sort_order": 11,
    },
    {
        "key": "night_owl",
        "name": "Night Owl",
        "description": "Submit a flag after midnight",
        "icon": "\U0001f989",
        "rarity": "common",
        "xp_reward": 50,
        "sort_order": 12,
    },
]


async def seed_badges(db: AsyncSession) -> int:
    """Upsert the default badge catalog. Returns number of badges seeded."""
    seeded = 0
    for badge_data in DEFAULT_BADGES:
        await upsert(
            db,
            Badge,
            badge_data,
            index_elements=["key"],
            update_fields=["name", "description", "icon", "rarity", "xp_reward", "sort_order"],
        )
        seeded += 1

    await db.commit()
    logger.info("Seeded %d badge definitions", seeded)
    return seeded
