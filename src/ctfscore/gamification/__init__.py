"""XP, levels, badges and quests."""
