"""Leaderboards, league standings and analytics documents."""
