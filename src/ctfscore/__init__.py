"""CTF flag submission and scoring service."""
