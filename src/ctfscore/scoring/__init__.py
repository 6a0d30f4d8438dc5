"""Flag submission and scoring pipeline."""
