"""Team membership."""
