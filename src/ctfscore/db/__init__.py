"""ORM models and storage helpers."""
