"""Events, leagues and challenges."""
