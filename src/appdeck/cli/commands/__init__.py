"""AppDeck CLI commands."""
