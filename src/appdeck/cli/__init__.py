"""Command line interface for AppDeck."""
