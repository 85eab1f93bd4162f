"""Shared library code for AppDeck: errors and logging."""
