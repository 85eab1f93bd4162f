"""Pydantic models for AppDeck requests, statuses and configuration."""
