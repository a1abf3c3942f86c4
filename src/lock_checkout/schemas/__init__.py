"""Pydantic models shared across the checkout engine."""
