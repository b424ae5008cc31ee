"""Core utilities shared across Stepwise."""
