"""Shared building blocks: error taxonomy, rate limiting and geo helpers."""
