"""
Core utilities shared across the creditledger API.

This package hosts configuration helpers (env vars, feature flags) and the
cross-cutting adapters routers/services depend on: password hashing, rate
limiting and the Telegram delivery client.
"""
