"""
Use cases for the creditledger API.

Routers call these services instead of touching the database or sessions
directly.
"""
