"""creditledger: accounts, credit/day balances and role ledger behind a FastAPI app."""

__version__ = "0.1.0"
