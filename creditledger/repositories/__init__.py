"""
Persistence adapters.

sql_repository holds short session-per-call helpers; ledger_writer holds the
writes that run inside a caller-owned transaction.
"""
