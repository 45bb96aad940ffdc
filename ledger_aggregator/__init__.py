"""Ledger transaction aggregator: polls a ledger RPC and serves recent records."""

__version__ = "0.1.0"
