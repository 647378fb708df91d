"""LedgerLock - ledger-backed access control with an append-only audit trail."""

__version__ = "1.0.0"
