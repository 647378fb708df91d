"""LedgerLock HTTP gateway, ledger adapter and domain services."""
