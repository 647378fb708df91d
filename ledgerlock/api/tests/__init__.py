"""LedgerLock API tests."""
