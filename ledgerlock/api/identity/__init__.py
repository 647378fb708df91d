"""Identity registry: one registration per address, never changed afterwards."""
