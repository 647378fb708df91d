"""
LEDGERLOCK - Ledger Module

Operations, signer authority and the durable ledger adapter.

Usage:
    from ledgerlock.api.ledger import SqlLedger, Operation, EntityType

    receipt = await ledger.commit(Operation.grant_access("0xA1", "0xA2"), signer=owner)
    granted = await ledger.query(EntityType.PERMISSION, ("0xA1", "0xA2"))
"""

from ledgerlock.api.ledger.operations import (
    EntityType,
    EventFilter,
    EventRange,
    Identity,
    LedgerEvent,
    Operation,
    OperationKind,
    Receipt,
)
from ledgerlock.api.ledger.authority import Authority, SignerContext, check_operation_authority
from ledgerlock.api.ledger.adapter import LedgerAdapter, SqlLedger, get_ledger, init_ledger, close_ledger

__all__ = [
    "EntityType",
    "EventFilter",
    "EventRange",
    "Identity",
    "LedgerEvent",
    "Operation",
    "OperationKind",
    "Receipt",
    "Authority",
    "SignerContext",
    "check_operation_authority",
    "LedgerAdapter",
    "SqlLedger",
    "get_ledger",
    "init_ledger",
    "close_ledger",
]
