"""
Permission Matrix

Directed (requester, resource) -> granted flags, stored on the ledger.
Granting (A, B) says nothing about (B, A). Neither endpoint has to be a
registered identity.
"""

from ledgerlock.api.ledger.adapter import LedgerAdapter
from ledgerlock.api.ledger.operations import EntityType, Operation, Receipt


class PermissionMatrix:
    """Ledger-backed repository of permission edges."""

    def __init__(self, ledger: LedgerAdapter):
        self.ledger = ledger

    async def has_access(self, requester: str, resource: str) -> bool:
        """Pure read of the edge. An edge never written reads as False."""
        granted = await self.ledger.query(EntityType.PERMISSION, (requester, resource))
        return bool(granted)

    async def grant(self, requester: str, resource: str, signer: str) -> Receipt:
        """Set the edge to True. Commits even when it already was."""
        return await self.ledger.commit(Operation.grant_access(requester, resource), signer)

    async def revoke(self, requester: str, resource: str, signer: str) -> Receipt:
        """Set the edge to False. Commits even when it never was granted."""
        return await self.ledger.commit(Operation.revoke_access(requester, resource), signer)
