"""
Identity Registry

Maps an address to its registered profile. State lives on the ledger;
this class only phrases registry reads and writes as ledger primitives.
"""

from typing import Optional

from ledgerlock.api.ledger.adapter import LedgerAdapter
from ledgerlock.api.ledger.operations import EntityType, Identity, Operation, Receipt


class IdentityRegistry:
    """Ledger-backed repository of identities."""

    def __init__(self, ledger: LedgerAdapter):
        self.ledger = ledger

    async def get(self, address: str) -> Optional[Identity]:
        """Current committed identity for an address, or None."""
        return await self.ledger.query(EntityType.IDENTITY, address)

    async def is_registered(self, address: str) -> bool:
        identity = await self.get(address)
        return identity is not None and identity.registered

    async def register(self, address: str, name: str, role: str, signer: str) -> Receipt:
        """
        Commit a new identity.

        The ledger rejects a second registration of the same address with
        AlreadyRegistered and leaves the existing record untouched.
        """
        return await self.ledger.commit(
            Operation.register_identity(address, name, role), signer
        )
