"""
LEDGERLOCK - Signer Authority

Defines who may sign which ledger operation.
This is the authoritative source for administrative authority: the
ledger adapter consults it on every commit, and the gateway uses it to
reject callers early.
"""

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Optional, Set

from ledgerlock.core.exceptions import Unauthorized
from ledgerlock.api.ledger.operations import Operation, OperationKind


# ============================================================
# Authorities
# ============================================================


class Authority(str, Enum):
    """Authorities a signer can hold."""

    OWNER = "OWNER"      # Ledger owner; the administrator
    SIGNER = "SIGNER"    # Any authenticated address


OPERATION_AUTHORITY: dict[OperationKind, Authority] = {
    OperationKind.REGISTER_IDENTITY: Authority.OWNER,
    OperationKind.GRANT_ACCESS: Authority.OWNER,
    OperationKind.REVOKE_ACCESS: Authority.OWNER,
    OperationKind.REQUEST_ACCESS: Authority.SIGNER,
}

# Operations whose signer must be the subject named in the arguments
SELF_SIGNED_OPERATIONS: dict[OperationKind, str] = {
    OperationKind.REQUEST_ACCESS: "requester",
}


# ============================================================
# Signer Context
# ============================================================


@dataclass
class SignerContext:
    """Verified caller identity for a request."""

    address: str
    authorities: Set[Authority] = field(default_factory=set)
    token_id: Optional[str] = None
    issued_at: Optional[datetime] = None

    @property
    def is_owner(self) -> bool:
        return Authority.OWNER in self.authorities


def authorities_for(address: str, owner_address: str) -> Set[Authority]:
    """Get all authorities an address holds."""
    authorities = {Authority.SIGNER}
    if address == owner_address:
        authorities.add(Authority.OWNER)
    return authorities


def has_authority(context: SignerContext, authority: Authority) -> bool:
    """Check if context holds a specific authority."""
    return authority in context.authorities


def check_operation_authority(operation: Operation, signer: str, owner_address: str) -> None:
    """
    Verify the signer may submit the operation.

    Raises:
        Unauthorized: If the signer lacks the required authority, or signs
            a self-signed operation on someone else's behalf
    """
    required = OPERATION_AUTHORITY[operation.kind]
    context = SignerContext(address=signer, authorities=authorities_for(signer, owner_address))

    if not has_authority(context, required):
        raise Unauthorized(
            f"{operation.kind.value} requires {required.value} authority",
            signer=signer,
        )

    subject_field = SELF_SIGNED_OPERATIONS.get(operation.kind)
    if subject_field and operation.arguments.get(subject_field) != signer:
        raise Unauthorized(
            f"{operation.kind.value} must be signed by its {subject_field}",
            signer=signer,
        )
