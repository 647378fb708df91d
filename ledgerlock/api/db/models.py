"""
SQLAlchemy ORM Models

Storage schema behind the SQL ledger adapter. Only the adapter writes
these tables; transactions and events are append-only.
"""

from datetime import datetime, timezone
from typing import Optional

from sqlalchemy import (
    JSON,
    Boolean,
    DateTime,
    ForeignKey,
    Index,
    Integer,
    String,
)
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column


class Base(DeclarativeBase):
    """Base class for all models."""
    pass


def utcnow() -> datetime:
    """Get current UTC time."""
    return datetime.now(timezone.utc)


class LedgerTransaction(Base):
    """One committed ledger transaction. Never updated or deleted."""

    __tablename__ = "ledger_transactions"

    sequence_id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    tx_hash: Mapped[str] = mapped_column(String(66), unique=True, nullable=False, index=True)
    signer: Mapped[str] = mapped_column(String(130), nullable=False, index=True)
    operation: Mapped[str] = mapped_column(String(50), nullable=False)
    arguments: Mapped[dict] = mapped_column(JSON, default=dict)
    committed_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)

    def __repr__(self) -> str:
        return f"<LedgerTransaction #{self.sequence_id} {self.operation} by {self.signer}>"


class LedgerEventRecord(Base):
    """Event emitted by a committed transaction. Never updated or deleted."""

    __tablename__ = "ledger_events"

    sequence_id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    tx_sequence_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("ledger_transactions.sequence_id"), nullable=False
    )
    tx_hash: Mapped[str] = mapped_column(String(66), nullable=False)
    event_type: Mapped[str] = mapped_column(String(50), nullable=False)

    # AccessAttempt / AccessGranted / AccessRevoked
    requester: Mapped[Optional[str]] = mapped_column(String(130))
    resource: Mapped[Optional[str]] = mapped_column(String(130))
    is_success: Mapped[Optional[bool]] = mapped_column(Boolean)

    # IdentityRegistered
    entity_address: Mapped[Optional[str]] = mapped_column(String(130))
    role: Mapped[Optional[str]] = mapped_column(String(255))

    timestamp: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)

    __table_args__ = (
        Index("ix_ledger_events_type_seq", "event_type", "sequence_id"),
        Index("ix_ledger_events_requester", "requester"),
        Index("ix_ledger_events_resource", "resource"),
        Index("ix_ledger_events_timestamp", "timestamp"),
    )

    def __repr__(self) -> str:
        return f"<LedgerEvent #{self.sequence_id} {self.event_type}>"


class IdentityRecord(Base):
    """Registered entity (user or device)."""

    __tablename__ = "identities"

    address: Mapped[str] = mapped_column(String(130), primary_key=True)
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    role: Mapped[str] = mapped_column(String(255), nullable=False)
    registered: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)
    registration_timestamp: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    registration_tx_hash: Mapped[str] = mapped_column(String(66), nullable=False)

    def __repr__(self) -> str:
        return f"<Identity {self.name} ({self.address}) role={self.role}>"


class PermissionEdgeRecord(Base):
    """Directed grant flag for (requester, resource). Absent row means false."""

    __tablename__ = "permission_edges"

    requester: Mapped[str] = mapped_column(String(130), primary_key=True)
    resource: Mapped[str] = mapped_column(String(130), primary_key=True)
    granted: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow)
    updated_tx_hash: Mapped[str] = mapped_column(String(66), nullable=False)

    def __repr__(self) -> str:
        return f"<PermissionEdge {self.requester} -> {self.resource} granted={self.granted}>"
