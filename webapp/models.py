from __future__ import annotations

from datetime import datetime

from sqlalchemy import Integer, String, DateTime, Text, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from .db import Base


class IssuedClaim(Base):
    """A claim the issuer signed, with its off-chain revocation status."""

    __tablename__ = "issued_claims"
    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    identifier: Mapped[str] = mapped_column(String(255))
    issuer: Mapped[str] = mapped_column(String(42))
    subject: Mapped[str] = mapped_column(String(42), index=True)
    valid_from: Mapped[int] = mapped_column(Integer, default=0)
    valid_to: Mapped[int] = mapped_column(Integer, default=0)
    claim_json: Mapped[str] = mapped_column(Text)  # JSON string of the signed claim
    status: Mapped[str] = mapped_column(String(32), default="active")  # active, revoked
    revoked_reason: Mapped[str | None] = mapped_column(Text, nullable=True)
    revoked_at: Mapped[datetime | None] = mapped_column(DateTime, nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow)


class RelayedEvent(Base):
    """An event published on an identity factory's channel."""

    __tablename__ = "relayed_events"
    __table_args__ = (UniqueConstraint("factory", "log_index", name="uq_factory_log"),)
    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    factory: Mapped[str] = mapped_column(String(42))
    log_index: Mapped[int] = mapped_column(Integer)
    name: Mapped[str] = mapped_column(String(64))
    identity: Mapped[str] = mapped_column(String(42), index=True)
    owner: Mapped[str] = mapped_column(String(42))
    actor: Mapped[str | None] = mapped_column(String(42), nullable=True)
    action: Mapped[str] = mapped_column(String(32))  # deployed, added, removeProposal, removed
    block_number: Mapped[int] = mapped_column(Integer)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow)


class AuditLog(Base):
    __tablename__ = "audit_logs"
    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    action: Mapped[str] = mapped_column(String(255))
    target: Mapped[str] = mapped_column(String(255))
    message: Mapped[str] = mapped_column(Text, default="")
    created_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow)
