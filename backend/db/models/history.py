"""Transfer history model definitions."""

from __future__ import annotations

import logging
import uuid
from datetime import datetime
from decimal import Decimal

from sqlalchemy import (
    BigInteger,
    DateTime,
    Index,
    Numeric,
    PrimaryKeyConstraint,
    Text,
)
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.orm import Mapped, mapped_column

from backend.db.base import Base

logger = logging.getLogger(__name__)


class LedgerHistory(Base):
    """Human-visible transfer record, one per (tx, action)."""

    __tablename__ = "ledger_history"
    __table_args__ = (
        PrimaryKeyConstraint("tx_id", "action_id", name="pk_ledger_history"),
        Index("idx_ledger_history_from_address_block", "from_address", "block"),
        Index("idx_ledger_history_to_address_block", "to_address", "block"),
    )

    tx_id: Mapped[str] = mapped_column(Text, primary_key=True)
    action_id: Mapped[str] = mapped_column(Text, primary_key=True)
    from_address: Mapped[str] = mapped_column(Text, nullable=False)
    to_address: Mapped[str] = mapped_column(Text, nullable=False)
    asset_id: Mapped[str] = mapped_column(Text, nullable=False)
    amount: Mapped[Decimal] = mapped_column(Numeric(38, 18), nullable=False)
    amount_in_base_unit: Mapped[Decimal] = mapped_column(Numeric(38, 0), nullable=False)
    block: Mapped[int] = mapped_column(BigInteger, nullable=False)
    block_time_utc: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    operation_id: Mapped[uuid.UUID | None] = mapped_column(UUID(as_uuid=True))
