"""Operation intent and planned action model definitions."""

from __future__ import annotations

import logging
import uuid
from datetime import datetime
from decimal import Decimal

from sqlalchemy import (
    BigInteger,
    CheckConstraint,
    DateTime,
    ForeignKeyConstraint,
    Index,
    Numeric,
    PrimaryKeyConstraint,
    Text,
)
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.orm import Mapped, mapped_column

from backend.db.base import Base

logger = logging.getLogger(__name__)


class LedgerOperation(Base):
    """Internally-initiated transfer intent with its terminal state fields."""

    __tablename__ = "ledger_operation"
    __table_args__ = (
        PrimaryKeyConstraint("operation_id", name="pk_ledger_operation"),
        ForeignKeyConstraint(
            ["asset_id"],
            ["ledger_asset.asset_id"],
            name="fk_ledger_operation_asset",
            onupdate="RESTRICT",
            ondelete="RESTRICT",
        ),
        CheckConstraint(
            "completion_time_utc IS NULL OR fail_time_utc IS NULL",
            name="ck_ledger_operation_single_terminal_state",
        ),
        Index("idx_ledger_operation_tx_id", "tx_id"),
        Index("idx_ledger_operation_expiry_time", "expiry_time_utc"),
    )

    operation_id: Mapped[uuid.UUID] = mapped_column(UUID(as_uuid=True), primary_key=True)
    asset_id: Mapped[str] = mapped_column(Text, nullable=False)
    tx_id: Mapped[str | None] = mapped_column(Text)
    expiry_time_utc: Mapped[datetime | None] = mapped_column(DateTime(timezone=True))
    completion_time_utc: Mapped[datetime | None] = mapped_column(DateTime(timezone=True))
    block: Mapped[int | None] = mapped_column(BigInteger)
    block_time_utc: Mapped[datetime | None] = mapped_column(DateTime(timezone=True))
    fail_time_utc: Mapped[datetime | None] = mapped_column(DateTime(timezone=True))
    error_code: Mapped[str | None] = mapped_column(Text)
    error: Mapped[str | None] = mapped_column(Text)
    cancel_time_utc: Mapped[datetime | None] = mapped_column(DateTime(timezone=True))


class LedgerOperationAction(Base):
    """One planned debit/credit pair of an operation."""

    __tablename__ = "ledger_operation_action"
    __table_args__ = (
        PrimaryKeyConstraint("operation_id", "row_key", name="pk_ledger_operation_action"),
        ForeignKeyConstraint(
            ["operation_id"],
            ["ledger_operation.operation_id"],
            name="fk_ledger_operation_action_operation",
            onupdate="RESTRICT",
            ondelete="CASCADE",
        ),
        CheckConstraint("amount > 0", name="ck_ledger_operation_action_amount_pos"),
        CheckConstraint(
            "amount_in_base_unit > 0",
            name="ck_ledger_operation_action_base_amount_pos",
        ),
    )

    operation_id: Mapped[uuid.UUID] = mapped_column(UUID(as_uuid=True), primary_key=True)
    row_key: Mapped[str] = mapped_column(Text, primary_key=True)
    from_address: Mapped[str] = mapped_column(Text, nullable=False)
    to_address: Mapped[str] = mapped_column(Text, nullable=False)
    amount: Mapped[Decimal] = mapped_column(Numeric(38, 18), nullable=False)
    amount_in_base_unit: Mapped[Decimal] = mapped_column(Numeric(38, 0), nullable=False)
