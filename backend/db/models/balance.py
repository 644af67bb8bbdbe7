"""Balance entry and watched address model definitions."""

from __future__ import annotations

import logging
from decimal import Decimal

from sqlalchemy import (
    BigInteger,
    Boolean,
    Index,
    Numeric,
    PrimaryKeyConstraint,
    Text,
    text,
)
from sqlalchemy.orm import Mapped, mapped_column

from backend.db.base import Base

logger = logging.getLogger(__name__)


class LedgerBalance(Base):
    """Signed balance change keyed by address, asset and operation or tx id."""

    __tablename__ = "ledger_balance"
    __table_args__ = (
        PrimaryKeyConstraint("balance_id", name="pk_ledger_balance"),
        Index("idx_ledger_balance_address_asset", "address", "asset_id"),
        Index("idx_ledger_balance_observable", "is_observable", "is_cancelled"),
    )

    balance_id: Mapped[str] = mapped_column(Text, primary_key=True)
    address: Mapped[str] = mapped_column(Text, nullable=False)
    asset_id: Mapped[str] = mapped_column(Text, nullable=False)
    operation_or_tx_id: Mapped[str] = mapped_column(Text, nullable=False)
    amount: Mapped[Decimal] = mapped_column(Numeric(38, 18), nullable=False)
    amount_in_base_unit: Mapped[Decimal] = mapped_column(Numeric(38, 0), nullable=False)
    block: Mapped[int] = mapped_column(BigInteger, nullable=False)
    is_cancelled: Mapped[bool] = mapped_column(
        Boolean,
        nullable=False,
        server_default=text("FALSE"),
    )
    is_observable: Mapped[bool] = mapped_column(
        Boolean,
        nullable=False,
        server_default=text("FALSE"),
    )


class LedgerWatchedAddress(Base):
    """Addresses whose balances are listed to wallet API consumers."""

    __tablename__ = "ledger_watched_address"
    __table_args__ = (PrimaryKeyConstraint("address", name="pk_ledger_watched_address"),)

    address: Mapped[str] = mapped_column(Text, primary_key=True)
