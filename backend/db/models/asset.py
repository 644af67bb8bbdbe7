"""Asset registry model definitions."""

from __future__ import annotations

import logging

from sqlalchemy import (
    CheckConstraint,
    PrimaryKeyConstraint,
    SmallInteger,
    Text,
    UniqueConstraint,
)
from sqlalchemy.orm import Mapped, mapped_column

from backend.db.base import Base

logger = logging.getLogger(__name__)


class LedgerAsset(Base):
    """Chain asset symbol to internal asset id and base-unit precision."""

    __tablename__ = "ledger_asset"
    __table_args__ = (
        PrimaryKeyConstraint("asset_id", name="pk_ledger_asset"),
        UniqueConstraint("symbol", name="uq_ledger_asset_symbol"),
        CheckConstraint("length(btrim(asset_id)) > 0", name="ck_ledger_asset_id_not_blank"),
        CheckConstraint("length(btrim(symbol)) > 0", name="ck_ledger_asset_symbol_not_blank"),
        CheckConstraint("accuracy >= 0 AND accuracy <= 18", name="ck_ledger_asset_accuracy_range"),
    )

    asset_id: Mapped[str] = mapped_column(Text, primary_key=True)
    symbol: Mapped[str] = mapped_column(Text, nullable=False)
    accuracy: Mapped[int] = mapped_column(SmallInteger, nullable=False)
