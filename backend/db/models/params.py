"""Scanner checkpoint model definitions."""

from __future__ import annotations

import logging
from datetime import datetime

from sqlalchemy import (
    BigInteger,
    CheckConstraint,
    DateTime,
    PrimaryKeyConstraint,
    Text,
)
from sqlalchemy.orm import Mapped, mapped_column

from backend.db.base import Base

logger = logging.getLogger(__name__)


class LedgerParams(Base):
    """Singleton cursor over the hot-wallet account history."""

    __tablename__ = "ledger_params"
    __table_args__ = (
        PrimaryKeyConstraint("params_key", name="pk_ledger_params"),
        CheckConstraint("params_key = 'Params'", name="ck_ledger_params_singleton"),
        CheckConstraint(
            "next_action_sequence IS NULL OR next_action_sequence >= 0",
            name="ck_ledger_params_sequence_non_negative",
        ),
    )

    params_key: Mapped[str] = mapped_column(Text, primary_key=True)
    next_action_sequence: Mapped[int | None] = mapped_column(BigInteger)
    last_processed_irreversible_block_time_utc: Mapped[datetime | None] = mapped_column(DateTime(timezone=True))
