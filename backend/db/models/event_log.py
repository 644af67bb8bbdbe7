"""Scanner daemon event log model definitions."""

from __future__ import annotations

import logging
from datetime import datetime

from sqlalchemy import (
    CHAR,
    BigInteger,
    CheckConstraint,
    DateTime,
    Identity,
    Index,
    PrimaryKeyConstraint,
    Text,
    desc,
)
from sqlalchemy.orm import Mapped, mapped_column

from backend.db.base import Base

logger = logging.getLogger(__name__)


class LedgerEventLog(Base):
    """Append-only daemon lifecycle and tick failure events."""

    __tablename__ = "ledger_event_log"
    __table_args__ = (
        PrimaryKeyConstraint("event_id", name="pk_ledger_event_log"),
        CheckConstraint("length(btrim(event_type)) > 0", name="ck_ledger_event_log_type_not_blank"),
        Index("idx_ledger_event_log_ts", desc("event_ts_utc")),
    )

    event_id: Mapped[int] = mapped_column(
        BigInteger,
        Identity(always=True),
        primary_key=True,
    )
    event_ts_utc: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    event_type: Mapped[str] = mapped_column(Text, nullable=False)
    status: Mapped[str] = mapped_column(Text, nullable=False)
    account: Mapped[str] = mapped_column(Text, nullable=False)
    details: Mapped[str | None] = mapped_column(Text)
    row_hash: Mapped[str] = mapped_column(CHAR(64), nullable=False)
