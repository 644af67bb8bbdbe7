"""Model module imports for SQLAlchemy metadata registration."""

from __future__ import annotations

import logging

from backend.db.models.asset import LedgerAsset
from backend.db.models.balance import LedgerBalance, LedgerWatchedAddress
from backend.db.models.event_log import LedgerEventLog
from backend.db.models.history import LedgerHistory
from backend.db.models.operation import LedgerOperation, LedgerOperationAction
from backend.db.models.params import LedgerParams

logger = logging.getLogger(__name__)

__all__ = [
    "LedgerAsset",
    "LedgerBalance",
    "LedgerEventLog",
    "LedgerHistory",
    "LedgerOperation",
    "LedgerOperationAction",
    "LedgerParams",
    "LedgerWatchedAddress",
]
