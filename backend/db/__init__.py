"""Ledger database package: ORM models and the Alembic schema migration."""

from __future__ import annotations

import logging

from backend.db.base import NAMING_CONVENTION, Base, metadata
from backend.db import models
from backend.db.models import (
    LedgerAsset,
    LedgerBalance,
    LedgerEventLog,
    LedgerHistory,
    LedgerOperation,
    LedgerOperationAction,
    LedgerParams,
    LedgerWatchedAddress,
)

logger = logging.getLogger(__name__)

__all__ = [
    "Base",
    "LedgerAsset",
    "LedgerBalance",
    "LedgerEventLog",
    "LedgerHistory",
    "LedgerOperation",
    "LedgerOperationAction",
    "LedgerParams",
    "LedgerWatchedAddress",
    "NAMING_CONVENTION",
    "metadata",
    "models",
]
