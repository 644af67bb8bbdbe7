"""Read-only lookup of chain asset symbols."""

from __future__ import annotations

from dataclasses import dataclass
from decimal import ROUND_HALF_UP, Decimal
from typing import Optional

from ledger.common import LedgerDatabase


@dataclass(frozen=True)
class ResolvedAsset:
    """Asset identity and base-unit precision."""

    asset_id: str
    symbol: str
    accuracy: int

    @property
    def multiplier(self) -> int:
        return 10 ** self.accuracy

    def to_base_unit(self, value: Decimal) -> int:
        """Convert a display amount to integer base units, rounding half up."""
        return int((value * self.multiplier).to_integral_value(rounding=ROUND_HALF_UP))


class AssetDirectory:
    """Symbol resolution over the ``ledger_asset`` registry."""

    def __init__(self, db: LedgerDatabase) -> None:
        self._db = db

    def resolve(self, symbol: str) -> Optional[ResolvedAsset]:
        row = self._db.fetch_one(
            """
            SELECT asset_id, symbol, accuracy
            FROM ledger_asset
            WHERE symbol = :symbol
            """,
            {"symbol": symbol},
        )
        if row is None:
            return None
        return ResolvedAsset(
            asset_id=str(row["asset_id"]),
            symbol=str(row["symbol"]),
            accuracy=int(row["accuracy"]),
        )
