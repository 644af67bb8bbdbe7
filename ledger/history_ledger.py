"""Human-visible transfer history keyed by (tx id, action id)."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal
from typing import Sequence

from ledger.common import LedgerDatabase, parse_utc, to_decimal

DIRECTION_FROM = "FROM"
DIRECTION_TO = "TO"


@dataclass(frozen=True)
class HistoryEntry:
    """One recorded transfer."""

    from_address: str
    to_address: str
    asset_id: str
    amount: Decimal
    amount_in_base_unit: int
    block: int
    block_time_utc: datetime
    tx_id: str
    action_id: str
    operation_id: str | None


class HistoryLedger:
    """Overwrite-or-insert history writer and per-address reader."""

    def __init__(self, db: LedgerDatabase) -> None:
        self._db = db

    def upsert(self, entry: HistoryEntry) -> None:
        self._db.execute(
            """
            INSERT INTO ledger_history (
                tx_id, action_id, from_address, to_address, asset_id,
                amount, amount_in_base_unit, block, block_time_utc, operation_id
            ) VALUES (
                :tx_id, :action_id, :from_address, :to_address, :asset_id,
                :amount, :amount_in_base_unit, :block, :block_time_utc, :operation_id
            )
            ON CONFLICT (tx_id, action_id) DO UPDATE SET
                from_address = EXCLUDED.from_address,
                to_address = EXCLUDED.to_address,
                asset_id = EXCLUDED.asset_id,
                amount = EXCLUDED.amount,
                amount_in_base_unit = EXCLUDED.amount_in_base_unit,
                block = EXCLUDED.block,
                block_time_utc = EXCLUDED.block_time_utc,
                operation_id = EXCLUDED.operation_id
            """,
            {
                "tx_id": entry.tx_id,
                "action_id": entry.action_id,
                "from_address": entry.from_address,
                "to_address": entry.to_address,
                "asset_id": entry.asset_id,
                "amount": entry.amount,
                "amount_in_base_unit": entry.amount_in_base_unit,
                "block": entry.block,
                "block_time_utc": entry.block_time_utc,
                "operation_id": entry.operation_id,
            },
        )

    def list_history(
        self,
        address: str,
        direction: str,
        take: int,
        after_tx_id: str | None = None,
    ) -> Sequence[HistoryEntry]:
        """Return transfers sent from (``FROM``) or received by (``TO``) ``address``.

        Rows are ordered by (block, tx_id, action_id). When ``after_tx_id`` is given,
        listing starts strictly after the first row of that transaction.
        """
        if direction not in (DIRECTION_FROM, DIRECTION_TO):
            raise ValueError(f"direction must be {DIRECTION_FROM} or {DIRECTION_TO}, got {direction!r}")
        if take <= 0:
            raise ValueError(f"take must be positive, got {take}")
        address_column = "from_address" if direction == DIRECTION_FROM else "to_address"

        anchor = None
        if after_tx_id:
            anchor = self._db.fetch_one(
                f"""
                SELECT block, tx_id, action_id
                FROM ledger_history
                WHERE {address_column} = :address
                  AND tx_id = :tx_id
                ORDER BY block, tx_id, action_id
                LIMIT 1
                """,
                {"address": address, "tx_id": after_tx_id},
            )
            if anchor is None:
                return []

        params = {"address": address, "take": take}
        anchor_clause = ""
        if anchor is not None:
            anchor_clause = "AND (block, tx_id, action_id) > (:anchor_block, :anchor_tx_id, :anchor_action_id)"
            params.update(
                {
                    "anchor_block": anchor["block"],
                    "anchor_tx_id": anchor["tx_id"],
                    "anchor_action_id": anchor["action_id"],
                }
            )

        rows = self._db.fetch_all(
            f"""
            SELECT
                tx_id, action_id, from_address, to_address, asset_id,
                amount, amount_in_base_unit, block, block_time_utc, operation_id
            FROM ledger_history
            WHERE {address_column} = :address
              {anchor_clause}
            ORDER BY block, tx_id, action_id
            LIMIT :take
            """,
            params,
        )
        return [
            HistoryEntry(
                from_address=str(row["from_address"]),
                to_address=str(row["to_address"]),
                asset_id=str(row["asset_id"]),
                amount=to_decimal(row["amount"]),
                amount_in_base_unit=int(row["amount_in_base_unit"]),
                block=int(row["block"]),
                block_time_utc=parse_utc(row["block_time_utc"]),
                tx_id=str(row["tx_id"]),
                action_id=str(row["action_id"]),
                operation_id=None if row.get("operation_id") is None else str(row["operation_id"]),
            )
            for row in rows
        ]
