"""Signed balance entries, address watch flags and balance aggregation."""

from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal
import re
from typing import Any, Mapping, Optional, Sequence

from ledger.common import LedgerDatabase, to_decimal

_CONTINUATION_RE = re.compile(r"^\d+$")


class InvalidContinuationError(ValueError):
    """Raised for continuation tokens that are not decimal offsets."""


@dataclass(frozen=True)
class BalanceAggregate:
    """Current balance of one (address, asset) pair."""

    address: str
    asset_id: str
    amount: Decimal
    amount_in_base_unit: int
    block: int


@dataclass(frozen=True)
class BalancePage:
    """One page of aggregated balances plus the next continuation token."""

    items: Sequence[BalanceAggregate]
    continuation: str | None


def balance_entry_id(address: str, asset_id: str, operation_or_tx_id: str) -> str:
    return f"{address}_{asset_id}_{operation_or_tx_id}"


def validate_continuation(continuation: str | None) -> bool:
    """Return True for an absent token or a decimal-digit offset."""
    return not continuation or bool(_CONTINUATION_RE.match(continuation))


def _aggregate_from_row(row: Mapping[str, Any]) -> BalanceAggregate:
    return BalanceAggregate(
        address=str(row["address"]),
        asset_id=str(row["asset_id"]),
        amount=to_decimal(row["amount"]),
        amount_in_base_unit=int(row["amount_in_base_unit"] or 0),
        block=int(row["block"] or 0),
    )


class BalanceLedger:
    """Idempotent balance writer and aggregation reader."""

    def __init__(self, db: LedgerDatabase) -> None:
        self._db = db

    def observe(self, address: str) -> None:
        """Start watching ``address`` and flag its existing entries observable."""
        self._db.execute(
            """
            INSERT INTO ledger_watched_address (address)
            VALUES (:address)
            ON CONFLICT (address) DO NOTHING
            """,
            {"address": address},
        )
        self._db.execute(
            """
            UPDATE ledger_balance
            SET is_observable = TRUE
            WHERE address = :address
            """,
            {"address": address},
        )

    def unobserve(self, address: str) -> None:
        """Stop watching ``address`` and hide its existing entries from listings."""
        self._db.execute(
            """
            DELETE FROM ledger_watched_address
            WHERE address = :address
            """,
            {"address": address},
        )
        self._db.execute(
            """
            UPDATE ledger_balance
            SET is_observable = FALSE
            WHERE address = :address
            """,
            {"address": address},
        )

    def is_observable(self, address: str) -> bool:
        row = self._db.fetch_one(
            """
            SELECT address
            FROM ledger_watched_address
            WHERE address = :address
            """,
            {"address": address},
        )
        return row is not None

    def upsert(
        self,
        address: str,
        asset_id: str,
        operation_or_tx_id: str,
        amount: Decimal,
        amount_in_base_unit: int,
        block: int,
    ) -> None:
        """Insert or overwrite one balance change; the cancellation flag is preserved."""
        self._db.execute(
            """
            INSERT INTO ledger_balance (
                balance_id, address, asset_id, operation_or_tx_id,
                amount, amount_in_base_unit, block,
                is_cancelled, is_observable
            ) VALUES (
                :balance_id, :address, :asset_id, :operation_or_tx_id,
                :amount, :amount_in_base_unit, :block,
                FALSE, :is_observable
            )
            ON CONFLICT (balance_id) DO UPDATE SET
                amount = EXCLUDED.amount,
                amount_in_base_unit = EXCLUDED.amount_in_base_unit,
                block = EXCLUDED.block,
                is_observable = EXCLUDED.is_observable
            """,
            {
                "balance_id": balance_entry_id(address, asset_id, operation_or_tx_id),
                "address": address,
                "asset_id": asset_id,
                "operation_or_tx_id": operation_or_tx_id,
                "amount": amount,
                "amount_in_base_unit": amount_in_base_unit,
                "block": block,
                "is_observable": self.is_observable(address),
            },
        )

    def set_cancelled(self, address: str, asset_id: str, operation_or_tx_id: str, *, is_cancelled: bool) -> None:
        """Flag an entry cancelled, creating an empty placeholder when it is not recorded yet."""
        self._db.execute(
            """
            INSERT INTO ledger_balance (
                balance_id, address, asset_id, operation_or_tx_id,
                amount, amount_in_base_unit, block,
                is_cancelled, is_observable
            ) VALUES (
                :balance_id, :address, :asset_id, :operation_or_tx_id,
                0, 0, 0,
                :is_cancelled, :is_observable
            )
            ON CONFLICT (balance_id) DO UPDATE SET
                is_cancelled = EXCLUDED.is_cancelled
            """,
            {
                "balance_id": balance_entry_id(address, asset_id, operation_or_tx_id),
                "address": address,
                "asset_id": asset_id,
                "operation_or_tx_id": operation_or_tx_id,
                "is_cancelled": is_cancelled,
                "is_observable": self.is_observable(address),
            },
        )

    def get_balance(self, address: str, asset_id: str) -> Optional[BalanceAggregate]:
        row = self._db.fetch_one(
            """
            SELECT
                address,
                asset_id,
                SUM(amount) AS amount,
                SUM(amount_in_base_unit) AS amount_in_base_unit,
                MAX(block) AS block
            FROM ledger_balance
            WHERE address = :address
              AND asset_id = :asset_id
              AND is_cancelled = FALSE
            GROUP BY address, asset_id
            """,
            {"address": address, "asset_id": asset_id},
        )
        return None if row is None else _aggregate_from_row(row)

    def get_balances_page(self, take: int, continuation: str | None = None) -> BalancePage:
        """Page through positive balances of watched addresses.

        Continuation tokens are decimal row offsets. A page shorter than ``take``
        is the last one and carries no continuation.
        """
        if take <= 0:
            raise ValueError(f"take must be positive, got {take}")
        if not validate_continuation(continuation):
            raise InvalidContinuationError(f"Invalid continuation token: {continuation!r}")
        skip = int(continuation) if continuation else 0

        rows = self._db.fetch_all(
            """
            SELECT
                address,
                asset_id,
                SUM(amount) AS amount,
                SUM(amount_in_base_unit) AS amount_in_base_unit,
                MAX(block) AS block
            FROM ledger_balance
            WHERE is_cancelled = FALSE
              AND is_observable = TRUE
            GROUP BY address, asset_id
            HAVING SUM(amount_in_base_unit) > 0
            ORDER BY address, asset_id
            LIMIT :take OFFSET :skip
            """,
            {"take": take, "skip": skip},
        )
        items = [_aggregate_from_row(row) for row in rows]
        next_continuation = None if len(items) < take else str(skip + take)
        return BalancePage(items=items, continuation=next_continuation)
