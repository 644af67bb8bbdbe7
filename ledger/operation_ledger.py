"""Internally-initiated operation intents and their terminal transitions."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal
from typing import Optional, Sequence

from ledger.common import LedgerDatabase, parse_utc, to_decimal


class ErrorCode:
    """Operation failure codes understood by upstream initiators."""

    UNKNOWN = "unknown"
    AMOUNT_IS_TOO_SMALL = "amountIsTooSmall"
    NOT_ENOUGH_BALANCE = "notEnoughBalance"
    BUILDING_SHOULD_BE_REPEATED = "buildingShouldBeRepeated"


@dataclass(frozen=True)
class OperationAction:
    """One planned balance-affecting transfer inside an operation."""

    operation_id: str
    row_key: str
    from_address: str
    to_address: str
    amount: Decimal
    amount_in_base_unit: int


@dataclass(frozen=True)
class Operation:
    """Operation state as seen by the reconciliation path."""

    operation_id: str
    asset_id: str
    tx_id: str | None
    expiry_time_utc: datetime | None
    completion_time_utc: datetime | None
    fail_time_utc: datetime | None
    cancel_time_utc: datetime | None
    error_code: str | None = None

    @property
    def is_completed(self) -> bool:
        return self.completion_time_utc is not None

    @property
    def is_failed(self) -> bool:
        return self.fail_time_utc is not None

    @property
    def is_cancelled(self) -> bool:
        return self.cancel_time_utc is not None

    @property
    def is_terminal(self) -> bool:
        return self.is_completed or self.is_failed


class OperationLedger:
    """Reads operation intents; writes only completion and failure fields."""

    def __init__(self, db: LedgerDatabase) -> None:
        self._db = db

    def get_operation_id_by_tx_id(self, tx_id: str) -> Optional[str]:
        row = self._db.fetch_one(
            """
            SELECT operation_id
            FROM ledger_operation
            WHERE tx_id = :tx_id
            """,
            {"tx_id": tx_id},
        )
        return None if row is None else str(row["operation_id"])

    def get(self, operation_id: str) -> Optional[Operation]:
        row = self._db.fetch_one(
            """
            SELECT
                operation_id, asset_id, tx_id, expiry_time_utc,
                completion_time_utc, fail_time_utc, cancel_time_utc, error_code
            FROM ledger_operation
            WHERE operation_id = :operation_id
            """,
            {"operation_id": operation_id},
        )
        if row is None:
            return None
        return Operation(
            operation_id=str(row["operation_id"]),
            asset_id=str(row["asset_id"]),
            tx_id=row.get("tx_id"),
            expiry_time_utc=parse_utc(row.get("expiry_time_utc")),
            completion_time_utc=parse_utc(row.get("completion_time_utc")),
            fail_time_utc=parse_utc(row.get("fail_time_utc")),
            cancel_time_utc=parse_utc(row.get("cancel_time_utc")),
            error_code=row.get("error_code"),
        )

    def get_actions(self, operation_id: str) -> Sequence[OperationAction]:
        rows = self._db.fetch_all(
            """
            SELECT operation_id, row_key, from_address, to_address, amount, amount_in_base_unit
            FROM ledger_operation_action
            WHERE operation_id = :operation_id
            ORDER BY row_key
            """,
            {"operation_id": operation_id},
        )
        return [
            OperationAction(
                operation_id=str(row["operation_id"]),
                row_key=str(row["row_key"]),
                from_address=str(row["from_address"]),
                to_address=str(row["to_address"]),
                amount=to_decimal(row["amount"]),
                amount_in_base_unit=int(row["amount_in_base_unit"]),
            )
            for row in rows
        ]

    def get_pending_ids_by_expiry(self, after_utc: datetime, until_utc: datetime) -> Sequence[str]:
        """Return pending operations expiring in ``(after_utc, until_utc]``."""
        rows = self._db.fetch_all(
            """
            SELECT operation_id
            FROM ledger_operation
            WHERE expiry_time_utc > :after_utc
              AND expiry_time_utc <= :until_utc
              AND completion_time_utc IS NULL
              AND fail_time_utc IS NULL
            ORDER BY expiry_time_utc, operation_id
            """,
            {"after_utc": after_utc, "until_utc": until_utc},
        )
        return [str(row["operation_id"]) for row in rows]

    def mark_completed(
        self,
        operation_id: str,
        *,
        completion_time_utc: datetime,
        block: int,
        block_time_utc: datetime,
    ) -> None:
        self._db.execute(
            """
            UPDATE ledger_operation
            SET completion_time_utc = :completion_time_utc,
                block = :block,
                block_time_utc = :block_time_utc
            WHERE operation_id = :operation_id
              AND completion_time_utc IS NULL
              AND fail_time_utc IS NULL
            """,
            {
                "operation_id": operation_id,
                "completion_time_utc": completion_time_utc,
                "block": block,
                "block_time_utc": block_time_utc,
            },
        )

    def mark_failed(
        self,
        operation_id: str,
        *,
        fail_time_utc: datetime,
        error_code: str,
        error: str,
    ) -> None:
        self._db.execute(
            """
            UPDATE ledger_operation
            SET fail_time_utc = :fail_time_utc,
                error_code = :error_code,
                error = :error
            WHERE operation_id = :operation_id
              AND completion_time_utc IS NULL
              AND fail_time_utc IS NULL
            """,
            {
                "operation_id": operation_id,
                "fail_time_utc": fail_time_utc,
                "error_code": error_code,
                "error": error,
            },
        )
