"""Singleton scanner checkpoint storage."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime

from ledger.common import EPOCH_UTC, LedgerDatabase, parse_utc

PARAMS_KEY = "Params"


@dataclass(frozen=True)
class Checkpoint:
    """Scanner cursor state."""

    next_action_sequence: int
    last_processed_irreversible_block_time_utc: datetime


class ParamsStore:
    """Read/insert-or-merge access to the single ``ledger_params`` row."""

    def __init__(self, db: LedgerDatabase) -> None:
        self._db = db

    def get(self) -> Checkpoint:
        row = self._db.fetch_one(
            """
            SELECT next_action_sequence, last_processed_irreversible_block_time_utc
            FROM ledger_params
            WHERE params_key = :params_key
            """,
            {"params_key": PARAMS_KEY},
        )
        if row is None:
            return Checkpoint(next_action_sequence=0, last_processed_irreversible_block_time_utc=EPOCH_UTC)
        return Checkpoint(
            next_action_sequence=int(row.get("next_action_sequence") or 0),
            last_processed_irreversible_block_time_utc=(
                parse_utc(row.get("last_processed_irreversible_block_time_utc")) or EPOCH_UTC
            ),
        )

    def upsert(
        self,
        *,
        next_action_sequence: int | None = None,
        last_processed_irreversible_block_time_utc: datetime | None = None,
    ) -> None:
        """Merge the given fields into the checkpoint; omitted fields keep their value."""
        if next_action_sequence is None and last_processed_irreversible_block_time_utc is None:
            return
        self._db.execute(
            """
            INSERT INTO ledger_params (
                params_key, next_action_sequence, last_processed_irreversible_block_time_utc
            ) VALUES (
                :params_key, :next_action_sequence, :last_processed_irreversible_block_time_utc
            )
            ON CONFLICT (params_key) DO UPDATE SET
                next_action_sequence = COALESCE(
                    EXCLUDED.next_action_sequence,
                    ledger_params.next_action_sequence
                ),
                last_processed_irreversible_block_time_utc = COALESCE(
                    EXCLUDED.last_processed_irreversible_block_time_utc,
                    ledger_params.last_processed_irreversible_block_time_utc
                )
            """,
            {
                "params_key": PARAMS_KEY,
                "next_action_sequence": next_action_sequence,
                "last_processed_irreversible_block_time_utc": last_processed_irreversible_block_time_utc,
            },
        )
