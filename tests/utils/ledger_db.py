"""Psycopg ledger adapter and fixture loaders for integration tests."""

from __future__ import annotations

from datetime import datetime
from decimal import Decimal
import importlib.util
from pathlib import Path
import re
from typing import Any, Mapping, Optional, Sequence
from uuid import NAMESPACE_URL, UUID, uuid5

from psycopg import Connection
from psycopg.rows import dict_row


ROOT = Path(__file__).resolve().parents[2]
MIGRATION_PATH = ROOT / "backend" / "db" / "migrations" / "versions" / "0001_initial_schema.py"
TEST_SCHEMA = "ledger_it"

_NAMED_PARAM_RE = re.compile(r"(?<!:):([a-zA-Z_][a-zA-Z0-9_]*)")


def _convert_named_params(sql: str) -> str:
    """Convert :named params to psycopg %(named)s format."""
    return _NAMED_PARAM_RE.sub(r"%(\1)s", sql)


class PsycopgLedgerTestDB:
    """Adapter implementing the ledger DB protocol on a psycopg connection."""

    def __init__(self, conn: Connection[Any]) -> None:
        self.conn = conn

    def fetch_one(self, sql: str, params: Mapping[str, Any]) -> Optional[Mapping[str, Any]]:
        rows = self.fetch_all(sql, params)
        return rows[0] if rows else None

    def fetch_all(self, sql: str, params: Mapping[str, Any]) -> Sequence[Mapping[str, Any]]:
        converted = _convert_named_params(sql)
        with self.conn.cursor(row_factory=dict_row) as cur:
            cur.execute(converted, dict(params))
            return [dict(row) for row in cur.fetchall()]

    def execute(self, sql: str, params: Mapping[str, Any]) -> None:
        converted = _convert_named_params(sql)
        with self.conn.cursor() as cur:
            cur.execute(converted, dict(params))


def deterministic_uuid(seed: str) -> UUID:
    """Generate deterministic UUID for test fixtures."""
    return uuid5(NAMESPACE_URL, f"ledger-test::{seed}")


def _load_migration() -> Any:
    spec = importlib.util.spec_from_file_location("ledger_migration_0001_it", MIGRATION_PATH)
    assert spec is not None and spec.loader is not None
    module = importlib.util.module_from_spec(spec)
    spec.loader.exec_module(module)
    return module


def create_ledger_schema(conn: Connection[Any]) -> None:
    """Create the ledger tables in a throwaway schema inside the open transaction."""
    migration = _load_migration()
    with conn.cursor() as cur:
        cur.execute(f"CREATE SCHEMA {TEST_SCHEMA}")
        cur.execute(f"SET LOCAL search_path TO {TEST_SCHEMA}")
        for statement in (*migration.TABLE_DDL, *migration.INDEX_DDL):
            cur.execute(statement)


def insert_asset(db: PsycopgLedgerTestDB, *, asset_id: str, symbol: str, accuracy: int) -> None:
    db.execute(
        """
        INSERT INTO ledger_asset (asset_id, symbol, accuracy)
        VALUES (:asset_id, :symbol, :accuracy)
        """,
        {"asset_id": asset_id, "symbol": symbol, "accuracy": accuracy},
    )


def insert_operation(
    db: PsycopgLedgerTestDB,
    *,
    seed: str,
    asset_id: str,
    tx_id: str | None,
    expiry_time_utc: datetime,
    actions: Sequence[tuple[str, str, str, Decimal, int]] = (),
) -> str:
    """Insert a pending operation and its planned (row_key, from, to, amount, base) actions."""
    operation_id = str(deterministic_uuid(seed))
    db.execute(
        """
        INSERT INTO ledger_operation (operation_id, asset_id, tx_id, expiry_time_utc)
        VALUES (:operation_id, :asset_id, :tx_id, :expiry_time_utc)
        """,
        {
            "operation_id": operation_id,
            "asset_id": asset_id,
            "tx_id": tx_id,
            "expiry_time_utc": expiry_time_utc,
        },
    )
    for row_key, from_address, to_address, amount, amount_in_base_unit in actions:
        db.execute(
            """
            INSERT INTO ledger_operation_action (
                operation_id, row_key, from_address, to_address, amount, amount_in_base_unit
            ) VALUES (
                :operation_id, :row_key, :from_address, :to_address, :amount, :amount_in_base_unit
            )
            """,
            {
                "operation_id": operation_id,
                "row_key": row_key,
                "from_address": from_address,
                "to_address": to_address,
                "amount": amount,
                "amount_in_base_unit": amount_in_base_unit,
            },
        )
    return operation_id
