#!/usr/bin/env python3
"""Steem hot-wallet ledger scanner CLI."""

from __future__ import annotations

import argparse
from dataclasses import asdict
from decimal import Decimal
import json
import logging
import os
from pathlib import Path
import re
import sys
from typing import Any, Callable, Mapping, Optional, Sequence

import psycopg
from psycopg.rows import dict_row

ROOT_DIR = Path(__file__).resolve().parents[1]
if str(ROOT_DIR) not in sys.path:
    sys.path.insert(0, str(ROOT_DIR))

from ledger.asset_directory import AssetDirectory
from ledger.balance_ledger import BalanceLedger, validate_continuation
from ledger.common import is_steem_address, utc_iso
from ledger.daemon import ScannerDaemon
from ledger.history_ledger import DIRECTION_FROM, DIRECTION_TO, HistoryLedger
from ledger.ledger_config import LedgerConfig, load_ledger_config
from ledger.operation_ledger import OperationLedger
from ledger.params_store import ParamsStore
from ledger.scanner import ChainScanner
from ledger.steem_client import SteemChainClient

LOG_FORMAT = "%(asctime)s %(levelname)s %(name)s: %(message)s"

logger = logging.getLogger(__name__)

_NAMED_PARAM_RE = re.compile(r"(?<!:):([a-zA-Z_][a-zA-Z0-9_]*)")


def _convert_named_params(sql: str) -> str:
    return _NAMED_PARAM_RE.sub(r"%(\1)s", sql)


def _json_default(value: Any) -> Any:
    if isinstance(value, Decimal):
        return format(value, "f")
    if hasattr(value, "isoformat"):
        return utc_iso(value)
    raise TypeError(f"Object of type {type(value).__name__} is not JSON serializable")


def _dump(payload: Any) -> None:
    print(json.dumps(payload, sort_keys=True, default=_json_default))


class PsycopgLedgerDB:
    """Minimal DB adapter for the ledger stores.

    A closed or broken connection is replaced through ``connect`` before the next
    statement, so a daemon tick that failed on a dropped connection is followed by
    one that runs on a fresh one.
    """

    def __init__(
        self,
        conn: psycopg.Connection[Any],
        *,
        connect: Optional[Callable[[], psycopg.Connection[Any]]] = None,
    ) -> None:
        self.conn = conn
        self._connect = connect

    def _connection(self) -> psycopg.Connection[Any]:
        if self._connect is not None and (self.conn.closed or self.conn.broken):
            logger.warning("Database connection lost; reconnecting")
            self.conn.close()
            self.conn = self._connect()
        return self.conn

    def fetch_one(self, sql: str, params: Mapping[str, Any]) -> Optional[Mapping[str, Any]]:
        rows = self.fetch_all(sql, params)
        return rows[0] if rows else None

    def fetch_all(self, sql: str, params: Mapping[str, Any]) -> Sequence[Mapping[str, Any]]:
        converted = _convert_named_params(sql)
        with self._connection().cursor(row_factory=dict_row) as cur:
            cur.execute(converted, dict(params))
            return [dict(row) for row in cur.fetchall()]

    def execute(self, sql: str, params: Mapping[str, Any]) -> None:
        converted = _convert_named_params(sql)
        with self._connection().cursor() as cur:
            cur.execute(converted, dict(params))

    def close(self) -> None:
        self.conn.close()


def _resolve_connection(args: argparse.Namespace) -> psycopg.Connection[Any]:
    # Every ledger and checkpoint write must be durable on its own.
    if args.dsn:
        return psycopg.connect(args.dsn, autocommit=True)

    host = args.host or os.getenv("DB_HOST")
    port = args.port or os.getenv("DB_PORT")
    dbname = args.dbname or os.getenv("DB_NAME")
    user = args.user or os.getenv("DB_USER")
    password = args.password or os.getenv("DB_PASSWORD")

    missing = [
        key
        for key, value in (("host", host), ("port", port), ("dbname", dbname), ("user", user), ("password", password))
        if not value
    ]
    if missing:
        raise SystemExit(
            "Missing DB connection args. Provide --dsn or set --host/--port/--dbname/--user/--password "
            f"(missing: {', '.join(missing)})."
        )

    return psycopg.connect(host=host, port=port, dbname=dbname, user=user, password=password, autocommit=True)


def _configure_logging(cfg: LedgerConfig) -> None:
    logging.basicConfig(level=cfg.log_level, format=LOG_FORMAT)


def _build_daemon(cfg: LedgerConfig, db: PsycopgLedgerDB) -> ScannerDaemon:
    chain = SteemChainClient(
        node_url=cfg.steem_node_url,
        timeout_seconds=cfg.chain_timeout_seconds,
        max_attempts=cfg.chain_max_attempts,
    )
    params = ParamsStore(db)
    scanner = ChainScanner(
        chain=chain,
        account=cfg.hot_wallet_account,
        params=params,
        operations=OperationLedger(db),
        balances=BalanceLedger(db),
        history=HistoryLedger(db),
        assets=AssetDirectory(db),
    )
    return ScannerDaemon(db=db, scanner=scanner, params=params, config=cfg)


def _positive_int(value: str) -> int:
    try:
        parsed = int(value)
    except ValueError as exc:
        raise argparse.ArgumentTypeError(f"Expected an integer, got {value!r}") from exc
    if parsed <= 0:
        raise argparse.ArgumentTypeError(f"Expected a positive integer, got {parsed}")
    return parsed


def _address(value: str) -> str:
    if not is_steem_address(value):
        raise argparse.ArgumentTypeError(f"Invalid address {value!r}")
    return value


def _continuation(value: str) -> str:
    if not validate_continuation(value):
        raise argparse.ArgumentTypeError(f"Invalid continuation token {value!r}")
    return value


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Steem hot-wallet ledger scanner CLI")
    parser.add_argument("--dsn", help="PostgreSQL DSN (optional)")
    parser.add_argument("--host", help="DB host")
    parser.add_argument("--port", help="DB port")
    parser.add_argument("--dbname", help="DB name")
    parser.add_argument("--user", help="DB user")
    parser.add_argument("--password", help="DB password")

    subparsers = parser.add_subparsers(dest="command", required=True)

    daemon_cmd = subparsers.add_parser("daemon", help="Start the scanner loop")
    daemon_cmd.add_argument("--max-cycles", type=_positive_int, default=None)

    subparsers.add_parser("run-once", help="Run one intake + expiry tick")
    subparsers.add_parser("status", help="Report service name, version and checkpoint")

    observe = subparsers.add_parser("observe", help="Start watching an address")
    observe.add_argument("address", type=_address)

    unobserve = subparsers.add_parser("unobserve", help="Stop watching an address")
    unobserve.add_argument("address", type=_address)

    balance = subparsers.add_parser("balance", help="Aggregated balance of one address and asset")
    balance.add_argument("address")
    balance.add_argument("asset_id")

    balances = subparsers.add_parser("balances", help="Page through balances of watched addresses")
    balances.add_argument("--take", type=_positive_int, default=100)
    balances.add_argument("--continuation", type=_continuation, default=None)

    history = subparsers.add_parser("history", help="Transfer history of an address")
    history.add_argument("address")
    history.add_argument("--direction", choices=(DIRECTION_FROM, DIRECTION_TO), required=True)
    history.add_argument("--take", type=_positive_int, default=100)
    history.add_argument("--after-tx-id", default=None)

    return parser


def main() -> int:
    parser = _build_parser()
    args = parser.parse_args()

    cfg = load_ledger_config()
    _configure_logging(cfg)

    db = PsycopgLedgerDB(_resolve_connection(args), connect=lambda: _resolve_connection(args))
    try:
        if args.command == "status":
            _dump(asdict(_build_daemon(cfg, db).get_status()))
            return 0

        if args.command == "run-once":
            _dump(asdict(_build_daemon(cfg, db).run_once()))
            return 0

        if args.command == "daemon":
            _build_daemon(cfg, db).daemon_loop(max_cycles=args.max_cycles)
            return 0

        if args.command == "observe":
            BalanceLedger(db).observe(args.address)
            _dump({"address": args.address, "is_observable": True})
            return 0

        if args.command == "unobserve":
            BalanceLedger(db).unobserve(args.address)
            _dump({"address": args.address, "is_observable": False})
            return 0

        if args.command == "balance":
            aggregate = BalanceLedger(db).get_balance(args.address, args.asset_id)
            _dump(None if aggregate is None else asdict(aggregate))
            return 0

        if args.command == "balances":
            page = BalanceLedger(db).get_balances_page(args.take, args.continuation)
            _dump(
                {
                    "items": [asdict(item) for item in page.items],
                    "continuation": page.continuation,
                }
            )
            return 0

        if args.command == "history":
            entries = HistoryLedger(db).list_history(
                args.address,
                args.direction,
                args.take,
                after_tx_id=args.after_tx_id,
            )
            _dump([asdict(entry) for entry in entries])
            return 0

        raise SystemExit(f"Unknown command: {args.command}")
    finally:
        db.close()


if __name__ == "__main__":
    raise SystemExit(main())
