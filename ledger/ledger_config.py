"""Environment-backed configuration for the ledger scanner."""

from __future__ import annotations

from dataclasses import dataclass
import logging
import os
from pathlib import Path

from ledger.common import is_steem_account


@dataclass(frozen=True)
class LedgerConfig:
    """Canonical configuration surface for the scanner daemon."""

    steem_node_url: str
    hot_wallet_account: str
    lock_dir: Path
    loop_seconds: int
    chain_timeout_seconds: float
    chain_max_attempts: int
    daemon_lock_stale_seconds: int
    log_level: str


_REQUIRED_KEYS: tuple[str, ...] = (
    "STEEM_NODE_URL",
    "STEEM_HOT_WALLET_ACCOUNT",
)


def _read_env(name: str, default: str | None = None) -> str:
    value = os.getenv(name, default)
    if value is None or value.strip() == "":
        raise RuntimeError(f"Missing required environment variable: {name}")
    return value.strip()


def _read_int(name: str, default: int) -> int:
    raw = os.getenv(name)
    if raw is None:
        return default
    try:
        value = int(raw.strip())
    except ValueError as exc:
        raise RuntimeError(f"Invalid integer value for {name}: {raw}") from exc
    return value


def _read_float(name: str, default: float) -> float:
    raw = os.getenv(name)
    if raw is None:
        return default
    try:
        value = float(raw.strip())
    except ValueError as exc:
        raise RuntimeError(f"Invalid float value for {name}: {raw}") from exc
    return value


def _read_log_level(name: str, default: str) -> str:
    level = os.getenv(name, default).strip().upper()
    if not isinstance(logging.getLevelName(level), int):
        raise RuntimeError(f"Invalid log level for {name}: {level}")
    return level


def load_ledger_config() -> LedgerConfig:
    """Load and validate scanner configuration from environment."""
    for key in _REQUIRED_KEYS:
        _read_env(key)

    account = _read_env("STEEM_HOT_WALLET_ACCOUNT")
    if not is_steem_account(account):
        raise RuntimeError(f"STEEM_HOT_WALLET_ACCOUNT is not a valid Steem account name: {account}")

    loop_seconds = _read_int("LEDGER_LOOP_SECONDS", 10)
    if loop_seconds <= 0:
        raise RuntimeError("LEDGER_LOOP_SECONDS must be positive")

    return LedgerConfig(
        steem_node_url=_read_env("STEEM_NODE_URL"),
        hot_wallet_account=account,
        lock_dir=Path(os.getenv("LEDGER_LOCK_DIR", "./var").strip() or "./var").resolve(),
        loop_seconds=loop_seconds,
        chain_timeout_seconds=_read_float("LEDGER_CHAIN_TIMEOUT_SECONDS", 20.0),
        chain_max_attempts=_read_int("LEDGER_CHAIN_MAX_ATTEMPTS", 3),
        daemon_lock_stale_seconds=_read_int("LEDGER_DAEMON_LOCK_STALE_SECONDS", 300),
        log_level=_read_log_level("LEDGER_LOG_LEVEL", "INFO"),
    )
