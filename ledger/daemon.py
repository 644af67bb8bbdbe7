"""Single-instance scanner daemon: fixed-interval intake and expiry ticks."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
import json
import logging
import os
from pathlib import Path
import socket
import time
from typing import Any, Mapping

from ledger.common import APP_NAME, APP_VERSION, LedgerClock, LedgerDatabase, parse_utc, stable_hash, utc_iso
from ledger.ledger_config import LedgerConfig
from ledger.params_store import Checkpoint, ParamsStore
from ledger.scanner import ChainScanner

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class TickResult:
    """Outcome of one intake + sweep tick."""

    last_irreversible_block_num: int
    next_action_sequence: int
    expired_operations: int


@dataclass(frozen=True)
class DaemonStatus:
    """Liveness payload."""

    name: str
    version: str
    account: str
    next_action_sequence: int
    last_processed_irreversible_block_time_utc: str
    lock_held: bool


class ScannerDaemon:
    """Runs scanner ticks sequentially under an exclusive lock file."""

    def __init__(
        self,
        *,
        db: LedgerDatabase,
        scanner: ChainScanner,
        params: ParamsStore,
        config: LedgerConfig,
        clock: LedgerClock | None = None,
    ) -> None:
        self._db = db
        self._scanner = scanner
        self._params = params
        self._config = config
        self._clock = clock or LedgerClock()

        self._lock_file_path = self._config.lock_dir / f".ledger_scanner.{self._config.hot_wallet_account}.lock"
        self._lock_held = False
        self._lock_owner = stable_hash(
            (
                "ledger_scanner_lock_owner",
                socket.gethostname(),
                os.getpid(),
                id(self),
            )
        )

    @property
    def lock_file_path(self) -> Path:
        return self._lock_file_path

    def _safe_log_event(self, event_type: str, status: str, details: str) -> None:
        try:
            self._log_event(event_type, status, details)
        except Exception:
            logger.warning("Failed to record %s %s event", event_type, status, exc_info=True)

    def _log_event(self, event_type: str, status: str, details: str) -> None:
        ts = self._clock.now_utc()
        self._db.execute(
            """
            INSERT INTO ledger_event_log (
                event_ts_utc, event_type, status, account, details, row_hash
            ) VALUES (
                :event_ts_utc, :event_type, :status, :account, :details, :row_hash
            )
            """,
            {
                "event_ts_utc": ts,
                "event_type": event_type,
                "status": status,
                "account": self._config.hot_wallet_account,
                "details": details,
                "row_hash": stable_hash(("ledger_event_log", event_type, status, utc_iso(ts), details)),
            },
        )

    def _read_lock_payload(self) -> Mapping[str, Any] | None:
        try:
            payload = json.loads(self._lock_file_path.read_text(encoding="utf-8"))
        except (OSError, ValueError):
            return None
        return payload if isinstance(payload, dict) else None

    def _lock_is_stale(self, payload: Mapping[str, Any], now_utc: datetime) -> bool:
        heartbeat = parse_utc(payload.get("heartbeat_at_utc"))
        if heartbeat is None:
            return True
        return (now_utc - heartbeat).total_seconds() > self._config.daemon_lock_stale_seconds

    def _lock_payload(self) -> dict[str, Any]:
        return {
            "owner": self._lock_owner,
            "pid": os.getpid(),
            "account": self._config.hot_wallet_account,
            "heartbeat_at_utc": utc_iso(self._clock.now_utc()),
        }

    def _create_lock_file(self) -> None:
        fd = os.open(self._lock_file_path, os.O_CREAT | os.O_EXCL | os.O_WRONLY)
        with os.fdopen(fd, "w", encoding="utf-8") as handle:
            json.dump(self._lock_payload(), handle, sort_keys=True)

    def acquire_exclusive_lock(self) -> None:
        """Create the per-account lock file, taking it over when its heartbeat is stale."""
        if self._lock_held:
            return
        self._lock_file_path.parent.mkdir(parents=True, exist_ok=True)
        try:
            self._create_lock_file()
        except FileExistsError:
            existing = self._read_lock_payload()
            if existing is not None and not self._lock_is_stale(existing, self._clock.now_utc()):
                owner = existing.get("owner", "unknown")
                raise RuntimeError(f"Ledger scanner lock is already held by owner={owner}") from None
            logger.warning("Taking over stale ledger scanner lock at %s", self._lock_file_path)
            self._lock_file_path.unlink(missing_ok=True)
            self._create_lock_file()
        self._lock_held = True
        self._safe_log_event("DAEMON_LOCK", "ACQUIRED", f"path={self._lock_file_path}")

    def _refresh_lock_heartbeat(self) -> None:
        if not self._lock_held:
            return
        payload = self._read_lock_payload()
        if payload is None or payload.get("owner") != self._lock_owner:
            raise RuntimeError("Ledger scanner lock was taken over by another owner")
        temp_path = self._lock_file_path.with_suffix(".tmp")
        temp_path.write_text(json.dumps(self._lock_payload(), sort_keys=True), encoding="utf-8")
        os.replace(temp_path, self._lock_file_path)

    def release_exclusive_lock(self) -> None:
        if not self._lock_held:
            return
        self._lock_held = False
        payload = self._read_lock_payload()
        if payload is not None and payload.get("owner") == self._lock_owner:
            self._lock_file_path.unlink(missing_ok=True)
        self._safe_log_event("DAEMON_LOCK", "RELEASED", f"path={self._lock_file_path}")

    def tick(self) -> TickResult:
        """Run intake, then the expiry sweep bounded by the same irreversible block."""
        last_irreversible = self._scanner.advance()
        expired = self._scanner.sweep_expired(last_irreversible)
        checkpoint = self._params.get()
        if expired:
            logger.info("Marked %d expired operation(s) as failed", expired)
        return TickResult(
            last_irreversible_block_num=last_irreversible,
            next_action_sequence=checkpoint.next_action_sequence,
            expired_operations=expired,
        )

    def run_once(self) -> TickResult:
        """Execute one tick under the lock; errors propagate to the caller."""
        self.acquire_exclusive_lock()
        try:
            result = self.tick()
            self._refresh_lock_heartbeat()
            return result
        finally:
            self.release_exclusive_lock()

    def _guarded_tick(self) -> TickResult | None:
        try:
            return self.tick()
        except Exception as exc:
            checkpoint: Checkpoint | None
            try:
                checkpoint = self._params.get()
            except Exception:
                checkpoint = None
            seq = checkpoint.next_action_sequence if checkpoint is not None else None
            logger.exception(
                "Scanner tick failed for account=%s seq=%s: %s",
                self._config.hot_wallet_account,
                seq,
                type(exc).__name__,
                extra={"account": self._config.hot_wallet_account, "seq": seq},
            )
            self._safe_log_event("TICK", "FAILED", f"seq={seq},error={type(exc).__name__}:{exc}")
            return None

    def daemon_loop(self, *, max_cycles: int | None = None) -> None:
        """Tick every ``loop_seconds`` until interrupted or ``max_cycles`` ticks ran.

        A failed tick is logged and the loop carries on with the next one.
        """
        self.acquire_exclusive_lock()
        self._safe_log_event("DAEMON", "STARTED", f"max_cycles={max_cycles if max_cycles is not None else 'infinite'}")
        cycles = 0
        try:
            while True:
                self._guarded_tick()
                self._refresh_lock_heartbeat()
                cycles += 1
                if max_cycles is not None and cycles >= max_cycles:
                    return
                time.sleep(self._config.loop_seconds)
        finally:
            self._safe_log_event("DAEMON", "STOPPED", f"completed_cycles={cycles}")
            self.release_exclusive_lock()

    def get_status(self) -> DaemonStatus:
        checkpoint = self._params.get()
        payload = self._read_lock_payload()
        return DaemonStatus(
            name=APP_NAME,
            version=APP_VERSION,
            account=self._config.hot_wallet_account,
            next_action_sequence=checkpoint.next_action_sequence,
            last_processed_irreversible_block_time_utc=utc_iso(checkpoint.last_processed_irreversible_block_time_utc),
            lock_held=payload is not None and not self._lock_is_stale(payload, self._clock.now_utc()),
        )
