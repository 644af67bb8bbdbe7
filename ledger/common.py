"""Shared helpers for the hot-wallet ledger engine."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timezone
from decimal import Decimal
from hashlib import sha256
import re
from typing import Any, Iterable, Mapping, Optional, Protocol, Sequence

APP_NAME = "steem-hotwallet-ledger"
APP_VERSION = "1.0.0"

ADDRESS_SEPARATOR = "$"

# Ledger rows store chain block numbers scaled by this factor.
LEDGER_BLOCK_MULTIPLIER = 10

EPOCH_UTC = datetime(1970, 1, 1, tzinfo=timezone.utc)

_ACCOUNT_SEGMENT_RE = re.compile(r"^[a-z][a-z0-9-]*[a-z0-9]$")
_MEMO_RE = re.compile(r"^\S+$")


class LedgerDatabase(Protocol):
    """Minimal DB protocol used by ledger stores."""

    def fetch_one(self, sql: str, params: Mapping[str, Any]) -> Optional[Mapping[str, Any]]:
        """Fetch one row."""

    def fetch_all(self, sql: str, params: Mapping[str, Any]) -> Sequence[Mapping[str, Any]]:
        """Fetch rows."""

    def execute(self, sql: str, params: Mapping[str, Any]) -> None:
        """Execute mutation statement."""


@dataclass(frozen=True)
class LedgerClock:
    """Injectable UTC clock for deterministic testing."""

    def now_utc(self) -> datetime:
        """Return current UTC timestamp."""
        return datetime.now(tz=timezone.utc)


def utc_iso(ts: datetime) -> str:
    """Normalize timestamp to UTC RFC3339 string."""
    return ts.astimezone(timezone.utc).isoformat().replace("+00:00", "Z")


def parse_utc(value: Any) -> datetime | None:
    """Parse chain or DB timestamps; naive values are taken as UTC."""
    if value is None:
        return None
    if isinstance(value, datetime):
        ts = value
    else:
        text = str(value).strip()
        if not text:
            return None
        ts = datetime.fromisoformat(text.replace("Z", "+00:00"))
    if ts.tzinfo is None:
        ts = ts.replace(tzinfo=timezone.utc)
    return ts.astimezone(timezone.utc)


def to_decimal(value: Any) -> Decimal:
    if value is None:
        return Decimal("0")
    if isinstance(value, Decimal):
        return value
    return Decimal(str(value))


def stable_hash(tokens: Iterable[Any]) -> str:
    """Compute a stable SHA256 hash over pipe-joined tokens."""
    preimage = "|".join("" if token is None else str(token) for token in tokens)
    return sha256(preimage.encode("utf-8")).hexdigest()


def is_steem_account(name: str) -> bool:
    """Validate a Steem account name (3-16 chars, dot-separated segments)."""
    if not 3 <= len(name) <= 16:
        return False
    for segment in name.split("."):
        if len(segment) < 3 or "--" in segment or not _ACCOUNT_SEGMENT_RE.match(segment):
            return False
    return True


def is_steem_address(address: str) -> bool:
    """Validate a wallet address: an account name with an optional memo suffix.

    ``alice`` and ``alice$42`` are valid; the memo part must be non-empty, must not
    contain whitespace and must not contain another separator.
    """
    if not address:
        return False
    account, sep, memo = address.partition(ADDRESS_SEPARATOR)
    if not is_steem_account(account):
        return False
    if not sep:
        return True
    return bool(_MEMO_RE.match(memo)) and ADDRESS_SEPARATOR not in memo
