"""Steem appbase JSON-RPC adapter implementing the chain client protocol."""

from __future__ import annotations

import itertools
import json
from typing import Any, Callable, Optional, Sequence
from urllib.error import HTTPError, URLError
from urllib.request import Request, urlopen

from ledger.chain_contract import BlockHeader, ChainAction, GlobalProperties
from ledger.common import parse_utc


class ChainClientError(RuntimeError):
    """Raised when the chain node cannot serve a request."""


class SteemChainClient:
    """Read-only Steem node adapter with bounded retries."""

    def __init__(
        self,
        *,
        node_url: str,
        timeout_seconds: float = 20.0,
        max_attempts: int = 3,
        requester: Optional[Callable[[str, Sequence[Any]], Any]] = None,
    ) -> None:
        self._node_url = node_url.rstrip("/")
        self._timeout_seconds = timeout_seconds
        self._max_attempts = max(max_attempts, 1)
        self._requester = requester
        self._ids = itertools.count(1)
        self._call_count = 0

    @property
    def call_count(self) -> int:
        return self._call_count

    def _call(self, method: str, params: Sequence[Any]) -> Any:
        self._call_count += 1
        if self._requester is not None:
            return self._requester(method, params)

        body = json.dumps(
            {"jsonrpc": "2.0", "id": next(self._ids), "method": method, "params": list(params)}
        ).encode("utf-8")
        request = Request(
            url=self._node_url,
            data=body,
            headers={"Content-Type": "application/json"},
            method="POST",
        )

        last_error: Exception | None = None
        for _ in range(self._max_attempts):
            try:
                with urlopen(request, timeout=self._timeout_seconds) as response:
                    payload = json.loads(response.read().decode("utf-8"))
            except (HTTPError, URLError, TimeoutError) as exc:
                last_error = exc
                continue
            if payload.get("error"):
                error = payload["error"]
                raise ChainClientError(f"{method} failed: {error.get('message', error)}")
            return payload.get("result")

        if last_error is None:
            raise ChainClientError(f"{method} failed without an exception")
        raise ChainClientError(f"{method} failed after retries: {last_error}") from last_error

    def get_global_properties(self) -> GlobalProperties:
        result = self._call("condenser_api.get_dynamic_global_properties", [])
        if not result:
            raise ChainClientError("Empty dynamic global properties")
        return GlobalProperties(last_irreversible_block_num=int(result["last_irreversible_block_num"]))

    def get_account_action(self, account: str, sequence: int) -> Optional[ChainAction]:
        result = self._call("condenser_api.get_account_history", [account, sequence, 0])
        if not result:
            return None
        # The node answers with the latest entry when sequence is past the tip.
        entry_seq, entry = result[0]
        if int(entry_seq) != sequence or not entry:
            return None
        op_type, op_payload = entry["op"]
        return ChainAction(
            sequence=sequence,
            block=int(entry["block"]),
            timestamp_utc=parse_utc(entry["timestamp"]),
            transaction_id=str(entry["trx_id"]),
            operation_type=str(op_type),
            operation_payload=dict(op_payload),
        )

    def get_block(self, block_num: int) -> Optional[BlockHeader]:
        result = self._call("condenser_api.get_block", [block_num])
        if not result:
            return None
        return BlockHeader(block_num=block_num, timestamp_utc=parse_utc(result["timestamp"]))
