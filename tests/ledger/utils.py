"""Ledger test utilities."""

from __future__ import annotations

from dataclasses import replace
from datetime import datetime, timedelta, timezone
from decimal import Decimal
from typing import Any, Mapping, Optional, Sequence

from ledger.asset_directory import ResolvedAsset
from ledger.balance_ledger import BalanceAggregate, balance_entry_id
from ledger.chain_contract import BlockHeader, ChainAction, GlobalProperties
from ledger.common import EPOCH_UTC, LedgerClock
from ledger.history_ledger import HistoryEntry
from ledger.operation_ledger import Operation, OperationAction
from ledger.params_store import Checkpoint

T0 = datetime(2026, 1, 1, tzinfo=timezone.utc)


class FakeDB:
    """Small in-memory DB double for SQL store unit tests."""

    def __init__(self) -> None:
        self.executed: list[tuple[str, dict[str, Any]]] = []
        self.queries: list[tuple[str, dict[str, Any]]] = []
        self.one_responses: dict[str, Mapping[str, Any] | None] = {}
        self.all_responses: dict[str, Sequence[Mapping[str, Any]]] = {}

    def set_one(self, marker: str, value: Mapping[str, Any] | None) -> None:
        self.one_responses[marker] = value

    def set_all(self, marker: str, value: Sequence[Mapping[str, Any]]) -> None:
        self.all_responses[marker] = value

    def fetch_one(self, sql: str, params: Mapping[str, Any]) -> Optional[Mapping[str, Any]]:
        for marker, value in self.one_responses.items():
            if marker in sql:
                self.queries.append((sql, dict(params)))
                return value
        rows = self.fetch_all(sql, params)
        return rows[0] if rows else None

    def fetch_all(self, sql: str, params: Mapping[str, Any]) -> Sequence[Mapping[str, Any]]:
        self.queries.append((sql, dict(params)))
        for marker, value in self.all_responses.items():
            if marker in sql:
                return list(value)
        return []

    def execute(self, sql: str, params: Mapping[str, Any]) -> None:
        self.executed.append((sql, dict(params)))


class FixedClock(LedgerClock):
    def __init__(self, now_ts: datetime = T0) -> None:
        self._now_ts = now_ts

    def now_utc(self) -> datetime:
        return self._now_ts

    def tick(self, seconds: int = 1) -> None:
        self._now_ts = self._now_ts + timedelta(seconds=seconds)


class InMemoryParamsStore:
    """Insert-or-merge checkpoint double."""

    def __init__(self, next_action_sequence: int | None = None) -> None:
        self.next_action_sequence = next_action_sequence
        self.last_time: datetime | None = None
        self.sequence_writes: list[int] = []

    def get(self) -> Checkpoint:
        return Checkpoint(
            next_action_sequence=self.next_action_sequence or 0,
            last_processed_irreversible_block_time_utc=self.last_time or EPOCH_UTC,
        )

    def upsert(
        self,
        *,
        next_action_sequence: int | None = None,
        last_processed_irreversible_block_time_utc: datetime | None = None,
    ) -> None:
        if next_action_sequence is not None:
            self.next_action_sequence = next_action_sequence
            self.sequence_writes.append(next_action_sequence)
        if last_processed_irreversible_block_time_utc is not None:
            self.last_time = last_processed_irreversible_block_time_utc


class InMemoryAssetDirectory:
    def __init__(self, *assets: ResolvedAsset) -> None:
        self._by_symbol = {asset.symbol: asset for asset in assets}

    def resolve(self, symbol: str) -> Optional[ResolvedAsset]:
        return self._by_symbol.get(symbol)


class InMemoryOperationLedger:
    """Operation store double honouring the single-terminal-transition guard."""

    def __init__(self) -> None:
        self.operations: dict[str, Operation] = {}
        self.actions: dict[str, list[OperationAction]] = {}
        self.completion_blocks: dict[str, tuple[int, datetime]] = {}
        self.errors: dict[str, str] = {}
        self.transition_count = 0

    def add(self, operation: Operation, actions: Sequence[OperationAction] = ()) -> None:
        self.operations[operation.operation_id] = operation
        self.actions[operation.operation_id] = list(actions)

    def get_operation_id_by_tx_id(self, tx_id: str) -> Optional[str]:
        for operation in self.operations.values():
            if operation.tx_id == tx_id:
                return operation.operation_id
        return None

    def get(self, operation_id: str) -> Optional[Operation]:
        return self.operations.get(operation_id)

    def get_actions(self, operation_id: str) -> Sequence[OperationAction]:
        return sorted(self.actions.get(operation_id, []), key=lambda action: action.row_key)

    def get_pending_ids_by_expiry(self, after_utc: datetime, until_utc: datetime) -> Sequence[str]:
        return [
            operation.operation_id
            for operation in self.operations.values()
            if operation.expiry_time_utc is not None
            and after_utc < operation.expiry_time_utc <= until_utc
            and not operation.is_terminal
        ]

    def mark_completed(
        self,
        operation_id: str,
        *,
        completion_time_utc: datetime,
        block: int,
        block_time_utc: datetime,
    ) -> None:
        operation = self.operations[operation_id]
        if operation.is_terminal:
            return
        self.operations[operation_id] = replace(operation, completion_time_utc=completion_time_utc)
        self.completion_blocks[operation_id] = (block, block_time_utc)
        self.transition_count += 1

    def mark_failed(self, operation_id: str, *, fail_time_utc: datetime, error_code: str, error: str) -> None:
        operation = self.operations[operation_id]
        if operation.is_terminal:
            return
        self.operations[operation_id] = replace(operation, fail_time_utc=fail_time_utc, error_code=error_code)
        self.errors[operation_id] = error
        self.transition_count += 1


class InMemoryBalanceLedger:
    """Balance entry double keyed by the composite balance id."""

    def __init__(self, *, fail_after_writes: int | None = None) -> None:
        self.entries: dict[str, dict[str, Any]] = {}
        self.write_count = 0
        self.fail_after_writes = fail_after_writes

    def upsert(
        self,
        address: str,
        asset_id: str,
        operation_or_tx_id: str,
        amount: Decimal,
        amount_in_base_unit: int,
        block: int,
    ) -> None:
        if self.fail_after_writes is not None and self.write_count >= self.fail_after_writes:
            raise ConnectionError("database went away")
        self.write_count += 1
        self.entries[balance_entry_id(address, asset_id, operation_or_tx_id)] = {
            "address": address,
            "asset_id": asset_id,
            "amount": amount,
            "amount_in_base_unit": amount_in_base_unit,
            "block": block,
        }

    def get_balance(self, address: str, asset_id: str) -> Optional[BalanceAggregate]:
        rows = [
            row for row in self.entries.values() if row["address"] == address and row["asset_id"] == asset_id
        ]
        if not rows:
            return None
        return BalanceAggregate(
            address=address,
            asset_id=asset_id,
            amount=sum((row["amount"] for row in rows), Decimal("0")),
            amount_in_base_unit=sum(row["amount_in_base_unit"] for row in rows),
            block=max(row["block"] for row in rows),
        )


class InMemoryHistoryLedger:
    def __init__(self) -> None:
        self.rows: dict[tuple[str, str], HistoryEntry] = {}

    def upsert(self, entry: HistoryEntry) -> None:
        self.rows[(entry.tx_id, entry.action_id)] = entry


class FakeChain:
    """Scripted chain: account history, irreversible block and block headers."""

    def __init__(self, *, last_irreversible_block_num: int = 100) -> None:
        self.last_irreversible_block_num = last_irreversible_block_num
        self.actions: dict[int, ChainAction] = {}
        self.blocks: dict[int, BlockHeader] = {}
        self.requested_sequences: list[int] = []
        self.fail_on_sequence: int | None = None

    def add_action(self, action: ChainAction) -> None:
        self.actions[action.sequence] = action

    def add_block(self, block_num: int, timestamp_utc: datetime) -> None:
        self.blocks[block_num] = BlockHeader(block_num=block_num, timestamp_utc=timestamp_utc)

    def get_global_properties(self) -> GlobalProperties:
        return GlobalProperties(last_irreversible_block_num=self.last_irreversible_block_num)

    def get_account_action(self, account: str, sequence: int) -> Optional[ChainAction]:
        self.requested_sequences.append(sequence)
        if self.fail_on_sequence == sequence:
            raise TimeoutError(f"node timed out at {sequence}")
        return self.actions.get(sequence)

    def get_block(self, block_num: int) -> Optional[BlockHeader]:
        return self.blocks.get(block_num)


def transfer_action(
    sequence: int,
    *,
    block: int,
    tx_id: str,
    from_account: str,
    to_account: str,
    amount: str,
    memo: str = "",
    timestamp_utc: datetime = T0,
) -> ChainAction:
    return ChainAction(
        sequence=sequence,
        block=block,
        timestamp_utc=timestamp_utc,
        transaction_id=tx_id,
        operation_type="transfer",
        operation_payload={"from": from_account, "to": to_account, "amount": amount, "memo": memo},
    )


def pending_operation(
    operation_id: str,
    *,
    tx_id: str | None,
    asset_id: str = "steem",
    expiry_time_utc: datetime | None = None,
) -> Operation:
    return Operation(
        operation_id=operation_id,
        asset_id=asset_id,
        tx_id=tx_id,
        expiry_time_utc=expiry_time_utc,
        completion_time_utc=None,
        fail_time_utc=None,
        cancel_time_utc=None,
    )


STEEM = ResolvedAsset(asset_id="steem", symbol="STEEM", accuracy=3)
SBD = ResolvedAsset(asset_id="sbd", symbol="SBD", accuracy=3)
