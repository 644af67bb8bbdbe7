from __future__ import annotations

from datetime import datetime, timezone
from decimal import Decimal

from ledger.asset_directory import AssetDirectory, ResolvedAsset
from ledger.common import EPOCH_UTC
from ledger.operation_ledger import ErrorCode, OperationLedger
from ledger.params_store import PARAMS_KEY, ParamsStore
from tests.ledger.utils import FakeDB


def test_params_store_defaults_and_merge_writes() -> None:
    db = FakeDB()
    store = ParamsStore(db)

    checkpoint = store.get()
    assert checkpoint.next_action_sequence == 0
    assert checkpoint.last_processed_irreversible_block_time_utc == EPOCH_UTC

    db.set_one(
        "FROM ledger_params",
        {"next_action_sequence": 17, "last_processed_irreversible_block_time_utc": "2026-01-01T00:00:00Z"},
    )
    checkpoint = store.get()
    assert checkpoint.next_action_sequence == 17
    assert checkpoint.last_processed_irreversible_block_time_utc == datetime(2026, 1, 1, tzinfo=timezone.utc)

    store.upsert()
    assert db.executed == []

    store.upsert(next_action_sequence=18)
    sql, params = db.executed[-1]
    assert "ON CONFLICT (params_key) DO UPDATE" in sql
    assert "COALESCE" in sql
    assert params == {
        "params_key": PARAMS_KEY,
        "next_action_sequence": 18,
        "last_processed_irreversible_block_time_utc": None,
    }


def test_params_store_partial_row_falls_back_to_defaults() -> None:
    db = FakeDB()
    db.set_one(
        "FROM ledger_params",
        {"next_action_sequence": None, "last_processed_irreversible_block_time_utc": None},
    )
    checkpoint = ParamsStore(db).get()
    assert checkpoint.next_action_sequence == 0
    assert checkpoint.last_processed_irreversible_block_time_utc == EPOCH_UTC


def test_asset_directory_resolution_and_base_units() -> None:
    db = FakeDB()
    directory = AssetDirectory(db)
    assert directory.resolve("GOLOS") is None

    db.set_one("FROM ledger_asset", {"asset_id": "steem", "symbol": "STEEM", "accuracy": 3})
    asset = directory.resolve("STEEM")
    assert asset == ResolvedAsset(asset_id="steem", symbol="STEEM", accuracy=3)
    assert db.queries[-1][1] == {"symbol": "STEEM"}

    assert asset.multiplier == 1000
    assert asset.to_base_unit(Decimal("10.5")) == 10500
    assert asset.to_base_unit(Decimal("0.0005")) == 1
    assert asset.to_base_unit(Decimal("0.0004")) == 0
    assert asset.to_base_unit(Decimal("-0.0005")) == -1


def test_operation_ledger_reads() -> None:
    db = FakeDB()
    ledger = OperationLedger(db)
    assert ledger.get_operation_id_by_tx_id("T1") is None
    assert ledger.get("op1") is None

    db.set_one("WHERE tx_id = :tx_id", {"operation_id": "op1"})
    db.set_one(
        "WHERE operation_id = :operation_id\n",
        {
            "operation_id": "op1",
            "asset_id": "steem",
            "tx_id": "T1",
            "expiry_time_utc": datetime(2026, 1, 1, tzinfo=timezone.utc),
            "completion_time_utc": None,
            "fail_time_utc": None,
            "cancel_time_utc": "2026-01-02T00:00:00Z",
            "error_code": None,
        },
    )
    db.set_all(
        "FROM ledger_operation_action",
        [
            {
                "operation_id": "op1",
                "row_key": "r1",
                "from_address": "hotwallet",
                "to_address": "bob",
                "amount": "1.5",
                "amount_in_base_unit": 1500,
            }
        ],
    )

    assert ledger.get_operation_id_by_tx_id("T1") == "op1"
    operation = ledger.get("op1")
    assert operation is not None
    assert not operation.is_terminal
    assert operation.is_cancelled
    actions = ledger.get_actions("op1")
    assert len(actions) == 1
    assert actions[0].amount == Decimal("1.5")
    assert actions[0].amount_in_base_unit == 1500


def test_operation_ledger_pending_window_and_guarded_transitions() -> None:
    db = FakeDB()
    ledger = OperationLedger(db)
    after = datetime(2026, 1, 1, tzinfo=timezone.utc)
    until = datetime(2026, 1, 2, tzinfo=timezone.utc)
    db.set_all("expiry_time_utc > :after_utc", [{"operation_id": "op1"}, {"operation_id": "op2"}])

    assert ledger.get_pending_ids_by_expiry(after, until) == ["op1", "op2"]
    sql, params = db.queries[-1]
    assert "expiry_time_utc <= :until_utc" in sql
    assert params == {"after_utc": after, "until_utc": until}

    ledger.mark_completed("op1", completion_time_utc=until, block=500, block_time_utc=after)
    ledger.mark_failed(
        "op2",
        fail_time_utc=until,
        error_code=ErrorCode.BUILDING_SHOULD_BE_REPEATED,
        error="Transaction expired",
    )
    for sql, _ in db.executed:
        assert "completion_time_utc IS NULL" in sql
        assert "fail_time_utc IS NULL" in sql
    assert db.executed[0][1]["block"] == 500
    assert db.executed[1][1]["error_code"] == "buildingShouldBeRepeated"
