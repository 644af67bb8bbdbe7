"""Sequential-cursor hot-wallet scanner and operation expiry sweep."""

from __future__ import annotations

import logging
from decimal import Decimal

from ledger.asset_directory import AssetDirectory
from ledger.balance_ledger import BalanceLedger
from ledger.chain_contract import ChainAction, ChainClient
from ledger.classifier import Classification, ClassificationKind, TransferClassifier
from ledger.common import LEDGER_BLOCK_MULTIPLIER, LedgerClock
from ledger.history_ledger import HistoryEntry, HistoryLedger
from ledger.operation_ledger import ErrorCode, OperationLedger
from ledger.params_store import ParamsStore

logger = logging.getLogger(__name__)

EXPIRED_ERROR_MESSAGE = "Transaction expired"


class ChainScanner:
    """Applies irreversible hot-wallet actions to the ledgers exactly once.

    Every action is applied with idempotent writes and the checkpoint moves past
    it only afterwards, so a failure at any point replays the same action on the
    next tick without duplicating its economic effect.
    """

    def __init__(
        self,
        *,
        chain: ChainClient,
        account: str,
        params: ParamsStore,
        operations: OperationLedger,
        balances: BalanceLedger,
        history: HistoryLedger,
        assets: AssetDirectory,
        clock: LedgerClock | None = None,
    ) -> None:
        self._chain = chain
        self._account = account
        self._params = params
        self._operations = operations
        self._balances = balances
        self._history = history
        self._classifier = TransferClassifier(operations=operations, assets=assets)
        self._clock = clock or LedgerClock()

    @property
    def account(self) -> str:
        return self._account

    def advance(self) -> int:
        """Process irreversible actions from the checkpoint; return the irreversible block number."""
        checkpoint = self._params.get()
        properties = self._chain.get_global_properties()
        last_irreversible = properties.last_irreversible_block_num
        sequence = checkpoint.next_action_sequence

        while True:
            action = self._chain.get_account_action(self._account, sequence)
            if action is None or action.block > last_irreversible:
                break

            self._apply(action)

            sequence += 1
            self._params.upsert(next_action_sequence=sequence)

        return last_irreversible

    def _apply(self, action: ChainAction) -> None:
        context = {"account": self._account, "seq": action.sequence, "tx_id": action.transaction_id}
        if not action.is_transfer:
            logger.info("%s action skipped", action.operation_type, extra=context)
            return
        logger.info("%s action detected", action.operation_type, extra=context)

        classification = self._classifier.classify(action.transaction_id, action.transfer())
        if classification.kind is ClassificationKind.INTERNAL_PENDING:
            self._apply_internal(action, classification)
        elif classification.kind is ClassificationKind.EXTERNAL:
            self._apply_external(action, classification)
        elif classification.kind is ClassificationKind.INTERNAL_COMPLETED:
            operation = classification.operation
            logger.info(
                "Operation %s already %s, transfer ignored",
                operation.operation_id if operation else None,
                "failed" if operation is not None and operation.is_failed else "completed",
                extra=context,
            )
        else:
            logger.warning("%s", classification.reason, extra=context)

    def _apply_internal(self, action: ChainAction, classification: Classification) -> None:
        operation = classification.operation
        assert operation is not None
        block = action.block * LEDGER_BLOCK_MULTIPLIER

        for planned in classification.actions:
            self._record_balance_change(
                planned.from_address,
                operation.asset_id,
                operation.operation_id,
                -planned.amount,
                -planned.amount_in_base_unit,
                block,
                action,
            )
            self._record_balance_change(
                planned.to_address,
                operation.asset_id,
                operation.operation_id,
                planned.amount,
                planned.amount_in_base_unit,
                block,
                action,
            )
            self._history.upsert(
                HistoryEntry(
                    from_address=planned.from_address,
                    to_address=planned.to_address,
                    asset_id=operation.asset_id,
                    amount=planned.amount,
                    amount_in_base_unit=planned.amount_in_base_unit,
                    block=block,
                    block_time_utc=action.timestamp_utc,
                    tx_id=action.transaction_id,
                    action_id=planned.row_key,
                    operation_id=operation.operation_id,
                )
            )

        self._operations.mark_completed(
            operation.operation_id,
            completion_time_utc=self._clock.now_utc(),
            block=block,
            block_time_utc=action.timestamp_utc,
        )
        logger.info(
            "Operation %s completed",
            operation.operation_id,
            extra={"account": self._account, "seq": action.sequence, "tx_id": action.transaction_id},
        )

    def _apply_external(self, action: ChainAction, classification: Classification) -> None:
        asset = classification.asset
        assert asset is not None and classification.amount is not None
        assert classification.amount_in_base_unit is not None
        assert classification.from_address is not None and classification.to_address is not None
        block = action.block * LEDGER_BLOCK_MULTIPLIER

        self._history.upsert(
            HistoryEntry(
                from_address=classification.from_address,
                to_address=classification.to_address,
                asset_id=asset.asset_id,
                amount=classification.amount,
                amount_in_base_unit=classification.amount_in_base_unit,
                block=block,
                block_time_utc=action.timestamp_utc,
                tx_id=action.transaction_id,
                action_id=str(action.sequence),
                operation_id=None,
            )
        )
        logger.info(
            "Transfer recorded: %s %s from %s to %s",
            classification.amount,
            asset.symbol,
            classification.from_address,
            classification.to_address,
            extra={"account": self._account, "seq": action.sequence, "tx_id": action.transaction_id},
        )

        self._record_balance_change(
            classification.from_address,
            asset.asset_id,
            action.transaction_id,
            -classification.amount,
            -classification.amount_in_base_unit,
            block,
            action,
        )
        self._record_balance_change(
            classification.to_address,
            asset.asset_id,
            action.transaction_id,
            classification.amount,
            classification.amount_in_base_unit,
            block,
            action,
        )

    def _record_balance_change(
        self,
        address: str,
        asset_id: str,
        operation_or_tx_id: str,
        amount: Decimal,
        amount_in_base_unit: int,
        block: int,
        action: ChainAction,
    ) -> None:
        self._balances.upsert(address, asset_id, operation_or_tx_id, amount, amount_in_base_unit, block)
        logger.debug(
            "Balance change recorded: %s %s %s",
            address,
            amount,
            asset_id,
            extra={"account": self._account, "seq": action.sequence, "tx_id": action.transaction_id},
        )

    def sweep_expired(self, last_irreversible_block_num: int) -> int:
        """Fail pending operations that expired before the given irreversible block.

        The lower bound is the previously stored watermark, never a freshly fetched
        irreversible time, so operations confirmed by the preceding intake pass are
        already completed when they are examined here. Returns the number failed.
        """
        checkpoint = self._params.get()
        previous_time = checkpoint.last_processed_irreversible_block_time_utc
        block = self._chain.get_block(last_irreversible_block_num)
        if block is None:
            raise RuntimeError(f"Irreversible block {last_irreversible_block_num} is not available")
        current_time = block.timestamp_utc

        failed = 0
        for operation_id in self._operations.get_pending_ids_by_expiry(previous_time, current_time):
            operation = self._operations.get(operation_id)
            if operation is None or operation.is_completed or operation.is_failed:
                continue
            logger.warning(
                "%s: operation %s",
                EXPIRED_ERROR_MESSAGE,
                operation_id,
                extra={"account": self._account, "operation_id": operation_id},
            )
            self._operations.mark_failed(
                operation_id,
                fail_time_utc=self._clock.now_utc(),
                error_code=ErrorCode.BUILDING_SHOULD_BE_REPEATED,
                error=EXPIRED_ERROR_MESSAGE,
            )
            failed += 1

        self._params.upsert(last_processed_irreversible_block_time_utc=current_time)
        return failed
