"""Classification of confirmed transfers into internal and external paths."""

from __future__ import annotations

from dataclasses import dataclass, field
from decimal import Decimal, InvalidOperation
import enum
from typing import Sequence

from ledger.asset_directory import AssetDirectory, ResolvedAsset
from ledger.chain_contract import TransferPayload
from ledger.common import ADDRESS_SEPARATOR, is_steem_address
from ledger.operation_ledger import Operation, OperationAction, OperationLedger


class ClassificationKind(enum.Enum):
    INTERNAL_COMPLETED = "INTERNAL_COMPLETED"
    INTERNAL_PENDING = "INTERNAL_PENDING"
    EXTERNAL = "EXTERNAL"
    UNTRACKED = "UNTRACKED"
    INVALID = "INVALID"


@dataclass(frozen=True)
class Classification:
    """Outcome of classifying one transfer; only the fields of its kind are set."""

    kind: ClassificationKind
    operation: Operation | None = None
    actions: Sequence[OperationAction] = field(default_factory=tuple)
    asset: ResolvedAsset | None = None
    amount: Decimal | None = None
    amount_in_base_unit: int | None = None
    from_address: str | None = None
    to_address: str | None = None
    reason: str | None = None


def parse_transfer_amount(amount: str) -> tuple[Decimal, str]:
    """Split a chain amount such as ``"10.500 STEEM"`` into value and symbol."""
    parts = amount.strip().split(" ", 1)
    if len(parts) != 2 or not parts[1].strip():
        raise ValueError(f"Malformed transfer amount: {amount!r}")
    try:
        value = Decimal(parts[0])
    except InvalidOperation as exc:
        raise ValueError(f"Malformed transfer amount: {amount!r}") from exc
    if not value.is_finite():
        raise ValueError(f"Malformed transfer amount: {amount!r}")
    return value, parts[1].strip()


def destination_address(transfer: TransferPayload) -> str:
    """Memos route deposits to sub-accounts of the recipient."""
    if transfer.memo:
        return f"{transfer.to_account}{ADDRESS_SEPARATOR}{transfer.memo}"
    return transfer.to_account


class TransferClassifier:
    """Read-only classifier; never writes to any ledger."""

    def __init__(self, *, operations: OperationLedger, assets: AssetDirectory) -> None:
        self._operations = operations
        self._assets = assets

    def classify(self, tx_id: str, transfer: TransferPayload) -> Classification:
        operation_id = self._operations.get_operation_id_by_tx_id(tx_id)
        if operation_id is not None:
            operation = self._operations.get(operation_id)
            if operation is not None:
                if operation.is_terminal:
                    return Classification(kind=ClassificationKind.INTERNAL_COMPLETED, operation=operation)
                return Classification(
                    kind=ClassificationKind.INTERNAL_PENDING,
                    operation=operation,
                    actions=tuple(self._operations.get_actions(operation_id)),
                )

        try:
            value, symbol = parse_transfer_amount(transfer.amount)
        except ValueError as exc:
            return Classification(kind=ClassificationKind.INVALID, reason=str(exc))

        asset = self._assets.resolve(symbol)
        if asset is None:
            return Classification(kind=ClassificationKind.UNTRACKED, reason=f"Not tracked token {symbol}")

        to_address = destination_address(transfer)
        if not is_steem_address(to_address):
            return Classification(
                kind=ClassificationKind.INVALID,
                to_address=to_address,
                reason=f"Invalid destination address {to_address}",
            )

        return Classification(
            kind=ClassificationKind.EXTERNAL,
            asset=asset,
            amount=value,
            amount_in_base_unit=asset.to_base_unit(value),
            from_address=transfer.from_account,
            to_address=to_address,
        )
