"""Chain client protocol and normalized account action types."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from typing import Any, Mapping, Optional, Protocol

TRANSFER_OPERATION = "transfer"


@dataclass(frozen=True)
class GlobalProperties:
    """Subset of chain dynamic properties used by the scanner."""

    last_irreversible_block_num: int


@dataclass(frozen=True)
class BlockHeader:
    """Block timestamp surface."""

    block_num: int
    timestamp_utc: datetime


@dataclass(frozen=True)
class TransferPayload:
    """Decoded ``transfer`` operation body."""

    from_account: str
    to_account: str
    amount: str
    memo: str

    @classmethod
    def from_payload(cls, payload: Mapping[str, Any]) -> "TransferPayload":
        return cls(
            from_account=str(payload["from"]),
            to_account=str(payload["to"]),
            amount=str(payload["amount"]),
            memo=str(payload.get("memo") or ""),
        )


@dataclass(frozen=True)
class ChainAction:
    """One entry of the hot-wallet account history."""

    sequence: int
    block: int
    timestamp_utc: datetime
    transaction_id: str
    operation_type: str
    operation_payload: Mapping[str, Any]

    @property
    def is_transfer(self) -> bool:
        return self.operation_type == TRANSFER_OPERATION

    def transfer(self) -> TransferPayload:
        """Return the transfer body; only valid for transfer actions."""
        if not self.is_transfer:
            raise ValueError(f"Action {self.sequence} is a {self.operation_type} operation, not a transfer")
        return TransferPayload.from_payload(self.operation_payload)


class ChainClient(Protocol):
    """Read-only chain surface consumed by the scanner."""

    def get_global_properties(self) -> GlobalProperties:
        """Fetch last irreversible block number."""

    def get_account_action(self, account: str, sequence: int) -> Optional[ChainAction]:
        """Fetch the single action at ``sequence``; None when the stream tip is reached."""

    def get_block(self, block_num: int) -> Optional[BlockHeader]:
        """Fetch block header; None when the block is unknown."""
