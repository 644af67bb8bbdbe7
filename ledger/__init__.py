"""Hot-wallet ledger reconciliation engine package."""

from ledger.asset_directory import AssetDirectory, ResolvedAsset
from ledger.balance_ledger import BalanceAggregate, BalanceLedger, BalancePage, InvalidContinuationError
from ledger.chain_contract import BlockHeader, ChainAction, ChainClient, GlobalProperties, TransferPayload
from ledger.classifier import Classification, ClassificationKind, TransferClassifier
from ledger.daemon import DaemonStatus, ScannerDaemon, TickResult
from ledger.history_ledger import HistoryEntry, HistoryLedger
from ledger.ledger_config import LedgerConfig, load_ledger_config
from ledger.operation_ledger import ErrorCode, Operation, OperationAction, OperationLedger
from ledger.params_store import Checkpoint, ParamsStore
from ledger.scanner import ChainScanner
from ledger.steem_client import ChainClientError, SteemChainClient

__all__ = [
    "AssetDirectory",
    "BalanceAggregate",
    "BalanceLedger",
    "BalancePage",
    "BlockHeader",
    "ChainAction",
    "ChainClient",
    "ChainClientError",
    "ChainScanner",
    "Checkpoint",
    "Classification",
    "ClassificationKind",
    "DaemonStatus",
    "ErrorCode",
    "GlobalProperties",
    "HistoryEntry",
    "HistoryLedger",
    "InvalidContinuationError",
    "LedgerConfig",
    "Operation",
    "OperationAction",
    "OperationLedger",
    "ParamsStore",
    "ResolvedAsset",
    "ScannerDaemon",
    "SteemChainClient",
    "TickResult",
    "TransferClassifier",
    "TransferPayload",
    "load_ledger_config",
]
