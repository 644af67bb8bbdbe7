"""Initial schema for the Steem hot-wallet ledger."""

from __future__ import annotations

import logging
from collections.abc import Sequence

from alembic import op

logger = logging.getLogger(__name__)

# revision identifiers, used by Alembic.
revision: str = "0001_initial_schema"
down_revision: str | None = None
branch_labels: Sequence[str] | None = None
depends_on: Sequence[str] | None = None


TABLE_DDL: tuple[str, ...] = (
    """
    CREATE TABLE ledger_params (
        params_key TEXT NOT NULL,
        next_action_sequence BIGINT,
        last_processed_irreversible_block_time_utc TIMESTAMPTZ,
        CONSTRAINT pk_ledger_params PRIMARY KEY (params_key),
        CONSTRAINT ck_ledger_params_singleton CHECK (params_key = 'Params'),
        CONSTRAINT ck_ledger_params_sequence_non_negative CHECK (next_action_sequence IS NULL OR next_action_sequence >= 0)
    );
    """,
    """
    CREATE TABLE ledger_asset (
        asset_id TEXT NOT NULL,
        symbol TEXT NOT NULL,
        accuracy SMALLINT NOT NULL,
        CONSTRAINT pk_ledger_asset PRIMARY KEY (asset_id),
        CONSTRAINT uq_ledger_asset_symbol UNIQUE (symbol),
        CONSTRAINT ck_ledger_asset_id_not_blank CHECK (length(btrim(asset_id)) > 0),
        CONSTRAINT ck_ledger_asset_symbol_not_blank CHECK (length(btrim(symbol)) > 0),
        CONSTRAINT ck_ledger_asset_accuracy_range CHECK (accuracy >= 0 AND accuracy <= 18)
    );
    """,
    """
    CREATE TABLE ledger_operation (
        operation_id UUID NOT NULL,
        asset_id TEXT NOT NULL,
        tx_id TEXT,
        expiry_time_utc TIMESTAMPTZ,
        completion_time_utc TIMESTAMPTZ,
        block BIGINT,
        block_time_utc TIMESTAMPTZ,
        fail_time_utc TIMESTAMPTZ,
        error_code TEXT,
        error TEXT,
        cancel_time_utc TIMESTAMPTZ,
        CONSTRAINT pk_ledger_operation PRIMARY KEY (operation_id),
        CONSTRAINT fk_ledger_operation_asset FOREIGN KEY (asset_id)
            REFERENCES ledger_asset (asset_id) ON UPDATE RESTRICT ON DELETE RESTRICT,
        CONSTRAINT ck_ledger_operation_single_terminal_state CHECK (completion_time_utc IS NULL OR fail_time_utc IS NULL)
    );
    """,
    """
    CREATE TABLE ledger_operation_action (
        operation_id UUID NOT NULL,
        row_key TEXT NOT NULL,
        from_address TEXT NOT NULL,
        to_address TEXT NOT NULL,
        amount NUMERIC(38,18) NOT NULL,
        amount_in_base_unit NUMERIC(38,0) NOT NULL,
        CONSTRAINT pk_ledger_operation_action PRIMARY KEY (operation_id, row_key),
        CONSTRAINT fk_ledger_operation_action_operation FOREIGN KEY (operation_id)
            REFERENCES ledger_operation (operation_id) ON UPDATE RESTRICT ON DELETE CASCADE,
        CONSTRAINT ck_ledger_operation_action_amount_pos CHECK (amount > 0),
        CONSTRAINT ck_ledger_operation_action_base_amount_pos CHECK (amount_in_base_unit > 0)
    );
    """,
    """
    CREATE TABLE ledger_balance (
        balance_id TEXT NOT NULL,
        address TEXT NOT NULL,
        asset_id TEXT NOT NULL,
        operation_or_tx_id TEXT NOT NULL,
        amount NUMERIC(38,18) NOT NULL,
        amount_in_base_unit NUMERIC(38,0) NOT NULL,
        block BIGINT NOT NULL,
        is_cancelled BOOLEAN NOT NULL DEFAULT FALSE,
        is_observable BOOLEAN NOT NULL DEFAULT FALSE,
        CONSTRAINT pk_ledger_balance PRIMARY KEY (balance_id)
    );
    """,
    """
    CREATE TABLE ledger_watched_address (
        address TEXT NOT NULL,
        CONSTRAINT pk_ledger_watched_address PRIMARY KEY (address)
    );
    """,
    """
    CREATE TABLE ledger_history (
        tx_id TEXT NOT NULL,
        action_id TEXT NOT NULL,
        from_address TEXT NOT NULL,
        to_address TEXT NOT NULL,
        asset_id TEXT NOT NULL,
        amount NUMERIC(38,18) NOT NULL,
        amount_in_base_unit NUMERIC(38,0) NOT NULL,
        block BIGINT NOT NULL,
        block_time_utc TIMESTAMPTZ NOT NULL,
        operation_id UUID,
        CONSTRAINT pk_ledger_history PRIMARY KEY (tx_id, action_id)
    );
    """,
    """
    CREATE TABLE ledger_event_log (
        event_id BIGINT GENERATED ALWAYS AS IDENTITY,
        event_ts_utc TIMESTAMPTZ NOT NULL,
        event_type TEXT NOT NULL,
        status TEXT NOT NULL,
        account TEXT NOT NULL,
        details TEXT,
        row_hash CHAR(64) NOT NULL,
        CONSTRAINT pk_ledger_event_log PRIMARY KEY (event_id),
        CONSTRAINT ck_ledger_event_log_type_not_blank CHECK (length(btrim(event_type)) > 0)
    );
    """,
)

INDEX_DDL: tuple[str, ...] = (
    "CREATE INDEX idx_ledger_operation_tx_id ON ledger_operation (tx_id);",
    "CREATE INDEX idx_ledger_operation_expiry_time ON ledger_operation (expiry_time_utc);",
    "CREATE INDEX idx_ledger_balance_address_asset ON ledger_balance (address, asset_id);",
    "CREATE INDEX idx_ledger_balance_observable ON ledger_balance (is_observable, is_cancelled);",
    "CREATE INDEX idx_ledger_history_from_address_block ON ledger_history (from_address, block);",
    "CREATE INDEX idx_ledger_history_to_address_block ON ledger_history (to_address, block);",
    "CREATE INDEX idx_ledger_event_log_ts ON ledger_event_log (event_ts_utc DESC);",
)

APPEND_ONLY_DDL: tuple[str, ...] = (
    """
    CREATE OR REPLACE FUNCTION fn_ledger_enforce_append_only()
    RETURNS TRIGGER
    LANGUAGE plpgsql
    AS $$
    BEGIN
        RAISE EXCEPTION 'append-only violation on table %, operation % is not allowed', TG_TABLE_NAME, TG_OP;
    END;
    $$;
    """,
    """
    CREATE TRIGGER trg_ledger_event_log_append_only
    BEFORE UPDATE OR DELETE ON ledger_event_log
    FOR EACH ROW EXECUTE FUNCTION fn_ledger_enforce_append_only();
    """,
)


def _execute_all(statements: Sequence[str]) -> None:
    """Execute an ordered sequence of SQL statements."""

    for statement in statements:
        try:
            op.execute(statement)
        except Exception:
            logger.exception("Migration statement failed.")
            raise


def upgrade() -> None:
    """Apply the initial ledger schema migration."""

    logger.info("Starting initial schema migration upgrade.")
    _execute_all(TABLE_DDL)
    _execute_all(INDEX_DDL)
    _execute_all(APPEND_ONLY_DDL)
    logger.info("Completed initial schema migration upgrade.")


def downgrade() -> None:
    """Revert the initial ledger schema migration."""

    logger.info("Starting initial schema migration downgrade.")
    _execute_all(
        (
            "DROP TRIGGER IF EXISTS trg_ledger_event_log_append_only ON ledger_event_log;",
            "DROP FUNCTION IF EXISTS fn_ledger_enforce_append_only();",
            "DROP TABLE IF EXISTS ledger_event_log;",
            "DROP TABLE IF EXISTS ledger_history;",
            "DROP TABLE IF EXISTS ledger_watched_address;",
            "DROP TABLE IF EXISTS ledger_balance;",
            "DROP TABLE IF EXISTS ledger_operation_action;",
            "DROP TABLE IF EXISTS ledger_operation;",
            "DROP TABLE IF EXISTS ledger_asset;",
            "DROP TABLE IF EXISTS ledger_params;",
        )
    )
    logger.info("Completed initial schema migration downgrade.")
