"""Local journal of withdrawal flows."""

import sqlite3
import logging
from dataclasses import dataclass
from typing import Optional, List
from pathlib import Path
import asyncio

logger = logging.getLogger(__name__)


@dataclass
class JournalEntry:
    """A withdrawal as last recorded."""
    owner: str
    asset: str
    nonce: int
    amount: int
    state: str
    initiation_tx: Optional[str] = None
    finalization_tx: Optional[str] = None
    error: Optional[str] = None
    updated_at: Optional[str] = None


def _entry(row: sqlite3.Row) -> JournalEntry:
    return JournalEntry(
        owner=row["owner"],
        asset=row["asset"],
        nonce=row["nonce"],
        amount=int(row["amount"]),
        state=row["state"],
        initiation_tx=row["initiation_tx"],
        finalization_tx=row["finalization_tx"],
        error=row["error"],
        updated_at=row["updated_at"],
    )


class WithdrawalJournal:
    """SQLite record of withdrawals, keyed by owner and nonce.

    The chains stay authoritative; the journal only remembers which nonce a
    process was waiting on so ``recover()`` can be pointed at it after a
    restart.
    """

    def __init__(self, db_path: str = "withdrawals.db"):
        """Initialize the journal.

        Args:
            db_path: Path to SQLite database file
        """
        self.db_path = Path(db_path)
        self.conn: Optional[sqlite3.Connection] = None
        logger.info(f"Initialized withdrawal journal at {db_path}")

    async def start(self) -> None:
        """Open the database and create tables."""
        await asyncio.get_event_loop().run_in_executor(None, self._init_db)
        logger.info("Withdrawal journal started")

    def _init_db(self) -> None:
        self.conn = sqlite3.connect(str(self.db_path), check_same_thread=False)
        self.conn.row_factory = sqlite3.Row

        # Amounts are uint256 and overflow INTEGER, so they are kept as text.
        self.conn.executescript("""
            CREATE TABLE IF NOT EXISTS withdrawals (
                owner TEXT NOT NULL,
                nonce INTEGER NOT NULL,
                asset TEXT NOT NULL,
                amount TEXT NOT NULL,
                state TEXT NOT NULL,
                initiation_tx TEXT,
                finalization_tx TEXT,
                error TEXT,
                updated_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP,
                PRIMARY KEY (owner, nonce)
            );

            CREATE INDEX IF NOT EXISTS idx_withdrawal_state
                ON withdrawals(state);
        """)
        self.conn.commit()

    async def stop(self) -> None:
        """Close the database connection."""
        if self.conn:
            await asyncio.get_event_loop().run_in_executor(None, self.conn.close)
            self.conn = None
        logger.info("Withdrawal journal stopped")

    async def record(self, flow) -> None:
        """Insert or update the entry for a withdrawal flow.

        Args:
            flow: WithdrawalFlow with a known nonce
        """
        initiation_tx = flow.initiation.tx_hash if flow.initiation else None
        finalization_tx = flow.finalization.tx_hash if flow.finalization else None

        def _save():
            self.conn.execute(
                """INSERT INTO withdrawals
                   (owner, nonce, asset, amount, state, initiation_tx, finalization_tx, error)
                   VALUES (?, ?, ?, ?, ?, ?, ?, ?)
                   ON CONFLICT (owner, nonce) DO UPDATE SET
                       asset = excluded.asset,
                       amount = excluded.amount,
                       state = excluded.state,
                       initiation_tx = COALESCE(excluded.initiation_tx, withdrawals.initiation_tx),
                       finalization_tx = COALESCE(excluded.finalization_tx, withdrawals.finalization_tx),
                       error = excluded.error,
                       updated_at = CURRENT_TIMESTAMP""",
                (
                    str(flow.owner),
                    flow.nonce,
                    flow.asset.symbol,
                    str(flow.amount),
                    flow.state.value,
                    initiation_tx,
                    finalization_tx,
                    flow.error,
                )
            )
            self.conn.commit()

        await asyncio.get_event_loop().run_in_executor(None, _save)
        logger.debug(f"Recorded withdrawal nonce {flow.nonce} for {flow.owner} as {flow.state.value}")

    async def get(self, owner: str, nonce: int) -> Optional[JournalEntry]:
        def _get():
            cursor = self.conn.execute(
                "SELECT * FROM withdrawals WHERE owner = ? AND nonce = ?",
                (owner, nonce)
            )
            row = cursor.fetchone()
            return _entry(row) if row else None

        return await asyncio.get_event_loop().run_in_executor(None, _get)

    async def get_pending_nonce(self, owner: str, asset: str) -> Optional[int]:
        """Get the nonce of the latest unfinished withdrawal of an asset.

        Args:
            owner: Owner address string
            asset: Asset symbol

        Returns:
            The nonce or None
        """
        def _get():
            cursor = self.conn.execute(
                """SELECT nonce FROM withdrawals
                   WHERE owner = ? AND asset = ? AND state = 'pending'
                   ORDER BY nonce DESC LIMIT 1""",
                (owner, asset)
            )
            row = cursor.fetchone()
            return row["nonce"] if row else None

        return await asyncio.get_event_loop().run_in_executor(None, _get)

    async def list_withdrawals(self, owner: Optional[str] = None, limit: int = 50) -> List[JournalEntry]:
        """List recorded withdrawals, newest nonce first."""
        def _list():
            if owner is None:
                cursor = self.conn.execute(
                    "SELECT * FROM withdrawals ORDER BY nonce DESC LIMIT ?",
                    (limit,)
                )
            else:
                cursor = self.conn.execute(
                    "SELECT * FROM withdrawals WHERE owner = ? ORDER BY nonce DESC LIMIT ?",
                    (owner, limit)
                )
            return [_entry(row) for row in cursor.fetchall()]

        return await asyncio.get_event_loop().run_in_executor(None, _list)
