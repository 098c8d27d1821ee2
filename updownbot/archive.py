"""
Tick archive for later backtesting.

TickRecorder buffers each contract's ticks in memory while it trades and
hands them to SQLiteTickStore, together with the winning side, once the
contract closes.
"""

import logging
import os
import sqlite3
from collections import defaultdict
from dataclasses import dataclass
from typing import Optional

from .types import CoinSymbol, Outcome, PeriodKind, Tick

logger = logging.getLogger(__name__)


@dataclass(slots=True, frozen=True)
class TickRecord:
    """One archived observation."""
    slug: str
    timestamp_ms: int
    up_price: float
    down_price: float
    symbol: str
    period: str
    outcome: Optional[str] = None
    coin_price_bias: Optional[float] = None

    def to_tick(self) -> Tick:
        return Tick(
            timestamp_ms=self.timestamp_ms,
            up_price=self.up_price,
            down_price=self.down_price,
            coin_price_bias=self.coin_price_bias,
        )


class SQLiteTickStore:
    """
    Durable tick storage using SQLite.

    One row per tick; `outcome` is filled in when the contract closes.
    """

    def __init__(self, db_path: str = "data/ticks.db"):
        """
        Initialize the store.

        Args:
            db_path: Path to SQLite database (":memory:" for tests)
        """
        self.db_path = db_path
        self._conn: Optional[sqlite3.Connection] = None

    def init_schema(self) -> None:
        """Open the database and create tables."""
        if self.db_path != ":memory:":
            directory = os.path.dirname(self.db_path)
            if directory:
                os.makedirs(directory, exist_ok=True)

        self._conn = sqlite3.connect(self.db_path)
        self._conn.execute("PRAGMA journal_mode=WAL")
        self._conn.execute("PRAGMA synchronous=NORMAL")

        self._conn.execute("""
            CREATE TABLE IF NOT EXISTS ticks (
                id INTEGER PRIMARY KEY AUTOINCREMENT,
                slug TEXT NOT NULL,
                timestamp_ms INTEGER NOT NULL,
                up_price REAL NOT NULL,
                down_price REAL NOT NULL,
                symbol TEXT NOT NULL,
                period TEXT NOT NULL,
                outcome TEXT,
                coin_price_bias REAL,
                created_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP
            )
        """)
        self._conn.execute("""
            CREATE INDEX IF NOT EXISTS idx_ticks_slug_ts ON ticks(slug, timestamp_ms)
        """)
        self._conn.commit()
        logger.info(f"Tick store initialized at {self.db_path}")

    def _require_conn(self) -> sqlite3.Connection:
        if self._conn is None:
            self.init_schema()
        return self._conn

    def put_many(self, records: list[TickRecord]) -> int:
        """Insert records in one transaction; returns rows written."""
        if not records:
            return 0
        conn = self._require_conn()
        with conn:
            conn.executemany(
                """
                INSERT INTO ticks (slug, timestamp_ms, up_price, down_price,
                                   symbol, period, outcome, coin_price_bias)
                VALUES (?, ?, ?, ?, ?, ?, ?, ?)
                """,
                [
                    (r.slug, r.timestamp_ms, r.up_price, r.down_price,
                     r.symbol, r.period, r.outcome, r.coin_price_bias)
                    for r in records
                ],
            )
        return len(records)

    def get_by_slug(self, slug: str) -> list[TickRecord]:
        """All ticks of one contract in timestamp order."""
        conn = self._require_conn()
        rows = conn.execute(
            """
            SELECT slug, timestamp_ms, up_price, down_price, symbol, period,
                   outcome, coin_price_bias
            FROM ticks WHERE slug = ? ORDER BY timestamp_ms, id
            """,
            (slug,),
        ).fetchall()
        return [TickRecord(*row) for row in rows]

    def slugs(
        self,
        symbol: Optional[CoinSymbol] = None,
        period: Optional[PeriodKind] = None,
    ) -> list[str]:
        """Distinct archived slugs, oldest first, optionally filtered."""
        conn = self._require_conn()
        query = "SELECT slug, MIN(timestamp_ms) AS first_ts FROM ticks"
        clauses, params = [], []
        if symbol is not None:
            clauses.append("symbol = ?")
            params.append(symbol.value)
        if period is not None:
            clauses.append("period = ?")
            params.append(period.value)
        if clauses:
            query += " WHERE " + " AND ".join(clauses)
        query += " GROUP BY slug ORDER BY first_ts"
        return [row[0] for row in conn.execute(query, params).fetchall()]

    def delete_slug(self, slug: str) -> int:
        conn = self._require_conn()
        with conn:
            cursor = conn.execute("DELETE FROM ticks WHERE slug = ?", (slug,))
        return cursor.rowcount

    def close(self) -> None:
        """Close the database connection."""
        if self._conn:
            self._conn.close()
            self._conn = None
            logger.info("Tick store closed")


class TickRecorder:
    """
    Per-contract tick buffer in front of the durable store.

    Ticks stay in memory until finalize() writes them with the winning
    side and clears the buffer.
    """

    def __init__(
        self,
        symbol: CoinSymbol,
        period: PeriodKind,
        store: Optional[SQLiteTickStore] = None,
    ):
        self._symbol = symbol
        self._period = period
        self._store = store
        self._buffers: dict[str, list[Tick]] = defaultdict(list)

    def record(self, slug: str, tick: Tick) -> None:
        self._buffers[slug].append(tick)

    def buffered(self, slug: str) -> list[Tick]:
        return list(self._buffers.get(slug, []))

    @property
    def pending_slugs(self) -> list[str]:
        return list(self._buffers)

    def finalize(self, slug: str, winner: Optional[Outcome]) -> int:
        """
        Flush one contract to the store.

        Returns:
            Number of ticks written (0 without a store)
        """
        ticks = self._buffers.pop(slug, [])
        if not ticks or self._store is None:
            return 0

        records = [
            TickRecord(
                slug=slug,
                timestamp_ms=t.timestamp_ms,
                up_price=t.up_price,
                down_price=t.down_price,
                symbol=self._symbol.value,
                period=self._period.value,
                outcome=winner.value if winner else None,
                coin_price_bias=t.coin_price_bias,
            )
            for t in ticks
        ]
        try:
            written = self._store.put_many(records)
        except sqlite3.Error as e:
            logger.error(f"Failed to archive {len(records)} ticks for {slug}: {e}")
            return 0

        logger.info(f"Archived {written} ticks for {slug} (winner {winner.value if winner else '-'})")
        return written
