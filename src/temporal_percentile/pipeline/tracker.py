"""SQLite-based aggregation progress tracker.

Records every daily mean band as it is persisted into the time-series store
(or fails to be), so that a run can be inspected after the fact.
"""

import sqlite3
import logging
import threading
from pathlib import Path
from datetime import datetime, timezone
from typing import Dict, List, Optional

logger = logging.getLogger(__name__)


class AggregationTracker:
    """Tracks daily band persistence.

    **Database Schema:**

    SQLite table `daily_bands`:

    - day: Day index (MJD), primary key
    - band_name: Daily mean band name in the time-series store
    - n_sources: Number of input rasters averaged into the band
    - status: persisted or failed
    - persisted_at: UTC timestamp (ISO format)
    - error_message: Failure reason, if any

    **Thread Safety:**

    All methods are thread-safe via internal locking.

    **Typical Usage:**

        tracker = AggregationTracker(db_path)
        tracker.mark_persisted(56658, "chl_20140101.000000.000", n_sources=2)
        stats = tracker.get_statistics()
        tracker.close()
    """

    def __init__(self, db_path: Path | str):
        """Initialize tracker.

        Parameters
        ----------
        db_path : Path or str
            Path to SQLite database file, or ``":memory:"``. Created if it
            doesn't exist.
        """
        self.db_path = db_path if db_path == ":memory:" else Path(db_path)
        if isinstance(self.db_path, Path):
            self.db_path.parent.mkdir(parents=True, exist_ok=True)

        self._conn = None
        self._lock = threading.Lock()

        self._init_database()
        logger.info("Aggregation tracker initialized: %s", self.db_path)

    def _get_connection(self) -> sqlite3.Connection:
        if self._conn is None:
            self._conn = sqlite3.connect(str(self.db_path), check_same_thread=False)
            self._conn.row_factory = sqlite3.Row
        return self._conn

    def _init_database(self):
        conn = self._get_connection()

        with self._lock:
            conn.execute("""
                CREATE TABLE IF NOT EXISTS daily_bands (
                    day INTEGER PRIMARY KEY,
                    band_name TEXT NOT NULL,
                    n_sources INTEGER,
                    status TEXT DEFAULT 'pending',
                    persisted_at TEXT,
                    error_message TEXT
                )
            """)
            conn.execute("CREATE INDEX IF NOT EXISTS idx_status ON daily_bands(status)")
            conn.commit()

    def _upsert(self, day: int, band_name: str, n_sources: int, status: str,
                error: Optional[str] = None):
        conn = self._get_connection()
        with self._lock:
            conn.execute("""
                INSERT INTO daily_bands (day, band_name, n_sources, status, persisted_at, error_message)
                VALUES (?, ?, ?, ?, ?, ?)
                ON CONFLICT(day) DO UPDATE SET
                    band_name = excluded.band_name,
                    n_sources = excluded.n_sources,
                    status = excluded.status,
                    persisted_at = excluded.persisted_at,
                    error_message = excluded.error_message
            """, (
                int(day),
                band_name,
                int(n_sources),
                status,
                datetime.now(timezone.utc).isoformat(),
                error,
            ))
            conn.commit()

    def mark_persisted(self, day: int, band_name: str, n_sources: int):
        """Record a daily band written to the store."""
        self._upsert(day, band_name, n_sources, 'persisted')
        logger.debug("Marked persisted: %s", band_name)

    def mark_failed(self, day: int, band_name: str, n_sources: int, error: str):
        """Record a daily band that could not be written."""
        self._upsert(day, band_name, n_sources, 'failed', error)
        logger.debug("Marked failed: %s (%s)", band_name, error)

    def get_record(self, day: int) -> Optional[Dict]:
        conn = self._get_connection()
        with self._lock:
            row = conn.execute("SELECT * FROM daily_bands WHERE day = ?", (int(day),)).fetchone()
        return dict(row) if row else None

    def get_persisted_days(self) -> List[int]:
        conn = self._get_connection()
        with self._lock:
            rows = conn.execute(
                "SELECT day FROM daily_bands WHERE status = 'persisted' ORDER BY day"
            ).fetchall()
        return [row['day'] for row in rows]

    def get_statistics(self) -> Dict:
        """Summary counts.

        Returns
        -------
        dict
            ``total``, ``persisted``, ``failed`` band counts and
            ``sources``, the number of rasters in persisted bands.
        """
        conn = self._get_connection()
        with self._lock:
            row = conn.execute("""
                SELECT
                    COUNT(*) AS total,
                    SUM(CASE WHEN status = 'persisted' THEN 1 ELSE 0 END) AS persisted,
                    SUM(CASE WHEN status = 'failed' THEN 1 ELSE 0 END) AS failed,
                    SUM(CASE WHEN status = 'persisted' THEN n_sources ELSE 0 END) AS sources
                FROM daily_bands
            """).fetchone()
        return {key: (row[key] or 0) for key in ('total', 'persisted', 'failed', 'sources')}

    def close(self):
        if self._conn:
            self._conn.close()
            self._conn = None
            logger.debug("Aggregation tracker closed")
